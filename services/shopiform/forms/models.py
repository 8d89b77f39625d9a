"""Database models for merchant forms."""
from __future__ import annotations

from django.db import models


class Form(models.Model):
    """A lead-capture form owned by one shop."""

    code = models.CharField(max_length=12, unique=True, editable=False)
    shop = models.CharField(max_length=255, db_index=True)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.title} [{self.code}]"


class FormField(models.Model):
    """A field that belongs to a form."""

    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    EMAIL = "email"
    PHONE = "phone"
    DATE = "date"
    COMPANY = "company"

    FIELD_TYPES = [
        (TEXT, "Text"),
        (TEXTAREA, "Text area"),
        (SELECT, "Select"),
        (CHECKBOX, "Checkbox"),
        (RADIO, "Radio"),
        (EMAIL, "Email"),
        (PHONE, "Phone"),
        (DATE, "Date"),
        (COMPANY, "Company"),
    ]

    OPTION_TYPES = frozenset({SELECT, RADIO})

    form = models.ForeignKey(Form, related_name="fields", on_delete=models.CASCADE)
    field_type = models.CharField(max_length=32, choices=FIELD_TYPES)
    label = models.CharField(max_length=255)
    placeholder = models.CharField(max_length=255, blank=True)
    required = models.BooleanField(default=False)
    options = models.JSONField(default=list, blank=True)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position", "id"]

    def __str__(self) -> str:
        return f"{self.label} ({self.field_type})"

    @property
    def key(self) -> str:
        """Name of the input this field posts as."""

        return f"field-{self.pk}"
