"""Database models for installed shops."""
from __future__ import annotations

from typing import FrozenSet

from django.db import models


class Session(models.Model):
    """An OAuth grant persisted by the app installer.

    Rows are written by the embedded-app OAuth flow; this service only reads
    them to obtain Admin API credentials for a shop.
    """

    id = models.CharField(max_length=255, primary_key=True)
    shop = models.CharField(max_length=255, db_index=True)
    state = models.CharField(max_length=255, blank=True)
    is_online = models.BooleanField(default=False)
    scope = models.TextField(blank=True)
    expires = models.DateTimeField(null=True, blank=True)
    access_token = models.CharField(max_length=255, blank=True)
    user_id = models.BigIntegerField(null=True, blank=True)
    email = models.EmailField(blank=True)
    account_owner = models.BooleanField(default=False)

    class Meta:
        ordering = ["shop", "id"]

    def __str__(self) -> str:
        kind = "online" if self.is_online else "offline"
        return f"{self.shop} ({kind})"

    @property
    def scopes(self) -> FrozenSet[str]:
        return frozenset(item.strip() for item in self.scope.split(",") if item.strip())

    def has_scope(self, name: str) -> bool:
        return name in self.scopes
