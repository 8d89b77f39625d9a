"""Serializers for merchant forms."""
from __future__ import annotations

from typing import Any, Dict

from django.db import transaction
from rest_framework import serializers

from .models import Form, FormField


class FormFieldSerializer(serializers.ModelSerializer):
    type = serializers.ChoiceField(source="field_type", choices=FormField.FIELD_TYPES)
    options = serializers.ListField(
        child=serializers.CharField(max_length=255), default=list
    )
    key = serializers.CharField(read_only=True)

    class Meta:
        model = FormField
        fields = [
            "id",
            "key",
            "type",
            "label",
            "placeholder",
            "required",
            "options",
            "position",
        ]
        read_only_fields = ["position"]

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:  # type: ignore[override]
        """Options only apply to choice fields, which need at least one."""

        field_type = attrs.get("field_type")
        if field_type in FormField.OPTION_TYPES:
            if not attrs.get("options"):
                raise serializers.ValidationError(
                    {"options": "Select and radio fields need at least one option."}
                )
        else:
            attrs["options"] = []
        return attrs


class FormSerializer(serializers.ModelSerializer):
    fields = FormFieldSerializer(many=True)

    class Meta:
        model = Form
        fields = [
            "id",
            "code",
            "shop",
            "title",
            "description",
            "fields",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["code", "shop"]

    def to_internal_value(self, data):  # type: ignore[override]
        validated = super().to_internal_value(data)
        if self.partial and "fields" in validated:
            # A submitted field list replaces the stored one, so PATCH validates it in full.
            nested = FormFieldSerializer(data=data.get("fields"), many=True)
            if not nested.is_valid():
                raise serializers.ValidationError({"fields": nested.errors})
            validated["fields"] = nested.validated_data
        return validated

    def create(self, validated_data):  # type: ignore[override]
        fields = validated_data.pop("fields", [])
        with transaction.atomic():
            form = Form.objects.create(**validated_data)
            _create_fields(form, fields)
        return form

    def update(self, instance, validated_data):  # type: ignore[override]
        fields = validated_data.pop("fields", None)
        with transaction.atomic():
            for attr, value in validated_data.items():
                setattr(instance, attr, value)
            instance.save()

            if fields is not None:
                instance.fields.all().delete()
                _create_fields(instance, fields)
        return instance


class PublicFormSerializer(serializers.ModelSerializer):
    """What the storefront needs to render a form."""

    fields = FormFieldSerializer(many=True, read_only=True)

    class Meta:
        model = Form
        fields = ["id", "code", "title", "description", "fields", "shop"]


def _create_fields(form: Form, fields) -> None:
    for index, field in enumerate(fields):
        FormField.objects.create(form=form, position=index, **field)
