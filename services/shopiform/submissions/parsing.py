"""Turn posted storefront data into a typed submission."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from rest_framework import serializers

from forms.models import Form, FormField

from .errors import InvalidSubmission

EMAIL_REQUIRED = "Email is required to create a customer"

ADDRESS_PARTS = ("country", "street", "apartment", "postal_code", "city", "province", "phone")


@dataclass(frozen=True)
class Address:
    street: str = ""
    apartment: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""
    country: str = ""
    phone: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.street and self.city and self.country)


@dataclass(frozen=True)
class CompanyDetails:
    name: str
    billing: Address
    shipping: Address

    @property
    def has_separate_shipping(self) -> bool:
        return self.shipping.is_complete


@dataclass
class Submission:
    form: Form
    values: Dict[str, str] = field(default_factory=dict)
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    company: Optional[CompanyDetails] = None

    @property
    def company_mode(self) -> bool:
        return self.company is not None

    @property
    def tags(self) -> List[str]:
        tags = [f"form-{self.form.code}", "form-submission"]
        if self.company is not None:
            tags += ["company-customer", f"company:{self.company.name}"]
        return tags

    @property
    def provenance(self) -> str:
        return f"Created via form: {self.form.title} (Code: {self.form.code})"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item).strip() for item in value if str(item).strip())
    return str(value).strip()


def _get(data: Mapping[str, Any], key: str) -> str:
    if hasattr(data, "getlist"):
        values = data.getlist(key)  # type: ignore[attr-defined]
        return _text(values if len(values) > 1 else (values[0] if values else None))
    return _text(data.get(key))


def _by_label(values: Mapping[str, str], *labels: str) -> str:
    lowered = {key.lower(): value for key, value in values.items()}
    for label in labels:
        value = lowered.get(label.lower())
        if value:
            return value
    return ""


def _first_of_type(fields: Sequence[FormField], values: Mapping[str, str], field_type: str) -> str:
    for form_field in fields:
        if form_field.field_type == field_type and values.get(form_field.key):
            return values[form_field.key]
    return ""


def _address(data: Mapping[str, Any], prefix: str, default_phone: str) -> Address:
    parts = {part: _get(data, f"{prefix}_{part}") for part in ADDRESS_PARTS}
    parts["phone"] = parts["phone"] or default_phone
    return Address(**parts)


def _company(data: Mapping[str, Any], company_field: FormField, phone: str) -> Optional[CompanyDetails]:
    prefix = company_field.key
    name = _get(data, f"{prefix}_billing_company_name")
    if not name:
        return None
    return CompanyDetails(
        name=name,
        billing=_address(data, f"{prefix}_billing", phone),
        shipping=_address(data, f"{prefix}_shipping", phone),
    )


def values_serializer(fields: Sequence[FormField]) -> type:
    """Build a serializer class validating the plain values of one form.

    Company fields are posted as several sub-keys and are read separately.
    """

    declared: Dict[str, serializers.Field] = {}
    for form_field in fields:
        if form_field.field_type == FormField.COMPANY:
            continue
        if form_field.field_type in FormField.OPTION_TYPES:
            declared[form_field.key] = serializers.ChoiceField(
                choices=form_field.options, required=form_field.required
            )
        else:
            declared[form_field.key] = serializers.CharField(required=form_field.required)
    return type("SubmissionValuesSerializer", (serializers.Serializer,), declared)


def parse_submission(form: Form, data: Mapping[str, Any]) -> Submission:
    """Read every field of ``form`` out of ``data``.

    Values are stored under both the field label and the field key. Raises
    :class:`InvalidSubmission` when no email can be found, when a required
    field is blank or when a choice field holds an unknown option.
    """

    fields = list(form.fields.all())
    raw = {
        form_field.key: _get(data, form_field.key)
        for form_field in fields
        if form_field.field_type != FormField.COMPANY
    }
    serializer = values_serializer(fields)(data={key: value for key, value in raw.items() if value})
    errors = {} if serializer.is_valid() else serializer.errors

    values: Dict[str, str] = {}
    missing: List[str] = []
    company_field: Optional[FormField] = None

    for form_field in fields:
        if form_field.field_type == FormField.COMPANY:
            company_field = company_field or form_field
            if form_field.required and not _get(data, f"{form_field.key}_billing_company_name"):
                missing.append(form_field.label)
            continue
        field_errors = errors.get(form_field.key)
        if field_errors:
            if any(error.code == "invalid_choice" for error in field_errors):
                raise InvalidSubmission(f"Invalid choice for {form_field.label}: {raw[form_field.key]}")
            missing.append(form_field.label)
            continue
        value = raw[form_field.key]
        if value:
            values[form_field.label] = value
            values[form_field.key] = value

    email = _by_label(values, "Email") or _first_of_type(fields, values, FormField.EMAIL)
    if not email:
        raise InvalidSubmission(EMAIL_REQUIRED)
    if missing:
        raise InvalidSubmission(
            f"Please fill in the following required fields: {', '.join(missing)}",
            submission_data=values,
        )

    phone = _by_label(values, "Phone") or _first_of_type(fields, values, FormField.PHONE)
    company = _company(data, company_field, phone) if company_field is not None else None

    return Submission(
        form=form,
        values=values,
        first_name=_by_label(values, "First Name", "Name"),
        last_name=_by_label(values, "Last Name"),
        email=email,
        phone=phone,
        company=company,
    )
