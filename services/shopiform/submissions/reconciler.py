"""Turn a storefront form submission into Shopify customer records."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from forms.models import Form
from shops.admin_api import (
    ShopifyAdminClient,
    ShopifyAPIError,
    graphql_errors,
    is_plan_restricted,
    normalize_shop_domain,
    user_errors,
)
from shops.sessions import InvalidSession, SessionNotFound, resolve_credentials

from . import queries
from .errors import (
    FormNotFound,
    InvalidSubmission,
    MissingPermissions,
    SessionUnavailable,
    UpstreamError,
)
from .parsing import Address, CompanyDetails, Submission, parse_submission

logger = logging.getLogger(__name__)

CUSTOMER_SCOPE = "write_customers"
COMPANY_SCOPE = "write_companies"

STANDARD_MESSAGE = "Form submitted successfully and customer created!"
PLUS_MESSAGE = (
    "Company, location, and customer created successfully! "
    "Customer is assigned as the main contact."
)
FALLBACK_MESSAGE = (
    "Customer created with company information! (Note: B2B company creation requires "
    "Shopify Plus. Company details saved in customer profile.)"
)
FALLBACK_NOTE = (
    "Company information has been saved in the customer's address and notes. "
    "Upgrade to Shopify Plus to use B2B company features."
)

ClientFactory = Callable[[str, str], ShopifyAdminClient]


@dataclass
class ReconciliationResult:
    message: str
    customer: Optional[Dict[str, Any]]
    submission: Submission
    company: Optional[Dict[str, Any]] = None
    company_location: Optional[Dict[str, Any]] = None
    is_shopify_plus: bool = False
    note: Optional[str] = None

    def as_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": True,
            "message": self.message,
            "customer": self.customer,
        }
        if self.submission.company_mode:
            payload["company"] = self.company
            payload["companyLocation"] = self.company_location
            payload["isShopifyPlus"] = self.is_shopify_plus
            if self.note is not None:
                payload["note"] = self.note
        payload["submissionData"] = self.submission.values
        return payload


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value not in (None, "")}


def _company_address(submission: Submission, address: Address) -> Dict[str, Any]:
    return _compact(
        {
            "firstName": submission.first_name,
            "lastName": submission.last_name,
            "address1": address.street,
            "address2": address.apartment,
            "city": address.city,
            "zoneCode": address.province,
            "zip": address.postal_code,
            "countryCode": address.country,
            "phone": address.phone or submission.phone,
        }
    )


def _customer_address(submission: Submission, company: CompanyDetails, address: Address) -> Dict[str, Any]:
    return _compact(
        {
            "address1": address.street,
            "address2": address.apartment,
            "city": address.city,
            "province": address.province,
            "zip": address.postal_code,
            "country": address.country,
            "company": company.name,
            "phone": address.phone or submission.phone,
        }
    )


def _address_lines(title: str, address: Address) -> List[str]:
    lines = [f"{title}:"]
    if address.street:
        street = address.street
        if address.apartment:
            street = f"{street}, {address.apartment}"
        lines.append(f"- Address: {street}")
    for label, value in (
        ("City", address.city),
        ("State/Province", address.province),
        ("Postal Code", address.postal_code),
        ("Country", address.country),
        ("Phone", address.phone),
    ):
        if value:
            lines.append(f"- {label}: {value}")
    return lines


def company_note(submission: Submission, company: CompanyDetails) -> str:
    """Customer note carrying the company details a non-Plus shop cannot store."""

    lines = [submission.provenance, "", "Company Information:", f"- Company: {company.name}", ""]
    lines += _address_lines("Billing Address", company.billing)
    if company.has_separate_shipping:
        lines.append("")
        lines += _address_lines("Shipping Address", company.shipping)
    return "\n".join(lines)


def build_company_input(submission: Submission, company: CompanyDetails) -> Dict[str, Any]:
    separate_shipping = company.has_separate_shipping
    shipping = company.shipping if separate_shipping else company.billing

    location: Dict[str, Any] = {
        "name": f"{company.name} - Main Location",
        "shippingAddress": _company_address(submission, shipping),
        "billingSameAsShipping": not separate_shipping,
    }
    if separate_shipping and company.billing.is_complete:
        location["billingAddress"] = _company_address(submission, company.billing)

    return {
        "company": {"name": company.name, "externalId": submission.form.code},
        "companyLocation": location,
        "companyContact": _compact(
            {
                "email": submission.email,
                "firstName": submission.first_name,
                "lastName": submission.last_name,
            }
        ),
    }


def build_customer_input(submission: Submission) -> Dict[str, Any]:
    customer = _compact(
        {
            "email": submission.email,
            "firstName": submission.first_name,
            "lastName": submission.last_name,
            "phone": submission.phone,
        }
    )
    customer["tags"] = submission.tags
    company = submission.company
    if company is None:
        customer["note"] = submission.provenance
        return customer

    customer["note"] = company_note(submission, company)
    addresses = [
        _customer_address(submission, company, address)
        for address in (company.billing, company.shipping)
        if address.is_complete
    ]
    if addresses:
        customer["addresses"] = addresses
    return customer


class SubmissionReconciler:
    """Create the Shopify records for one submission.

    Company mode is decided once, from the parsed submission, before any
    remote call. Every mutation result is checked for both GraphQL errors and
    user errors; nothing is retried.
    """

    def __init__(self, client_factory: ClientFactory = ShopifyAdminClient) -> None:
        self.client_factory = client_factory

    def reconcile(self, shop: str, form_code: str, data: Mapping[str, Any]) -> ReconciliationResult:
        shop = (shop or "").strip()
        form_code = (form_code or "").strip()
        if not form_code or not shop:
            raise InvalidSubmission("Form code and shop are required")

        form = self._load_form(shop, form_code)
        submission = parse_submission(form, data)
        logger.info(
            "Submission for form %s on %s (company mode: %s)",
            form.code,
            form.shop,
            submission.company_mode,
        )

        client = self._client_for(form.shop, submission)
        if submission.company is not None:
            return self._reconcile_company(client, submission, submission.company)
        customer = self._create_customer(client, submission)
        return ReconciliationResult(message=STANDARD_MESSAGE, customer=customer, submission=submission)

    def _load_form(self, shop: str, form_code: str) -> Form:
        try:
            shop = normalize_shop_domain(shop)
        except ValueError:
            logger.info("Submission names a malformed shop %r", shop)
        form = Form.objects.prefetch_related("fields").filter(code=form_code).first()
        if form is None or form.shop != shop:
            logger.info("Form %s not found for %s", form_code, shop)
            raise FormNotFound()
        return form

    def _client_for(self, shop: str, submission: Submission) -> ShopifyAdminClient:
        try:
            credentials = resolve_credentials(shop)
        except SessionNotFound:
            raise SessionUnavailable(
                "No shop session found",
                message="Form submitted but customer could not be created (no session)",
                note="The app may not be installed on this shop or the session expired.",
                submission_data=submission.values,
            )
        except InvalidSession:
            raise SessionUnavailable(
                "Invalid session",
                message="Form submitted but customer could not be created (invalid session)",
                submission_data=submission.values,
            )

        if not credentials.has_scope(CUSTOMER_SCOPE):
            logger.error("Session for %s lacks %s", shop, CUSTOMER_SCOPE)
            raise MissingPermissions(
                "Missing required permissions",
                message=(
                    "The app needs to be reinstalled with updated permissions "
                    f"({CUSTOMER_SCOPE} scope required)"
                ),
                note="Please reinstall the app from the Shopify admin to update permissions.",
            )
        if submission.company_mode and not credentials.has_scope(COMPANY_SCOPE):
            logger.warning("Session for %s lacks %s; company creation may be refused", shop, COMPANY_SCOPE)
        return self.client_factory(credentials.shop, credentials.access_token)

    def _create_customer(self, client: ShopifyAdminClient, submission: Submission) -> Dict[str, Any]:
        customer_input = build_customer_input(submission)
        try:
            result = client.graphql(queries.CUSTOMER_CREATE, {"input": customer_input})
        except ShopifyAPIError as exc:
            raise UpstreamError(
                "Failed to create customer", details=str(exc), status_code=500
            ) from exc

        errors = graphql_errors(result) or user_errors(result, "customerCreate")
        if errors:
            logger.error("Customer creation for form %s failed: %s", submission.form.code, errors)
            raise UpstreamError("Failed to create customer", details=errors)

        customer = ((result.get("data") or {}).get("customerCreate") or {}).get("customer")
        if not customer or not customer.get("id"):
            logger.error("Customer creation for form %s returned no customer", submission.form.code)
            raise UpstreamError(
                "Failed to create customer",
                details="No customer object returned from API",
                status_code=500,
            )
        logger.info("Customer %s created from form %s", customer["id"], submission.form.code)
        return customer

    def _reconcile_company(
        self, client: ShopifyAdminClient, submission: Submission, details: CompanyDetails
    ) -> ReconciliationResult:
        company = self._create_company(client, submission, details)
        if company is None:
            customer = self._create_customer(client, submission)
            return ReconciliationResult(
                message=FALLBACK_MESSAGE,
                customer=customer,
                submission=submission,
                is_shopify_plus=False,
                note=FALLBACK_NOTE,
            )

        contact = company.get("mainContact") or {}
        customer = contact.get("customer")
        edges = (company.get("locations") or {}).get("edges") or []
        location = edges[0].get("node") if edges else None
        if customer and customer.get("id"):
            customer = self._tag_customer(client, submission, customer)
        logger.info(
            "Company %s created with customer %s from form %s",
            company.get("id"),
            (customer or {}).get("id"),
            submission.form.code,
        )
        return ReconciliationResult(
            message=PLUS_MESSAGE,
            customer=customer,
            submission=submission,
            company=company,
            company_location=location,
            is_shopify_plus=True,
        )

    def _create_company(
        self, client: ShopifyAdminClient, submission: Submission, details: CompanyDetails
    ) -> Optional[Dict[str, Any]]:
        """Return the created company, or None when the shop's plan cannot hold one."""

        try:
            result = client.graphql(queries.COMPANY_CREATE, {"input": build_company_input(submission, details)})
        except ShopifyAPIError as exc:
            logger.warning("Company creation failed (%s); saving company details on the customer", exc)
            return None

        errors = graphql_errors(result) or user_errors(result, "companyCreate")
        if errors:
            if is_plan_restricted(errors):
                logger.warning("Company creation requires Shopify Plus on %s", submission.form.shop)
                return None
            logger.error("Company creation for form %s failed: %s", submission.form.code, errors)
            raise UpstreamError("Failed to create company", details=errors)

        return ((result.get("data") or {}).get("companyCreate") or {}).get("company")

    def _tag_customer(
        self, client: ShopifyAdminClient, submission: Submission, customer: Dict[str, Any]
    ) -> Dict[str, Any]:
        customer_input = {
            "id": customer["id"],
            "tags": submission.tags,
            "note": submission.provenance,
        }
        try:
            result = client.graphql(queries.CUSTOMER_UPDATE, {"input": customer_input})
        except ShopifyAPIError as exc:
            raise UpstreamError(
                "Failed to update customer", details=str(exc), status_code=500
            ) from exc

        errors = graphql_errors(result) or user_errors(result, "customerUpdate")
        if errors:
            logger.error("Tagging customer %s failed: %s", customer["id"], errors)
            raise UpstreamError("Failed to update customer", details=errors)
        updated = ((result.get("data") or {}).get("customerUpdate") or {}).get("customer")
        return updated or customer
