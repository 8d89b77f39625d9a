"""Tests for storefront submissions."""
from __future__ import annotations

from typing import Any, Dict, List, Optional
from unittest import mock

from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from forms.models import Form, FormField
from shops.admin_api import ShopifyAPIError
from shops.models import Session

from .errors import InvalidSubmission
from .parsing import EMAIL_REQUIRED, Address, CompanyDetails, Submission, parse_submission, values_serializer
from .reconciler import build_company_input, build_customer_input

SHOP = "acme.myshopify.com"
SCOPES = "write_customers,write_companies"


def _response(payload: Dict[str, Any], status_code: int = 200) -> mock.Mock:
    response = mock.Mock()
    response.status_code = status_code
    response.text = str(payload)
    response.json.return_value = payload
    return response


def _customer_created(email: str = "jane@x.com", customer_id: str = "gid://shopify/Customer/1") -> mock.Mock:
    return _response(
        {
            "data": {
                "customerCreate": {
                    "customer": {"id": customer_id, "email": email, "firstName": "Jane"},
                    "userErrors": [],
                }
            }
        }
    )


def _company_created() -> mock.Mock:
    company = {
        "id": "gid://shopify/Company/1",
        "name": "Acme Corp",
        "externalId": "12345",
        "mainContact": {
            "id": "gid://shopify/CompanyContact/1",
            "customer": {"id": "gid://shopify/Customer/1", "email": "jane@x.com"},
        },
        "locations": {"edges": [{"node": {"id": "gid://shopify/CompanyLocation/1", "name": "Acme Corp - Main Location"}}]},
    }
    return _response({"data": {"companyCreate": {"company": company, "userErrors": []}}})


PLUS_REQUIRED = _response(
    {
        "errors": [
            {
                "message": "Access denied for companyCreate field.",
                "extensions": {"code": "ACCESS_DENIED"},
            }
        ]
    }
)


class SubmissionTestCase(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.session = Session.objects.create(
            id=f"offline_{SHOP}", shop=SHOP, access_token="shpat_acme", scope=SCOPES
        )
        patcher = mock.patch("shops.admin_api.get_http_session")
        self.http = patcher.start().return_value
        self.addCleanup(patcher.stop)

    def make_form(self, *fields: Dict[str, Any], code: str = "12345", title: str = "Lead capture") -> Form:
        form = Form.objects.create(code=code, shop=SHOP, title=title)
        for position, attrs in enumerate(fields):
            FormField.objects.create(form=form, position=position, **attrs)
        return form

    def key(self, form: Form, label: str) -> str:
        return form.fields.get(label=label).key

    def submit(self, form: Optional[Form], values: Dict[str, str], **overrides: str):
        payload = {"formCode": form.code if form else "", "shop": SHOP}
        payload.update(overrides)
        payload.update(values)
        return self.client.post(reverse("form-submit"), payload)

    def sent(self) -> List[Dict[str, Any]]:
        return [call.kwargs["json"] for call in self.http.post.call_args_list]


class StandardSubmissionTests(SubmissionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.form = self.make_form(
            {"field_type": "text", "label": "First Name"},
            {"field_type": "text", "label": "Last Name"},
            {"field_type": "email", "label": "Email", "required": True},
            {"field_type": "phone", "label": "Phone"},
        )

    def test_email_only_submission_creates_customer(self) -> None:
        form = self.make_form({"field_type": "email", "label": "Work email", "required": True}, code="67890")
        self.http.post.return_value = _customer_created()

        response = self.submit(form, {self.key(form, "Work email"): "jane@x.com"})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["customer"]["email"], "jane@x.com")
        self.assertEqual(self.http.post.call_count, 1)
        customer_input = self.sent()[0]["variables"]["input"]
        self.assertEqual(customer_input["email"], "jane@x.com")
        self.assertEqual(customer_input["tags"], ["form-67890", "form-submission"])
        self.assertEqual(customer_input["note"], "Created via form: Lead capture (Code: 67890)")
        self.assertNotIn("company", response.data)

    def test_customer_fields_come_from_labels(self) -> None:
        self.http.post.return_value = _customer_created()

        response = self.submit(
            self.form,
            {
                self.key(self.form, "First Name"): "Jane",
                self.key(self.form, "Last Name"): "Doe",
                self.key(self.form, "Email"): "jane@x.com",
                self.key(self.form, "Phone"): "+15555550100",
            },
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["message"], "Form submitted successfully and customer created!")
        customer_input = self.sent()[0]["variables"]["input"]
        self.assertEqual(customer_input["firstName"], "Jane")
        self.assertEqual(customer_input["lastName"], "Doe")
        self.assertEqual(customer_input["phone"], "+15555550100")
        self.assertIn("customerCreate", self.sent()[0]["query"])
        submission_data = response.data["submissionData"]
        self.assertEqual(submission_data["Email"], "jane@x.com")
        self.assertEqual(submission_data[self.key(self.form, "Email")], "jane@x.com")

    def test_missing_email(self) -> None:
        form = self.make_form({"field_type": "text", "label": "Name"}, code="67890")

        response = self.submit(form, {self.key(form, "Name"): "Jane"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "Email is required to create a customer")
        self.http.post.assert_not_called()

    def test_missing_required_field(self) -> None:
        form = self.make_form(
            {"field_type": "email", "label": "Email"},
            {"field_type": "text", "label": "Company size", "required": True},
            code="67890",
        )

        response = self.submit(form, {self.key(form, "Email"): "jane@x.com"})

        self.assertEqual(response.status_code, 400)
        self.assertIn("Company size", response.data["error"])
        self.http.post.assert_not_called()

    def test_missing_code_or_shop(self) -> None:
        response = self.submit(None, {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "Form code and shop are required")

    def test_form_of_another_shop(self) -> None:
        response = self.submit(
            self.form, {self.key(self.form, "Email"): "jane@x.com"}, shop="other.myshopify.com"
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["error"], "Form not found")

    def test_no_session(self) -> None:
        Session.objects.all().delete()

        response = self.submit(self.form, {self.key(self.form, "Email"): "jane@x.com"})

        self.assertEqual(response.status_code, 503)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["error"], "No shop session found")
        self.assertEqual(response.data["submissionData"]["Email"], "jane@x.com")
        self.http.post.assert_not_called()

    def test_session_without_token(self) -> None:
        self.session.access_token = ""
        self.session.save()

        response = self.submit(self.form, {self.key(self.form, "Email"): "jane@x.com"})

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["error"], "Invalid session")

    def test_missing_customer_scope(self) -> None:
        self.session.scope = "read_customers"
        self.session.save()

        response = self.submit(self.form, {self.key(self.form, "Email"): "jane@x.com"})

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["error"], "Missing required permissions")
        self.http.post.assert_not_called()

    def test_customer_user_errors(self) -> None:
        errors = [{"field": ["email"], "message": "Email has already been taken"}]
        self.http.post.return_value = _response(
            {"data": {"customerCreate": {"customer": None, "userErrors": errors}}}
        )

        response = self.submit(self.form, {self.key(self.form, "Email"): "jane@x.com"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "Failed to create customer")
        self.assertEqual(response.data["details"], errors)

    def test_customer_graphql_errors(self) -> None:
        errors = [{"message": "Throttled", "extensions": {"code": "THROTTLED"}}]
        self.http.post.return_value = _response({"errors": errors})

        response = self.submit(self.form, {self.key(self.form, "Email"): "jane@x.com"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["details"], errors)
        self.assertEqual(self.http.post.call_count, 1)

    def test_customer_missing_from_response(self) -> None:
        self.http.post.return_value = _response({"data": {"customerCreate": {"customer": None, "userErrors": []}}})

        response = self.submit(self.form, {self.key(self.form, "Email"): "jane@x.com"})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["details"], "No customer object returned from API")

    def test_upstream_unreachable(self) -> None:
        self.http.post.side_effect = ShopifyAPIError("API returned status 502: Bad Gateway")

        response = self.submit(self.form, {self.key(self.form, "Email"): "jane@x.com"})

        self.assertEqual(response.status_code, 500)
        self.assertFalse(response.data["success"])

    def test_resubmission_is_not_deduplicated(self) -> None:
        self.http.post.side_effect = [_customer_created(), _customer_created(customer_id="gid://shopify/Customer/2")]
        values = {self.key(self.form, "Email"): "jane@x.com"}

        first = self.submit(self.form, values)
        second = self.submit(self.form, values)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(self.http.post.call_count, 2)


class CompanySubmissionTests(SubmissionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.form = self.make_form(
            {"field_type": "text", "label": "First Name"},
            {"field_type": "text", "label": "Last Name"},
            {"field_type": "email", "label": "Email", "required": True},
            {"field_type": "phone", "label": "Phone"},
            {"field_type": "company", "label": "Company"},
        )
        self.company_key = self.key(self.form, "Company")

    def company_values(self, name: str = "Acme Corp", shipping: bool = False) -> Dict[str, str]:
        prefix = self.company_key
        values = {
            self.key(self.form, "First Name"): "Jane",
            self.key(self.form, "Last Name"): "Doe",
            self.key(self.form, "Email"): "jane@x.com",
            self.key(self.form, "Phone"): "+15555550100",
            f"{prefix}_billing_company_name": name,
            f"{prefix}_billing_country": "US",
            f"{prefix}_billing_street": "1 Main St",
            f"{prefix}_billing_apartment": "Suite 4",
            f"{prefix}_billing_city": "Springfield",
            f"{prefix}_billing_province": "IL",
            f"{prefix}_billing_postal_code": "62701",
        }
        if shipping:
            values.update(
                {
                    f"{prefix}_shipping_country": "US",
                    f"{prefix}_shipping_street": "9 Dock Rd",
                    f"{prefix}_shipping_city": "Shelbyville",
                    f"{prefix}_shipping_postal_code": "62565",
                }
            )
        return values

    def test_falls_back_without_plus(self) -> None:
        self.http.post.side_effect = [PLUS_REQUIRED, _customer_created()]

        response = self.submit(self.form, self.company_values())

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])
        self.assertFalse(response.data["isShopifyPlus"])
        self.assertIn("Shopify Plus", response.data["note"])
        self.assertIsNone(response.data["company"])
        self.assertIsNone(response.data["companyLocation"])
        self.assertEqual(response.data["customer"]["email"], "jane@x.com")

        company_call, customer_call = self.sent()
        self.assertIn("companyCreate", company_call["query"])
        self.assertIn("customerCreate", customer_call["query"])
        customer_input = customer_call["variables"]["input"]
        self.assertEqual(
            customer_input["tags"],
            ["form-12345", "form-submission", "company-customer", "company:Acme Corp"],
        )
        self.assertIn("- Company: Acme Corp", customer_input["note"])
        self.assertIn("- Address: 1 Main St, Suite 4", customer_input["note"])
        self.assertNotIn("Shipping Address", customer_input["note"])
        self.assertEqual(len(customer_input["addresses"]), 1)
        self.assertEqual(customer_input["addresses"][0]["company"], "Acme Corp")
        self.assertEqual(customer_input["addresses"][0]["phone"], "+15555550100")

    def test_falls_back_on_plan_user_error(self) -> None:
        restricted = _response(
            {
                "data": {
                    "companyCreate": {
                        "company": None,
                        "userErrors": [{"field": None, "message": "B2B is not available on this plan", "code": "INVALID"}],
                    }
                }
            }
        )
        self.http.post.side_effect = [restricted, _customer_created()]

        response = self.submit(self.form, self.company_values(shipping=True))

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data["isShopifyPlus"])
        customer_input = self.sent()[1]["variables"]["input"]
        self.assertEqual(len(customer_input["addresses"]), 2)
        self.assertIn("Shipping Address:", customer_input["note"])

    def test_falls_back_when_company_call_fails(self) -> None:
        self.http.post.side_effect = [ShopifyAPIError("API returned status 500: oops"), _customer_created()]

        response = self.submit(self.form, self.company_values())

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data["isShopifyPlus"])
        self.assertEqual(self.http.post.call_count, 2)

    def test_plus_shop_gets_company_records(self) -> None:
        created = _company_created()
        tagged = _response(
            {
                "data": {
                    "customerUpdate": {
                        "customer": {
                            "id": "gid://shopify/Customer/1",
                            "email": "jane@x.com",
                            "tags": ["company-customer"],
                        },
                        "userErrors": [],
                    }
                }
            }
        )
        self.http.post.side_effect = [created, tagged]

        response = self.submit(self.form, self.company_values(shipping=True))

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["isShopifyPlus"])
        self.assertEqual(response.data["company"]["id"], "gid://shopify/Company/1")
        self.assertEqual(response.data["companyLocation"]["id"], "gid://shopify/CompanyLocation/1")
        self.assertEqual(response.data["customer"]["id"], "gid://shopify/Customer/1")
        self.assertNotIn("note", response.data)

        company_call, update_call = self.sent()
        company_input = company_call["variables"]["input"]
        self.assertEqual(company_input["company"], {"name": "Acme Corp", "externalId": "12345"})
        location = company_input["companyLocation"]
        self.assertFalse(location["billingSameAsShipping"])
        self.assertEqual(location["shippingAddress"]["address1"], "9 Dock Rd")
        self.assertEqual(location["billingAddress"]["address1"], "1 Main St")
        self.assertEqual(location["billingAddress"]["zoneCode"], "IL")
        self.assertEqual(company_input["companyContact"]["email"], "jane@x.com")

        self.assertIn("customerUpdate", update_call["query"])
        update_input = update_call["variables"]["input"]
        self.assertEqual(update_input["id"], "gid://shopify/Customer/1")
        self.assertIn("company:Acme Corp", update_input["tags"])

    def test_billing_used_for_shipping_when_no_separate_address(self) -> None:
        self.http.post.side_effect = [PLUS_REQUIRED, _customer_created()]

        self.submit(self.form, self.company_values())

        location = self.sent()[0]["variables"]["input"]["companyLocation"]
        self.assertTrue(location["billingSameAsShipping"])
        self.assertEqual(location["shippingAddress"]["address1"], "1 Main St")
        self.assertEqual(location["shippingAddress"]["countryCode"], "US")
        self.assertNotIn("billingAddress", location)

    def test_other_company_errors_abort(self) -> None:
        errors = [{"field": ["input", "company", "name"], "message": "Name is too long", "code": "TOO_LONG"}]
        self.http.post.return_value = _response({"data": {"companyCreate": {"company": None, "userErrors": errors}}})

        response = self.submit(self.form, self.company_values())

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "Failed to create company")
        self.assertEqual(response.data["details"], errors)
        self.assertEqual(self.http.post.call_count, 1)

    def test_company_graphql_errors_abort(self) -> None:
        errors = [{"message": "Internal error", "extensions": {"code": "INTERNAL"}}]
        self.http.post.return_value = _response({"errors": errors})

        response = self.submit(self.form, self.company_values())

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["error"], "Failed to create company")
        self.assertEqual(response.data["details"], errors)
        self.assertEqual(self.http.post.call_count, 1)

    def test_customer_update_user_errors_abort(self) -> None:
        errors = [{"field": ["tags"], "message": "Tags is invalid"}]
        rejected = _response({"data": {"customerUpdate": {"customer": None, "userErrors": errors}}})
        self.http.post.side_effect = [_company_created(), rejected]

        response = self.submit(self.form, self.company_values())

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["error"], "Failed to update customer")
        self.assertEqual(response.data["details"], errors)
        self.assertEqual(self.http.post.call_count, 2)

    def test_customer_update_graphql_errors_abort(self) -> None:
        errors = [{"message": "Throttled", "extensions": {"code": "THROTTLED"}}]
        self.http.post.side_effect = [_company_created(), _response({"errors": errors})]

        response = self.submit(self.form, self.company_values())

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "Failed to update customer")
        self.assertEqual(response.data["details"], errors)

    def test_customer_update_transport_failure(self) -> None:
        self.http.post.side_effect = [_company_created(), ShopifyAPIError("Request to acme.myshopify.com timed out")]

        response = self.submit(self.form, self.company_values())

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["error"], "Failed to update customer")
        self.assertIn("timed out", response.data["details"])

    def test_blank_company_name_takes_standard_path(self) -> None:
        self.http.post.return_value = _customer_created()

        response = self.submit(self.form, self.company_values(name=""))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.http.post.call_count, 1)
        self.assertIn("customerCreate", self.sent()[0]["query"])
        self.assertEqual(self.sent()[0]["variables"]["input"]["tags"], ["form-12345", "form-submission"])
        self.assertNotIn("company", response.data)
        self.assertNotIn("isShopifyPlus", response.data)


class ParseSubmissionTests(TestCase):
    def setUp(self) -> None:
        self.form = Form.objects.create(code="12345", shop=SHOP, title="Lead capture")
        self.name = FormField.objects.create(form=self.form, field_type="text", label="Name", position=0)
        self.email = FormField.objects.create(form=self.form, field_type="email", label="email", position=1)
        self.plan = FormField.objects.create(
            form=self.form, field_type="select", label="Plan", options=["Basic", "Pro"], position=2
        )

    def test_values_are_keyed_by_label_and_key(self) -> None:
        submission = parse_submission(
            self.form,
            {self.name.key: " Jane ", self.email.key: "jane@x.com", self.plan.key: "Pro"},
        )

        self.assertEqual(submission.first_name, "Jane")
        self.assertEqual(submission.email, "jane@x.com")
        self.assertEqual(submission.values["Plan"], "Pro")
        self.assertEqual(submission.values[self.plan.key], "Pro")
        self.assertFalse(submission.company_mode)

    def test_unknown_choice(self) -> None:
        with self.assertRaises(InvalidSubmission):
            parse_submission(self.form, {self.email.key: "jane@x.com", self.plan.key: "Gold"})

    def test_email_is_required(self) -> None:
        with self.assertRaises(InvalidSubmission) as ctx:
            parse_submission(self.form, {self.name.key: "Jane"})
        self.assertEqual(ctx.exception.error, EMAIL_REQUIRED)

    def test_required_company_needs_a_name(self) -> None:
        company = FormField.objects.create(
            form=self.form, field_type="company", label="Company", required=True, position=3
        )
        with self.assertRaises(InvalidSubmission) as ctx:
            parse_submission(self.form, {self.email.key: "jane@x.com", f"{company.key}_billing_city": "Springfield"})
        self.assertIn("Company", ctx.exception.error)

    def test_missing_fields_are_listed_in_form_order(self) -> None:
        self.plan.required = True
        self.plan.save()
        self.name.required = True
        self.name.save()

        with self.assertRaises(InvalidSubmission) as ctx:
            parse_submission(self.form, {self.email.key: "jane@x.com"})
        self.assertEqual(ctx.exception.error, "Please fill in the following required fields: Name, Plan")
        self.assertEqual(ctx.exception.submission_data["email"], "jane@x.com")

    def test_values_serializer_matches_form_fields(self) -> None:
        serializer = values_serializer(list(self.form.fields.all()))(data={self.plan.key: "Gold"})

        self.assertFalse(serializer.is_valid())
        self.assertEqual(list(serializer.errors), [self.plan.key])
        self.assertEqual(serializer.errors[self.plan.key][0].code, "invalid_choice")


class CompanyInputTests(TestCase):
    def setUp(self) -> None:
        self.form = Form.objects.create(code="12345", shop=SHOP, title="Trade")
        self.submission = Submission(form=self.form, email="jane@x.com", first_name="Jane", phone="+15555550100")
        self.company = CompanyDetails(
            name="Acme Corp",
            billing=Address(street="1 Main St", city="Springfield", country="US"),
            shipping=Address(),
        )

    def test_company_input_uses_given_details(self) -> None:
        company_input = build_company_input(self.submission, self.company)

        self.assertEqual(company_input["company"], {"name": "Acme Corp", "externalId": "12345"})
        location = company_input["companyLocation"]
        self.assertEqual(location["name"], "Acme Corp - Main Location")
        self.assertTrue(location["billingSameAsShipping"])
        self.assertEqual(location["shippingAddress"]["phone"], "+15555550100")

    def test_customer_without_company_keeps_provenance_note(self) -> None:
        customer_input = build_customer_input(self.submission)

        self.assertEqual(customer_input["note"], "Created via form: Trade (Code: 12345)")
        self.assertNotIn("addresses", customer_input)
