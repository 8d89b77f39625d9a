"""Tests for the merchant form API."""
from __future__ import annotations

from unittest import mock

from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from shops.models import Session

from .codes import CodeSpaceExhausted, generate_unique_code
from .models import Form, FormField

SHOP = "acme.myshopify.com"


def _field(label: str, field_type: str = "text", **extra):
    payload = {"label": label, "type": field_type, "required": False}
    payload.update(extra)
    return payload


class FormApiTests(TestCase):
    def setUp(self) -> None:
        Session.objects.create(id=f"offline_{SHOP}", shop=SHOP, access_token="shpat_acme")
        self.client = APIClient()
        self.client.credentials(HTTP_X_SHOPIFY_SHOP_DOMAIN=SHOP)

    def test_create_and_list_forms(self) -> None:
        payload = {
            "title": "Wholesale enquiry",
            "description": "Collects trade account requests.",
            "fields": [
                _field("First Name", required=True),
                _field("Email", "email", required=True),
                _field("Industry", "select", options=["Retail", "Hospitality"]),
            ],
        }
        response = self.client.post(reverse("form-list"), payload, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["shop"], SHOP)
        self.assertRegex(response.data["code"], r"^\d{5}$")
        self.assertEqual([field["position"] for field in response.data["fields"]], [0, 1, 2])

        response = self.client.get(reverse("form-list"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        form = Form.objects.get()
        self.assertEqual(form.fields.count(), 3)
        self.assertEqual(form.fields.get(label="Industry").options, ["Retail", "Hospitality"])

    def test_update_replaces_fields(self) -> None:
        create_payload = {
            "title": "Contact",
            "fields": [_field("First Name"), _field("Last Name"), _field("Email", "email")],
        }
        response = self.client.post(reverse("form-list"), create_payload, format="json")
        form_id = response.data["id"]
        code = response.data["code"]

        update_payload = {
            "title": "Contact us",
            "description": "",
            "fields": [_field("Email", "email", required=True), _field("Message", "textarea")],
        }
        response = self.client.put(reverse("form-detail", args=[form_id]), update_payload, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], code)
        self.assertEqual([field["label"] for field in response.data["fields"]], ["Email", "Message"])

        fields = list(FormField.objects.filter(form_id=form_id))
        self.assertEqual([(field.label, field.position) for field in fields], [("Email", 0), ("Message", 1)])
        self.assertTrue(fields[0].required)

    def test_partial_update_validates_fields_in_full(self) -> None:
        form = Form.objects.create(code="12345", shop=SHOP, title="Contact")
        FormField.objects.create(form=form, field_type="email", label="Email")
        url = reverse("form-detail", args=[form.id])

        response = self.client.patch(url, {"fields": [{"placeholder": "x"}]}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("fields", response.data)
        self.assertEqual(list(form.fields.values_list("field_type", "label")), [("email", "Email")])

        response = self.client.patch(url, {"fields": [_field("Message", "textarea")]}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(form.fields.values_list("field_type", "label")), [("textarea", "Message")])

        response = self.client.patch(url, {"title": "Contact us"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(form.fields.count(), 1)

    def test_options_dropped_for_non_choice_fields(self) -> None:
        payload = {"title": "Survey", "fields": [_field("Comment", options=["ignored"])]}
        response = self.client.post(reverse("form-list"), payload, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["fields"][0]["options"], [])

    def test_choice_fields_need_options(self) -> None:
        payload = {"title": "Survey", "fields": [_field("Colour", "radio")]}
        response = self.client.post(reverse("form-list"), payload, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Form.objects.exists())

    def test_forms_are_scoped_to_shop(self) -> None:
        other = Form.objects.create(code="54321", shop="other.myshopify.com", title="Theirs")
        Form.objects.create(code="12345", shop=SHOP, title="Ours")

        response = self.client.get(reverse("form-list"))
        self.assertEqual([form["title"] for form in response.data], ["Ours"])

        response = self.client.get(reverse("form-detail", args=[other.id]))
        self.assertEqual(response.status_code, 404)

    def test_delete_form(self) -> None:
        form = Form.objects.create(code="12345", shop=SHOP, title="Old")
        FormField.objects.create(form=form, field_type="text", label="Name")

        response = self.client.delete(reverse("form-detail", args=[form.id]))
        self.assertEqual(response.status_code, 204)
        self.assertFalse(Form.objects.exists())
        self.assertFalse(FormField.objects.exists())

    def test_requires_installed_shop(self) -> None:
        anonymous = APIClient()
        self.assertEqual(anonymous.get(reverse("form-list")).status_code, 401)

        anonymous.credentials(HTTP_X_SHOPIFY_SHOP_DOMAIN="stranger.myshopify.com")
        self.assertEqual(anonymous.get(reverse("form-list")).status_code, 401)

        anonymous.credentials(HTTP_X_SHOPIFY_SHOP_DOMAIN="example.com")
        self.assertEqual(anonymous.get(reverse("form-list")).status_code, 401)

    def test_shop_query_parameter(self) -> None:
        Form.objects.create(code="12345", shop=SHOP, title="Ours")
        response = APIClient().get(reverse("form-list"), {"shop": f"https://{SHOP}/admin"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)


class PublicFormTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.form = Form.objects.create(code="12345", shop=SHOP, title="Newsletter", description="Join us")
        FormField.objects.create(form=self.form, field_type="email", label="Email", required=True, position=1)
        FormField.objects.create(form=self.form, field_type="text", label="Name", position=0)

    def test_lookup_by_code(self) -> None:
        response = self.client.get(reverse("form-public", args=["12345"]), HTTP_ORIGIN="https://acme.example")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Access-Control-Allow-Origin"], "*")
        self.assertEqual(response.data["shop"], SHOP)
        self.assertEqual([field["label"] for field in response.data["fields"]], ["Name", "Email"])
        email = response.data["fields"][1]
        self.assertEqual(email["key"], f"field-{email['id']}")

    def test_unknown_code(self) -> None:
        response = self.client.get(reverse("form-public", args=["99999"]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["error"], "Form not found")


class HealthTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()

    def test_health(self) -> None:
        response = self.client.get(reverse("shopiform-health"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "ok")
        self.assertEqual(response.data["database"], "connected")
        self.assertNotIn("details", response.data)
        self.assertIn("no-cache", response["Cache-Control"])

    def test_detailed_health(self) -> None:
        Session.objects.create(id=f"offline_{SHOP}", shop=SHOP, access_token="shpat_acme")
        Form.objects.create(code="12345", shop=SHOP, title="Newsletter")

        response = self.client.get(reverse("shopiform-health"), {"detailed": "true"})
        database = response.data["details"]["database"]
        self.assertEqual(database["sessions"], 1)
        self.assertEqual(database["forms"], 1)
        self.assertIn("SHOPIFY_API_KEY", response.data["details"]["environment"])


class GenerateUniqueCodeTests(TestCase):
    def _rng(self, *values: int) -> mock.Mock:
        rng = mock.Mock()
        rng.randint.side_effect = list(values)
        return rng

    def test_skips_codes_in_use(self) -> None:
        Form.objects.create(code="12345", shop=SHOP, title="Taken")
        rng = self._rng(12345, 12345, 67890)

        self.assertEqual(generate_unique_code(rng=rng), "67890")
        self.assertEqual(rng.randint.call_count, 3)
        rng.randint.assert_called_with(10000, 99999)

    def test_widens_after_repeated_collisions(self) -> None:
        Form.objects.create(code="12345", shop=SHOP, title="Taken")
        rng = self._rng(12345, 12345, 123456)

        code = generate_unique_code(rng=rng, attempts=2, max_digits=6)
        self.assertEqual(code, "123456")
        rng.randint.assert_called_with(100000, 999999)

    def test_gives_up_when_every_width_is_taken(self) -> None:
        Form.objects.create(code="12345", shop=SHOP, title="Taken")
        rng = self._rng(12345, 12345)

        with self.assertRaises(CodeSpaceExhausted):
            generate_unique_code(rng=rng, attempts=2, max_digits=5)

    def test_default_generator_returns_five_digits(self) -> None:
        code = generate_unique_code()
        self.assertEqual(len(code), 5)
        self.assertGreaterEqual(int(code), 10000)
