"""Tests for session lookup and the Admin API client."""
from __future__ import annotations

from datetime import timedelta
from unittest import mock

import requests
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone

from . import admin_api
from .admin_api import (
    ShopifyAdminClient,
    ShopifyAPIError,
    is_plan_restricted,
    normalize_shop_domain,
    user_errors,
)
from .models import Session
from .sessions import InvalidSession, SessionNotFound, find_shop_session, resolve_credentials

SHOP = "acme.myshopify.com"


class SessionLookupTests(TestCase):
    def test_prefers_offline_session(self) -> None:
        Session.objects.create(
            id="a_online",
            shop=SHOP,
            is_online=True,
            access_token="online-token",
            expires=timezone.now() + timedelta(hours=1),
        )
        Session.objects.create(id="z_offline", shop=SHOP, access_token="offline-token", scope="write_customers")

        credentials = resolve_credentials(SHOP)
        self.assertEqual(credentials.access_token, "offline-token")
        self.assertFalse(credentials.is_online)
        self.assertTrue(credentials.has_scope("write_customers"))

    def test_ignores_expired_online_sessions(self) -> None:
        Session.objects.create(
            id="online",
            shop=SHOP,
            is_online=True,
            access_token="stale",
            expires=timezone.now() - timedelta(minutes=5),
        )
        self.assertIsNone(find_shop_session(SHOP))
        with self.assertRaises(SessionNotFound):
            resolve_credentials(SHOP)

    def test_falls_back_to_valid_online_session(self) -> None:
        Session.objects.create(
            id="online",
            shop=SHOP,
            is_online=True,
            access_token="fresh",
            expires=timezone.now() + timedelta(minutes=5),
        )
        self.assertEqual(resolve_credentials(SHOP).access_token, "fresh")

    def test_prefers_session_with_token(self) -> None:
        Session.objects.create(id="a", shop=SHOP, access_token="")
        Session.objects.create(id="b", shop=SHOP, access_token="token-b")
        self.assertEqual(find_shop_session(SHOP).id, "b")

    def test_choice_is_stable(self) -> None:
        Session.objects.create(id="b", shop=SHOP, access_token="token-b")
        Session.objects.create(id="a", shop=SHOP, access_token="token-a")
        self.assertEqual(find_shop_session(SHOP).id, "a")

    def test_session_without_token(self) -> None:
        Session.objects.create(id="offline", shop=SHOP, access_token="")
        with self.assertRaises(InvalidSession):
            resolve_credentials(SHOP)

    def test_other_shops_are_ignored(self) -> None:
        Session.objects.create(id="offline", shop="other.myshopify.com", access_token="token")
        with self.assertRaises(SessionNotFound):
            resolve_credentials(SHOP)

    def test_scope_tokens_are_exact(self) -> None:
        session = Session(id="s", shop=SHOP, scope="read_customers, write_products")
        self.assertTrue(session.has_scope("read_customers"))
        self.assertFalse(session.has_scope("write_customers"))


def _response(status_code: int = 200, payload=None, text: str = "") -> mock.Mock:
    response = mock.Mock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload
    return response


@override_settings(SHOPIFY_API_VERSION="2025-01", SHOPIFY_API_TIMEOUT=7)
class ShopifyAdminClientTests(SimpleTestCase):
    def setUp(self) -> None:
        patcher = mock.patch("shops.admin_api.get_http_session")
        self.http = patcher.start().return_value
        self.addCleanup(patcher.stop)

    def test_posts_query_with_token_and_timeout(self) -> None:
        self.http.post.return_value = _response(payload={"data": {"shop": {"name": "Acme"}}})

        client = ShopifyAdminClient("https://Acme.myshopify.com/", " shpat_token ")
        result = client.graphql("{ shop { name } }", {"first": 1})

        self.assertEqual(result["data"]["shop"]["name"], "Acme")
        args, kwargs = self.http.post.call_args
        self.assertEqual(args[0], "https://acme.myshopify.com/admin/api/2025-01/graphql.json")
        self.assertEqual(kwargs["headers"]["X-Shopify-Access-Token"], "shpat_token")
        self.assertEqual(kwargs["json"], {"query": "{ shop { name } }", "variables": {"first": 1}})
        self.assertEqual(kwargs["timeout"], 7)

    def test_graphql_errors_are_returned(self) -> None:
        payload = {"errors": [{"message": "Access denied", "extensions": {"code": "ACCESS_DENIED"}}]}
        self.http.post.return_value = _response(payload=payload)

        result = ShopifyAdminClient(SHOP, "token").graphql("{ shop { name } }")
        self.assertEqual(result, payload)

    def test_http_error_status(self) -> None:
        self.http.post.return_value = _response(status_code=401, text="Invalid API key")

        with self.assertRaises(ShopifyAPIError) as ctx:
            ShopifyAdminClient(SHOP, "token").graphql("{ shop { name } }")
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertIn("Invalid API key", str(ctx.exception))

    def test_invalid_json(self) -> None:
        response = _response(text="<html>")
        response.json.side_effect = ValueError("no json")
        self.http.post.return_value = response

        with self.assertRaises(ShopifyAPIError):
            ShopifyAdminClient(SHOP, "token").graphql("{ shop { name } }")

    def test_timeout(self) -> None:
        self.http.post.side_effect = requests.Timeout("slow")

        with self.assertRaises(ShopifyAPIError) as ctx:
            ShopifyAdminClient(SHOP, "token").graphql("{ shop { name } }")
        self.assertIn("timed out", str(ctx.exception))

    def test_connection_error(self) -> None:
        self.http.post.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(ShopifyAPIError):
            ShopifyAdminClient(SHOP, "token").graphql("{ shop { name } }")


class AdminApiHelperTests(SimpleTestCase):
    def test_normalize_shop_domain(self) -> None:
        self.assertEqual(normalize_shop_domain("https://ACME.myshopify.com/admin"), SHOP)
        for bad in ("", "acme.com", ".myshopify.com"):
            with self.assertRaises(ValueError):
                normalize_shop_domain(bad)

    def test_plan_restriction_signals(self) -> None:
        self.assertTrue(is_plan_restricted([{"message": "This feature requires Shopify Plus"}]))
        self.assertTrue(is_plan_restricted([{"message": "Companies are not available"}]))
        self.assertTrue(is_plan_restricted([{"message": "Denied", "extensions": {"code": "ACCESS_DENIED"}}]))
        self.assertTrue(is_plan_restricted([{"message": "Denied", "code": "ACCESS_DENIED"}]))
        self.assertFalse(is_plan_restricted([{"message": "Name has already been taken", "code": "TAKEN"}]))

    def test_user_errors(self) -> None:
        result = {"data": {"customerCreate": {"customer": None, "userErrors": [{"message": "taken"}]}}}
        self.assertEqual(user_errors(result, "customerCreate"), [{"message": "taken"}])
        self.assertEqual(user_errors({"data": None}, "customerCreate"), [])

    def test_shared_http_session_lifecycle(self) -> None:
        admin_api.close_http_session()
        first = admin_api.get_http_session()
        self.assertIs(admin_api.get_http_session(), first)

        admin_api.close_http_session()
        admin_api.close_http_session()
        self.assertIsNot(admin_api.get_http_session(), first)
        admin_api.close_http_session()
