"""Shopify Admin GraphQL API client."""
from __future__ import annotations

import atexit
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

SHOP_DOMAIN_SUFFIX = ".myshopify.com"
PLAN_RESTRICTION_MARKERS = ("Shopify Plus", "not available")
ACCESS_DENIED = "ACCESS_DENIED"

_http_session: Optional[requests.Session] = None
_http_session_lock = threading.Lock()


class ShopifyAPIError(Exception):
    """Raised when the Admin API cannot be reached or answers with garbage."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def normalize_shop_domain(value: str) -> str:
    """Reduce ``value`` to a bare ``<name>.myshopify.com`` host.

    Raises ``ValueError`` for anything that is not a myshopify domain.
    """

    domain = (value or "").strip().lower()
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix):]
    domain = domain.split("/")[0]
    if not domain:
        raise ValueError("Shop domain cannot be empty")
    if not domain.endswith(SHOP_DOMAIN_SUFFIX) or len(domain) == len(SHOP_DOMAIN_SUFFIX):
        raise ValueError(f"Not a myshopify.com domain: {value}")
    return domain


def get_http_session() -> requests.Session:
    """Return the process-wide connection pool, creating it on first use."""

    global _http_session
    if _http_session is None:
        with _http_session_lock:
            if _http_session is None:
                session = requests.Session()
                session.headers["Content-Type"] = "application/json"
                _http_session = session
    return _http_session


def close_http_session() -> None:
    """Release the shared connection pool. Safe to call more than once."""

    global _http_session
    with _http_session_lock:
        session, _http_session = _http_session, None
    if session is not None:
        session.close()


atexit.register(close_http_session)


def graphql_errors(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    errors = result.get("errors") or []
    return errors if isinstance(errors, list) else [{"message": str(errors)}]


def user_errors(result: Dict[str, Any], root: str) -> List[Dict[str, Any]]:
    payload = (result.get("data") or {}).get(root) or {}
    return list(payload.get("userErrors") or [])


def is_plan_restricted(errors: Iterable[Dict[str, Any]]) -> bool:
    """True when any error says the feature needs a higher Shopify plan."""

    for error in errors:
        message = str(error.get("message") or "")
        if any(marker in message for marker in PLAN_RESTRICTION_MARKERS):
            return True
        code = error.get("code") or (error.get("extensions") or {}).get("code")
        if code == ACCESS_DENIED:
            return True
    return False


class ShopifyAdminClient:
    """Issue GraphQL requests against one shop's Admin API."""

    def __init__(
        self,
        shop: str,
        access_token: str,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.shop = normalize_shop_domain(shop)
        self.access_token = access_token.strip()
        self.api_version = api_version or settings.SHOPIFY_API_VERSION
        self.timeout = timeout if timeout is not None else settings.SHOPIFY_API_TIMEOUT
        self.url = f"https://{self.shop}/admin/api/{self.api_version}/graphql.json"

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST a query and return the decoded body.

        GraphQL-level ``errors`` and mutation ``userErrors`` are left in the
        returned payload for the caller to inspect.
        """

        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.access_token,
        }
        try:
            response = get_http_session().post(
                self.url,
                json={"query": query, "variables": variables or {}},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            logger.error("Admin API request to %s timed out", self.shop)
            raise ShopifyAPIError(f"Request to {self.shop} timed out") from exc
        except requests.RequestException as exc:
            logger.error("Admin API request to %s failed: %s", self.shop, exc)
            raise ShopifyAPIError(f"Request to {self.shop} failed: {exc}") from exc

        logger.debug("Admin API %s responded %s", self.shop, response.status_code)
        if response.status_code >= 400:
            raise ShopifyAPIError(
                f"API returned status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ShopifyAPIError(
                f"Invalid JSON response: {response.text}",
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise ShopifyAPIError("Unexpected response body", status_code=response.status_code)
        return payload
