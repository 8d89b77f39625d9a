"""Request authentication for the merchant-facing API."""
from __future__ import annotations

from dataclasses import dataclass

from rest_framework import authentication, exceptions
from rest_framework.request import Request

from .admin_api import normalize_shop_domain
from .models import Session

SHOP_HEADER = "X-Shopify-Shop-Domain"


@dataclass(frozen=True)
class ShopPrincipal:
    """The installed shop a request acts for."""

    shop: str

    @property
    def is_authenticated(self) -> bool:
        return True

    def __str__(self) -> str:
        return self.shop


class ShopDomainAuthentication(authentication.BaseAuthentication):
    """Authenticate a request as the shop named in its header or query string.

    Only shops with a persisted OAuth session are accepted. The shop name is
    taken on trust: no session token is checked here, so a deployment must
    put Shopify session-token verification in front of this service and
    must not expose the merchant API directly.
    """

    def authenticate(self, request: Request):  # type: ignore[override]
        raw = request.headers.get(SHOP_HEADER) or request.query_params.get("shop")
        if not raw:
            return None
        try:
            shop = normalize_shop_domain(raw)
        except ValueError as exc:
            raise exceptions.AuthenticationFailed(str(exc)) from exc
        if not Session.objects.filter(shop=shop).exists():
            raise exceptions.AuthenticationFailed(f"App is not installed on {shop}.")
        return ShopPrincipal(shop=shop), None

    def authenticate_header(self, request: Request) -> str:
        return SHOP_HEADER
