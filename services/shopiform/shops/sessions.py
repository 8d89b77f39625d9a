"""Resolve Admin API credentials for an installed shop."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional

from django.db.models import Q
from django.utils import timezone

from .models import Session

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Base class for session lookup failures."""

    def __init__(self, shop: str, message: str) -> None:
        super().__init__(message)
        self.shop = shop


class SessionNotFound(SessionError):
    def __init__(self, shop: str) -> None:
        super().__init__(shop, f"No session found for shop {shop}")


class InvalidSession(SessionError):
    def __init__(self, shop: str) -> None:
        super().__init__(shop, f"Session for shop {shop} has no access token")


@dataclass(frozen=True)
class ShopCredentials:
    shop: str
    access_token: str
    scopes: FrozenSet[str]
    is_online: bool = False

    def has_scope(self, name: str) -> bool:
        return name in self.scopes


def find_shop_session(shop: str) -> Optional[Session]:
    """Pick the session used for server-to-server calls on behalf of ``shop``.

    Offline sessions never expire and are preferred. Online sessions are only
    considered while they are still valid. Within each group a row holding an
    access token wins, then the one expiring last, then the lowest id, so the
    choice is stable for a given set of rows.
    """

    now = timezone.now()
    candidates = Session.objects.filter(shop=shop).filter(
        Q(is_online=False) | Q(expires__isnull=True) | Q(expires__gt=now)
    )

    def _rank(session: Session):
        expires = session.expires.timestamp() if session.expires else float("inf")
        return (session.is_online, not session.access_token, -expires, session.id)

    ranked = sorted(candidates, key=_rank)
    if not ranked:
        return None
    return ranked[0]


def resolve_credentials(shop: str) -> ShopCredentials:
    session = find_shop_session(shop)
    if session is None:
        logger.warning("No session found for shop %s", shop)
        raise SessionNotFound(shop)
    if not session.access_token:
        logger.warning("Session %s for shop %s has no access token", session.id, shop)
        raise InvalidSession(shop)

    logger.info(
        "Using %s session %s for shop %s",
        "online" if session.is_online else "offline",
        session.id,
        shop,
    )
    return ShopCredentials(
        shop=session.shop,
        access_token=session.access_token,
        scopes=session.scopes,
        is_online=session.is_online,
    )
