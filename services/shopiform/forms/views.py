"""API views for merchant forms."""
from __future__ import annotations

import logging
import os
from typing import Any, Dict

from django.conf import settings
from django.db import DatabaseError, connection
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from shops.models import Session

from .codes import generate_unique_code
from .models import Form
from .serializers import FormSerializer, PublicFormSerializer

logger = logging.getLogger(__name__)


class FormViewSet(viewsets.ModelViewSet):
    serializer_class = FormSerializer
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["title", "description"]
    ordering_fields = ["title", "created_at", "updated_at"]
    ordering = ["-created_at"]

    def get_queryset(self):  # type: ignore[override]
        return Form.objects.filter(shop=self.request.user.shop).prefetch_related("fields")

    def perform_create(self, serializer: FormSerializer) -> None:
        form = serializer.save(shop=self.request.user.shop, code=generate_unique_code())
        logger.info("Form %s created for %s with code %s", form.id, form.shop, form.code)


@api_view(["GET"])
@authentication_classes([])
@permission_classes([AllowAny])
def public_form(request: Request, code: str) -> Response:
    """Storefront lookup of a form by its public code."""

    form = Form.objects.prefetch_related("fields").filter(code=code).first()
    if form is None:
        return Response({"error": "Form not found"}, status=status.HTTP_404_NOT_FOUND)
    return Response(PublicFormSerializer(form).data)


def _env_flag(name: str) -> str:
    return "set" if os.environ.get(name) or getattr(settings, name, "") else "missing"


def _detailed_report() -> Dict[str, Any]:
    try:
        database: Dict[str, Any] = {
            "sessions": Session.objects.count(),
            "forms": Form.objects.count(),
            "tablesExist": True,
        }
    except DatabaseError as exc:
        database = {"connected": True, "tablesExist": False, "error": str(exc)}
    return {
        "database": database,
        "environment": {
            "DATABASE_URL": _env_flag("DATABASE_URL"),
            "SHOPIFY_API_KEY": _env_flag("SHOPIFY_API_KEY"),
            "SHOPIFY_API_SECRET": _env_flag("SHOPIFY_API_SECRET"),
        },
    }


@api_view(["GET"])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request: Request) -> Response:
    """Readiness endpoint reporting database reachability."""

    detailed = request.query_params.get("detailed") == "true"
    payload: Dict[str, Any] = {
        "status": "ok",
        "timestamp": timezone.now().isoformat(),
        "database": "unknown",
    }

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        payload["database"] = "connected"
    except DatabaseError as exc:
        logger.error("Database health check failed: %s", exc)
        payload["database"] = "error"
        payload["status"] = "degraded"
        if detailed:
            payload["details"] = {"database": {"error": str(exc)}}
    else:
        if detailed:
            payload["details"] = _detailed_report()

    response = Response(payload)
    response["Cache-Control"] = "no-cache, no-store, must-revalidate"
    return response
