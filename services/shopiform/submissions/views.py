"""Public storefront endpoint for form submissions."""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.decorators import (
    api_view,
    authentication_classes,
    parser_classes,
    permission_classes,
)
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from .errors import SubmissionError
from .reconciler import SubmissionReconciler

logger = logging.getLogger(__name__)


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
@parser_classes([MultiPartParser, FormParser, JSONParser])
def submit(request: Request) -> Response:
    """Create Shopify customer records from a storefront form post."""

    data = request.data
    reconciler = SubmissionReconciler()
    try:
        result = reconciler.reconcile(data.get("shop"), data.get("formCode"), data)
    except SubmissionError as exc:
        return Response(exc.as_payload(), status=exc.status_code)
    except Exception as exc:
        logger.exception("Error processing form submission")
        return Response(
            {"success": False, "error": "Internal server error", "details": str(exc)},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return Response(result.as_payload())
