"""Terminal outcomes of a form submission."""
from __future__ import annotations

from typing import Any, Dict, Optional

from rest_framework import status


class SubmissionError(Exception):
    """A submission that ends without creating a customer.

    Each subclass maps to one HTTP status; :meth:`as_payload` renders the
    JSON body sent back to the storefront.
    """

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        error: str,
        *,
        message: Optional[str] = None,
        note: Optional[str] = None,
        details: Any = None,
        submission_data: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(error)
        self.error = error
        self.message = message
        self.note = note
        self.details = details
        self.submission_data = submission_data
        if status_code is not None:
            self.status_code = status_code

    def as_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": False, "error": self.error}
        if self.message is not None:
            payload["message"] = self.message
        if self.note is not None:
            payload["note"] = self.note
        if self.details is not None:
            payload["details"] = self.details
        if self.submission_data is not None:
            payload["submissionData"] = self.submission_data
        return payload


class InvalidSubmission(SubmissionError):
    status_code = status.HTTP_400_BAD_REQUEST


class FormNotFound(SubmissionError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self) -> None:
        super().__init__("Form not found")


class SessionUnavailable(SubmissionError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class MissingPermissions(SubmissionError):
    status_code = status.HTTP_403_FORBIDDEN


class UpstreamError(SubmissionError):
    """The Admin API rejected a mutation; ``details`` carries its errors verbatim."""

    status_code = status.HTTP_400_BAD_REQUEST
