"""Error taxonomy for credit operations and its mapping onto API responses."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class CreditsError(Exception):
    """Base exception for credit ledger operations."""

    status_code = 400
    default_code = "credits_error"
    default_message = "Credit operation failed."

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def as_payload(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class CreditValidationError(CreditsError):
    """Raised when a request has the wrong shape or references unknown data."""

    status_code = 400
    default_code = "validation_error"
    default_message = "Invalid request."


class WebhookUnauthorized(CreditsError):
    """Raised when a webhook signature is missing, invalid or stale."""

    status_code = 401
    default_code = "unauthorized"
    default_message = "Webhook signature verification failed."


class AuthorNotFound(CreditsError):
    status_code = 404
    default_code = "author_not_found"
    default_message = "Author not found."


class OrderNotFound(CreditsError):
    status_code = 404
    default_code = "order_not_found"
    default_message = "Payment order not found."


class InsufficientCredits(CreditsError):
    """Raised on mutation paths when the balance cannot cover the required credits."""

    status_code = 402
    default_code = "insufficient_credits"
    default_message = "Not enough credits for this action."


class IdempotencyConflict(CreditsError):
    """Raised when an idempotency key is reused for a different request."""

    status_code = 409
    default_code = "idempotency_conflict"
    default_message = "Idempotency key was already used for a different request."


class UpstreamUnavailable(CreditsError):
    """Raised when the payment gateway cannot be reached; safe to retry."""

    status_code = 503
    default_code = "upstream_unavailable"
    default_message = "Payment provider is temporarily unavailable. Please retry."


def credits_exception_handler(exc, context):
    """Render every API error as ``{"code", "message", "details"}``."""

    if isinstance(exc, CreditsError):
        view = context.get("view")
        logger.info(
            "Credits request failed in %s: %s (%s)",
            type(view).__name__ if view is not None else "unknown",
            exc.code,
            exc.message,
        )
        return Response(exc.as_payload(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, drf_exceptions.ValidationError):
        code, message, details = "validation_error", "Invalid request.", response.data
    else:
        detail = response.data.get("detail") if isinstance(response.data, dict) else response.data
        code = getattr(exc, "default_code", "error")
        message = str(detail) if detail is not None else str(exc)
        details = {}

    response.data = {"code": code, "message": message, "details": details}
    return response
