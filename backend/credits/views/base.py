"""Shared request metrics and response helpers for credits views."""
from __future__ import annotations

from typing import Any, Optional

from rest_framework.response import Response

from credits.observability.logging import log_credit_event
from credits.observability.metrics import CREDITS_REQUEST_COUNT, CREDITS_REQUEST_LATENCY


class CreditsMetricsMixin:
    endpoint_label: str = "credits"

    def dispatch(self, request, *args, **kwargs):
        with CREDITS_REQUEST_LATENCY.labels(endpoint=self.endpoint_label, method=request.method).time():
            return super().dispatch(request, *args, **kwargs)

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        CREDITS_REQUEST_COUNT.labels(
            endpoint=self.endpoint_label,
            method=request.method,
            status=str(response.status_code),
        ).inc()
        return response

    def _request_id(self) -> Optional[str]:
        request = getattr(self, "request", None)
        if request is None:
            return None
        return request.headers.get("X-Request-ID")

    def _success_response(self, payload, *, status: int = 200, author_id: Any = None,
                          message: Optional[str] = None):
        if message:
            log_credit_event(message=message, author_id=author_id, request_id=self._request_id())
        return Response(payload, status=status)

    def _error_response(
        self,
        *,
        status: int,
        code: str,
        message: str,
        details: dict | None = None,
        author_id: Any = None,
    ):
        log_credit_event(
            message=message,
            author_id=author_id,
            request_id=self._request_id(),
            extra={"code": code, "details": details or {}},
        )
        payload = {"code": code, "message": message, "details": details or {}}
        return Response(payload, status=status)
