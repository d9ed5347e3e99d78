"""Inbound payment gateway webhook endpoint."""
from __future__ import annotations

from django.conf import settings
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework.views import APIView

from credits.services.webhooks import handle_payment_webhook

from .base import CreditsMetricsMixin


@method_decorator(csrf_exempt, name="dispatch")
class PaymentWebhookView(CreditsMetricsMixin, APIView):
    """Authenticated by HMAC signature, not by session or token."""

    authentication_classes = []
    permission_classes = []
    http_method_names = ["post"]
    endpoint_label = "credits.webhooks.payments"

    def post(self, request, *args, **kwargs):
        signature_header = request.headers.get(
            getattr(settings, "PAYMENT_WEBHOOK_SIGNATURE_HEADER", "X-Webhook-Signature")
        )
        timestamp_header = request.headers.get(
            getattr(settings, "PAYMENT_WEBHOOK_TIMESTAMP_HEADER", "X-Webhook-Timestamp")
        )

        result = handle_payment_webhook(request.body, signature_header, timestamp_header)
        return self._success_response(result.as_dict())
