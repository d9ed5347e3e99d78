"""Adapters for the external payment gateway that issues checkout tokens."""
from __future__ import annotations

from dataclasses import dataclass
import hashlib
import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.utils.module_loading import import_string
import stripe

from credits.exceptions import UpstreamUnavailable
from credits.observability.metrics import GATEWAY_FAILURE_COUNT

logger = logging.getLogger(__name__)


class GatewayConfigurationError(RuntimeError):
    """Raised when mandatory gateway configuration is missing."""


@dataclass(frozen=True)
class GatewayOrder:
    provider_order_id: str
    checkout_token: str


class PaymentGateway:
    """Interface every gateway adapter implements.

    ``create_order`` must be safe to call again with the same
    ``idempotency_key``: the gateway is expected to return the order it
    created the first time.
    """

    name = "gateway"

    def create_order(
        self,
        *,
        amount: int,
        currency: str,
        description: str,
        idempotency_key: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> GatewayOrder:
        raise NotImplementedError


def _stringify_metadata(values: Optional[Dict[str, Any]]) -> Dict[str, str]:
    return {key: "" if value is None else str(value) for key, value in (values or {}).items()}


class StripeGateway(PaymentGateway):
    """Creates a Stripe PaymentIntent; its client secret is the checkout token."""

    name = "stripe"

    def _configure(self) -> None:
        secret_key = getattr(settings, "STRIPE_SECRET_KEY", "")
        if not secret_key:
            raise GatewayConfigurationError("STRIPE_SECRET_KEY is not configured.")

        stripe.api_key = secret_key
        api_version = getattr(settings, "STRIPE_API_VERSION", None)
        if api_version:
            stripe.api_version = api_version
        stripe.max_network_retries = int(getattr(settings, "PAYMENT_GATEWAY_MAX_RETRIES", 2))
        stripe.default_http_client = stripe.new_default_http_client(
            timeout=int(getattr(settings, "PAYMENT_GATEWAY_TIMEOUT_SECONDS", 10))
        )

    def create_order(self, *, amount, currency, description, idempotency_key, metadata=None) -> GatewayOrder:
        self._configure()
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                description=description,
                metadata=_stringify_metadata(metadata),
                automatic_payment_methods={"enabled": True},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as exc:
            GATEWAY_FAILURE_COUNT.labels(provider=self.name).inc()
            logger.warning("Failed to create Stripe payment intent: %s", exc)
            raise UpstreamUnavailable(details={"provider": self.name}) from exc

        return GatewayOrder(provider_order_id=intent["id"], checkout_token=intent["client_secret"] or "")


class SandboxGateway(PaymentGateway):
    """Deterministic in-process gateway for local development and tests.

    Identifiers are derived from the idempotency key so retries map onto the
    same provider order, mirroring how a real gateway deduplicates.
    """

    name = "sandbox"

    def create_order(self, *, amount, currency, description, idempotency_key, metadata=None) -> GatewayOrder:
        digest = hashlib.sha256(idempotency_key.encode("utf-8")).hexdigest()
        return GatewayOrder(
            provider_order_id=f"sbx_{digest[:24]}",
            checkout_token=f"sbx_tok_{digest[24:48]}",
        )


def get_gateway() -> PaymentGateway:
    path = getattr(settings, "PAYMENT_GATEWAY_CLASS", "credits.services.gateway.StripeGateway")
    try:
        gateway_class = import_string(path)
    except ImportError as exc:
        raise GatewayConfigurationError(f"Cannot import payment gateway '{path}'.") from exc
    return gateway_class()
