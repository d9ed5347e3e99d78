"""Reconcile payment gateway callbacks into orders and the credit ledger exactly once."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
import logging
from typing import Any, Dict, Optional, Tuple

from django.conf import settings
from django.db import transaction

from credits.exceptions import CreditValidationError, WebhookUnauthorized
from credits.models import CreditLedgerEntry, PaymentEvent, PaymentOrder
from credits.observability.logging import log_credit_event
from credits.observability.metrics import WEBHOOK_EVENT_COUNT
from credits.services import ledger
from credits.services.orders import transition_order
from credits.services.signatures import verify_signature

logger = logging.getLogger(__name__)


class WebhookEventKind(str, Enum):
    ORDER_COMPLETED = "order.completed"
    ORDER_FAILED = "order.failed"
    ORDER_PAYMENT_FAILED = "order.payment_failed"
    PAYMENT_FAILED = "payment.failed"
    ORDER_CANCELLED = "order.cancelled"
    DISPUTE_OPENED = "dispute.opened"


class WebhookEffect(Enum):
    COMPLETE = "complete"
    FAIL = "fail"
    CANCEL = "cancel"
    IGNORE = "ignore"


EVENT_EFFECTS: Dict[WebhookEventKind, WebhookEffect] = {
    WebhookEventKind.ORDER_COMPLETED: WebhookEffect.COMPLETE,
    WebhookEventKind.ORDER_FAILED: WebhookEffect.FAIL,
    WebhookEventKind.ORDER_PAYMENT_FAILED: WebhookEffect.FAIL,
    WebhookEventKind.PAYMENT_FAILED: WebhookEffect.FAIL,
    WebhookEventKind.ORDER_CANCELLED: WebhookEffect.CANCEL,
    WebhookEventKind.DISPUTE_OPENED: WebhookEffect.IGNORE,
}

EFFECT_STATUSES = {
    WebhookEffect.COMPLETE: PaymentOrder.Status.COMPLETED,
    WebhookEffect.FAIL: PaymentOrder.Status.FAILED,
    WebhookEffect.CANCEL: PaymentOrder.Status.CANCELLED,
}


@dataclass(frozen=True)
class WebhookResult:
    """Outcome of a webhook delivery; every outcome maps to HTTP 200."""

    status: str
    detail: str = ""
    order_id: Optional[str] = None
    order_status: Optional[str] = None

    PROCESSED = "processed"
    IGNORED = "ignored"
    ALREADY_PROCESSED = "already_processed"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "detail": self.detail,
            "order_id": self.order_id,
            "order_status": self.order_status,
        }


def effect_for(event_name: str) -> WebhookEffect:
    try:
        kind = WebhookEventKind(event_name)
    except ValueError:
        return WebhookEffect.IGNORE
    return EVENT_EFFECTS.get(kind, WebhookEffect.IGNORE)


def authenticate(raw_body: bytes, signature_header: Optional[str], timestamp_header: Optional[str]) -> None:
    secret = getattr(settings, "PAYMENT_WEBHOOK_SECRET", "")
    if not secret:
        logger.error("PAYMENT_WEBHOOK_SECRET is not configured; rejecting webhook.")
        raise WebhookUnauthorized()
    if not signature_header or not timestamp_header:
        logger.warning("Payment webhook missing signature or timestamp header.")
        raise WebhookUnauthorized("Missing webhook signature.")

    tolerance = int(getattr(settings, "PAYMENT_WEBHOOK_TOLERANCE_SECONDS", 300))
    if not verify_signature(raw_body, secret, timestamp_header, signature_header, tolerance=tolerance):
        logger.warning("Payment webhook signature verification failed.")
        raise WebhookUnauthorized()


def parse_payload(raw_body: bytes) -> Tuple[str, str, Dict[str, Any]]:
    """Return ``(event name, provider order id, payload)`` or raise a validation error."""

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise CreditValidationError("Webhook body is not valid JSON.") from exc
    if not isinstance(payload, dict):
        raise CreditValidationError("Webhook body must be a JSON object.")

    event_name = payload.get("event")
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    order_ref = payload.get("order_id") or data.get("id")
    if not isinstance(event_name, str) or not event_name:
        raise CreditValidationError("Webhook event type is required.", details={"field": "event"})
    if not isinstance(order_ref, str) or not order_ref:
        raise CreditValidationError("Webhook order reference is required.", details={"field": "order_id"})
    return event_name, order_ref, payload


def handle_payment_webhook(
    raw_body: bytes,
    signature_header: Optional[str],
    timestamp_header: Optional[str],
) -> WebhookResult:
    """Authenticate, validate and apply one gateway callback.

    Raises ``WebhookUnauthorized`` (401) or ``CreditValidationError`` (400);
    everything else, including duplicates and unsupported events, is a
    successful delivery.
    """

    authenticate(raw_body, signature_header, timestamp_header)
    event_name, order_ref, payload = parse_payload(raw_body)
    effect = effect_for(event_name)

    if effect is WebhookEffect.IGNORE:
        order = PaymentOrder.objects.filter(provider_order_id=order_ref).first()
        PaymentEvent.objects.create(
            order=order,
            event_type=PaymentEvent.EventType.WEBHOOK_IGNORED,
            provider_order_id=order_ref,
            data={"event": event_name},
        )
        WEBHOOK_EVENT_COUNT.labels(event="unsupported", outcome=WebhookResult.IGNORED).inc()
        logger.info("Ignoring unsupported payment event '%s' for %s.", event_name, order_ref)
        return WebhookResult(status=WebhookResult.IGNORED, detail="Unsupported event type")

    with transaction.atomic():
        order = PaymentOrder.objects.select_for_update().filter(provider_order_id=order_ref).first()
        if order is None:
            raise CreditValidationError(
                "Webhook references an unknown order.",
                code="unknown_order",
                details={"order_id": order_ref},
            )

        PaymentEvent.objects.create(
            order=order,
            event_type=PaymentEvent.EventType.WEBHOOK_RECEIVED,
            provider_order_id=order_ref,
            data={"event": event_name, "event_id": payload.get("id")},
        )

        if order.is_terminal:
            result = WebhookResult(
                status=WebhookResult.ALREADY_PROCESSED,
                detail=f"Order already {order.status}",
                order_id=str(order.order_id),
                order_status=order.status,
            )
        else:
            result = _apply_effect(order, effect, event_name)

    WEBHOOK_EVENT_COUNT.labels(event=event_name, outcome=result.status).inc()
    log_credit_event(
        message="Payment webhook handled",
        author_id=order.author_id,
        order_id=order.order_id,
        extra={"event": event_name, "outcome": result.status, "order_status": result.order_status},
    )
    return result


def _apply_effect(order: PaymentOrder, effect: WebhookEffect, event_name: str) -> WebhookResult:
    target_status = EFFECT_STATUSES[effect]
    reason = "" if effect is WebhookEffect.COMPLETE else event_name
    if not transition_order(order, target_status, source="webhook", reason=reason):
        return WebhookResult(
            status=WebhookResult.ALREADY_PROCESSED,
            detail="Order left pending concurrently",
            order_id=str(order.order_id),
            order_status=order.status,
        )

    if effect is WebhookEffect.COMPLETE:
        ledger.append_entry(
            author_id=order.author_id,
            amount=order.credits,
            event_type=CreditLedgerEntry.EventType.PURCHASE,
            purchase_order=order,
            description=f"Purchase of {order.credits} credits",
            metadata={"order_id": str(order.order_id), "provider_order_id": order.provider_order_id},
        )
        detail = f"Granted {order.credits} credits"
    else:
        detail = f"Order marked {target_status}"

    return WebhookResult(
        status=WebhookResult.PROCESSED,
        detail=detail,
        order_id=str(order.order_id),
        order_status=target_status,
    )
