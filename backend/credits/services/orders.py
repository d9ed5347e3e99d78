"""Payment orders: idempotent creation, gateway hand-off and status transitions."""
from __future__ import annotations

from dataclasses import dataclass
import hashlib
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django.utils import timezone

from credits.exceptions import (
    AuthorNotFound,
    CreditValidationError,
    IdempotencyConflict,
    OrderNotFound,
    UpstreamUnavailable,
)
from credits.models import PaymentEvent, PaymentOrder
from credits.observability.logging import log_credit_event
from credits.services import ledger
from credits.services.catalog import get_active_package
from credits.services.gateway import GatewayConfigurationError, get_gateway

logger = logging.getLogger(__name__)

MAX_IDEMPOTENCY_KEY_LENGTH = 255

Status = PaymentOrder.Status


@dataclass(frozen=True)
class CreditBundle:
    items: List[Dict[str, Any]]
    credits: int
    amount: int
    currency: str

    def as_json(self) -> Dict[str, Any]:
        return {
            "items": self.items,
            "credits": self.credits,
            "price": self.amount,
            "currency": self.currency,
        }

    @property
    def fingerprint(self) -> str:
        canonical = sorted((item["package"], item["quantity"]) for item in self.items)
        return hashlib.sha256(json.dumps(canonical).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class OrderResult:
    order: PaymentOrder
    created: bool

    @property
    def checkout_token(self) -> str:
        return self.order.checkout_token


def _parse_quantity(value: Any) -> int:
    max_quantity = int(getattr(settings, "ORDER_MAX_PACKAGE_QUANTITY", 20))
    if value is None:
        return 1
    if isinstance(value, bool) or not isinstance(value, int) or value < 1 or value > max_quantity:
        raise CreditValidationError(
            f"quantity must be an integer between 1 and {max_quantity}.",
            details={"quantity": value},
        )
    return value


def resolve_bundle(items: Iterable[Dict[str, Any]]) -> CreditBundle:
    """Resolve requested packages to a single priced bundle."""

    if not isinstance(items, (list, tuple)) or not items:
        raise CreditValidationError("At least one credit package is required.")

    quantities: Dict[str, int] = {}
    packages = {}
    for item in items:
        if not isinstance(item, dict):
            raise CreditValidationError("Each package entry must be an object.", details={"item": item})
        package = get_active_package(item.get("package"))
        packages[package.key] = package
        quantities[package.key] = quantities.get(package.key, 0) + _parse_quantity(item.get("quantity"))

    currencies = {package.currency.lower() for package in packages.values()}
    if len(currencies) != 1:
        raise CreditValidationError(
            "All packages in an order must share one currency.",
            details={"currencies": sorted(currencies)},
        )

    resolved = []
    for key in sorted(quantities):
        package = packages[key]
        quantity = quantities[key]
        _parse_quantity(quantity)
        resolved.append(
            {
                "package": key,
                "quantity": quantity,
                "credits": package.credits * quantity,
                "unit_price": package.price,
                "total_price": package.price * quantity,
            }
        )

    return CreditBundle(
        items=resolved,
        credits=sum(item["credits"] for item in resolved),
        amount=sum(item["total_price"] for item in resolved),
        currency=currencies.pop(),
    )


def _normalize_idempotency_key(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise CreditValidationError("An idempotency key is required.")
    key = value.strip()
    if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise CreditValidationError(
            f"Idempotency key must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters.",
        )
    return key


def _get_or_create_pending(*, author_id: Any, key: str, bundle: CreditBundle):
    existing = PaymentOrder.objects.filter(author_id=author_id, idempotency_key=key).first()
    if existing is not None:
        return existing, False

    try:
        with transaction.atomic():
            order = PaymentOrder.objects.create(
                author_id=author_id,
                credit_bundle=bundle.as_json(),
                credits=bundle.credits,
                amount=bundle.amount,
                currency=bundle.currency,
                idempotency_key=key,
                request_fingerprint=bundle.fingerprint,
            )
            PaymentEvent.objects.create(
                order=order,
                event_type=PaymentEvent.EventType.ORDER_CREATED,
                data={"credits": bundle.credits, "amount": bundle.amount, "currency": bundle.currency},
            )
    except IntegrityError:
        # A concurrent request with the same key won the insert.
        return PaymentOrder.objects.get(author_id=author_id, idempotency_key=key), False
    return order, True


def create_order(*, author_id: Any, items: Iterable[Dict[str, Any]], idempotency_key: Any) -> OrderResult:
    """Persist a pending order for the bundle and obtain a checkout token.

    Retrying with the same key returns the original order. Credits are granted
    only when the gateway later confirms payment through the webhook.
    """

    key = _normalize_idempotency_key(idempotency_key)
    bundle = resolve_bundle(items)
    if not ledger.author_exists(author_id):
        raise AuthorNotFound(details={"author_id": str(author_id)})

    order, created = _get_or_create_pending(author_id=author_id, key=key, bundle=bundle)
    if not created and order.request_fingerprint != bundle.fingerprint:
        raise IdempotencyConflict(details={"order_id": str(order.order_id)})

    if order.provider_order_id or order.is_terminal:
        return OrderResult(order=order, created=created)

    # The gateway call happens outside any transaction; the pending row stays
    # behind on failure so the client can retry with the same key.
    gateway = get_gateway()
    try:
        gateway_order = gateway.create_order(
            amount=order.amount,
            currency=order.currency,
            description=f"{order.credits} credits",
            idempotency_key=f"credits-order-{order.order_id}",
            metadata={"order_id": order.order_id, "author_id": author_id},
        )
    except GatewayConfigurationError as exc:
        logger.error("Payment gateway misconfigured: %s", exc)
        raise UpstreamUnavailable(details={"provider": gateway.name}) from exc

    with transaction.atomic():
        PaymentOrder.objects.filter(pk=order.pk, provider_order_id__isnull=True).update(
            provider=gateway.name,
            provider_order_id=gateway_order.provider_order_id,
            checkout_token=gateway_order.checkout_token,
            updated_at=timezone.now(),
        )
        PaymentEvent.objects.create(
            order=order,
            event_type=PaymentEvent.EventType.GATEWAY_ORDER_CREATED,
            provider_order_id=gateway_order.provider_order_id,
            data={"provider": gateway.name},
        )
    order.refresh_from_db()

    log_credit_event(
        message="Payment order created",
        author_id=author_id,
        order_id=order.order_id,
        extra={"credits": order.credits, "amount": order.amount, "currency": order.currency},
    )
    return OrderResult(order=order, created=created)


def transition_order(order: PaymentOrder, new_status: str, *, source: str, reason: str = "") -> bool:
    """Compare-and-swap ``order`` out of ``pending``. Returns False if it was already terminal."""

    if new_status not in PaymentOrder.TERMINAL_STATUSES:
        raise CreditValidationError("Orders can only move to a terminal status.", details={"status": new_status})

    now = timezone.now()
    updates = {"status": new_status, "updated_at": now, "failure_reason": reason[:255]}
    if new_status == Status.COMPLETED:
        updates["completed_at"] = now

    updated = PaymentOrder.objects.filter(pk=order.pk, status=Status.PENDING).update(**updates)
    if not updated:
        return False

    PaymentEvent.objects.create(
        order=order,
        event_type=PaymentEvent.EventType.STATUS_CHANGED,
        provider_order_id=order.provider_order_id or "",
        data={"from": Status.PENDING, "to": new_status, "source": source, "reason": reason},
    )
    for field, value in updates.items():
        setattr(order, field, value)
    return True


def cancel_order(*, order_id: Any, author_id: Optional[Any] = None, reason: str = "cancelled") -> PaymentOrder:
    """Cancel a pending order; terminal orders are returned untouched."""

    lookup = {"pk": order_id}
    if author_id is not None:
        lookup["author_id"] = author_id

    with transaction.atomic():
        order = PaymentOrder.objects.select_for_update().filter(**lookup).first()
        if order is None:
            raise OrderNotFound(details={"order_id": str(order_id)})
        if order.is_terminal:
            return order
        transition_order(order, Status.CANCELLED, source="cancel", reason=reason)

    logger.info("Cancelled payment order %s (%s)", order.order_id, reason)
    return order


def list_orders(author_id: Any) -> QuerySet:
    return PaymentOrder.objects.filter(author_id=author_id).order_by("-created_at")
