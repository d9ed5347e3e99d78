"""Celery housekeeping tasks for payment orders and the credit ledger."""
from __future__ import annotations

from datetime import timedelta
import logging
from typing import Dict, Optional

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from credits.exceptions import OrderNotFound
from credits.models import PaymentOrder
from credits.services.audit import audit_author, authors_with_entries
from credits.services.orders import cancel_order

logger = logging.getLogger(__name__)

ABANDONED_ORDER_BATCH_SIZE = 500


@shared_task(queue="credits")
def cancel_abandoned_orders(hours: Optional[int] = None) -> Dict[str, int]:
    """Cancel checkouts that stayed pending past the configured TTL."""

    ttl_hours = hours if hours is not None else int(getattr(settings, "PENDING_ORDER_TTL_HOURS", 48))
    cutoff = timezone.now() - timedelta(hours=ttl_hours)

    stale_ids = list(
        PaymentOrder.objects.filter(status=PaymentOrder.Status.PENDING, created_at__lt=cutoff)
        .order_by("created_at")
        .values_list("order_id", flat=True)[:ABANDONED_ORDER_BATCH_SIZE]
    )

    cancelled = 0
    for order_id in stale_ids:
        try:
            order = cancel_order(order_id=order_id, reason="abandoned")
        except OrderNotFound:
            continue
        if order.status == PaymentOrder.Status.CANCELLED:
            cancelled += 1

    if cancelled:
        logger.info("Cancelled %s abandoned payment orders older than %s hours.", cancelled, ttl_hours)
    return {"checked": len(stale_ids), "cancelled": cancelled}


@shared_task(queue="maintenance")
def audit_author_ledgers() -> Dict[str, int]:
    """Verify every author's ledger reconstructs consistently."""

    checked = 0
    failing = 0
    for author_id in authors_with_entries().iterator():
        checked += 1
        audit = audit_author(author_id)
        if not audit.ok:
            failing += 1
            logger.error(
                "Ledger audit failed for author %s: mismatched=%s zero=%s duplicate_purchases=%s",
                author_id,
                audit.mismatched_entry_ids,
                audit.zero_amount_entry_ids,
                audit.duplicate_purchase_orders,
            )
    return {"checked": checked, "failing": failing}
