from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from credits.models import CreditLedgerEntry, CreditPackage, EditPricing, PaymentOrder
from credits.services import ledger, orders
from credits.tasks import audit_author_ledgers, cancel_abandoned_orders


def _order(author, key):
    return orders.create_order(
        author_id=author.pk,
        items=[{"package": "credits5"}],
        idempotency_key=key,
    ).order


@pytest.mark.django_db
def test_cancel_abandoned_orders_only_touches_stale_pending(author, catalog):
    stale = _order(author, "stale")
    fresh = _order(author, "fresh")
    done = _order(author, "done")
    orders.transition_order(done, PaymentOrder.Status.COMPLETED, source="test")
    PaymentOrder.objects.filter(pk__in=[stale.pk, done.pk]).update(created_at=timezone.now() - timedelta(hours=72))

    result = cancel_abandoned_orders()

    assert result == {"checked": 1, "cancelled": 1}
    stale.refresh_from_db()
    fresh.refresh_from_db()
    done.refresh_from_db()
    assert stale.status == PaymentOrder.Status.CANCELLED
    assert stale.failure_reason == "abandoned"
    assert fresh.status == PaymentOrder.Status.PENDING
    assert done.status == PaymentOrder.Status.COMPLETED


@pytest.mark.django_db
def test_cancel_abandoned_orders_honours_custom_ttl(author, catalog):
    order = _order(author, "k1")
    PaymentOrder.objects.filter(pk=order.pk).update(created_at=timezone.now() - timedelta(hours=2))

    assert cancel_abandoned_orders(hours=48) == {"checked": 0, "cancelled": 0}
    assert cancel_abandoned_orders(hours=1) == {"checked": 1, "cancelled": 1}


@pytest.mark.django_db
def test_audit_task_reports_consistent_ledgers(make_author):
    for author in (make_author(), make_author()):
        ledger.append_entry(author_id=author.pk, amount=10, event_type=CreditLedgerEntry.EventType.PURCHASE)
        ledger.append_entry(author_id=author.pk, amount=-4, event_type=CreditLedgerEntry.EventType.AI_EDIT_DEBIT)

    assert audit_author_ledgers() == {"checked": 2, "failing": 0}


@pytest.mark.django_db
def test_audit_ledger_command(author):
    ledger.append_entry(author_id=author.pk, amount=10, event_type=CreditLedgerEntry.EventType.PURCHASE)
    out = StringIO()

    call_command("audit_ledger", "--author", str(author.pk), stdout=out)

    output = out.getvalue()
    assert f"Author {author.pk}: 1 entries, balance 10" in output
    assert "all consistent" in output


@pytest.mark.django_db
def test_seed_credit_catalog_command_restores_settings(catalog):
    EditPricing.objects.filter(action="textEdit").update(price_credits=9)
    CreditPackage.objects.filter(key="credits5").delete()
    out = StringIO()

    call_command("seed_credit_catalog", stdout=out)

    assert EditPricing.objects.get(action="textEdit").price_credits == 1
    assert CreditPackage.objects.filter(key="credits5").exists()
