"""Consistency checks over an author's full ledger history."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

from django.db.models import Count

from credits.models import CreditLedgerEntry
from credits.services.ledger import balance_as_of, replay_balances


@dataclass
class LedgerAudit:
    author_id: Any
    balance: int
    entry_count: int
    mismatched_entry_ids: List[int] = field(default_factory=list)
    zero_amount_entry_ids: List[int] = field(default_factory=list)
    duplicate_purchase_orders: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not (self.mismatched_entry_ids or self.zero_amount_entry_ids or self.duplicate_purchase_orders)


def audit_author(author_id: Any) -> LedgerAudit:
    """Compare the backward and forward running balances for every entry."""

    newest_first = list(CreditLedgerEntry.objects.filter(author_id=author_id).order_by("-created_at", "-id"))
    balance = balance_as_of(newest_first[0]) if newest_first else 0

    backward = []
    running = balance
    for entry in newest_first:
        backward.append(running)
        running -= entry.amount

    forward = list(reversed(replay_balances(reversed(newest_first))))

    audit = LedgerAudit(author_id=author_id, balance=balance, entry_count=len(newest_first))
    for entry, before, after in zip(newest_first, backward, forward):
        if before != after:
            audit.mismatched_entry_ids.append(entry.id)
        if entry.amount == 0:
            audit.zero_amount_entry_ids.append(entry.id)

    duplicates = (
        CreditLedgerEntry.objects.filter(
            author_id=author_id,
            event_type=CreditLedgerEntry.EventType.PURCHASE,
            purchase_order__isnull=False,
        )
        .values("purchase_order")
        .annotate(total=Count("id"))
        .filter(total__gt=1)
    )
    audit.duplicate_purchase_orders = [str(row["purchase_order"]) for row in duplicates]
    return audit


def authors_with_entries():
    return CreditLedgerEntry.objects.values_list("author_id", flat=True).distinct().order_by("author_id")
