"""Append-only credit ledger; balances are always derived from the entries."""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Iterable, List, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q, Sum
from django.db.models.functions import Coalesce

from credits.exceptions import AuthorNotFound, CreditValidationError, InsufficientCredits
from credits.models import CreditLedgerEntry, PaymentOrder
from credits.observability.metrics import LEDGER_ENTRY_COUNT

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50

EventType = CreditLedgerEntry.EventType

ADJUSTMENT_EVENT_TYPES = frozenset({EventType.ADMIN_ADJUSTMENT, EventType.REFUND})


@dataclass(frozen=True)
class LedgerHistoryEntry:
    entry: CreditLedgerEntry
    balance_after: int

    @property
    def id(self) -> int:
        return self.entry.id

    @property
    def amount(self) -> int:
        return self.entry.amount

    @property
    def event_type(self) -> str:
        return self.entry.event_type

    @property
    def created_at(self):
        return self.entry.created_at


def author_exists(author_id: Any) -> bool:
    return get_user_model().objects.filter(pk=author_id).exists()


def lock_author(author_id: Any):
    """Row-lock the author so concurrent check-then-debit paths serialise.

    Must be called inside ``transaction.atomic()``.
    """
    User = get_user_model()
    try:
        return User.objects.select_for_update().get(pk=author_id)
    except (User.DoesNotExist, ValueError, TypeError) as exc:
        raise AuthorNotFound(details={"author_id": str(author_id)}) from exc


def append_entry(
    *,
    author_id: Any,
    amount: int,
    event_type: str,
    story_id: Optional[str] = None,
    purchase_order: Optional[PaymentOrder] = None,
    description: str = "",
    metadata: Optional[dict] = None,
) -> CreditLedgerEntry:
    """Insert one signed entry. Never checks the balance; callers debiting must do that first."""

    if isinstance(amount, bool) or not isinstance(amount, int):
        raise CreditValidationError("Amount must be an integer.", details={"amount": amount})
    if amount == 0:
        raise CreditValidationError("Amount must be non-zero.", details={"amount": amount})
    if event_type not in EventType.values:
        raise CreditValidationError("Unknown ledger event type.", details={"event_type": event_type})
    try:
        known_author = author_exists(author_id)
    except (ValueError, TypeError):
        known_author = False
    if not known_author:
        raise CreditValidationError("Unknown author.", details={"author_id": str(author_id)})

    entry = CreditLedgerEntry(
        author_id=author_id,
        amount=amount,
        event_type=event_type,
        story_id=story_id or None,
        purchase_order=purchase_order,
        description=description or "",
        metadata=metadata or {},
    )
    try:
        entry.save()
    except DjangoValidationError as exc:
        raise CreditValidationError("Ledger entry rejected.", details={"errors": exc.messages}) from exc

    LEDGER_ENTRY_COUNT.labels(event_type=event_type).inc()
    logger.debug("Appended %s entry of %s for author %s", event_type, amount, author_id)
    return entry


def get_balance(author_id: Any) -> int:
    """Sum of every entry for the author; 0 when there are none."""

    result = CreditLedgerEntry.objects.filter(author_id=author_id).aggregate(
        total=Coalesce(Sum("amount"), 0)
    )
    return int(result["total"])


def balance_as_of(entry: CreditLedgerEntry) -> int:
    """Sum of the author's entries up to and including ``entry`` in ledger order."""

    result = (
        CreditLedgerEntry.objects.filter(author_id=entry.author_id)
        .filter(Q(created_at__lt=entry.created_at) | Q(created_at=entry.created_at, id__lte=entry.id))
        .aggregate(total=Coalesce(Sum("amount"), 0))
    )
    return int(result["total"])


def get_history(author_id: Any, limit: int = DEFAULT_HISTORY_LIMIT) -> List[LedgerHistoryEntry]:
    """Most recent entries first, each annotated with the balance right after it.

    The running balance is reconstructed backwards: the newest returned
    entry's ``balance_after`` is the sum of every entry up to and including
    it, and each older entry's value is the newer one's minus the newer
    entry's amount. The sum is bounded by the newest fetched row so entries
    committed after the page was read cannot shift the values.
    """

    max_limit = int(getattr(settings, "CREDITS_HISTORY_MAX_LIMIT", 100))
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1 or limit > max_limit:
        raise CreditValidationError(
            f"limit must be between 1 and {max_limit}.",
            details={"limit": limit},
        )

    entries = list(
        CreditLedgerEntry.objects.filter(author_id=author_id).order_by("-created_at", "-id")[:limit]
    )
    if not entries:
        return []

    history: List[LedgerHistoryEntry] = []
    running = balance_as_of(entries[0])
    for entry in entries:
        history.append(LedgerHistoryEntry(entry=entry, balance_after=running))
        running -= entry.amount
    return history


def replay_balances(entries_oldest_first: Iterable[CreditLedgerEntry]) -> List[int]:
    """Forward running total from zero, one value per entry, oldest first."""

    running = 0
    balances = []
    for entry in entries_oldest_first:
        running += entry.amount
        balances.append(running)
    return balances


def debit(
    *,
    author_id: Any,
    amount: int,
    event_type: str = EventType.AI_EDIT_DEBIT,
    story_id: Optional[str] = None,
    description: str = "",
    metadata: Optional[dict] = None,
) -> CreditLedgerEntry:
    """Lock the author, confirm the balance covers ``amount`` and append a negative entry."""

    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise CreditValidationError("Debit amount must be a positive integer.", details={"amount": amount})

    with transaction.atomic():
        lock_author(author_id)
        balance = get_balance(author_id)
        if balance < amount:
            raise InsufficientCredits(
                details={"required_credits": amount, "current_balance": balance},
            )
        return append_entry(
            author_id=author_id,
            amount=-amount,
            event_type=event_type,
            story_id=story_id,
            description=description,
            metadata=metadata,
        )


def adjust_balance(
    *,
    author_id: Any,
    amount: int,
    reason: str,
    event_type: str = EventType.ADMIN_ADJUSTMENT,
    actor: Optional[str] = None,
    allow_negative_balance: bool = False,
    metadata: Optional[dict] = None,
) -> CreditLedgerEntry:
    """Record a manual correction as a new offsetting entry."""

    if event_type not in ADJUSTMENT_EVENT_TYPES:
        raise CreditValidationError(
            "Adjustments must be admin_adjustment or refund entries.",
            details={"event_type": event_type},
        )
    if not reason:
        raise CreditValidationError("A reason is required for manual adjustments.")

    merged = dict(metadata or {})
    if actor:
        merged["actor"] = actor

    with transaction.atomic():
        lock_author(author_id)
        if amount < 0 and not allow_negative_balance:
            balance = get_balance(author_id)
            if balance + amount < 0:
                raise InsufficientCredits(
                    "Adjustment would make the balance negative.",
                    details={"required_credits": -amount, "current_balance": balance},
                )
        entry = append_entry(
            author_id=author_id,
            amount=amount,
            event_type=event_type,
            description=reason,
            metadata=merged,
        )

    logger.info("Recorded %s of %s for author %s by %s", event_type, amount, author_id, actor or "system")
    return entry


def grant_initial_credits(*, author) -> Optional[CreditLedgerEntry]:
    """Give a newly created author the configured starting balance, once."""

    amount = int(getattr(settings, "CREDITS_INITIAL_GRANT", 0) or 0)
    if amount <= 0:
        return None

    with transaction.atomic():
        lock_author(author.pk)
        if CreditLedgerEntry.objects.filter(author_id=author.pk, event_type=EventType.INITIAL_GRANT).exists():
            return None
        return append_entry(
            author_id=author.pk,
            amount=amount,
            event_type=EventType.INITIAL_GRANT,
            description="Welcome credits",
        )
