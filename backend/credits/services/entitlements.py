"""Free/paid decisions for AI editing actions, single and batched."""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from django.db import transaction

from credits.exceptions import AuthorNotFound, CreditValidationError, IdempotencyConflict, InsufficientCredits
from credits.models import AIEditRecord, CreditLedgerEntry, EditAction
from credits.services import ledger
from credits.services.catalog import PricingRule, get_pricing_rule

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 500


@dataclass(frozen=True)
class BatchQuote:
    free_edits: int
    paid_edits: int
    total_credits: int
    can_edit: bool


@dataclass(frozen=True)
class EditPermission:
    action: str
    can_edit: bool
    required_credits: int
    current_balance: int
    edit_count: int
    next_threshold: int
    is_free: bool
    message: str


@dataclass(frozen=True)
class BatchEditPermission:
    action: str
    count: int
    can_edit: bool
    total_credits: int
    current_balance: int
    edit_count: int
    free_edits: int
    paid_edits: int
    message: str

    @property
    def breakdown(self) -> Dict[str, int]:
        return {"free_edits": self.free_edits, "paid_edits": self.paid_edits}


@dataclass(frozen=True)
class EditCommit:
    batch_id: uuid.UUID
    action: str
    story_id: str
    quote: BatchQuote
    ledger_entry: Optional[CreditLedgerEntry]
    records: List[AIEditRecord] = field(default_factory=list)
    balance: int = 0


def calculate_batch(*, edit_count: int, count: int, threshold: int, price: int, balance: int) -> BatchQuote:
    """Split ``count`` sequential edits into a free part and a paid part.

    >>> calculate_batch(edit_count=3, count=4, threshold=5, price=3, balance=10)
    BatchQuote(free_edits=2, paid_edits=2, total_credits=6, can_edit=True)
    """
    free_edits = max(0, min(count, threshold - edit_count))
    paid_edits = count - free_edits
    total_credits = paid_edits * price
    return BatchQuote(
        free_edits=free_edits,
        paid_edits=paid_edits,
        total_credits=total_credits,
        can_edit=total_credits == 0 or balance >= total_credits,
    )


def parse_action(action: Any) -> str:
    if not isinstance(action, str) or action not in EditAction.values:
        raise CreditValidationError(
            'Invalid action. Must be "textEdit" or "imageEdit".',
            details={"action": action},
        )
    return EditAction(action)


def get_edit_count(author_id: Any, action: str) -> int:
    """Prior successful edits for the author and action, across all stories."""

    return AIEditRecord.objects.filter(author_id=author_id, action=action).count()


def _parse_count(count: Any) -> int:
    if isinstance(count, bool) or not isinstance(count, int) or count < 1 or count > MAX_BATCH_SIZE:
        raise CreditValidationError(
            f"count must be an integer between 1 and {MAX_BATCH_SIZE}.",
            details={"count": count},
        )
    return count


def _single_message(rule: PricingRule, edit_count: int) -> str:
    if edit_count < rule.threshold:
        remaining = rule.threshold - edit_count
        return f"{remaining} free edit{'s' if remaining != 1 else ''} remaining"
    return f"Next edit will cost {rule.price} credit{'s' if rule.price != 1 else ''}"


def check_edit_permission(author_id: Any, action: Any) -> EditPermission:
    """Can the author perform one more ``action`` right now, and at what cost. Read-only."""

    action = parse_action(action)
    if not ledger.author_exists(author_id):
        raise AuthorNotFound(details={"author_id": str(author_id)})

    rule = get_pricing_rule(action)
    edit_count = get_edit_count(author_id, action)
    balance = ledger.get_balance(author_id)
    quote = calculate_batch(
        edit_count=edit_count,
        count=1,
        threshold=rule.threshold,
        price=rule.price,
        balance=balance,
    )
    return EditPermission(
        action=action,
        can_edit=quote.can_edit,
        required_credits=quote.total_credits,
        current_balance=balance,
        edit_count=edit_count,
        next_threshold=rule.threshold,
        is_free=quote.total_credits == 0,
        message=_single_message(rule, edit_count),
    )


def check_batch_edit_permission(author_id: Any, action: Any, count: Any) -> BatchEditPermission:
    """Quote ``count`` edits as one operation so a batch cannot dodge the threshold. Read-only."""

    action = parse_action(action)
    count = _parse_count(count)
    if not ledger.author_exists(author_id):
        raise AuthorNotFound(details={"author_id": str(author_id)})

    rule = get_pricing_rule(action)
    edit_count = get_edit_count(author_id, action)
    balance = ledger.get_balance(author_id)
    quote = calculate_batch(
        edit_count=edit_count,
        count=count,
        threshold=rule.threshold,
        price=rule.price,
        balance=balance,
    )
    return BatchEditPermission(
        action=action,
        count=count,
        can_edit=quote.can_edit,
        total_credits=quote.total_credits,
        current_balance=balance,
        edit_count=edit_count,
        free_edits=quote.free_edits,
        paid_edits=quote.paid_edits,
        message=_batch_message(quote, count, balance),
    )


def _batch_message(quote: BatchQuote, count: int, balance: int) -> str:
    if not quote.can_edit:
        return f"Insufficient credits. You need {quote.total_credits} credits but have {balance}."
    return f"This will count as {count} edits and will cost {quote.total_credits} credits"


def commit_edits(
    *,
    author_id: Any,
    action: Any,
    story_id: str,
    count: Any = 1,
    metadata: Optional[Dict[str, Any]] = None,
    item_metadata: Optional[Sequence[Dict[str, Any]]] = None,
    expected_credits: Optional[int] = None,
) -> EditCommit:
    """Record ``count`` successful edits and debit their price in one transaction.

    The quote is recomputed under the author lock for the same ``count`` that
    was checked, so concurrent commits cannot both claim the same free edits.
    """

    action = parse_action(action)
    count = _parse_count(count)
    if not story_id:
        raise CreditValidationError("story_id is required.")
    if item_metadata is not None and len(item_metadata) != count:
        raise CreditValidationError(
            "item_metadata must contain one entry per edit.",
            details={"count": count, "items": len(item_metadata)},
        )

    rule = get_pricing_rule(action)
    batch_id = uuid.uuid4()

    with transaction.atomic():
        ledger.lock_author(author_id)
        edit_count = get_edit_count(author_id, action)
        balance = ledger.get_balance(author_id)
        quote = calculate_batch(
            edit_count=edit_count,
            count=count,
            threshold=rule.threshold,
            price=rule.price,
            balance=balance,
        )

        if expected_credits is not None and expected_credits != quote.total_credits:
            raise IdempotencyConflict(
                "The price of this edit changed since it was quoted.",
                code="quote_changed",
                details={"expected_credits": expected_credits, "required_credits": quote.total_credits},
            )
        if not quote.can_edit:
            raise InsufficientCredits(
                details={
                    "required_credits": quote.total_credits,
                    "current_balance": balance,
                    "free_edits": quote.free_edits,
                    "paid_edits": quote.paid_edits,
                },
            )

        entry = None
        if quote.total_credits > 0:
            entry = ledger.append_entry(
                author_id=author_id,
                amount=-quote.total_credits,
                event_type=CreditLedgerEntry.EventType.AI_EDIT_DEBIT,
                story_id=story_id,
                description=f"{count} x {action}",
                metadata={
                    "action": action,
                    "batch_id": str(batch_id),
                    "free_edits": quote.free_edits,
                    "paid_edits": quote.paid_edits,
                },
            )

        base_metadata = dict(metadata or {})
        records = AIEditRecord.objects.bulk_create(
            [
                AIEditRecord(
                    author_id=author_id,
                    story_id=story_id,
                    action=action,
                    batch_id=batch_id,
                    ledger_entry=entry,
                    metadata={**base_metadata, **(item_metadata[index] if item_metadata else {})},
                )
                for index in range(count)
            ]
        )
        new_balance = balance - quote.total_credits

    logger.info(
        "Committed %s %s edit(s) for author %s on story %s: %s free, %s paid, %s credits",
        count,
        action,
        author_id,
        story_id,
        quote.free_edits,
        quote.paid_edits,
        quote.total_credits,
    )
    return EditCommit(
        batch_id=batch_id,
        action=action,
        story_id=story_id,
        quote=quote,
        ledger_entry=entry,
        records=records,
        balance=new_balance,
    )
