"""One-time promotion code redemption.

Every failure (unknown, inactive, expired, exhausted, malformed or already
redeemed) yields the same ``invalid_code`` result so the endpoint cannot be
used to discover which codes exist.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from credits.models import PROMOTION_CODE_PATTERN, CreditLedgerEntry, PromotionCode, PromotionRedemption
from credits.observability.metrics import PROMOTION_REDEMPTION_COUNT
from credits.services import ledger

logger = logging.getLogger(__name__)

INVALID_CODE = "invalid_code"
CODE_PATTERN = PROMOTION_CODE_PATTERN


@dataclass(frozen=True)
class RedemptionResult:
    ok: bool
    code: Optional[str] = None
    credits_granted: int = 0
    balance: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def invalid(cls) -> "RedemptionResult":
        return cls(ok=False, error=INVALID_CODE)


def normalize_code(raw: Any) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    code = raw.strip().upper()
    if not CODE_PATTERN.match(code):
        return None
    return code


def _is_redeemable(promotion: PromotionCode, now) -> bool:
    if not promotion.is_active:
        return False
    if promotion.valid_from and promotion.valid_from > now:
        return False
    if promotion.valid_until and promotion.valid_until <= now:
        return False
    if promotion.max_redemptions is not None:
        if promotion.redemptions.count() >= promotion.max_redemptions:
            return False
    return True


def redeem(author_id: Any, raw_code: Any) -> RedemptionResult:
    """Grant the code's credits to the author at most once."""

    code = normalize_code(raw_code)
    if code is None:
        return _reject(author_id, "malformed")

    with transaction.atomic():
        ledger.lock_author(author_id)
        promotion = PromotionCode.objects.select_for_update().filter(code=code).first()
        if promotion is None:
            return _reject(author_id, "not_found")
        if not _is_redeemable(promotion, timezone.now()):
            return _reject(author_id, "not_redeemable")

        try:
            with transaction.atomic():
                redemption = PromotionRedemption.objects.create(promotion=promotion, author_id=author_id)
        except IntegrityError:
            return _reject(author_id, "already_redeemed")

        entry = ledger.append_entry(
            author_id=author_id,
            amount=promotion.credits_granted,
            event_type=CreditLedgerEntry.EventType.PROMO_REDEEM,
            description=f"Promotion code {promotion.code}",
            metadata={"code": promotion.code, "promotion_id": promotion.pk},
        )
        PromotionRedemption.objects.filter(pk=redemption.pk).update(ledger_entry=entry)
        balance = ledger.get_balance(author_id)

    PROMOTION_REDEMPTION_COUNT.labels(outcome="redeemed").inc()
    logger.info("Author %s redeemed promotion %s for %s credits", author_id, code, promotion.credits_granted)
    return RedemptionResult(ok=True, code=code, credits_granted=promotion.credits_granted, balance=balance)


def _reject(author_id: Any, reason: str) -> RedemptionResult:
    PROMOTION_REDEMPTION_COUNT.labels(outcome="invalid").inc()
    logger.info("Promotion redemption rejected for author %s (%s)", author_id, reason)
    return RedemptionResult.invalid()
