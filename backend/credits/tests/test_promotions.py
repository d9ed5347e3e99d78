from datetime import timedelta
import threading

import pytest
from django.core.exceptions import ValidationError
from django.db import connection
from django.utils import timezone

from credits.models import CreditLedgerEntry, PromotionCode, PromotionRedemption
from credits.services import ledger, promotions


@pytest.fixture
def welcome_code(db):
    return PromotionCode.objects.create(code="WELCOME10", credits_granted=10)


@pytest.mark.django_db
def test_redeem_grants_credits_once(author, welcome_code):
    result = promotions.redeem(author.pk, "WELCOME10")

    assert result.ok is True
    assert result.credits_granted == 10
    assert result.balance == 10

    redemption = PromotionRedemption.objects.get(promotion=welcome_code, author=author)
    assert redemption.ledger_entry.event_type == CreditLedgerEntry.EventType.PROMO_REDEEM
    assert redemption.ledger_entry.amount == 10

    second = promotions.redeem(author.pk, "WELCOME10")

    assert second.ok is False
    assert second.error == promotions.INVALID_CODE
    assert ledger.get_balance(author.pk) == 10


@pytest.mark.django_db
def test_code_lookup_ignores_case_and_whitespace(author, welcome_code):
    result = promotions.redeem(author.pk, "  welcome10 ")

    assert result.ok is True
    assert result.code == "WELCOME10"


@pytest.mark.django_db
def test_existing_redemption_row_blocks_redeem(author, welcome_code):
    PromotionRedemption.objects.create(promotion=welcome_code, author=author)

    result = promotions.redeem(author.pk, "WELCOME10")

    assert result == promotions.RedemptionResult.invalid()
    assert ledger.get_balance(author.pk) == 0


@pytest.mark.django_db
def test_code_can_be_redeemed_by_different_authors(make_author, welcome_code):
    first = make_author()
    second = make_author()

    assert promotions.redeem(first.pk, "WELCOME10").ok
    assert promotions.redeem(second.pk, "WELCOME10").ok
    assert ledger.get_balance(first.pk) == ledger.get_balance(second.pk) == 10


@pytest.mark.django_db
def test_every_failure_looks_the_same(make_author):
    now = timezone.now()
    PromotionCode.objects.create(code="OFF", credits_granted=5, is_active=False)
    PromotionCode.objects.create(code="OLD", credits_granted=5, valid_until=now - timedelta(days=1))
    PromotionCode.objects.create(code="SOON", credits_granted=5, valid_from=now + timedelta(days=1))
    capped = PromotionCode.objects.create(code="CAPPED", credits_granted=5, max_redemptions=1)
    PromotionRedemption.objects.create(promotion=capped, author=make_author())

    author = make_author()
    results = [
        promotions.redeem(author.pk, raw)
        for raw in ("OFF", "OLD", "SOON", "CAPPED", "MISSING", "", None, "bad code!", "X" * 65)
    ]

    assert {result for result in results} == {promotions.RedemptionResult.invalid()}
    assert ledger.get_balance(author.pk) == 0
    assert not PromotionRedemption.objects.filter(author=author).exists()


@pytest.mark.django_db
def test_code_inside_validity_window_is_redeemable(author):
    now = timezone.now()
    PromotionCode.objects.create(
        code="SPRING",
        credits_granted=3,
        valid_from=now - timedelta(days=1),
        valid_until=now + timedelta(days=1),
        max_redemptions=10,
    )

    assert promotions.redeem(author.pk, "spring").balance == 3


def test_normalize_code():
    assert promotions.normalize_code(" abc-1_2 ") == "ABC-1_2"
    assert promotions.normalize_code("with space") is None
    assert promotions.normalize_code(42) is None


@pytest.mark.django_db
def test_promotion_code_is_stored_upper_case():
    promotion = PromotionCode.objects.create(code=" summer-2025 ", credits_granted=5)

    assert promotion.code == "SUMMER-2025"


@pytest.mark.parametrize("code", ["SUMMER 2025", "BAD!", "", "X" * 65])
@pytest.mark.django_db
def test_promotion_code_outside_pattern_is_rejected(code):
    with pytest.raises(ValidationError) as exc:
        PromotionCode.objects.create(code=code, credits_granted=5)

    assert "code" in exc.value.message_dict
    assert not PromotionCode.objects.exists()


@pytest.mark.django_db(transaction=True)
def test_concurrent_redemptions_grant_credits_once(author, welcome_code):
    start = threading.Barrier(2)
    results = []
    errors = []

    def _redeem():
        try:
            start.wait(timeout=5)
            results.append(promotions.redeem(author.pk, "WELCOME10"))
        except Exception as exc:  # surfaced through the assertions below
            errors.append(exc)
        finally:
            connection.close()

    threads = [threading.Thread(target=_redeem) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert sorted(result.ok for result in results) == [False, True]
    assert ledger.get_balance(author.pk) == 10
    assert PromotionRedemption.objects.filter(promotion=welcome_code, author=author).count() == 1
