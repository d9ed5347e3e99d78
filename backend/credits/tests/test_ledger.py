import pytest
from django.core.exceptions import ValidationError

from credits.exceptions import CreditValidationError, InsufficientCredits
from credits.models import CreditLedgerEntry
from credits.services import ledger
from credits.services.audit import audit_author

EventType = CreditLedgerEntry.EventType


@pytest.mark.django_db
def test_balance_is_zero_without_entries(author):
    assert ledger.get_balance(author.pk) == 0
    assert ledger.get_history(author.pk) == []


@pytest.mark.django_db
def test_balance_equals_sum_of_entries(author):
    ledger.append_entry(author_id=author.pk, amount=50, event_type=EventType.PURCHASE)
    ledger.append_entry(author_id=author.pk, amount=10, event_type=EventType.PROMO_REDEEM)
    ledger.append_entry(author_id=author.pk, amount=-3, event_type=EventType.AI_EDIT_DEBIT, story_id="s1")

    assert ledger.get_balance(author.pk) == 57
    assert sum(CreditLedgerEntry.objects.filter(author=author).values_list("amount", flat=True)) == 57


@pytest.mark.django_db
def test_balances_are_scoped_per_author(make_author):
    first = make_author()
    second = make_author()
    ledger.append_entry(author_id=first.pk, amount=7, event_type=EventType.PURCHASE)

    assert ledger.get_balance(first.pk) == 7
    assert ledger.get_balance(second.pk) == 0


@pytest.mark.django_db
def test_history_reconstructs_balance_after_newest_first(author):
    for amount, event_type in ((50, EventType.PURCHASE), (10, EventType.PROMO_REDEEM), (-3, EventType.AI_EDIT_DEBIT)):
        ledger.append_entry(author_id=author.pk, amount=amount, event_type=event_type)

    history = ledger.get_history(author.pk)

    assert [item.amount for item in history] == [-3, 10, 50]
    assert [item.balance_after for item in history] == [57, 60, 50]
    assert history[0].balance_after == ledger.get_balance(author.pk)


@pytest.mark.django_db
def test_history_matches_forward_replay(author):
    for amount in (5, 20, -4, -1, 30, -12):
        event_type = EventType.PURCHASE if amount > 0 else EventType.AI_EDIT_DEBIT
        ledger.append_entry(author_id=author.pk, amount=amount, event_type=event_type)

    backward = [item.balance_after for item in ledger.get_history(author.pk, limit=100)]
    oldest_first = CreditLedgerEntry.objects.filter(author=author).order_by("created_at", "id")
    forward = ledger.replay_balances(oldest_first)

    assert backward == list(reversed(forward))
    assert audit_author(author.pk).ok


@pytest.mark.django_db
def test_history_ignores_entry_committed_after_page_was_read(author, monkeypatch):
    ledger.append_entry(author_id=author.pk, amount=10, event_type=EventType.PURCHASE)
    ledger.append_entry(author_id=author.pk, amount=3, event_type=EventType.PROMO_REDEEM)
    original_balance_as_of = ledger.balance_as_of

    def _append_then_sum(entry):
        ledger.append_entry(author_id=author.pk, amount=5, event_type=EventType.PURCHASE)
        return original_balance_as_of(entry)

    monkeypatch.setattr(ledger, "balance_as_of", _append_then_sum)

    history = ledger.get_history(author.pk)

    backward = [item.balance_after for item in history]
    forward = ledger.replay_balances(reversed([item.entry for item in history]))
    assert backward == [13, 10]
    assert backward == list(reversed(forward))
    assert ledger.get_balance(author.pk) == 18


@pytest.mark.django_db
def test_history_limit_truncates_but_keeps_current_balance(author):
    for amount in (1, 2, 3, 4):
        ledger.append_entry(author_id=author.pk, amount=amount, event_type=EventType.PURCHASE)

    history = ledger.get_history(author.pk, limit=2)

    assert [item.amount for item in history] == [4, 3]
    assert [item.balance_after for item in history] == [10, 6]


@pytest.mark.parametrize("limit", [0, -1, 101, "10", True])
@pytest.mark.django_db
def test_history_rejects_out_of_range_limit(author, limit):
    with pytest.raises(CreditValidationError):
        ledger.get_history(author.pk, limit=limit)


@pytest.mark.parametrize("amount", [0, 1.5, "3", None, True])
@pytest.mark.django_db
def test_append_entry_rejects_invalid_amount(author, amount):
    with pytest.raises(CreditValidationError):
        ledger.append_entry(author_id=author.pk, amount=amount, event_type=EventType.PURCHASE)

    assert CreditLedgerEntry.objects.count() == 0


@pytest.mark.django_db
def test_append_entry_rejects_unknown_event_type_and_author(author):
    with pytest.raises(CreditValidationError):
        ledger.append_entry(author_id=author.pk, amount=5, event_type="bonus")

    with pytest.raises(CreditValidationError):
        ledger.append_entry(author_id=author.pk + 999, amount=5, event_type=EventType.PURCHASE)


@pytest.mark.django_db
def test_ledger_entries_are_immutable(author):
    entry = ledger.append_entry(author_id=author.pk, amount=5, event_type=EventType.PURCHASE)

    entry.amount = 500
    with pytest.raises(ValidationError):
        entry.save()
    with pytest.raises(ValidationError):
        entry.delete()

    assert ledger.get_balance(author.pk) == 5


@pytest.mark.django_db
def test_debit_refuses_to_overdraw(author):
    ledger.append_entry(author_id=author.pk, amount=2, event_type=EventType.PURCHASE)

    with pytest.raises(InsufficientCredits) as exc:
        ledger.debit(author_id=author.pk, amount=3)

    assert exc.value.details == {"required_credits": 3, "current_balance": 2}
    assert ledger.get_balance(author.pk) == 2

    ledger.debit(author_id=author.pk, amount=2, story_id="story-1")
    assert ledger.get_balance(author.pk) == 0


@pytest.mark.django_db
def test_adjustment_is_a_new_offsetting_entry(author):
    original = ledger.append_entry(author_id=author.pk, amount=30, event_type=EventType.PURCHASE)

    refund = ledger.adjust_balance(
        author_id=author.pk,
        amount=-30,
        reason="Chargeback",
        event_type=EventType.REFUND,
        actor="support",
    )

    assert refund.metadata == {"actor": "support"}
    assert CreditLedgerEntry.objects.get(pk=original.pk).amount == 30
    assert ledger.get_balance(author.pk) == 0


@pytest.mark.django_db
def test_adjustment_guards_against_negative_balance(author):
    with pytest.raises(InsufficientCredits):
        ledger.adjust_balance(author_id=author.pk, amount=-5, reason="Correction")

    ledger.adjust_balance(author_id=author.pk, amount=-5, reason="Correction", allow_negative_balance=True)
    assert ledger.get_balance(author.pk) == -5


@pytest.mark.django_db
def test_adjustment_requires_reason_and_adjustment_type(author):
    with pytest.raises(CreditValidationError):
        ledger.adjust_balance(author_id=author.pk, amount=5, reason="")
    with pytest.raises(CreditValidationError):
        ledger.adjust_balance(author_id=author.pk, amount=5, reason="Gift", event_type=EventType.PURCHASE)


@pytest.mark.django_db
def test_initial_grant_is_given_once(author, settings):
    settings.CREDITS_INITIAL_GRANT = 10

    assert ledger.grant_initial_credits(author=author).amount == 10
    assert ledger.grant_initial_credits(author=author) is None
    assert ledger.get_balance(author.pk) == 10
