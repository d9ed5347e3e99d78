import pytest
from django.contrib.auth import get_user_model

from credits.models import CreditLedgerEntry
from credits.services.ledger import get_balance


@pytest.mark.django_db
def test_new_author_receives_initial_grant(settings):
    settings.CREDITS_INITIAL_GRANT = 3

    user = get_user_model().objects.create_user(
        username="carol",
        email="carol@example.com",
        password="pass1234",
    )

    entry = CreditLedgerEntry.objects.get(author=user)
    assert entry.event_type == CreditLedgerEntry.EventType.INITIAL_GRANT
    assert get_balance(user.pk) == 3

    user.display_name = "Carol"
    user.save()
    assert CreditLedgerEntry.objects.filter(author=user).count() == 1


@pytest.mark.django_db
def test_no_grant_when_disabled(settings):
    settings.CREDITS_INITIAL_GRANT = 0

    user = get_user_model().objects.create_user(
        username="dave",
        email="dave@example.com",
        password="pass1234",
    )

    assert not CreditLedgerEntry.objects.filter(author=user).exists()
