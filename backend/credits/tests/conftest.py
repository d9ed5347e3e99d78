import json
import time

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from credits.models import EditAction, EditPricing
from credits.services.catalog import ensure_default_catalog
from credits.services.signatures import compute_signature, format_signature_header

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture(autouse=True)
def credits_settings(settings):
    settings.PAYMENT_GATEWAY_CLASS = "credits.services.gateway.SandboxGateway"
    settings.PAYMENT_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.PAYMENT_WEBHOOK_TOLERANCE_SECONDS = 300
    settings.CREDITS_INITIAL_GRANT = 0
    return settings


@pytest.fixture
def catalog(db):
    ensure_default_catalog(force=True)


@pytest.fixture
def make_author(db):
    counter = {"value": 0}

    def _make(username=None, **extra):
        counter["value"] += 1
        name = username or f"author{counter['value']}"
        return get_user_model().objects.create_user(
            username=name,
            email=f"{name}@example.com",
            password="pass1234",
            **extra,
        )

    return _make


@pytest.fixture
def author(make_author):
    return make_author("alice")


@pytest.fixture
def api_client(author):
    client = APIClient()
    client.force_authenticate(user=author)
    return client


@pytest.fixture
def text_edit_pricing(catalog):
    """textEdit with five free edits, then three credits per edit."""
    EditPricing.objects.update_or_create(
        action=EditAction.TEXT_EDIT,
        defaults={"free_threshold": 5, "price_credits": 3, "is_active": True},
    )


def sign_webhook(payload, *, secret=WEBHOOK_SECRET, timestamp=None):
    body = json.dumps(payload).encode("utf-8")
    ts = str(int(time.time()) if timestamp is None else timestamp)
    return body, format_signature_header(compute_signature(body, secret, ts)), ts


@pytest.fixture
def signed_webhook():
    return sign_webhook
