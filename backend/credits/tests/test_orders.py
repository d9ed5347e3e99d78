import pytest
import stripe

from credits.exceptions import (
    CreditValidationError,
    IdempotencyConflict,
    OrderNotFound,
    UpstreamUnavailable,
)
from credits.models import CreditLedgerEntry, PaymentEvent, PaymentOrder
from credits.services import orders
from credits.services.gateway import GatewayOrder, SandboxGateway, StripeGateway

FIFTY_CREDITS = [{"package": "credits10", "quantity": 5}]


@pytest.mark.django_db
def test_create_order_persists_pending_order_with_checkout_token(author, catalog):
    result = orders.create_order(author_id=author.pk, items=FIFTY_CREDITS, idempotency_key="k1")

    order = result.order
    assert result.created is True
    assert order.status == PaymentOrder.Status.PENDING
    assert order.credits == 50
    assert order.amount == 4500
    assert order.currency == "eur"
    assert order.provider == "sandbox"
    assert order.provider_order_id.startswith("sbx_")
    assert result.checkout_token.startswith("sbx_tok_")
    assert order.credit_bundle["items"] == [
        {"package": "credits10", "quantity": 5, "credits": 50, "unit_price": 900, "total_price": 4500}
    ]
    assert list(order.events.values_list("event_type", flat=True).order_by("id")) == [
        PaymentEvent.EventType.ORDER_CREATED,
        PaymentEvent.EventType.GATEWAY_ORDER_CREATED,
    ]
    assert not CreditLedgerEntry.objects.exists()


@pytest.mark.django_db
def test_create_order_is_idempotent_per_key(author, catalog):
    first = orders.create_order(author_id=author.pk, items=FIFTY_CREDITS, idempotency_key="k1")
    second = orders.create_order(author_id=author.pk, items=FIFTY_CREDITS, idempotency_key="k1")

    assert second.created is False
    assert second.order.order_id == first.order.order_id
    assert second.checkout_token == first.checkout_token
    assert PaymentOrder.objects.count() == 1


@pytest.mark.django_db
def test_same_key_for_different_authors_creates_separate_orders(make_author, catalog):
    first = orders.create_order(author_id=make_author().pk, items=FIFTY_CREDITS, idempotency_key="k1")
    second = orders.create_order(author_id=make_author().pk, items=FIFTY_CREDITS, idempotency_key="k1")

    assert first.order.order_id != second.order.order_id
    assert first.order.provider_order_id != second.order.provider_order_id


@pytest.mark.django_db
def test_reusing_key_for_different_bundle_conflicts(author, catalog):
    orders.create_order(author_id=author.pk, items=FIFTY_CREDITS, idempotency_key="k1")

    with pytest.raises(IdempotencyConflict):
        orders.create_order(author_id=author.pk, items=[{"package": "credits5"}], idempotency_key="k1")


@pytest.mark.django_db
def test_duplicate_packages_are_aggregated(author, catalog):
    bundle = orders.resolve_bundle(
        [{"package": "credits10", "quantity": 2}, {"package": "credits10", "quantity": 3}, {"package": "credits5"}]
    )

    assert bundle.credits == 55
    assert bundle.amount == 5000
    assert [(item["package"], item["quantity"]) for item in bundle.items] == [("credits10", 5), ("credits5", 1)]
    assert bundle.fingerprint == orders.resolve_bundle(FIFTY_CREDITS + [{"package": "credits5"}]).fingerprint


@pytest.mark.parametrize(
    "items",
    [
        [],
        [{"package": "credits999"}],
        [{"package": "credits10", "quantity": 0}],
        [{"package": "credits10", "quantity": 21}],
        ["credits10"],
    ],
)
@pytest.mark.django_db
def test_invalid_bundles_are_rejected(author, catalog, items):
    with pytest.raises(CreditValidationError):
        orders.create_order(author_id=author.pk, items=items, idempotency_key="k1")

    assert not PaymentOrder.objects.exists()


@pytest.mark.parametrize("key", [None, "", "   ", "x" * 256])
@pytest.mark.django_db
def test_idempotency_key_is_required(author, catalog, key):
    with pytest.raises(CreditValidationError):
        orders.create_order(author_id=author.pk, items=FIFTY_CREDITS, idempotency_key=key)


@pytest.mark.django_db
def test_gateway_outage_leaves_retryable_pending_order(author, catalog, monkeypatch):
    def _unavailable(self, **kwargs):
        raise UpstreamUnavailable(details={"provider": self.name})

    monkeypatch.setattr(SandboxGateway, "create_order", _unavailable)

    with pytest.raises(UpstreamUnavailable):
        orders.create_order(author_id=author.pk, items=FIFTY_CREDITS, idempotency_key="k1")

    order = PaymentOrder.objects.get()
    assert order.status == PaymentOrder.Status.PENDING
    assert order.provider_order_id is None

    monkeypatch.undo()
    retried = orders.create_order(author_id=author.pk, items=FIFTY_CREDITS, idempotency_key="k1")

    assert retried.order.order_id == order.order_id
    assert retried.order.provider_order_id.startswith("sbx_")


@pytest.mark.django_db
def test_stripe_gateway_passes_order_scoped_idempotency_key(author, catalog, settings, monkeypatch):
    settings.PAYMENT_GATEWAY_CLASS = "credits.services.gateway.StripeGateway"
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    captured = {}

    def _create(**kwargs):
        captured.update(kwargs)
        return {"id": "pi_123", "client_secret": "pi_123_secret_abc"}

    monkeypatch.setattr(stripe.PaymentIntent, "create", _create)

    result = orders.create_order(author_id=author.pk, items=FIFTY_CREDITS, idempotency_key="k1")

    assert result.order.provider == "stripe"
    assert result.order.provider_order_id == "pi_123"
    assert result.checkout_token == "pi_123_secret_abc"
    assert captured["amount"] == 4500
    assert captured["currency"] == "eur"
    assert captured["idempotency_key"] == f"credits-order-{result.order.order_id}"


@pytest.mark.django_db
def test_stripe_error_maps_to_upstream_unavailable(settings, monkeypatch):
    settings.STRIPE_SECRET_KEY = "sk_test_123"

    def _fail(**kwargs):
        raise stripe.APIConnectionError("connection reset")

    monkeypatch.setattr(stripe.PaymentIntent, "create", _fail)

    with pytest.raises(UpstreamUnavailable):
        StripeGateway().create_order(amount=100, currency="eur", description="x", idempotency_key="k")


@pytest.mark.django_db
def test_missing_stripe_key_is_upstream_unavailable(author, catalog, settings):
    settings.PAYMENT_GATEWAY_CLASS = "credits.services.gateway.StripeGateway"
    settings.STRIPE_SECRET_KEY = ""

    with pytest.raises(UpstreamUnavailable):
        orders.create_order(author_id=author.pk, items=FIFTY_CREDITS, idempotency_key="k1")


def test_sandbox_gateway_is_deterministic_per_key():
    gateway = SandboxGateway()
    first = gateway.create_order(amount=1, currency="eur", description="", idempotency_key="a")

    assert first == gateway.create_order(amount=1, currency="eur", description="", idempotency_key="a")
    assert first != gateway.create_order(amount=1, currency="eur", description="", idempotency_key="b")
    assert isinstance(first, GatewayOrder)


@pytest.mark.django_db
def test_cancel_pending_order_and_terminal_is_sticky(author, catalog):
    order = orders.create_order(author_id=author.pk, items=FIFTY_CREDITS, idempotency_key="k1").order

    cancelled = orders.cancel_order(order_id=order.order_id, author_id=author.pk)
    assert cancelled.status == PaymentOrder.Status.CANCELLED

    assert orders.transition_order(cancelled, PaymentOrder.Status.COMPLETED, source="test") is False
    order.refresh_from_db()
    assert order.status == PaymentOrder.Status.CANCELLED
    assert order.completed_at is None


@pytest.mark.django_db
def test_cancel_is_scoped_to_owner(make_author, catalog):
    owner = make_author()
    order = orders.create_order(author_id=owner.pk, items=FIFTY_CREDITS, idempotency_key="k1").order

    with pytest.raises(OrderNotFound):
        orders.cancel_order(order_id=order.order_id, author_id=make_author().pk)


@pytest.mark.django_db
def test_transition_only_targets_terminal_statuses(author, catalog):
    order = orders.create_order(author_id=author.pk, items=FIFTY_CREDITS, idempotency_key="k1").order

    with pytest.raises(CreditValidationError):
        orders.transition_order(order, PaymentOrder.Status.PENDING, source="test")
