"""Prometheus metrics helpers for the credits domain."""
from __future__ import annotations

from prometheus_client import Counter, Histogram

CREDITS_REQUEST_COUNT = Counter(
    "credits_request_total",
    "Number of credits API requests",
    labelnames=("endpoint", "method", "status"),
)

CREDITS_REQUEST_LATENCY = Histogram(
    "credits_request_duration_seconds",
    "Latency of credits API requests",
    labelnames=("endpoint", "method"),
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)

LEDGER_ENTRY_COUNT = Counter(
    "credits_ledger_entries_total",
    "Ledger entries appended",
    labelnames=("event_type",),
)

WEBHOOK_EVENT_COUNT = Counter(
    "credits_webhook_events_total",
    "Payment webhook deliveries by event and outcome",
    labelnames=("event", "outcome"),
)

PROMOTION_REDEMPTION_COUNT = Counter(
    "credits_promotion_redemptions_total",
    "Promotion redemption attempts",
    labelnames=("outcome",),
)

GATEWAY_FAILURE_COUNT = Counter(
    "credits_gateway_failures_total",
    "Failed calls to the payment gateway",
    labelnames=("provider",),
)
