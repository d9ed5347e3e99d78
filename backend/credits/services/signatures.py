"""HMAC signatures for inbound payment webhooks.

Deliveries use Stripe's signing scheme: the signed payload is
``<unix seconds>.<raw body>`` and the signature header carries one or more
``v1=<hex digest>`` values separated by commas, so a secret can be rotated
while the old one is still in flight. The timestamp travels in its own
header; it is folded back into a Stripe-style ``t=...,v1=...`` header and
checked with ``stripe.WebhookSignature``. Nothing here touches Django.
"""
from __future__ import annotations

import time
from typing import List, Optional, Union

import stripe

SIGNATURE_SCHEME = stripe.WebhookSignature.EXPECTED_SCHEME
DEFAULT_TOLERANCE_SECONDS = 300

BytesLike = Union[bytes, bytearray, str]


def _to_text(value: BytesLike) -> str:
    if isinstance(value, str):
        return value
    return bytes(value).decode("utf-8")


def parse_timestamp(value: Optional[BytesLike]) -> Optional[int]:
    """Return whole UNIX seconds for a header value in seconds or milliseconds."""

    if value is None:
        return None
    try:
        number = float(_to_text(value).strip())
    except (UnicodeDecodeError, ValueError):
        return None
    if number != number or number <= 0:
        return None
    if number > 1e11:
        number = number / 1000.0
    return int(number)


def compute_signature(raw_body: BytesLike, secret: str, timestamp: BytesLike) -> str:
    """Hex signature a sender attaches for ``raw_body`` issued at ``timestamp``."""

    issued_at = parse_timestamp(timestamp)
    if issued_at is None:
        raise ValueError(f"Invalid webhook timestamp: {timestamp!r}")
    return stripe.WebhookSignature._compute_signature(f"{issued_at}.{_to_text(raw_body)}", secret)


def format_signature_header(signature: str) -> str:
    return f"{SIGNATURE_SCHEME}={signature}"


def _signature_parts(header: str) -> List[str]:
    parts = []
    for part in header.split(","):
        scheme, sep, value = part.strip().partition("=")
        if sep and scheme == SIGNATURE_SCHEME and value.strip():
            parts.append(f"{SIGNATURE_SCHEME}={value.strip()}")
        elif not sep and scheme:
            # Bare hex digest without a scheme prefix.
            parts.append(f"{SIGNATURE_SCHEME}={scheme}")
    return parts


def verify_signature(
    raw_body: BytesLike,
    secret: str,
    timestamp: Optional[BytesLike],
    signature_header: Optional[str],
    *,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> bool:
    """True only when a provided signature matches and the timestamp is fresh.

    Stripe rejects timestamps older than ``tolerance``; deliveries dated more
    than ``tolerance`` into the future are rejected here as well.
    """

    if not secret or not signature_header or timestamp is None:
        return False

    issued_at = parse_timestamp(timestamp)
    if issued_at is None or issued_at - time.time() > tolerance:
        return False

    parts = _signature_parts(signature_header)
    if not parts:
        return False

    header = ",".join([f"t={issued_at}"] + parts)
    try:
        return stripe.WebhookSignature.verify_header(_to_text(raw_body), header, secret, tolerance)
    except (stripe.SignatureVerificationError, UnicodeDecodeError):
        return False
