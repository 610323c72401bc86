"""Stripe webhook signature verification — constant-time HMAC.

Security contract:
- Verification runs on the exact raw request bytes, never on re-encoded JSON
- All comparisons use hmac.compare_digest() (constant-time)
- Empty webhook secret -> verification always fails (fail-closed)
- Timestamp tolerance (default 300s) rejects replayed and future-dated deliveries
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time

from orderhook.errors import SignatureVerificationError
from orderhook.webhooks.dispatcher import InboundEvent, parse_event

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "stripe-signature"

DEFAULT_TOLERANCE_SECONDS = 300

_SIGNATURE_SCHEME = "v1"


def _parse_header(signature_header: str) -> tuple[int, list[str]]:
    """Split ``t=<timestamp>,v1=<sig>[,v1=<sig>...]`` into its parts."""
    timestamp_str = None
    signatures: list[str] = []
    for item in signature_header.split(","):
        kv = item.strip().split("=", 1)
        if len(kv) != 2:
            continue
        key, value = kv
        if key == "t":
            timestamp_str = value
        elif key == _SIGNATURE_SCHEME:
            signatures.append(value)

    if not timestamp_str:
        raise SignatureVerificationError("Unable to extract timestamp and signatures from header")
    try:
        timestamp = int(timestamp_str)
    except ValueError:
        raise SignatureVerificationError("Unable to extract timestamp and signatures from header")
    if not signatures:
        raise SignatureVerificationError("No signatures found with expected scheme")
    return timestamp, signatures


def compute_signature(body: bytes, timestamp: int, secret: str) -> str:
    """HMAC-SHA256 hex digest over ``<timestamp>.<body>``."""
    signed_payload = f"{timestamp}.".encode("utf-8") + body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def verify_stripe_signature(
    body: bytes,
    signature_header: str | None,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    """Verify a Stripe-Signature header against the raw body.

    Args:
        body: Raw request body bytes
        signature_header: Value of the Stripe-Signature header
        secret: Webhook signing secret (whsec_...)
        tolerance: Maximum age (seconds) of the signed timestamp
        now: Current unix time; defaults to time.time()

    Raises:
        SignatureVerificationError: header missing or malformed, timestamp
            out of tolerance, or no v1 signature matches
    """
    if not secret:
        logger.warning("STRIPE_WEBHOOK_SECRET not set — rejecting webhook")
        raise SignatureVerificationError("Webhook secret is not configured")
    if not signature_header:
        raise SignatureVerificationError("No stripe-signature header value was provided")

    timestamp, signatures = _parse_header(signature_header)

    current = time.time() if now is None else now
    if tolerance > 0 and abs(current - timestamp) > tolerance:
        logger.warning("Stripe webhook timestamp outside tolerance: %s", timestamp)
        raise SignatureVerificationError("Timestamp outside the tolerance zone")

    expected = compute_signature(body, timestamp, secret)
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise SignatureVerificationError(
            "No signatures found matching the expected signature for payload"
        )


class StripeWebhookVerifier:
    """Authenticates raw webhook deliveries and turns them into InboundEvents."""

    def __init__(self, webhook_secret: str, tolerance: int = DEFAULT_TOLERANCE_SECONDS):
        self._secret = webhook_secret
        self._tolerance = tolerance

    def construct_event(self, body: bytes, signature_header: str | None) -> InboundEvent:
        """Verify ``body`` then parse those same bytes into an InboundEvent.

        A body that verifies but is not a JSON object is still rejected: the
        signature only vouches for bytes, and an envelope we cannot read
        cannot be acknowledged as handled.
        """
        verify_stripe_signature(body, signature_header, self._secret, self._tolerance)

        # ValueError covers JSONDecodeError, UnicodeDecodeError and the
        # int-digit limit; RecursionError is raised for deeply nested input.
        try:
            envelope = json.loads(body)
        except (ValueError, RecursionError) as e:
            raise SignatureVerificationError(f"Invalid payload: {e}") from e
        if not isinstance(envelope, dict):
            raise SignatureVerificationError("Invalid payload: expected a JSON object")

        return parse_event(envelope)
