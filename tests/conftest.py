"""Shared fixtures for the orderhook test suite."""

from __future__ import annotations

import hashlib
import hmac
import json
import threading
import time
from typing import Any

import pytest

from orderhook.context import ServiceContext
from orderhook.errors import NotificationFault, PersistenceFault
from orderhook.notifications.email import ConfirmationEmail, SendResult
from orderhook.orders.materializer import OrderRecord
from orderhook.orders.store import PersistResult, PersistStatus
from orderhook.webhooks.verification import StripeWebhookVerifier

WEBHOOK_SECRET = "whsec_test_secret"


def sign(body: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Compute a valid Stripe-Signature header for ``body``."""
    ts = timestamp or int(time.time())
    signed_payload = f"{ts}.".encode() + body
    sig = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def make_envelope(
    event_type: str = "checkout.session.completed",
    session: dict[str, Any] | None = None,
    event_id: str = "evt_test_1",
) -> dict[str, Any]:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": 1732752000,
        "livemode": False,
        "data": {"object": session if session is not None else {}},
    }


def checkout_session(session_id: str = "cs_test_1", **overrides: Any) -> dict[str, Any]:
    """A realistic checkout.session.completed data.object."""
    session = {
        "id": session_id,
        "object": "checkout.session",
        "amount_total": 695,
        "currency": "eur",
        "payment_status": "paid",
        "customer_email": "test@example.com",
        "customer_details": {
            "email": "test@example.com",
            "name": "Test Customer",
            "phone": "+49123456789",
            "address": {
                "line1": "Test Address",
                "line2": None,
                "city": "Test City",
                "postal_code": "10115",
                "country": "DE",
            },
        },
        "payment_method_types": ["card"],
        "metadata": {
            "binding_type": "softcover-classic",
            "binding_name": "Softcover Classic",
            "format": "A4",
            "paper_weight": "80g",
            "printing_option": "single-sided",
            "page_count": "10",
            "total_price": "6.95",
            "payment_method": "credit_card",
        },
    }
    session.update(overrides)
    return session


class InMemoryOrderStore:
    """OrderStore with the same unique-session guarantee as the orders table."""

    def __init__(self, fail_with: str | None = None):
        self.rows: dict[str, OrderRecord] = {}
        self.fail_with = fail_with
        self._lock = threading.Lock()

    def save(self, record: OrderRecord) -> PersistResult:
        if self.fail_with:
            return PersistResult(
                PersistStatus.FAILED,
                record.session_id,
                fault=PersistenceFault(self.fail_with),
            )
        with self._lock:
            if record.session_id in self.rows:
                return PersistResult(PersistStatus.DUPLICATE, record.session_id)
            self.rows[record.session_id] = record
            return PersistResult(PersistStatus.INSERTED, record.session_id, row_id=len(self.rows))


class RecordingMailer:
    """Mailer that records what it was asked to send."""

    def __init__(self, fail_with: str | None = None):
        self.sent: list[ConfirmationEmail] = []
        self.fail_with = fail_with
        self._lock = threading.Lock()

    def send(self, message: ConfirmationEmail) -> SendResult:
        with self._lock:
            self.sent.append(message)
        if self.fail_with:
            return SendResult(success=False, recipient=message.to, fault=NotificationFault(self.fail_with))
        return SendResult(success=True, recipient=message.to, response_id=f"msg_{len(self.sent)}")


@pytest.fixture()
def store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def verifier() -> StripeWebhookVerifier:
    return StripeWebhookVerifier(WEBHOOK_SECRET)


@pytest.fixture()
def services(verifier, store, mailer) -> ServiceContext:
    return ServiceContext(verifier=verifier, store=store, mailer=mailer, environment="test")


@pytest.fixture()
def signed_request():
    """Factory: envelope dict -> (raw body, headers)."""

    def _make(envelope: dict[str, Any], secret: str = WEBHOOK_SECRET) -> tuple[bytes, dict[str, str]]:
        body = json.dumps(envelope).encode()
        return body, {"Stripe-Signature": sign(body, secret), "Content-Type": "application/json"}

    return _make


@pytest.fixture()
def sign_body():
    return sign


@pytest.fixture()
def envelope():
    return make_envelope


@pytest.fixture()
def session_payload():
    return checkout_session
