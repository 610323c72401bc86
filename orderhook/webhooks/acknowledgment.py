"""Acknowledgment policy — the only place that decides the HTTP response.

Two terminal states:
- REJECTED: signature verification failed (400). The only answer that asks
  the sender to investigate or redeliver.
- ACKNOWLEDGED: every authenticated request (200), whatever happened to
  materialization, persistence or notification. Redelivery is absorbed by
  the idempotent store, not by the sender's retry loop.

The configuration fault (500) is decided before verification and lives in
the handler, not here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fastapi.responses import JSONResponse, PlainTextResponse, Response

from orderhook.notifications.email import SendResult
from orderhook.orders.store import PersistResult, PersistStatus
from orderhook.webhooks.dispatcher import Route


class Acknowledgment(str, Enum):
    REJECTED = "rejected"
    ACKNOWLEDGED = "acknowledged"


@dataclass
class PipelineOutcome:
    """What happened to one authenticated event after routing."""

    event_type: str
    delivery_id: str
    route: Route
    persist: PersistResult | None = None
    notification: SendResult | None = None
    error: str = ""

    @property
    def status(self) -> str:
        """Short tag for audit lines."""
        if self.route is Route.IGNORED:
            return "ignored"
        if self.error:
            return "pipeline_failed"
        if self.persist is None:
            return "not_stored"
        if self.persist.status is PersistStatus.FAILED:
            return "persist_failed"
        if self.persist.status is PersistStatus.DUPLICATE:
            return "duplicate"
        if self.notification is not None and not self.notification.success:
            return "stored_notify_failed"
        return "stored"


def decide(authenticated: bool) -> Acknowledgment:
    """Authentication is the only input; downstream outcomes never matter."""
    return Acknowledgment.ACKNOWLEDGED if authenticated else Acknowledgment.REJECTED


def respond(decision: Acknowledgment, request_id: str, detail: str = "") -> Response:
    """Render ``decision`` as the HTTP response for the sender."""
    headers = {"X-Request-ID": request_id}
    if decision is Acknowledgment.REJECTED:
        return PlainTextResponse(f"Webhook Error: {detail}", status_code=400, headers=headers)
    return JSONResponse({"received": True, "requestId": request_id}, status_code=200, headers=headers)
