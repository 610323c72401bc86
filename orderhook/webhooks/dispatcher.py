"""Webhook event router — classifies verified events by type.

Exactly one event type drives the order pipeline; every other type is
accepted, logged and ignored. Routing never fails: an unknown tag simply
routes to IGNORED so the sender still gets its acknowledgment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from orderhook.orders.materializer import to_major_units

logger = logging.getLogger(__name__)

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


class Route(str, Enum):
    """Where a verified event goes next."""

    CHECKOUT_COMPLETED = "checkout_completed"
    IGNORED = "ignored"


_ROUTES: dict[str, Route] = {
    CHECKOUT_SESSION_COMPLETED: Route.CHECKOUT_COMPLETED,
}


@dataclass(frozen=True)
class InboundEvent:
    """Authenticated notification, immutable for the lifetime of one request."""

    event_id: str
    type: str
    payload: dict[str, Any] = field(default_factory=dict)
    created: int | None = None
    livemode: bool = False

    @property
    def delivery_id(self) -> str:
        """Session id for checkout events, otherwise the Stripe event id."""
        if self.type == CHECKOUT_SESSION_COMPLETED:
            session_id = self.payload.get("id")
            if isinstance(session_id, str) and session_id:
                return session_id
        return self.event_id


def parse_event(envelope: dict[str, Any]) -> InboundEvent:
    """Normalize a Stripe event envelope into an InboundEvent.

    Missing or oddly-shaped envelope fields degrade to empty values rather
    than failing; the envelope has already been authenticated.
    """
    event_type = envelope.get("type")
    data = envelope.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    created = envelope.get("created")

    return InboundEvent(
        event_id=str(envelope.get("id") or ""),
        type=event_type if isinstance(event_type, str) else "unknown",
        payload=obj if isinstance(obj, dict) else {},
        created=created if isinstance(created, int) and not isinstance(created, bool) else None,
        livemode=envelope.get("livemode") is True,
    )


def route_event(event: InboundEvent) -> Route:
    """Return the route for ``event``; unrecognized types are ignored."""
    route = _ROUTES.get(event.type, Route.IGNORED)
    if route is Route.IGNORED:
        logger.info("Unhandled webhook event type: %s (%s) — acknowledging", event.type, event.event_id)
    return route


def summarize_event(event: InboundEvent) -> str:
    """Short human-readable summary for audit lines."""
    obj = event.payload
    amount = obj.get("amount_total")
    if amount is None:
        amount = obj.get("amount")
    currency = obj.get("currency")
    currency = currency.upper() if isinstance(currency, str) else ""

    amount_fmt = ""
    if isinstance(amount, int) and not isinstance(amount, bool):
        # Stripe amounts are in minor units
        amount_fmt = f"{to_major_units(amount):.2f} {currency}".strip()

    obj_id = obj.get("id") if isinstance(obj.get("id"), str) else ""
    return f"{obj_id} {amount_fmt}".strip()
