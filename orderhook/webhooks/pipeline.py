"""Checkout pipeline: route -> materialize -> persist -> notify.

Runs inside a worker thread (blocking psycopg / httpx calls). Every fault is
captured on the returned PipelineOutcome; nothing raised here may reach the
acknowledgment decision.
"""

from __future__ import annotations

import logging
from datetime import datetime

from orderhook.errors import MaterializationError
from orderhook.notifications.email import ResendEmailClient, compose_confirmation
from orderhook.orders.materializer import materialize_order
from orderhook.orders.store import OrderStore, PersistStatus
from orderhook.webhooks.acknowledgment import PipelineOutcome
from orderhook.webhooks.dispatcher import InboundEvent, Route, route_event

logger = logging.getLogger(__name__)


def process_event(
    event: InboundEvent,
    store: OrderStore,
    mailer: ResendEmailClient,
    now: datetime | None = None,
) -> PipelineOutcome:
    """Run the order pipeline for one authenticated event."""
    route = route_event(event)
    outcome = PipelineOutcome(event_type=event.type, delivery_id=event.delivery_id, route=route)
    if route is not Route.CHECKOUT_COMPLETED:
        return outcome

    try:
        record = materialize_order(event.payload, created_at=now)
    except MaterializationError as e:
        logger.error("Cannot materialize order from event %s: %s", event.event_id, e)
        outcome.error = str(e)
        return outcome

    try:
        outcome.persist = store.save(record)
    except Exception as e:
        # OrderStore.save() reports faults as results; this is the backstop.
        logger.exception("Order store raised for session %s", record.session_id)
        outcome.error = f"{type(e).__name__}: {e}"

    # Redelivery of an already stored session does not mail the customer twice.
    if outcome.persist is not None and outcome.persist.status is PersistStatus.DUPLICATE:
        return outcome

    try:
        outcome.notification = mailer.send(compose_confirmation(record))
    except Exception as e:
        logger.exception("Confirmation email raised for session %s", record.session_id)
        outcome.error = outcome.error or f"{type(e).__name__}: {e}"
        return outcome

    if not outcome.notification.success:
        logger.error(
            "Confirmation email for %s not sent: %s",
            record.session_id,
            outcome.notification.error,
        )
    return outcome
