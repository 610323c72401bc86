"""Webhook HTTP handlers — FastAPI routes for the payment processor.

Each request:
1. Fails closed (500) if any backing-service client is missing
2. Reads the raw body (needed for HMAC verification)
3. Verifies the Stripe-Signature header -> 400 on failure
4. Runs the checkout pipeline in a worker thread
5. Returns 200 {"received": true, "requestId": ...} for every authenticated request

Security contract:
- Never surface downstream (store / email) errors to the sender
- Log all webhook activity for audit trail
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from orderhook.context import ServiceContext
from orderhook.errors import ConfigurationFault, SignatureVerificationError
from orderhook.webhooks.acknowledgment import decide, respond
from orderhook.webhooks.dispatcher import summarize_event
from orderhook.webhooks.pipeline import process_event
from orderhook.webhooks.verification import SIGNATURE_HEADER

logger = logging.getLogger(__name__)


def _log_webhook(event_type: str, delivery_id: str, status: str, request_id: str) -> None:
    """Audit log for webhook activity."""
    logger.info(
        "WEBHOOK_AUDIT event=%s id=%s status=%s request_id=%s",
        event_type,
        delivery_id,
        status,
        request_id,
    )


async def handle_webhook(request: Request) -> Response:
    """Authenticate, process and acknowledge one webhook delivery."""
    start = time.time()
    request_id = uuid.uuid4().hex
    services: ServiceContext = request.app.state.services

    missing = services.health.missing
    if missing:
        fault = ConfigurationFault(missing)
        logger.error("Webhook rejected before verification: %s", fault)
        _log_webhook("unknown", "unknown", fault.code, request_id)
        return JSONResponse(
            {"error": "Server configuration error", "code": fault.code, "missing": fault.missing},
            status_code=fault.http_status,
            headers={"X-Request-ID": request_id},
        )

    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        event = services.verifier.construct_event(body, signature)
    except SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed: %s", e)
        _log_webhook("unknown", "unknown", e.code, request_id)
        return respond(decide(authenticated=False), request_id, detail=str(e))

    decision = decide(authenticated=True)

    # Past this point the request is authenticated and must be acknowledged.
    try:
        outcome = await asyncio.to_thread(process_event, event, services.store, services.mailer)
        _log_webhook(event.type, outcome.delivery_id, outcome.status, request_id)
        if logger.isEnabledFor(logging.DEBUG):
            elapsed_ms = (time.time() - start) * 1000
            logger.debug("Webhook processed in %.1fms: %s [%s]", elapsed_ms, event.type, summarize_event(event))
    except Exception:
        logger.exception("Webhook processing error for %s (%s)", event.type, event.event_id)
        _log_webhook(event.type, event.event_id, "pipeline_failed", request_id)

    return respond(decision, request_id)


def register_webhook_routes(app: FastAPI) -> None:
    """Register the webhook and health routes on the FastAPI app."""

    @app.post("/webhook")
    async def stripe_webhook(request: Request):
        """Receive Stripe webhooks (signature-verified)."""
        return await handle_webhook(request)

    @app.get("/")
    async def health(request: Request):
        """Readiness of each backing-service client (not authenticated)."""
        services: ServiceContext = request.app.state.services
        return services.health.to_dict()

    logger.info("Webhook routes registered: POST /webhook, GET /")
