"""FastAPI app factory and process entry point.

The ServiceContext is built exactly once here and attached to
``app.state.services``; request handlers only read it.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import psycopg
import uvicorn
from fastapi import FastAPI

from orderhook import __version__
from orderhook.config import Settings, get_settings
from orderhook.context import ServiceContext
from orderhook.orders.store import PostgresOrderStore
from orderhook.webhooks.handlers import register_webhook_routes

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    services: ServiceContext = app.state.services
    health = services.health
    logger.info(
        "Starting orderhook %s (env=%s) stripe=%s database=%s email=%s",
        __version__,
        health.environment,
        health.stripe,
        health.database,
        health.email,
    )
    if isinstance(services.store, PostgresOrderStore):
        try:
            services.store.init_table()
        except (psycopg.Error, OSError):
            # Startup must survive an unreachable store; save() reports per request.
            logger.warning("Could not initialize orders table", exc_info=True)
    yield
    logger.info("orderhook shutting down")


def create_app(settings: Settings | None = None, services: ServiceContext | None = None) -> FastAPI:
    """Build the FastAPI app around a single ServiceContext."""
    if services is None:
        services = ServiceContext.from_settings(settings or get_settings())
    app = FastAPI(title="orderhook", version=__version__, lifespan=lifespan)
    app.state.services = services
    register_webhook_routes(app)
    return app


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
