"""Process-wide service context.

Built once at startup from Settings and attached to ``app.state``. The
clients it holds are stateless handles shared read-only by all requests.
A client whose configuration is missing is simply absent (None); the
health surface reports it and the webhook fails closed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from orderhook.config import Settings
from orderhook.notifications.email import ResendEmailClient
from orderhook.orders.store import OrderStore, PostgresOrderStore
from orderhook.webhooks.verification import StripeWebhookVerifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceHealth:
    """Which backing-service clients were constructed at startup."""

    stripe: bool
    database: bool
    email: bool
    environment: str = "development"

    @property
    def missing(self) -> list[str]:
        return [name for name in ("stripe", "database", "email") if not getattr(self, name)]

    def to_dict(self) -> dict:
        return {
            "status": "ok",
            "environment": self.environment,
            "services": {
                "stripe": self.stripe,
                "database": self.database,
                "email": self.email,
            },
        }


@dataclass(frozen=True)
class ServiceContext:
    """Clients for the payment processor, order store and email provider."""

    verifier: StripeWebhookVerifier | None
    store: OrderStore | None
    mailer: ResendEmailClient | None
    environment: str = "development"

    @property
    def health(self) -> ServiceHealth:
        return ServiceHealth(
            stripe=self.verifier is not None,
            database=self.store is not None,
            email=self.mailer is not None,
            environment=self.environment,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> ServiceContext:
        """Construct every client whose configuration is present."""
        verifier = None
        if settings.stripe_secret_key and settings.stripe_webhook_secret:
            verifier = StripeWebhookVerifier(
                settings.stripe_webhook_secret,
                tolerance=settings.stripe_timestamp_tolerance,
            )
        else:
            logger.warning("STRIPE_SECRET_KEY / STRIPE_WEBHOOK_SECRET not set — webhook disabled")

        store = None
        if settings.database_url:
            store = PostgresOrderStore(
                settings.database_url,
                connect_timeout=settings.database_connect_timeout,
                statement_timeout_ms=settings.database_statement_timeout_ms,
            )
        else:
            logger.warning("DATABASE_URL not set — orders cannot be stored")

        mailer = None
        if settings.resend_api_key:
            mailer = ResendEmailClient(
                settings.resend_api_key,
                sender=settings.email_from,
                base_url=settings.resend_base_url,
                timeout=settings.email_timeout,
            )
        else:
            logger.warning("RESEND_API_KEY not set — confirmation emails disabled")

        return cls(verifier=verifier, store=store, mailer=mailer, environment=settings.environment)
