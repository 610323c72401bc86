"""Tests for configuration, the service context and app startup."""

from __future__ import annotations

from unittest.mock import patch

import psycopg
import pytest
from fastapi.testclient import TestClient

from orderhook.config import Settings
from orderhook.context import ServiceContext, ServiceHealth
from orderhook.notifications.email import ResendEmailClient
from orderhook.orders.store import PostgresOrderStore
from orderhook.serve import create_app
from orderhook.webhooks.verification import StripeWebhookVerifier

FULL = {
    "stripe_secret_key": "sk_test_1",
    "stripe_webhook_secret": "whsec_1",
    "database_url": "postgresql://orders@localhost/orders",
    "resend_api_key": "re_1",
}


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET", "DATABASE_URL",
        "RESEND_API_KEY", "PORT", "ENVIRONMENT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_env")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("ENVIRONMENT", "production")
        settings = Settings(_env_file=None)
        assert settings.stripe_webhook_secret == "whsec_env"
        assert settings.port == 8080
        assert settings.environment == "production"

    def test_defaults_never_fail(self):
        settings = Settings(_env_file=None)
        assert settings.port == 10000
        assert settings.stripe_timestamp_tolerance == 300
        assert settings.database_url == ""


class TestServiceContext:
    def test_all_clients_constructed(self):
        ctx = ServiceContext.from_settings(Settings(_env_file=None, **FULL))
        assert isinstance(ctx.verifier, StripeWebhookVerifier)
        assert isinstance(ctx.store, PostgresOrderStore)
        assert isinstance(ctx.mailer, ResendEmailClient)
        assert ctx.health.missing == []

    def test_stripe_needs_both_keys(self):
        ctx = ServiceContext.from_settings(Settings(_env_file=None, **{**FULL, "stripe_secret_key": ""}))
        assert ctx.verifier is None
        assert ctx.health.missing == ["stripe"]

    def test_nothing_configured(self):
        ctx = ServiceContext.from_settings(Settings(_env_file=None, environment="staging"))
        assert ctx.health == ServiceHealth(stripe=False, database=False, email=False, environment="staging")
        assert ctx.health.missing == ["stripe", "database", "email"]


class TestStartup:
    @patch("orderhook.orders.store.psycopg.connect")
    def test_lifespan_initializes_orders_table(self, mock_connect):
        app = create_app(Settings(_env_file=None, **FULL))
        with TestClient(app):
            pass
        assert mock_connect.called

    @patch("orderhook.orders.store.psycopg.connect")
    def test_unreachable_database_does_not_block_startup(self, mock_connect):
        mock_connect.side_effect = psycopg.OperationalError("connection refused")
        app = create_app(Settings(_env_file=None, **FULL))
        with TestClient(app) as c:
            assert c.get("/").json()["services"]["database"] is True

    def test_unconfigured_app_boots(self):
        app = create_app(Settings(_env_file=None))
        with TestClient(app) as c:
            resp = c.get("/")
        assert resp.status_code == 200
        assert resp.json()["services"] == {"stripe": False, "database": False, "email": False}
