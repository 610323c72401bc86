"""HTTP-level fixtures: FastAPI app built around in-memory services."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from orderhook.serve import create_app


@pytest.fixture()
def app(services):
    return create_app(services=services)


@pytest.fixture()
def client(app):
    """Unauthenticated TestClient (payment processor perspective)."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
