"""Order persistence: idempotent Postgres insert keyed by Stripe session id.

Security contract:
- One conditional write per record: INSERT ... ON CONFLICT DO NOTHING.
  The uniqueness check and the insert are a single statement, so
  concurrent duplicate deliveries cannot both create a row.
- A duplicate session id is a successful no-op, never an error.
- Store faults (unreachable, timeout, schema mismatch) are returned as a
  FAILED result. save() never raises.
- Every call is bounded by connect_timeout and statement_timeout.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

import psycopg
from psycopg.rows import dict_row

from orderhook.errors import PersistenceFault
from orderhook.orders.materializer import OrderRecord

logger = logging.getLogger(__name__)

_CREATE_ORDERS_TABLE = """
    CREATE TABLE IF NOT EXISTS orders (
        id                 BIGSERIAL PRIMARY KEY,
        order_reference    TEXT NOT NULL,
        status             TEXT NOT NULL,
        total_price        NUMERIC(12, 2) NOT NULL,
        stripe_session_id  TEXT NOT NULL UNIQUE,
        customer_email     TEXT,
        amount             INTEGER NOT NULL,
        currency           TEXT NOT NULL,
        order_config       JSONB NOT NULL DEFAULT '{}',
        shipping_method    TEXT,
        shipping_address   JSONB,
        created_at         TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""

_INSERT_ORDER = """
    INSERT INTO orders (
        order_reference, status, total_price, stripe_session_id,
        customer_email, amount, currency, order_config,
        shipping_method, shipping_address, created_at
    ) VALUES (
        %(order_reference)s, %(status)s, %(total_price)s, %(stripe_session_id)s,
        %(customer_email)s, %(amount)s, %(currency)s, %(order_config)s::jsonb,
        %(shipping_method)s, %(shipping_address)s::jsonb, %(created_at)s
    )
    ON CONFLICT (stripe_session_id) DO NOTHING
    RETURNING id
"""


class PersistStatus(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass(frozen=True)
class PersistResult:
    """Outcome of one save() call."""

    status: PersistStatus
    session_id: str
    row_id: int | None = None
    fault: PersistenceFault | None = None

    @property
    def stored(self) -> bool:
        """True when a row for this session exists after the call."""
        return self.status in (PersistStatus.INSERTED, PersistStatus.DUPLICATE)


@runtime_checkable
class OrderStore(Protocol):
    """What the webhook pipeline needs from a durable order store."""

    def save(self, record: OrderRecord) -> PersistResult:
        ...


class PostgresOrderStore:
    """Postgres-backed OrderStore. Opens one short-lived connection per call."""

    def __init__(
        self,
        database_url: str,
        connect_timeout: int = 5,
        statement_timeout_ms: int = 5000,
    ):
        self._database_url = database_url
        self._connect_timeout = connect_timeout
        self._statement_timeout_ms = statement_timeout_ms

    def _get_conn(self) -> psycopg.Connection:
        return psycopg.connect(
            self._database_url,
            autocommit=True,
            row_factory=dict_row,
            connect_timeout=self._connect_timeout,
            options=f"-c statement_timeout={self._statement_timeout_ms}",
        )

    def init_table(self) -> None:
        """Create the orders table if it doesn't exist. Idempotent."""
        with self._get_conn() as conn:
            conn.execute(_CREATE_ORDERS_TABLE)
        logger.info("Orders table initialized")

    def save(self, record: OrderRecord) -> PersistResult:
        """Insert ``record`` unless its session id is already stored."""
        row_doc = record.to_row()
        try:
            with self._get_conn() as conn:
                row = conn.execute(_INSERT_ORDER, row_doc).fetchone()
        except (psycopg.Error, OSError) as e:
            fault = PersistenceFault(f"{type(e).__name__}: {e}")
            logger.error(
                "Failed to persist order %s: %s. Row for manual recovery: %s",
                record.session_id,
                fault,
                json.dumps(row_doc, default=str, ensure_ascii=False),
            )
            return PersistResult(PersistStatus.FAILED, record.session_id, fault=fault)

        if row is None:
            logger.info("Order %s already stored — skipping duplicate insert", record.session_id)
            return PersistResult(PersistStatus.DUPLICATE, record.session_id)

        logger.info("Order %s stored as row %s (%s)", record.session_id, row["id"], record.order_reference)
        return PersistResult(PersistStatus.INSERTED, record.session_id, row_id=row["id"])
