"""Order materializer: checkout session payload -> OrderRecord.

Every optional field is read through one FieldSpec table and one default
policy: if the value is absent, of the wrong shape, or (for numerics) not
parseable, the field is None. Partial metadata never blocks capture of the
fields that are present. The only hard failure is a payload without a
session id, because the record could not be keyed for idempotent storage.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from orderhook.errors import MaterializationError

# Address keys copied from Stripe's address object; anything else is dropped.
ADDRESS_KEYS = ("line1", "line2", "city", "state", "postal_code", "country")

UNKNOWN_PAYMENT_STATUS = "unknown"

_MINOR_UNIT_EXPONENT = -2


def to_major_units(amount_minor_units: int) -> Decimal:
    """Stripe minor units -> 2-place Decimal (695 -> 6.95).

    Never raises; amounts wider than the decimal context are rounded.
    """
    return Decimal(amount_minor_units).scaleb(_MINOR_UNIT_EXPONENT)


# ---------------------------------------------------------------------------
# Coercers: each returns None for "unset"
# ---------------------------------------------------------------------------


def as_str(value: Any) -> str | None:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def as_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def as_address(value: Any) -> dict[str, str] | None:
    if not isinstance(value, dict):
        return None
    address = {k: value[k].strip() for k in ADDRESS_KEYS if isinstance(value.get(k), str) and value[k].strip()}
    return address or None


def _dig(payload: Any, path: tuple[str | int, ...]) -> Any:
    node = payload
    for key in path:
        if isinstance(key, int):
            if not isinstance(node, list) or len(node) <= key:
                return None
        elif not isinstance(node, dict):
            return None
        node = node[key] if isinstance(key, int) else node.get(key)
        if node is None:
            return None
    return node


@dataclass(frozen=True)
class FieldSpec:
    """One optional field: candidate source paths (first hit wins) and a coercer."""

    name: str
    paths: tuple[tuple[str | int, ...], ...]
    coerce: Callable[[Any], Any]

    def extract(self, payload: dict[str, Any]) -> Any:
        for path in self.paths:
            value = self.coerce(_dig(payload, path))
            if value is not None:
                return value
        return None


CONFIG_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("binding_type", (("metadata", "binding_type"),), as_str),
    FieldSpec("binding_name", (("metadata", "binding_name"),), as_str),
    FieldSpec("format", (("metadata", "format"),), as_str),
    FieldSpec("paper_weight", (("metadata", "paper_weight"),), as_str),
    FieldSpec("printing_option", (("metadata", "printing_option"),), as_str),
    FieldSpec("page_count", (("metadata", "page_count"),), as_int),
    FieldSpec("total_price", (("metadata", "total_price"),), as_decimal),
    FieldSpec(
        "payment_method",
        (("metadata", "payment_method"), ("payment_method_types", 0)),
        as_str,
    ),
)

CUSTOMER_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("name", (("customer_details", "name"), ("shipping_details", "name")), as_str),
    FieldSpec("phone", (("customer_details", "phone"),), as_str),
    FieldSpec(
        "address",
        (("customer_details", "address"), ("shipping_details", "address")),
        as_address,
    ),
)

EMAIL_FIELD = FieldSpec("email", (("customer_email",), ("customer_details", "email")), as_str)
SHIPPING_METHOD_FIELD = FieldSpec("shipping_method", (("metadata", "shipping_method"),), as_str)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderConfig:
    """Print-job configuration chosen at checkout. None means unset."""

    binding_type: str | None = None
    binding_name: str | None = None
    format: str | None = None
    paper_weight: str | None = None
    printing_option: str | None = None
    page_count: int | None = None
    total_price: Decimal | None = None
    payment_method: str | None = None


@dataclass(frozen=True)
class Customer:
    name: str | None = None
    phone: str | None = None
    address: dict[str, str] | None = None


@dataclass(frozen=True)
class OrderRecord:
    """Normalized order derived from a completed checkout session."""

    session_id: str
    order_reference: str
    email: str | None
    amount_minor_units: int
    currency: str
    payment_status: str
    config: OrderConfig = field(default_factory=OrderConfig)
    customer: Customer = field(default_factory=Customer)
    shipping_method: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_price(self) -> Decimal:
        """Charged amount in major units; amount_total is authoritative."""
        return to_major_units(self.amount_minor_units)

    def order_config_document(self) -> dict[str, Any]:
        """JSON document stored in the ``order_config`` column."""
        doc = asdict(self.config)
        doc.update(
            {
                "customer_email": self.email,
                "customer_name": self.customer.name,
                "customer_phone": self.customer.phone,
                "payment_status": self.payment_status,
                "currency": self.currency,
                "amount": self.amount_minor_units,
            }
        )
        return doc

    def to_row(self) -> dict[str, Any]:
        """Column mapping for the ``orders`` table."""
        return {
            "order_reference": self.order_reference,
            "status": self.payment_status,
            "total_price": self.total_price,
            "stripe_session_id": self.session_id,
            "customer_email": self.email,
            "amount": self.amount_minor_units,
            "currency": self.currency,
            "order_config": json.dumps(self.order_config_document(), default=str),
            "shipping_method": self.shipping_method,
            "shipping_address": json.dumps(self.customer.address) if self.customer.address else None,
            "created_at": self.created_at,
        }


def make_order_reference(session_id: str, created_at: datetime) -> str:
    """``ORD-<epoch ms>-<session suffix>``; stable for a given session and clock."""
    return f"ORD-{int(created_at.timestamp() * 1000)}-{session_id[-8:]}"


def materialize_order(payload: dict[str, Any], created_at: datetime | None = None) -> OrderRecord:
    """Map a checkout session object to an OrderRecord.

    Args:
        payload: The ``data.object`` of a checkout.session.completed event
        created_at: Processing timestamp; defaults to now (UTC)

    Raises:
        MaterializationError: the payload carries no session id
    """
    session_id = as_str(payload.get("id")) if isinstance(payload, dict) else None
    if session_id is None:
        raise MaterializationError("Checkout session payload has no id")

    created_at = created_at or datetime.now(timezone.utc)
    currency = as_str(payload.get("currency"))

    return OrderRecord(
        session_id=session_id,
        order_reference=make_order_reference(session_id, created_at),
        email=EMAIL_FIELD.extract(payload),
        amount_minor_units=as_int(payload.get("amount_total")) or 0,
        currency=currency.lower() if currency else "",
        payment_status=as_str(payload.get("payment_status")) or UNKNOWN_PAYMENT_STATUS,
        config=OrderConfig(**{spec.name: spec.extract(payload) for spec in CONFIG_FIELDS}),
        customer=Customer(**{spec.name: spec.extract(payload) for spec in CUSTOMER_FIELDS}),
        shipping_method=SHIPPING_METHOD_FIELD.extract(payload),
        created_at=created_at,
    )
