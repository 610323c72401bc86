"""Order confirmation email via the Resend HTTP API.

One attempt per order, no retry loop. A failed send is returned as a
SendResult and logged; it never touches the stored order or the webhook
acknowledgment. API key is sent as a bearer token and never logged.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass

import httpx

from orderhook.errors import NotificationFault
from orderhook.orders.materializer import OrderRecord, to_major_units

logger = logging.getLogger(__name__)

# (label, attribute on OrderConfig) in display order
_CONFIG_LABELS = (
    ("Binding", "binding_name"),
    ("Binding type", "binding_type"),
    ("Format", "format"),
    ("Paper weight", "paper_weight"),
    ("Printing", "printing_option"),
    ("Pages", "page_count"),
    ("Payment method", "payment_method"),
)


@dataclass(frozen=True)
class ConfirmationEmail:
    """A composed message ready for the provider."""

    to: str | None
    subject: str
    text: str
    html: str


@dataclass(frozen=True)
class SendResult:
    """Result of one send attempt."""

    success: bool
    recipient: str | None = None
    response_id: str = ""  # provider message id
    fault: NotificationFault | None = None

    @property
    def error(self) -> str:
        return self.fault.message if self.fault else ""


def format_amount(amount_minor_units: int, currency: str) -> str:
    return f"{to_major_units(amount_minor_units):.2f} {currency.upper()}".strip()


def order_summary_lines(record: OrderRecord) -> list[tuple[str, str]]:
    """Human-readable (label, value) pairs; unset fields are left out."""
    lines = [("Order reference", record.order_reference)]
    for label, attr in _CONFIG_LABELS:
        value = getattr(record.config, attr)
        if value is not None:
            lines.append((label, str(value)))
    if record.shipping_method:
        lines.append(("Shipping", record.shipping_method))
    lines.append(("Total paid", format_amount(record.amount_minor_units, record.currency)))
    return lines


def compose_confirmation(record: OrderRecord) -> ConfirmationEmail:
    """Build the confirmation message for ``record``."""
    greeting = f"Hello {record.customer.name}," if record.customer.name else "Hello,"
    lines = order_summary_lines(record)

    text_body = "\n".join(
        [greeting, "", "Thank you for your order. We have received your payment.", ""]
        + [f"{label}: {value}" for label, value in lines]
    )

    rows = "".join(
        f"<tr><td style=\"padding: 4px 12px 4px 0; color: #666;\">{html.escape(label)}</td>"
        f"<td style=\"padding: 4px 0;\">{html.escape(value)}</td></tr>"
        for label, value in lines
    )
    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px;">
        <p>{html.escape(greeting)}</p>
        <p>Thank you for your order. We have received your payment.</p>
        <table style="border-collapse: collapse;">{rows}</table>
    </div>
    """

    return ConfirmationEmail(
        to=record.email,
        subject=f"Order confirmation {record.order_reference}",
        text=text_body,
        html=html_body,
    )


class ResendEmailClient:
    """Transactional email through Resend (POST /emails)."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        base_url: str = "https://api.resend.com",
        timeout: float = 10.0,
    ):
        self._api_key = api_key
        self._sender = sender
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def send(self, message: ConfirmationEmail) -> SendResult:
        """Hand ``message`` to the provider once."""
        if not message.to:
            return SendResult(success=False, fault=NotificationFault("no recipient"))

        try:
            response = httpx.post(
                f"{self._base_url}/emails",
                json={
                    "from": self._sender,
                    "to": [message.to],
                    "subject": message.subject,
                    "text": message.text,
                    "html": message.html,
                },
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            return SendResult(
                success=False,
                recipient=message.to,
                fault=NotificationFault(f"Email provider returned HTTP {e.response.status_code}"),
            )
        except httpx.HTTPError as e:
            return SendResult(
                success=False,
                recipient=message.to,
                fault=NotificationFault(f"{type(e).__name__}: {e}"),
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        response_id = str(data.get("id", "")) if isinstance(data, dict) else ""
        logger.info("Confirmation email sent to %s (%s)", message.to, response_id)
        return SendResult(success=True, recipient=message.to, response_id=response_id)
