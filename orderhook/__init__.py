"""orderhook — Stripe checkout webhook ingestion for print orders."""

__version__ = "0.1.0"
