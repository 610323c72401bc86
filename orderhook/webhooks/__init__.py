"""Inbound payment-processor webhooks.

Each notification is signature-verified against the raw body, routed by
event type, and acknowledged with 200 once authenticated regardless of
what happens downstream.
"""
