"""Error hierarchy for the webhook pipeline.

Only two failure kinds may change the HTTP response to the payment processor:
- SignatureVerificationError -> 400 (sender should investigate / redeliver)
- ConfigurationFault -> 500 (checked before any verification is attempted)

Everything else is absorbed inside the pipeline and logged for manual recovery.
"""

from __future__ import annotations


class OrderhookError(Exception):
    """Base exception for all orderhook errors."""

    code = "orderhook_error"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class SignatureVerificationError(OrderhookError):
    """Inbound payload could not be authenticated."""

    code = "signature_verification_failed"
    http_status = 400


class ConfigurationFault(OrderhookError):
    """A backing-service client is missing from configuration."""

    code = "configuration_fault"
    http_status = 500

    def __init__(self, missing: list[str]):
        super().__init__(f"Missing configuration for: {', '.join(missing)}")
        self.missing = list(missing)


class MaterializationError(OrderhookError):
    """Checkout payload has no usable session id, so no record can be keyed."""

    code = "materialization_failed"


class PersistenceFault(OrderhookError):
    """Order store unreachable or rejected the write (not a duplicate)."""

    code = "persistence_fault"


class NotificationFault(OrderhookError):
    """Email provider rejected or failed to accept the confirmation."""

    code = "notification_fault"
