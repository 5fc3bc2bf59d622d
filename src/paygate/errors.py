# paygate/errors.py
"""Exceptions raised by the payment layer.

Errors that come from the wrapped tool itself are never wrapped in these
types; they propagate to the caller unchanged.
"""

from typing import Optional


class PayGateError(Exception):
    """Base class for all paygate errors."""


class PaymentValidationError(PayGateError, ValueError):
    """Raised before any network call when a required input is missing or invalid."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"{field} is required")


class ProviderError(PayGateError, RuntimeError):
    """Raised when a payment provider call fails (network, auth, HTTP or body)."""

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(f"{step} failed: {message}")


class CapabilityNotSupportedError(PayGateError, RuntimeError):
    """Raised when the calling transport lacks a capability the flow needs."""

    reason = "capability_not_supported"

    def __init__(self, message: str, reason: Optional[str] = None):
        if reason:
            self.reason = reason
        super().__init__(message)


class ElicitationNotSupportedError(CapabilityNotSupportedError):
    reason = "elicitation_not_supported"
    default_message = "Client does not support the selected payment flow"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
