"""Payment utility functions."""

from decimal import Decimal, InvalidOperation

from ..errors import PaymentValidationError

PAID = "paid"
CANCELED = "canceled"
PENDING = "pending"

_PAID_STATUSES = frozenset(
    {
        "paid",
        "succeeded",
        "success",
        "complete",
        "completed",
        "ok",
        "no_payment_required",
    }
)

_CANCELED_STATUSES = frozenset(
    {
        "canceled",
        "cancelled",
        "void",
        "failed",
        "declined",
        "error",
    }
)


def normalize_status(status):
    """
    Normalize payment status to standard values: paid, canceled, or pending.

    Unknown values fail open to ``pending``; this function never raises.

    Args:
        status: Raw status from payment provider

    Returns:
        str: Normalized status ('paid', 'canceled', or 'pending')
    """
    if status is None:
        return PENDING

    try:
        status_str = str(status).strip().lower()
    except Exception:
        return PENDING

    if status_str in _PAID_STATUSES:
        return PAID

    if status_str in _CANCELED_STATUSES:
        return CANCELED

    # Default to pending for any other status
    return PENDING


def validate_amount(amount) -> Decimal:
    """Return ``amount`` as a positive, finite Decimal or raise PaymentValidationError."""
    if amount is None or isinstance(amount, bool):
        raise PaymentValidationError("amount")
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise PaymentValidationError("amount", f"amount must be a number, got {amount!r}")
    if not value.is_finite() or value <= 0:
        raise PaymentValidationError("amount", f"amount must be positive, got {amount!r}")
    return value
