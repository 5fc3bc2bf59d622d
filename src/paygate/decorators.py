# paygate/decorators.py
from .errors import PaymentValidationError
from .utils.payment import validate_amount

PRICE_ATTR = "_paygate_price_info"


def price(amount, currency: str = "USD"):
    """Mark a tool handler as paid.

    Usage::

        @price(0.50, "USD")
        async def generate(prompt: str, ctx=None): ...
    """
    validate_amount(amount)
    if not currency or not str(currency).strip():
        raise PaymentValidationError("currency")

    def decorator(func):
        setattr(func, PRICE_ATTR, {"amount": amount, "currency": str(currency).strip()})
        return func

    return decorator
