from importlib import import_module

from ..payment_flow import PaymentFlow

FLOWS = frozenset(flow.value for flow in PaymentFlow)


def make_flow(name):
    """
    Return the ``make_paid_wrapper`` factory of a payment flow.

    Args:
        name: Flow name or :class:`PaymentFlow` member (case-insensitive)

    Returns:
        The flow's ``make_paid_wrapper(func, register, provider, price_info,
        tool_name, state_store=None, **options)``

    Raises:
        ValueError: If no such flow exists
    """
    key = name.value if isinstance(name, PaymentFlow) else str(name).strip().lower()
    if key not in FLOWS:
        raise ValueError(f"Unknown payment flow: {name}")

    mod = import_module(f".{key}", __package__)
    return mod.make_paid_wrapper
