from typing import Dict, Iterable, Mapping, Union

from .base import BasePaymentProvider, CreatePaymentResult

__all__ = ["BasePaymentProvider", "CreatePaymentResult", "build_providers"]


def build_providers(
    providers: Union[Mapping[str, BasePaymentProvider], Iterable[BasePaymentProvider], None]
) -> Dict[str, BasePaymentProvider]:
    """Index provider instances by name, preserving configuration order.

    Accepts either a ``{name: provider}`` mapping or an iterable of providers
    (named by ``get_name()``). Anything exposing ``create_payment`` and
    ``get_payment_status`` is accepted.
    """
    if not providers:
        return {}

    if isinstance(providers, Mapping):
        items = list(providers.items())
    else:
        items = [(p.get_name(), p) for p in providers]

    instances: Dict[str, BasePaymentProvider] = {}
    for name, provider in items:
        if not (hasattr(provider, "create_payment") and hasattr(provider, "get_payment_status")):
            raise TypeError(f"Provider {name!r} must implement create_payment and get_payment_status")
        instances[name] = provider
    return instances
