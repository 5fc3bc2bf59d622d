# paygate/core.py
from importlib.metadata import version, PackageNotFoundError
import logging

from .decorators import PRICE_ATTR
from .payment.flows import make_flow
from .payment.payment_flow import PaymentFlow
from .providers import build_providers
from .state.manager import StoreConfig, create_store
from .utils.messages import description_with_price

logger = logging.getLogger(__name__)

try:
    __version__ = version("paygate")
except PackageNotFoundError:
    __version__ = "unknown"


class PayGate:
    """
    Registration middleware that puts a payment in front of priced tools.

    ``register_tool`` is the transport's own registration callable,
    ``register(name, config, handler)``. PayGate never modifies it; use
    :meth:`PayGate.register_tool` in its place::

        gate = PayGate(server.register_tool, providers=[provider])
        gate.register_tool("generate", {"description": "...", "price": {"amount": 1, "currency": "USD"}}, handler)

    Tools without a price (neither ``config["price"]`` nor ``@price``) are
    passed through untouched.
    """

    def __init__(
        self,
        register_tool,
        providers=None,
        payment_flow: PaymentFlow = PaymentFlow.TWO_STEP,
        state_store=None,
        store_config: StoreConfig = None,
        flow_options=None,
    ):
        logger.debug(f"PayGate v{__version__}")
        if not callable(register_tool):
            raise TypeError("register_tool must be callable as register_tool(name, config, handler)")

        self._register = register_tool
        self._wrapper_factory = make_flow(payment_flow)
        self.payment_flow = PaymentFlow(
            payment_flow.value if isinstance(payment_flow, PaymentFlow) else str(payment_flow).strip().lower()
        )
        self.providers = build_providers(providers or {})
        self.state_store = state_store if state_store is not None else create_store(store_config)
        self.flow_options = dict(flow_options or {})
        self._registered = set()

    def _get_provider(self):
        """Get the first available payment provider"""
        if not self.providers:
            raise RuntimeError("No payment provider configured")
        return next(iter(self.providers.values()))

    def _register_unpriced(self, name, config, handler):
        """Register a helper tool (e.g. a confirmation tool) exactly once."""
        if name in self._registered:
            logger.debug(f"[PayGate] {name} already registered")
            return None
        self._registered.add(name)
        return self._register(name, config, handler)

    def register_tool(self, name, config=None, handler=None):
        """
        Register a tool, wrapping it in the payment flow when it has a price.

        Can be used as a decorator::

            @gate.register_tool("generate", {"description": "..."})
            @price(0.5, "USD")
            async def generate(prompt: str, ctx=None): ...

        Returns:
            Whatever the underlying registration returns (or, as a decorator,
            the undecorated handler)
        """
        if handler is None:
            def decorator(func):
                self.register_tool(name, config, func)
                return func
            return decorator

        config = dict(config or {})
        price_info = config.pop("price", None) or getattr(handler, PRICE_ATTR, None)

        if not price_info:
            return self._register(name, config, handler)

        price_info = {"amount": price_info["amount"], "currency": price_info.get("currency", "USD")}
        provider = self._get_provider()
        # Payment is created lazily on each call, never at registration
        config["description"] = description_with_price(
            config.get("description") or handler.__doc__ or "", price_info
        )
        target = self._wrapper_factory(
            handler,
            self._register_unpriced,
            provider,
            price_info,
            name,
            state_store=self.state_store,
            **self.flow_options,
        )
        logger.debug(
            f"[PayGate] registered paid tool {name} "
            f"({price_info['amount']} {price_info['currency']}, flow={self.payment_flow.value})"
        )
        self._registered.add(name)
        return self._register(name, config, target)
