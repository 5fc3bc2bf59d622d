# paygate/__init__.py

from .core import PayGate, __version__
from .decorators import price
from .errors import (
    PayGateError,
    PaymentValidationError,
    ProviderError,
    CapabilityNotSupportedError,
    ElicitationNotSupportedError,
)
from .payment.payment_flow import PaymentFlow
from .providers import BasePaymentProvider, CreatePaymentResult
from .state import (
    StateStore,
    InMemoryStateStore,
    PaymentSession,
    SessionStatus,
    StoreConfig,
    create_store,
)
from .utils.payment import normalize_status

__all__ = [
    "PayGate",
    "price",
    "PaymentFlow",
    "__version__",
    "BasePaymentProvider",
    "CreatePaymentResult",
    "StateStore",
    "InMemoryStateStore",
    "PaymentSession",
    "SessionStatus",
    "StoreConfig",
    "create_store",
    "normalize_status",
    "PayGateError",
    "PaymentValidationError",
    "ProviderError",
    "CapabilityNotSupportedError",
    "ElicitationNotSupportedError",
]

# Conditionally export RedisStateStore if available
try:
    from .state import RedisStateStore
    __all__.append("RedisStateStore")
except ImportError:  # pragma: no cover
    pass
