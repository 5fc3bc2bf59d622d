# paygate/state/__init__.py
"""State store implementations for payment session persistence."""

from .types import PaymentSession, SessionStatus
from .base import StateStore
from .in_memory import InMemoryStateStore
from .manager import StoreConfig, create_store

__all__ = [
    'PaymentSession',
    'SessionStatus',
    'StateStore',
    'InMemoryStateStore',
    'StoreConfig',
    'create_store',
]

# Conditionally export RedisStateStore if redis is available
try:
    from .redis import RedisStateStore, REDIS_AVAILABLE
    if REDIS_AVAILABLE:
        __all__.append('RedisStateStore')
except ImportError:  # pragma: no cover
    pass
