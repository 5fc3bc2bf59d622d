from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from .base import StateStore
from .in_memory import InMemoryStateStore


@dataclass
class StoreConfig:
    type: Literal["memory", "redis", "custom"] = "memory"
    options: Optional[Dict[str, Any]] = None


def create_store(config: Optional[StoreConfig] = None) -> StateStore:
    """Build the state store selected by ``config`` (in-memory by default).

    ``options`` are passed to the store constructor; for ``custom`` they
    must carry the store instance under ``"implementation"``.
    """
    store_config = config or StoreConfig()
    options = dict(store_config.options or {})

    if store_config.type == "memory":
        return InMemoryStateStore(**options)

    elif store_config.type == "redis":
        from .redis import RedisStateStore
        return RedisStateStore(**options)

    elif store_config.type == "custom":
        if "implementation" in options:
            return options["implementation"]
        raise ValueError(
            'Custom storage requires an implementation in options["implementation"]'
        )

    else:
        raise ValueError(f"Unknown storage type: {store_config.type}")
