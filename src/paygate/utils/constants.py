# paygate/utils/constants.py
"""Shared defaults. Each can be overridden with a PAYGATE_* environment variable."""

import os


def _env_number(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


DEFAULT_POLL_SECONDS = _env_number("PAYGATE_POLL_SECONDS", 3)
MAX_WAIT_SECONDS = _env_number("PAYGATE_MAX_WAIT_SECONDS", 15 * 60)
ELICITATION_MAX_ATTEMPTS = int(_env_number("PAYGATE_ELICITATION_ATTEMPTS", 5))
STATE_TTL_SECONDS = int(_env_number("PAYGATE_STATE_TTL_SECONDS", 3600))

# JSON-RPC "method not found"
METHOD_NOT_FOUND = -32601
