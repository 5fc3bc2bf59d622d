"""Utilities for deriving a session key from the transport context."""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

SESSION_HEADER = "mcp-session-id"


def _lookup(obj: Any, name: str):
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_key(value) -> Optional[str]:
    if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value):
        return str(value)
    return None


def _header_session_id(ctx) -> Optional[str]:
    headers = _lookup(ctx, "headers")
    if headers is None:
        headers = _lookup(_lookup(ctx, "request"), "headers")
    if headers is None:
        request_context = _lookup(ctx, "request_context")
        headers = _lookup(_lookup(request_context, "request"), "headers")
    if headers is None or not hasattr(headers, "items"):
        return None
    for key, value in headers.items():
        if isinstance(key, str) and key.lower() == SESSION_HEADER:
            return _as_key(value)
    return None


def extract_session_key(ctx) -> Optional[str]:
    """
    Derive the key under which a caller's payment session is stored.

    Lookup order: ``session_id``/``sessionId`` on the context, the
    ``Mcp-Session-Id`` header, ``session.id``/``session.session_id``,
    ``meta.session_id``, and finally ``req_<request_id>``.

    Args:
        ctx: The transport context (object or dict)

    Returns:
        str or None: The key, or None when the caller cannot be identified
    """
    if ctx is None:
        return None

    for name in ("session_id", "sessionId"):
        key = _as_key(_lookup(ctx, name))
        if key:
            logger.debug(f"[PayGate] session key from ctx.{name}: {key}")
            return key

    key = _header_session_id(ctx)
    if key:
        logger.debug(f"[PayGate] session key from {SESSION_HEADER} header: {key}")
        return key

    session = _lookup(ctx, "session")
    for name in ("id", "session_id", "sessionId"):
        key = _as_key(_lookup(session, name))
        if key:
            return key

    for meta in (_lookup(ctx, "meta"), _lookup(ctx, "_meta")):
        for name in ("session_id", "sessionId"):
            key = _as_key(_lookup(meta, name))
            if key:
                return key

    for name in ("request_id", "requestId"):
        request_id = _as_key(_lookup(ctx, name))
        if request_id:
            return f"req_{request_id}"

    logger.debug("[PayGate] no session key available for this call")
    return None
