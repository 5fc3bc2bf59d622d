"""Capability detection for the transport context passed to tool handlers.

A context may offer any subset of:

* ``elicit(message=..., ...)`` or ``send_request(request)`` to ask the user
* ``report_progress(progress=..., total=..., message=...)`` or
  ``send_notification(notification)`` plus a progress token
* ``signal`` (``.aborted`` or ``.is_set()``) and request/stream disconnect state

Every helper here treats a missing capability as a normal branch.
"""

import logging
from typing import Any, Callable, Optional

from .flow import maybe_await

logger = logging.getLogger(__name__)


def _callable_attr(obj: Any, name: str) -> Optional[Callable]:
    if obj is None:
        return None
    attr = getattr(obj, name, None)
    return attr if callable(attr) else None


def get_elicit(ctx) -> Optional[Callable]:
    return _callable_attr(ctx, "elicit")


def get_send_request(ctx) -> Optional[Callable]:
    return _callable_attr(ctx, "send_request")


def can_elicit(ctx) -> bool:
    return get_elicit(ctx) is not None or get_send_request(ctx) is not None


def _lookup(obj: Any, name: str):
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def get_progress_token(ctx):
    """Find the progress token the client attached to this request, if any."""
    request_context = _lookup(ctx, "request_context")
    for meta in (
        _lookup(ctx, "meta"),
        _lookup(ctx, "_meta"),
        _lookup(request_context, "meta"),
    ):
        for name in ("progressToken", "progress_token"):
            token = _lookup(meta, name)
            if isinstance(token, (str, int)):
                return token
    token = _lookup(ctx, "progress_token")
    return token if isinstance(token, (str, int)) else None


async def send_progress(ctx, message: str, progress: float, total: float = 100) -> bool:
    """Emit a progress notification; log instead when the transport has no channel.

    Returns:
        bool: True if a notification was sent
    """
    report = _callable_attr(ctx, "report_progress")
    if report is not None:
        try:
            await maybe_await(report(progress=progress, total=total, message=message))
            return True
        except Exception as e:
            logger.warning(f"[PayGate:Progress] report_progress failed: {e}")

    send_notification = _callable_attr(ctx, "send_notification")
    token = get_progress_token(ctx)
    if send_notification is not None and token is not None:
        try:
            await maybe_await(
                send_notification(
                    {
                        "method": "notifications/progress",
                        "params": {
                            "progressToken": token,
                            "progress": progress,
                            "total": total,
                            "message": message,
                        },
                    }
                )
            )
            return True
        except Exception as e:
            logger.warning(f"[PayGate:Progress] progress notification failed: {e}")

    # No usable progress channel; logging avoids sending malformed notifications
    logger.debug(f"[PayGate:Progress] progress {progress}/{total}: {message}")
    return False


async def is_aborted(ctx=None) -> bool:
    """True once the caller has aborted the request or disconnected."""
    if ctx is None:
        return False

    signal = getattr(ctx, "signal", None)
    if signal is not None:
        if getattr(signal, "aborted", False) is True:
            return True
        is_set = _callable_attr(signal, "is_set")
        if is_set is not None and is_set() is True:
            return True

    req = getattr(getattr(ctx, "request_context", None), "request", None)
    is_disconnected = _callable_attr(req, "is_disconnected")
    if is_disconnected is not None:
        try:
            if await maybe_await(is_disconnected()) is True:
                return True
        except Exception as e:
            logger.debug(f"[PayGate] could not check request disconnect: {e}")

    session = getattr(ctx, "session", None)
    for stream_name in ("_read_stream", "_write_stream"):
        stream = getattr(session, stream_name, None)
        state = getattr(stream, "_state", None)
        if getattr(state, "_closed", False) is True:
            return True

    return False
