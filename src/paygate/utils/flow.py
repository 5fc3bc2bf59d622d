"""Call-shape normalization shared by the payment flows.

Transports invoke tool handlers either positionally, as ``handler(args, ctx)``
or ``handler(ctx)``, or with keywords, as ``handler(**args, ctx=ctx)``.
:func:`normalize_call` is the only place that inspects the shape; the flows
work on the resulting :class:`ToolCall` and hand it back to
:func:`call_original`, which invokes the wrapped handler the same way.
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class ToolCall:
    args: Optional[Any]
    ctx: Any = None
    keyword: bool = True


def normalize_call(*args, **kwargs) -> ToolCall:
    if args:
        if len(args) == 1 and not kwargs:
            return ToolCall(args=None, ctx=args[0], keyword=False)
        if len(args) == 2 and not kwargs:
            return ToolCall(args=args[0], ctx=args[1], keyword=False)
        raise TypeError(
            "Tool handlers are called as handler(ctx), handler(args, ctx) "
            f"or handler(**args); got {len(args)} positional arguments"
        )

    call_args = dict(kwargs)
    ctx = call_args.pop("ctx", None)
    return ToolCall(args=call_args, ctx=ctx, keyword=True)


async def maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


async def call_provider(fn, *args, **kwargs):
    """Call a provider method without blocking the event loop.

    Coroutine functions are awaited directly; blocking (e.g. ``requests``
    based) methods run in a worker thread.
    """
    if inspect.iscoroutinefunction(fn):
        return await fn(*args, **kwargs)
    return await maybe_await(await asyncio.to_thread(fn, *args, **kwargs))


async def call_original(func, args, call: ToolCall):
    """Invoke the wrapped handler with ``args`` in the caller's shape.

    Exceptions raised by the handler propagate unchanged.
    """
    if call.keyword:
        kwargs = dict(args or {})
        if call.ctx is not None:
            kwargs["ctx"] = call.ctx
        return await maybe_await(func(**kwargs))

    if args is not None:
        return await maybe_await(func(args, call.ctx))
    return await maybe_await(func(call.ctx))
