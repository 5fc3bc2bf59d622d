# paygate/payment/flows/progress.py
import asyncio
import functools
import logging

from ...state.types import SessionStatus
from ...utils.constants import DEFAULT_POLL_SECONDS, MAX_WAIT_SECONDS
from ...utils.context import is_aborted, send_progress
from ...utils.flow import call_original, call_provider, normalize_call
from ...utils.messages import payment_prompt_message
from ...utils.payment import CANCELED, PAID, normalize_status
from ...utils.response import (
    build_canceled_response,
    build_error_response,
    build_success_response,
)
from ...utils.session import extract_session_key
from ..recovery import (
    check_existing_payment,
    cleanup_payment_state,
    save_payment_state,
    update_payment_status,
)

logger = logging.getLogger(__name__)


def heartbeat_percent(waited: float, max_wait: float) -> int:
    if max_wait <= 0:
        return 99
    return min(int(waited * 99 / max_wait), 99)


def make_paid_wrapper(
    func, register, provider, price_info, tool_name, state_store=None, **options
):
    """
    One-step flow that *holds the tool open* and reports progress until the
    payment is completed, canceled, aborted by the client or timed out.

    Options:
        poll_seconds: Delay between provider status checks
        max_wait_seconds: Give up (``timeout``) after this long
    """
    poll_seconds = options.get("poll_seconds", DEFAULT_POLL_SECONDS)
    max_wait_seconds = options.get("max_wait_seconds", MAX_WAIT_SECONDS)

    @functools.wraps(func)
    async def _progress_wrapper(*args, **kwargs):
        call = normalize_call(*args, **kwargs)
        ctx = call.ctx
        logger.debug(f"[PayGate:Progress] wrapper invoked for tool={tool_name}")

        session_key = extract_session_key(ctx)
        recovered = await check_existing_payment(
            session_key, state_store, provider, tool_name, call.args
        )

        if recovered.execute_immediately:
            await send_progress(ctx, "Payment already completed — running tool…", 100)
            logger.info(
                f"[PayGate:Progress] payment {recovered.payment_id} already paid; running {tool_name}"
            )
            result = await call_original(func, recovered.args_for(call.args), call)
            return build_success_response(result, recovered.payment_id)

        tool_args = call.args
        payment_id = recovered.payment_id
        payment_url = recovered.payment_url
        if payment_id:
            tool_args = recovered.args_for(call.args)
            logger.info(f"[PayGate:Progress] resuming pending payment {payment_id}")
        else:
            payment_id, payment_url = await call_provider(
                provider.create_payment,
                amount=price_info["amount"],
                currency=price_info["currency"],
                description=f"{tool_name}() execution fee",
            )
            payment_id = str(payment_id)
            logger.debug(f"[PayGate:Progress] created payment id={payment_id} url={payment_url}")
            await save_payment_state(
                session_key, state_store, payment_id, payment_url, tool_name, tool_args
            )

        # Initial message with the payment link
        await send_progress(
            ctx,
            payment_prompt_message(payment_url, price_info["amount"], price_info["currency"]),
            0,
        )

        # Poll provider until paid, canceled, aborted or timeout
        waited = 0
        paid = False
        while waited < max_wait_seconds:
            if await is_aborted(ctx):
                # Not deleted: the payment may still complete and be recovered later
                logger.warning(
                    f"[PayGate:Progress] aborted by client while waiting for payment {payment_id}"
                )
                return build_canceled_response(
                    "Payment aborted by client",
                    payment_id=payment_id,
                    payment_url=payment_url,
                    reason="aborted",
                )

            await asyncio.sleep(poll_seconds)
            waited += poll_seconds

            raw_status = await call_provider(provider.get_payment_status, payment_id)
            status = normalize_status(raw_status)
            logger.debug(
                f"[PayGate:Progress] poll status={raw_status!r} -> {status} waited={waited}s"
            )

            if status == PAID:
                await send_progress(ctx, "Payment received — running tool…", 100)
                paid = True
                break

            if status == CANCELED:
                await send_progress(ctx, f"Payment {raw_status} — aborting.", 0)
                await cleanup_payment_state(session_key, state_store)
                return build_canceled_response(
                    "Payment canceled", payment_id=payment_id, payment_url=payment_url
                )

            # Still pending → heartbeat
            await send_progress(
                ctx,
                f"Waiting for payment… ({round(waited)}s elapsed):\n {payment_url}",
                heartbeat_percent(waited, max_wait_seconds),
            )

        if not paid:
            logger.warning(f"[PayGate:Progress] timeout waiting for payment {payment_id}")
            # Kept in the store so a later call can pick the payment up
            await update_payment_status(session_key, state_store, SessionStatus.TIMEOUT)
            return build_error_response(
                "Payment timeout reached; aborting",
                reason="timeout",
                payment_id=payment_id,
                payment_url=payment_url,
            )

        logger.info(f"[PayGate:Progress] payment confirmed; invoking {tool_name}")
        await update_payment_status(session_key, state_store, SessionStatus.PAID)
        result = await call_original(func, tool_args, call)
        await cleanup_payment_state(session_key, state_store)
        return build_success_response(result, payment_id)

    return _progress_wrapper
