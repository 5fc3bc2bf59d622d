# paygate/payment/flows/elicitation.py
import functools
import logging

from ...errors import ElicitationNotSupportedError
from ...state.types import SessionStatus
from ...utils.constants import ELICITATION_MAX_ATTEMPTS
from ...utils.context import can_elicit
from ...utils.elicitation import run_elicitation_loop
from ...utils.flow import call_original, call_provider, normalize_call
from ...utils.messages import payment_prompt_message
from ...utils.payment import CANCELED, PAID, PENDING, normalize_status
from ...utils.response import (
    build_canceled_response,
    build_error_response,
    build_pending_response,
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


def make_paid_wrapper(
    func, register, provider, price_info, tool_name, state_store=None, **options
):
    """
    Single-step payment flow using elicitation during execution.

    The user is prompted (``ctx.elicit`` or an ``elicitation/create`` request)
    with the payment link up to ``max_attempts`` times; the provider is
    checked after every prompt. No extra tool is registered. An unresolved
    payment is kept in the store so the next call resumes it.
    """
    max_attempts = int(options.get("max_attempts", ELICITATION_MAX_ATTEMPTS))

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        call = normalize_call(*args, **kwargs)
        ctx = call.ctx
        logger.debug(f"[PayGate:Elicitation] wrapper invoked for tool={tool_name}")

        if not can_elicit(ctx):
            logger.warning("[PayGate:Elicitation] client context cannot elicit")
            raise ElicitationNotSupportedError()

        session_key = extract_session_key(ctx)
        recovered = await check_existing_payment(
            session_key, state_store, provider, tool_name, call.args
        )

        if recovered.execute_immediately:
            logger.info(
                f"[PayGate:Elicitation] payment {recovered.payment_id} already paid; running {tool_name}"
            )
            result = await call_original(func, recovered.args_for(call.args), call)
            return build_success_response(result, recovered.payment_id)

        tool_args = call.args
        payment_id = recovered.payment_id
        payment_url = recovered.payment_url
        if payment_id:
            tool_args = recovered.args_for(call.args)
            logger.info(f"[PayGate:Elicitation] resuming pending payment {payment_id}")
        else:
            payment_id, payment_url = await call_provider(
                provider.create_payment,
                amount=price_info["amount"],
                currency=price_info["currency"],
                description=f"{tool_name}() execution fee",
            )
            payment_id = str(payment_id)
            logger.debug(f"[PayGate:Elicitation] created payment id={payment_id} url={payment_url}")
            await save_payment_state(
                session_key, state_store, payment_id, payment_url, tool_name, tool_args
            )

        message = payment_prompt_message(
            payment_url, price_info["amount"], price_info["currency"]
        )

        try:
            outcome = await run_elicitation_loop(
                ctx, message, provider, payment_id, payment_url, max_attempts=max_attempts
            )
            status = outcome.status
            logger.debug(
                f"[PayGate:Elicitation] loop returned action={outcome.action} status={status}"
            )
        except Exception as e:
            logger.warning(f"[PayGate:Elicitation] elicitation loop error: {e}")
            try:
                status = normalize_status(
                    await call_provider(provider.get_payment_status, payment_id)
                )
            except Exception as status_error:
                logger.warning(
                    f"[PayGate:Elicitation] final status check for {payment_id} failed: {status_error}"
                )
                status = PENDING

        if status == SessionStatus.UNSUPPORTED:
            # This client can never be shown the link; don't resume it on the next call
            await cleanup_payment_state(session_key, state_store)
            return build_error_response(
                ElicitationNotSupportedError.default_message,
                reason=ElicitationNotSupportedError.reason,
                payment_id=payment_id,
                payment_url=payment_url,
            )

        if status == PAID:
            logger.info(f"[PayGate:Elicitation] payment confirmed; invoking {tool_name}")
            await update_payment_status(session_key, state_store, SessionStatus.PAID)
            result = await call_original(func, tool_args, call)
            await cleanup_payment_state(session_key, state_store)
            return build_success_response(result, payment_id)

        if status == CANCELED:
            logger.info(f"[PayGate:Elicitation] payment {payment_id} canceled")
            await cleanup_payment_state(session_key, state_store)
            return build_canceled_response(
                "Payment canceled by user", payment_id=payment_id, payment_url=payment_url
            )

        logger.info(
            "[PayGate:Elicitation] payment still pending after elicitation attempts"
        )
        await update_payment_status(session_key, state_store, SessionStatus.PENDING)
        return build_pending_response(
            "Payment not yet received. Open the link and try again.",
            payment_id=payment_id,
            payment_url=payment_url,
            next_step=tool_name,
            amount=price_info["amount"],
            currency=price_info["currency"],
        )

    return wrapper
