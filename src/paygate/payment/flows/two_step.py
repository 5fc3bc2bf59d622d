# paygate/payment/flows/two_step.py
import functools
import logging

from ...errors import PaymentValidationError
from ...state.in_memory import InMemoryStateStore
from ...state.types import PaymentSession
from ...utils.flow import ToolCall, call_original, call_provider, normalize_call
from ...utils.messages import payment_prompt_message
from ...utils.payment import PAID, normalize_status
from ...utils.response import (
    PAYMENT_PENDING,
    build_error_response,
    build_pending_response,
    build_success_response,
)
from ...utils.session import extract_session_key
from ..recovery import check_existing_payment

logger = logging.getLogger(__name__)

CONFIRM_INPUT_SCHEMA = {
    "type": "object",
    "properties": {"payment_id": {"type": "string"}},
    "required": ["payment_id"],
}


def confirm_tool_name_for(tool_name: str) -> str:
    return f"confirm_{tool_name}_payment"


def make_paid_wrapper(
    func, register, provider, price_info, tool_name, state_store=None, **options
):
    """
    Implements the two-step payment flow:

    1. The original tool is wrapped by an *initiate* step that creates a
       payment and returns ``payment_url``, ``payment_id`` and the name of
       the confirmation tool to the client.
    2. A separately registered tool ``confirm_<tool>_payment`` takes the
       ``payment_id``, checks the payment and only then calls the original
       function with the arguments captured at initiation.

    Without a configured ``state_store`` the wrapper keeps sessions in a
    private in-memory store; they are lost on restart.
    """
    confirm_tool_name = confirm_tool_name_for(tool_name)
    store = state_store if state_store is not None else InMemoryStateStore()

    async def _find_session(payment_id: str):
        session = await store.get_by_payment_id(payment_id)
        if session is None:
            # Sessions written without a session key are stored under the payment id
            session = await store.get(payment_id)
        return session

    # --- Step 2: payment confirmation -----------------------------------------
    async def _confirm_tool(*args, **kwargs):
        call = normalize_call(*args, **kwargs)
        payment_id = call.args.get("payment_id") if isinstance(call.args, dict) else None
        if not payment_id:
            raise PaymentValidationError("payment_id")

        pid = str(payment_id)
        logger.info(f"[PayGate:TwoStep] confirm {tool_name}: payment_id={pid}")

        session = await _find_session(pid)
        if session is None:
            logger.warning(f"[PayGate:TwoStep] no session for payment_id={pid}")
            return build_error_response(
                "Unknown or expired payment_id", reason="unknown_payment_id", payment_id=pid
            )

        # The store is shared by every priced tool; a payment only unlocks its own tool
        if session.tool_name != tool_name:
            expected = confirm_tool_name_for(session.tool_name)
            logger.warning(
                f"[PayGate:TwoStep] payment {pid} belongs to {session.tool_name}, not {tool_name}"
            )
            return build_error_response(
                f"Payment {pid} was made for {session.tool_name}; confirm it with {expected}",
                reason="payment_for_other_tool",
                payment_id=pid,
                payment_url=session.payment_url,
            )

        raw_status = await call_provider(provider.get_payment_status, pid)
        status = normalize_status(raw_status)
        logger.debug(f"[PayGate:TwoStep] payment {pid} status={raw_status!r} ({status})")
        if status != PAID:
            return build_error_response(
                f"Payment status is {raw_status}, expected 'paid'",
                reason="payment_not_completed",
                payment_id=pid,
                payment_url=session.payment_url,
            )

        # Consume before running so a second confirmation cannot run the tool again
        await store.delete(session.storage_key())

        # Same call shape as the initiating call; the context is the confirming call's
        original = ToolCall(
            args=None,
            ctx=call.ctx,
            keyword=session.metadata.get("keyword", call.keyword),
        )
        logger.info(f"[PayGate:TwoStep] payment {pid} confirmed; running {session.tool_name}")
        result = await call_original(func, session.tool_args, original)
        return build_success_response(result, pid)

    register(
        confirm_tool_name,
        {
            "title": f"Confirm payment for {tool_name}",
            "description": f"Confirm payment and execute {tool_name}()",
            "input_schema": CONFIRM_INPUT_SCHEMA,
        },
        _confirm_tool,
    )

    # --- Step 1: payment initiation -------------------------------------------
    @functools.wraps(func)
    async def _initiate_wrapper(*args, **kwargs):
        call = normalize_call(*args, **kwargs)
        session_key = extract_session_key(call.ctx)

        recovered = await check_existing_payment(
            session_key, store, provider, tool_name, call.args
        )

        if recovered.execute_immediately:
            logger.info(
                f"[PayGate:TwoStep] payment {recovered.payment_id} already paid; running {tool_name}"
            )
            result = await call_original(func, recovered.args_for(call.args), call)
            return build_success_response(result, recovered.payment_id)

        if recovered.payment_id:
            next_step = confirm_tool_name_for(recovered.tool_name or tool_name)
            logger.info(
                f"[PayGate:TwoStep] reusing pending payment {recovered.payment_id} for {session_key}"
            )
            return build_pending_response(
                f"Payment is still pending. Complete it at:\n{recovered.payment_url}\n"
                f"then call {next_step}.",
                payment_id=recovered.payment_id,
                payment_url=recovered.payment_url,
                next_step=next_step,
                amount=price_info["amount"],
                currency=price_info["currency"],
                structured_status=PAYMENT_PENDING,
            )

        payment_id, payment_url = await call_provider(
            provider.create_payment,
            amount=price_info["amount"],
            currency=price_info["currency"],
            description=f"{tool_name}() execution fee",
        )
        pid = str(payment_id)
        logger.info(f"[PayGate:TwoStep] created payment {pid} for {tool_name}")

        session = PaymentSession.capture(
            payment_id=pid,
            payment_url=payment_url,
            tool_name=tool_name,
            tool_args=call.args,
            session_key=session_key,
        )
        session.metadata["keyword"] = call.keyword
        await store.put(session.storage_key(), session)

        return build_pending_response(
            payment_prompt_message(payment_url, price_info["amount"], price_info["currency"]),
            payment_id=pid,
            payment_url=payment_url,
            next_step=confirm_tool_name,
            amount=price_info["amount"],
            currency=price_info["currency"],
        )

    return _initiate_wrapper
