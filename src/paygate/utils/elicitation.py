import inspect
import logging
from typing import NamedTuple, Optional

from pydantic import BaseModel

from ..state.types import SessionStatus
from .constants import ELICITATION_MAX_ATTEMPTS, METHOD_NOT_FOUND
from .context import get_elicit, get_send_request
from .flow import call_provider, maybe_await
from .payment import CANCELED, PAID, normalize_status

logger = logging.getLogger(__name__)


class SimpleActionSchema(BaseModel):
    """No structured fields; clients render plain Accept / Decline / Cancel."""


REQUESTED_SCHEMA = {"type": "object", "properties": {}, "required": []}


class ElicitationOutcome(NamedTuple):
    action: str
    status: str


class ElicitationUnsupported(Exception):
    """The client answered the prompt with a method-not-found error."""


def _is_method_not_found(error: Exception) -> bool:
    code = getattr(error, "code", None)
    if code is None:
        code = getattr(getattr(error, "error", None), "code", None)
    if code == METHOD_NOT_FOUND:
        return True
    return "method not found" in str(error).lower()


def _read_action(elicitation) -> str:
    if elicitation is None:
        return "unknown"
    if isinstance(elicitation, dict):
        action = elicitation.get("action")
        if action is None and isinstance(elicitation.get("result"), dict):
            action = elicitation["result"].get("action")
    else:
        action = getattr(elicitation, "action", None)
        if action is None:
            action = getattr(getattr(elicitation, "result", None), "action", None)
    return action if isinstance(action, str) else "unknown"


async def _prompt(ctx, message: str, payment_id: str, payment_url: str):
    elicit = get_elicit(ctx)
    if elicit is not None:
        try:
            sig = inspect.signature(elicit)
            has_response_type = "response_type" in sig.parameters
        except (TypeError, ValueError):
            # Mocks and builtins cannot always be inspected
            has_response_type = False

        if has_response_type:
            return await maybe_await(elicit(message=message, response_type=None))
        return await maybe_await(elicit(message=message, schema=SimpleActionSchema))

    send_request = get_send_request(ctx)
    return await maybe_await(
        send_request(
            {
                "method": "elicitation/create",
                "params": {
                    "message": message,
                    "paymentId": payment_id,
                    "paymentUrl": payment_url,
                    "requestedSchema": REQUESTED_SCHEMA,
                },
            }
        )
    )


async def _ask(ctx, message: str, payment_id: str, payment_url: str, attempt: int) -> str:
    """Send one prompt and return the user's action ("unknown" if inconclusive)."""
    try:
        elicitation = await _prompt(ctx, message, payment_id, payment_url)
    except Exception as e:
        if _is_method_not_found(e):
            raise ElicitationUnsupported(str(e)) from e

        msg = str(e).lower()
        # FastMCP rejects schema-less answers it cannot parse; the action is in the message
        if "unexpected elicitation action" in msg:
            if any(x in msg for x in ("cancel", "decline")):
                return "cancel"
            if "accept" in msg:
                return "accept"
        logger.warning(
            f"[PayGate:Elicitation] prompt failed (attempt={attempt}): {e}"
        )
        return "unknown"

    logger.debug(f"[PayGate:Elicitation] elicitation response: {elicitation}")
    return _read_action(elicitation)


async def run_elicitation_loop(
    ctx,
    message: str,
    provider,
    payment_id: str,
    payment_url: Optional[str] = None,
    max_attempts: int = ELICITATION_MAX_ATTEMPTS,
) -> ElicitationOutcome:
    """
    Prompt the user up to ``max_attempts`` times, checking the provider after each prompt.

    The user's answer alone never marks a payment as paid; only the provider
    status does. A ``cancel``/``decline`` answer ends the loop as canceled
    unless the provider already reports the payment as paid.

    Returns:
        ElicitationOutcome: ``status`` is one of paid, canceled, pending, unsupported
    """
    for attempt in range(1, max_attempts + 1):
        logger.debug(f"[PayGate:Elicitation] attempt {attempt}/{max_attempts}")
        try:
            action = await _ask(ctx, message, payment_id, payment_url, attempt)
        except ElicitationUnsupported as e:
            logger.warning(f"[PayGate:Elicitation] client does not support elicitation: {e}")
            return ElicitationOutcome("unknown", SessionStatus.UNSUPPORTED)

        raw_status = await call_provider(provider.get_payment_status, payment_id)
        status = normalize_status(raw_status)
        logger.debug(
            f"[PayGate:Elicitation] action={action} provider status={raw_status!r} ({status})"
        )

        if status == PAID:
            return ElicitationOutcome("accept", PAID)
        if action in ("cancel", "decline"):
            logger.info(f"[PayGate:Elicitation] user answered {action} for payment {payment_id}")
            return ElicitationOutcome("cancel", CANCELED)
        if status == CANCELED:
            return ElicitationOutcome(action, CANCELED)

    return ElicitationOutcome("unknown", SessionStatus.PENDING)
