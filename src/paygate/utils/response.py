"""
Response builders shared by all payment flows.

Every response carries a ``content`` list with a human-readable text block,
because some clients reject tool results without one. Payment details are
repeated as top-level fields and under ``annotations["payment"]``.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

SUCCESS = "success"
PENDING = "pending"
ERROR = "error"
CANCELED = "canceled"

PAYMENT_REQUIRED = "payment_required"
PAYMENT_PENDING = "payment_pending"


def text_content(message: str):
    return [{"type": "text", "text": message}]


def build_response(
    message: str,
    status: str = SUCCESS,
    payment_id: Optional[str] = None,
    payment_url: Optional[str] = None,
    next_step: Optional[str] = None,
    reason: Optional[str] = None,
    raw: Any = None,
    amount=None,
    currency: Optional[str] = None,
    payment_status: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build a tool response with a text block and payment metadata.

    Args:
        message: Human-readable text shown to the user / LLM
        status: One of success, pending, error, canceled
        payment_id: Provider payment id, if one exists
        payment_url: Where the user completes the payment
        next_step: Tool the caller should invoke next
        reason: Machine-readable reason for error/canceled responses
        raw: Original tool result that had no content of its own
        amount: Price amount (pending responses)
        currency: Price currency (pending responses)
        payment_status: Overrides the status recorded in the payment annotation

    Returns:
        dict: The response
    """
    response: Dict[str, Any] = {
        "content": text_content(message),
        "status": status,
        "message": message,
    }

    if payment_id or payment_url:
        annotation = {"status": payment_status or status}
        if payment_id:
            annotation["payment_id"] = payment_id
        if payment_url:
            annotation["payment_url"] = payment_url
        if reason:
            annotation["reason"] = reason
        if next_step:
            annotation["next_step"] = next_step
        response["annotations"] = {"payment": annotation}

    if payment_id:
        response["payment_id"] = payment_id
    if payment_url:
        response["payment_url"] = payment_url
    if next_step:
        response["next_step"] = next_step
    if reason:
        response["reason"] = reason
    if raw is not None:
        response["raw"] = raw

    return response


def build_pending_response(
    message: str,
    payment_id: str,
    payment_url: str,
    next_step: str,
    amount=None,
    currency: Optional[str] = None,
    structured_status: str = PAYMENT_REQUIRED,
) -> Dict[str, Any]:
    """Pending response; the structured part is what clients act on."""
    response = build_response(
        message,
        PENDING,
        payment_id=payment_id,
        payment_url=payment_url,
        next_step=next_step,
    )
    structured = {
        "payment_url": payment_url,
        "payment_id": payment_id,
        "next_step": next_step,
        "status": structured_status,
        "amount": amount,
        "currency": currency,
    }
    response["structured_content"] = structured
    # Some clients surface `data` instead
    response["data"] = dict(structured)
    return response


def build_error_response(
    message: str,
    reason: Optional[str] = None,
    payment_id: Optional[str] = None,
    payment_url: Optional[str] = None,
) -> Dict[str, Any]:
    return build_response(
        message, ERROR, payment_id=payment_id, payment_url=payment_url, reason=reason
    )


def build_canceled_response(
    message: str = "Payment canceled",
    payment_id: Optional[str] = None,
    payment_url: Optional[str] = None,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    return build_response(
        message, CANCELED, payment_id=payment_id, payment_url=payment_url, reason=reason
    )


def _annotate_result_object(result: Any, payment_id: Optional[str]) -> Any:
    """Record the payment on a result object in place, where it allows it.

    ``meta`` is how pydantic result models expose ``_meta``; plain objects
    get ``annotations``. Objects that reject assignment are returned as-is.
    """
    payment = {"status": "paid", "payment_id": payment_id}
    attrs = [a for a in ("meta", "_meta", "annotations") if hasattr(result, a)] or ["annotations"]

    for attr in attrs:
        current = getattr(result, attr, None)
        if current is None:
            current = {}
        if not isinstance(current, dict):
            continue
        if "payment" in current:
            return result
        try:
            setattr(result, attr, {**current, "payment": payment})
            return result
        except (AttributeError, TypeError, ValueError) as e:
            logger.debug(f"[PayGate] cannot set {attr} on {type(result).__name__}: {e}")

    return result


def build_success_response(tool_result: Any, payment_id: Optional[str] = None) -> Any:
    """
    Return the tool result, guaranteeing a text block and a ``paid`` annotation.

    Results that already carry a ``content`` list keep their shape and get
    ``annotations["payment"]`` added when it is missing. Anything else is
    wrapped, with the original value kept under ``raw``.
    """
    if isinstance(tool_result, dict) and isinstance(tool_result.get("content"), list):
        annotations = dict(tool_result.get("annotations") or {})
        if "payment" not in annotations:
            annotations["payment"] = {"status": "paid", "payment_id": payment_id}
        return {**tool_result, "annotations": annotations}

    # Protocol result objects (e.g. CallToolResult) keep their type
    if isinstance(getattr(tool_result, "content", None), list):
        return _annotate_result_object(tool_result, payment_id)

    if isinstance(tool_result, str):
        response = build_response(
            tool_result, SUCCESS, payment_id=payment_id, payment_status="paid"
        )
        response["raw"] = tool_result
        return response

    return build_response(
        "Tool completed after payment.",
        SUCCESS,
        payment_id=payment_id,
        raw=tool_result,
        payment_status="paid",
    )
