"""
Payment session persistence and recovery.

Every flow asks :func:`check_existing_payment` before creating a payment, so a
caller that retries, reconnects or times out gets the payment it already has
instead of a second one. The provider status is the source of truth; the
stored session only says which payment to ask about and which arguments the
caller paid for.

All helpers are no-ops when the call has no session key or no store is
configured. Such calls are simply treated as fresh every time.
"""

import logging
import time
from typing import Any, NamedTuple, Optional

from ..state.base import StateStore
from ..state.types import PaymentSession, SessionStatus
from ..utils.flow import call_provider
from ..utils.payment import CANCELED, PAID, normalize_status

logger = logging.getLogger(__name__)


class RecoveryResult(NamedTuple):
    payment_id: Optional[str] = None
    payment_url: Optional[str] = None
    tool_name: Optional[str] = None
    stored_args: Any = None
    use_stored_args: bool = False
    execute_immediately: bool = False

    def args_for(self, current_args):
        """Arguments the handler should run with after recovery."""
        return self.stored_args if self.use_stored_args else current_args


NO_RECOVERY = RecoveryResult()


async def check_existing_payment(
    session_key: Optional[str],
    store: Optional[StateStore],
    provider,
    tool_name: str,
    current_args: Any = None,
) -> RecoveryResult:
    """
    Decide what to do with an existing session for this caller.

    * paid: the session is consumed (deleted) and the tool runs immediately,
      with the stored arguments when the stored tool is this tool, otherwise
      with the current ones
    * pending: the existing payment is reused
    * canceled: the session is deleted and a fresh payment should be created
    * provider error: same as canceled; a stuck session is worse than a
      possible second payment link

    Args:
        session_key: Key derived from the transport context, may be None
        store: Session store, may be None
        provider: Payment provider
        tool_name: Tool being called now
        current_args: Arguments of the current call (the caller keeps using them
            unless ``use_stored_args`` is set)

    Returns:
        RecoveryResult: ``NO_RECOVERY`` when nothing usable exists
    """
    if not session_key or store is None:
        return NO_RECOVERY

    logger.debug(f"[PayGate:Recovery] checking store for session_key={session_key}")
    session = await store.get(session_key)
    if session is None:
        return NO_RECOVERY

    logger.info(
        f"[PayGate:Recovery] found session for {session_key}: "
        f"payment_id={session.payment_id} tool={session.tool_name} status={session.status}"
    )

    try:
        if not session.payment_id:
            raise ValueError("stored session has no payment_id")
        raw_status = await call_provider(provider.get_payment_status, session.payment_id)
    except Exception as e:
        logger.warning(
            f"[PayGate:Recovery] status check for {session.payment_id} failed, "
            f"discarding session {session_key}: {e}"
        )
        await store.delete(session_key)
        return NO_RECOVERY

    status = normalize_status(raw_status)
    logger.info(f"[PayGate:Recovery] payment {session.payment_id} status={raw_status!r} ({status})")

    if status == PAID:
        await store.delete(session_key)
        same_tool = session.tool_name == tool_name
        if not same_tool:
            logger.info(
                f"[PayGate:Recovery] paid session was for {session.tool_name}; "
                f"running {tool_name} with current arguments"
            )
        return RecoveryResult(
            payment_id=session.payment_id,
            payment_url=session.payment_url,
            tool_name=session.tool_name,
            stored_args=session.tool_args if same_tool else None,
            use_stored_args=same_tool,
            execute_immediately=True,
        )

    if status == CANCELED:
        logger.info(f"[PayGate:Recovery] payment {session.payment_id} canceled, starting fresh")
        await store.delete(session_key)
        return NO_RECOVERY

    # pending
    return RecoveryResult(
        payment_id=session.payment_id,
        payment_url=session.payment_url,
        tool_name=session.tool_name,
        stored_args=session.tool_args,
        use_stored_args=session.tool_name == tool_name,
        execute_immediately=False,
    )


async def save_payment_state(
    session_key: Optional[str],
    store: Optional[StateStore],
    payment_id: str,
    payment_url: str,
    tool_name: str,
    tool_args: Any,
    status: str = SessionStatus.REQUESTED,
) -> Optional[PaymentSession]:
    """Persist a newly created payment under ``session_key``."""
    if not session_key or store is None:
        return None

    session = PaymentSession.capture(
        payment_id=payment_id,
        payment_url=payment_url,
        tool_name=tool_name,
        tool_args=tool_args,
        session_key=session_key,
        status=status,
    )
    await store.put(session_key, session)
    logger.debug(f"[PayGate:Recovery] saved payment {payment_id} under {session_key}")
    return session


async def update_payment_status(
    session_key: Optional[str],
    store: Optional[StateStore],
    status: str,
) -> Optional[PaymentSession]:
    """Re-read the session and record ``status`` on it; None if it is gone."""
    if not session_key or store is None:
        return None

    session = await store.get(session_key)
    if session is None:
        logger.debug(f"[PayGate:Recovery] no session under {session_key} to mark {status}")
        return None

    session.status = status
    session.metadata[f"status_{status}_at"] = time.time()
    await store.put(session_key, session)
    logger.debug(f"[PayGate:Recovery] session {session_key} -> {status}")
    return session


async def cleanup_payment_state(session_key: Optional[str], store: Optional[StateStore]) -> None:
    if not session_key or store is None:
        return
    await store.delete(session_key)
    logger.debug(f"[PayGate:Recovery] removed session {session_key}")


__all__ = [
    "NO_RECOVERY",
    "RecoveryResult",
    "check_existing_payment",
    "cleanup_payment_state",
    "save_payment_state",
    "update_payment_status",
]
