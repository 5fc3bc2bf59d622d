import copy
import time
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional


class SessionStatus:
    REQUESTED = "requested"
    PENDING = "pending"
    PAID = "paid"
    CANCELED = "canceled"
    FAILED = "failed"
    TIMEOUT = "timeout"
    ERROR = "error"
    # Outcome of an elicitation loop against a client that cannot elicit; never persisted.
    UNSUPPORTED = "unsupported"


@dataclass
class PaymentSession:
    """A payment guarding one tool call.

    Stored under ``session_key`` when the caller has one, otherwise under
    ``payment_id`` (no recovery is possible for such sessions, but the
    two-step confirmation can still find them).
    """

    payment_id: str
    payment_url: str
    tool_name: str
    tool_args: Any = None
    session_key: Optional[str] = None
    status: str = SessionStatus.REQUESTED
    created_at: float = field(default_factory=time.time)
    updated_at: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def capture(
        cls,
        payment_id: str,
        payment_url: str,
        tool_name: str,
        tool_args: Any,
        session_key: Optional[str] = None,
        status: str = SessionStatus.REQUESTED,
    ) -> "PaymentSession":
        """Create a session holding a private copy of ``tool_args``."""
        return cls(
            payment_id=str(payment_id),
            payment_url=payment_url,
            tool_name=tool_name,
            tool_args=copy.deepcopy(tool_args),
            session_key=session_key,
            status=status,
        )

    def storage_key(self) -> str:
        return self.session_key or self.payment_id

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentSession":
        return cls(
            payment_id=str(data["payment_id"]),
            payment_url=data.get("payment_url", ""),
            tool_name=data.get("tool_name", ""),
            tool_args=data.get("tool_args"),
            session_key=data.get("session_key"),
            status=data.get("status", SessionStatus.REQUESTED),
            created_at=data.get("created_at") or time.time(),
            updated_at=data.get("updated_at"),
            metadata=dict(data.get("metadata") or {}),
        )
