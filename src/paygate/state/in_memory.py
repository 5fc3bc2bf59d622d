# paygate/state/in_memory.py
"""In-memory state store implementation."""

from typing import Dict, Optional
import copy
import time
import logging

from .types import PaymentSession
from ..utils.constants import STATE_TTL_SECONDS

logger = logging.getLogger(__name__)


class InMemoryStateStore:
    """In-memory state store using a dictionary plus a payment id index.

    Suitable for development and single-process deployments.
    Data is lost when the process restarts.

    No method suspends, so each call is atomic under asyncio.
    """

    CLEANUP_INTERVAL_SECONDS = 300

    def __init__(self, ttl_seconds: int = STATE_TTL_SECONDS):
        """Initialize the in-memory state store.

        Args:
            ttl_seconds: Seconds after the last write before an entry expires
        """
        self.ttl_seconds = ttl_seconds
        self._store: Dict[str, PaymentSession] = {}
        self._written_at: Dict[str, float] = {}
        # payment_id -> key
        self._payment_index: Dict[str, str] = {}
        self._last_cleanup = time.time()
        logger.debug(f"InMemoryStateStore initialized (ttl={ttl_seconds}s)")

    async def put(self, key: str, session: PaymentSession) -> None:
        """Store a session and index its payment id.

        Args:
            key: Session key (or payment id)
            session: Session to store
        """
        self._cleanup_if_needed()

        previous = self._store.get(key)
        if previous is not None and previous.payment_id != session.payment_id:
            self._payment_index.pop(previous.payment_id, None)
            logger.debug(
                f"Dropped stale index entry {previous.payment_id} for key {key}"
            )

        session.updated_at = time.time()
        self._store[key] = copy.deepcopy(session)
        self._written_at[key] = session.updated_at
        if session.payment_id:
            self._payment_index[session.payment_id] = key
        logger.debug(f"Stored session for key {key} (payment {session.payment_id})")

    async def get(self, key: str) -> Optional[PaymentSession]:
        """Retrieve a session from memory.

        Args:
            key: Session key (or payment id)

        Returns:
            The session if found and not expired, None otherwise
        """
        self._cleanup_if_needed()

        session = self._store.get(key)
        if session is None:
            logger.debug(f"No session found for key {key}")
            return None

        if self._is_expired(key):
            logger.debug(f"Session for key {key} expired")
            self._delete_with_index(key)
            return None

        logger.debug(f"Retrieved session for key {key}")
        return copy.deepcopy(session)

    async def get_by_payment_id(self, payment_id: str) -> Optional[PaymentSession]:
        """Retrieve a session through the payment id index."""
        key = self._payment_index.get(payment_id)
        if key is None:
            logger.debug(f"Payment {payment_id} not found in index")
            return None

        session = await self.get(key)
        if session is None or session.payment_id != payment_id:
            self._payment_index.pop(payment_id, None)
            return None
        return session

    async def delete(self, key: str) -> None:
        """Delete a session and its index entry.

        Args:
            key: Session key (or payment id)
        """
        if self._delete_with_index(key):
            logger.debug(f"Deleted session for key {key}")
        else:
            logger.debug(f"No session to delete for key {key}")

    def clear(self) -> None:
        """Clear all stored data. Useful for testing."""
        self._store.clear()
        self._written_at.clear()
        self._payment_index.clear()
        logger.debug("Cleared all stored data")

    def size(self) -> int:
        """Return the number of stored sessions."""
        return len(self._store)

    def _is_expired(self, key: str) -> bool:
        written_at = self._written_at.get(key, 0)
        return time.time() - written_at > self.ttl_seconds

    def _delete_with_index(self, key: str) -> bool:
        session = self._store.pop(key, None)
        self._written_at.pop(key, None)
        if session is None:
            return False
        if self._payment_index.get(session.payment_id) == key:
            del self._payment_index[session.payment_id]
        return True

    def _cleanup_if_needed(self) -> None:
        now = time.time()
        if now - self._last_cleanup < self.CLEANUP_INTERVAL_SECONDS:
            return
        self._last_cleanup = now

        expired = [key for key in self._store if self._is_expired(key)]
        for key in expired:
            self._delete_with_index(key)

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired sessions")
