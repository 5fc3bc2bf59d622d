# paygate/state/base.py
"""Base state store protocol for payment session persistence."""

from typing import Protocol, Optional

from .types import PaymentSession


class StateStore(Protocol):
    """Protocol for state storage backends used by the payment flows.

    A store keeps one :class:`PaymentSession` per key and a secondary index
    from ``payment_id`` to that key. Every write to the primary record must
    update the index with it, and entries expire after a store-level TTL.

    Each individual call is expected to be atomic. The read-check-act
    sequences in the flows are not, so two concurrent calls for the same
    key may both create a payment.
    """

    async def put(self, key: str, session: PaymentSession) -> None:
        """Store (or replace) the session under ``key`` and index its payment id.

        Args:
            key: Session key, or payment id when the caller has no session
            session: Session to store

        Raises:
            Exception: If storage operation fails
        """
        ...

    async def get(self, key: str) -> Optional[PaymentSession]:
        """Retrieve the session stored under ``key``.

        Returns:
            The session if found and not expired, None otherwise
        """
        ...

    async def delete(self, key: str) -> None:
        """Delete the session under ``key`` together with its index entry.

        Deleting a missing key is not an error.
        """
        ...

    async def get_by_payment_id(self, payment_id: str) -> Optional[PaymentSession]:
        """Retrieve a session through the payment id index.

        Returns:
            The session if the index resolves to a live record carrying the
            same payment id, None otherwise
        """
        ...
