# paygate/state/redis.py
"""Redis-based state store implementation."""

from typing import Optional
import json
import time
import logging

from .types import PaymentSession
from ..utils.constants import STATE_TTL_SECONDS

logger = logging.getLogger(__name__)

try:
    import redis.asyncio as aioredis
    REDIS_AVAILABLE = True
except ImportError:
    REDIS_AVAILABLE = False
    aioredis = None  # Set to None for type hints
    logger.warning("redis package not installed. RedisStateStore will not be available.")


if REDIS_AVAILABLE:
    class RedisStateStore:
        """Redis-based state store for distributed deployments.

        Suitable for production environments with multiple server instances.
        Data persists across process restarts.

        Layout:
            <prefix><key>                    JSON-encoded PaymentSession
            <prefix>idx:payment:<payment_id> key of the record above

        Both keys are written in one MULTI/EXEC pipeline with the same TTL.
        The index can still outlive or disagree with its record (e.g. the
        record was overwritten by another process), so lookups through it
        verify the record and drop stale index entries.

        Requires redis package: pip install paygate[redis]
        """

        def __init__(
            self,
            redis_url: str = "redis://localhost:6379/0",
            key_prefix: str = "paygate:",
            ttl: int = STATE_TTL_SECONDS,
        ):
            """Initialize the Redis state store.

            Args:
                redis_url: Redis connection URL
                key_prefix: Prefix for all keys stored in Redis
                ttl: Time-to-live for stored data in seconds (default: 1 hour)
            """
            self.redis_url = redis_url
            self.key_prefix = key_prefix
            self.ttl = ttl
            self._client: Optional[aioredis.Redis] = None
            logger.debug(f"RedisStateStore initialized with URL: {redis_url}")

        async def _get_client(self) -> aioredis.Redis:
            """Get or create Redis client connection."""
            if self._client is None:
                self._client = await aioredis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True
                )
                logger.debug("Redis client connected")
            return self._client

        def _make_key(self, key: str) -> str:
            return f"{self.key_prefix}{key}"

        def _make_index_key(self, payment_id: str) -> str:
            return f"{self.key_prefix}idx:payment:{payment_id}"

        def _decode(self, key: str, raw: Optional[str]) -> Optional[PaymentSession]:
            if raw is None:
                return None
            try:
                return PaymentSession.from_dict(json.loads(raw))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Discarding unreadable session for key {key}: {e}")
                return None

        async def put(self, key: str, session: PaymentSession) -> None:
            """Store a session and its payment id index entry.

            Raises:
                Exception: If Redis operation fails
            """
            client = await self._get_client()
            redis_key = self._make_key(key)

            previous = self._decode(key, await client.get(redis_key))

            session.updated_at = time.time()
            payload = json.dumps(session.to_dict())

            async with client.pipeline(transaction=True) as pipe:
                pipe.setex(redis_key, self.ttl, payload)
                if session.payment_id:
                    pipe.setex(self._make_index_key(session.payment_id), self.ttl, key)
                if previous is not None and previous.payment_id != session.payment_id:
                    pipe.delete(self._make_index_key(previous.payment_id))
                await pipe.execute()

            logger.debug(
                f"Stored session for key {key} in Redis "
                f"(payment {session.payment_id}, TTL: {self.ttl}s)"
            )

        async def get(self, key: str) -> Optional[PaymentSession]:
            """Retrieve a session from Redis.

            Raises:
                Exception: If Redis operation fails
            """
            client = await self._get_client()
            session = self._decode(key, await client.get(self._make_key(key)))
            if session is None:
                logger.debug(f"No session found for key {key} in Redis")
            else:
                logger.debug(f"Retrieved session for key {key} from Redis")
            return session

        async def get_by_payment_id(self, payment_id: str) -> Optional[PaymentSession]:
            """Retrieve a session through the payment id index."""
            client = await self._get_client()
            index_key = self._make_index_key(payment_id)

            key = await client.get(index_key)
            if key is None:
                logger.debug(f"Payment {payment_id} not found in Redis index")
                return None

            session = await self.get(key)
            if session is None or session.payment_id != payment_id:
                logger.debug(f"Dropping stale index entry for payment {payment_id}")
                await client.delete(index_key)
                return None
            return session

        async def delete(self, key: str) -> None:
            """Delete a session and its index entry.

            Raises:
                Exception: If Redis operation fails
            """
            client = await self._get_client()
            redis_key = self._make_key(key)

            session = self._decode(key, await client.get(redis_key))
            index_key = None
            if session is not None and session.payment_id:
                index_key = self._make_index_key(session.payment_id)
                if await client.get(index_key) != key:
                    # Index already points at a newer record
                    index_key = None

            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(redis_key)
                if index_key:
                    pipe.delete(index_key)
                results = await pipe.execute()

            if results and results[0]:
                logger.debug(f"Deleted session for key {key} from Redis")
            else:
                logger.debug(f"No session to delete for key {key} in Redis")

        async def close(self) -> None:
            """Close the Redis connection."""
            if self._client:
                await self._client.aclose()
                self._client = None
                logger.debug("Redis client closed")
else:
    # Provide a stub class that raises error when instantiated
    class RedisStateStore:
        """Stub class when redis is not installed."""

        def __init__(self, *args, **kwargs):
            raise ImportError(
                "redis package is required for RedisStateStore. "
                "Install with: pip install paygate[redis]"
            )
