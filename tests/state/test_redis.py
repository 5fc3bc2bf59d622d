"""Tests for Redis state store with a fake Redis client.

These tests verify the RedisStateStore key layout and index maintenance
without requiring a real Redis instance.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

pytest.importorskip("redis")

from paygate.state.redis import RedisStateStore  # noqa: E402
from paygate.state.types import PaymentSession  # noqa: E402


class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.ops = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def setex(self, key, ttl, value):
        self.ops.append(("setex", key, ttl, value))

    def delete(self, key):
        self.ops.append(("delete", key))

    async def execute(self):
        results = []
        for op in self.ops:
            if op[0] == "setex":
                self.client.data[op[1]] = op[3]
                self.client.ttls[op[1]] = op[2]
                results.append(True)
            else:
                results.append(1 if self.client.data.pop(op[1], None) is not None else 0)
        self.client.executed.append(list(self.ops))
        return results


class FakeRedis:
    """Dict-backed stand-in for the redis.asyncio client surface the store uses."""

    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.executed = []
        self.aclose = AsyncMock()

    async def get(self, key):
        return self.data.get(key)

    async def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    def pipeline(self, transaction=True):
        assert transaction is True
        return FakePipeline(self)


def make_session(payment_id="pay_1", session_key="sess_1"):
    return PaymentSession.capture(
        payment_id=payment_id,
        payment_url=f"https://pay.test/{payment_id}",
        tool_name="generate",
        tool_args={"prompt": "hi"},
        session_key=session_key,
    )


@pytest.fixture
def fake_redis():
    client = FakeRedis()

    async def from_url(*args, **kwargs):
        return client

    with patch("paygate.state.redis.aioredis") as mock_aioredis:
        mock_aioredis.from_url = from_url
        yield client


def test_redis_initialization():
    """Test RedisStateStore initialization with custom parameters."""
    store = RedisStateStore(
        redis_url="redis://localhost:6379/1",
        key_prefix="test:prefix:",
        ttl=7200,
    )
    assert store.redis_url == "redis://localhost:6379/1"
    assert store.key_prefix == "test:prefix:"
    assert store.ttl == 7200
    assert store._client is None  # Lazy initialization


def test_redis_make_keys():
    store = RedisStateStore(key_prefix="paygate:test:")
    assert store._make_key("sess_1") == "paygate:test:sess_1"
    assert store._make_index_key("pay_1") == "paygate:test:idx:payment:pay_1"


@pytest.mark.asyncio
async def test_put_writes_record_and_index_in_one_transaction(fake_redis):
    store = RedisStateStore(ttl=600)

    await store.put("sess_1", make_session())

    assert len(fake_redis.executed) == 1
    data = json.loads(fake_redis.data["paygate:sess_1"])
    assert data["payment_id"] == "pay_1"
    assert data["tool_args"] == {"prompt": "hi"}
    assert fake_redis.data["paygate:idx:payment:pay_1"] == "sess_1"
    assert fake_redis.ttls["paygate:sess_1"] == 600
    assert fake_redis.ttls["paygate:idx:payment:pay_1"] == 600


@pytest.mark.asyncio
async def test_get_and_get_by_payment_id(fake_redis):
    store = RedisStateStore()
    await store.put("sess_1", make_session())

    by_key = await store.get("sess_1")
    by_payment = await store.get_by_payment_id("pay_1")

    assert by_key.payment_id == "pay_1"
    assert by_payment.session_key == "sess_1"
    assert await store.get("missing") is None
    assert await store.get_by_payment_id("missing") is None


@pytest.mark.asyncio
async def test_overwrite_removes_previous_index(fake_redis):
    store = RedisStateStore()
    await store.put("sess_1", make_session(payment_id="pay_old"))
    await store.put("sess_1", make_session(payment_id="pay_new"))

    assert "paygate:idx:payment:pay_old" not in fake_redis.data
    assert await store.get_by_payment_id("pay_old") is None
    assert (await store.get_by_payment_id("pay_new")).payment_id == "pay_new"


@pytest.mark.asyncio
async def test_delete_removes_record_and_index(fake_redis):
    store = RedisStateStore()
    await store.put("sess_1", make_session())

    await store.delete("sess_1")

    assert fake_redis.data == {}
    assert await store.get_by_payment_id("pay_1") is None


@pytest.mark.asyncio
async def test_stale_index_entry_is_dropped(fake_redis):
    """An index entry pointing at a missing record is tolerated and cleaned up."""
    store = RedisStateStore()
    fake_redis.data["paygate:idx:payment:pay_1"] = "sess_gone"

    assert await store.get_by_payment_id("pay_1") is None
    assert "paygate:idx:payment:pay_1" not in fake_redis.data


@pytest.mark.asyncio
async def test_unreadable_record_returns_none(fake_redis):
    store = RedisStateStore()
    fake_redis.data["paygate:sess_1"] = "{not json"

    assert await store.get("sess_1") is None


@pytest.mark.asyncio
async def test_close(fake_redis):
    store = RedisStateStore()
    await store.get("sess_1")

    await store.close()

    fake_redis.aclose.assert_awaited_once()
    assert store._client is None


@pytest.mark.asyncio
async def test_redis_error_propagates():
    store = RedisStateStore()
    client = MagicMock()
    client.get = AsyncMock(side_effect=ConnectionError("Redis connection failed"))
    store._client = client

    with pytest.raises(ConnectionError, match="Redis connection failed"):
        await store.get("sess_1")
