"""Tests for the two-step payment flow."""

import asyncio
import time
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from paygate.errors import PaymentValidationError
from paygate.payment.flows.two_step import CONFIRM_INPUT_SCHEMA, make_paid_wrapper
from paygate.state import InMemoryStateStore

PRICE = {"amount": 15.99, "currency": "usd"}


class TestTwoStepFlow:
    """Test two-step payment flow functionality."""

    @pytest.fixture
    def func(self):
        async def generate(prompt, ctx=None):
            return f"image of {prompt}"

        return AsyncMock(side_effect=generate)

    @pytest.fixture
    def register(self):
        return Mock()

    @pytest.fixture
    def provider(self):
        provider = Mock()
        provider.create_payment = Mock(return_value=("ORDER-1", "https://pay/ORDER-1"))
        provider.get_payment_status = Mock(return_value="CREATED")
        return provider

    @pytest.fixture
    def store(self):
        return InMemoryStateStore()

    @pytest.fixture
    def wrapper(self, func, register, provider, store):
        return make_paid_wrapper(func, register, provider, PRICE, "generate", state_store=store)

    @pytest.fixture
    def confirm(self, wrapper, register):
        return register.call_args[0][2]

    def test_confirm_tool_registered(self, wrapper, register):
        register.assert_called_once()
        name, config, handler = register.call_args[0]
        assert name == "confirm_generate_payment"
        assert config["input_schema"] == CONFIRM_INPUT_SCHEMA
        assert callable(handler)

    @pytest.mark.asyncio
    async def test_initiate_returns_payment_details(self, wrapper, provider, func):
        ctx = SimpleNamespace(session_id="sess_1")

        response = await wrapper(prompt="cat", ctx=ctx)

        provider.create_payment.assert_called_once_with(
            amount=15.99, currency="usd", description="generate() execution fee"
        )
        func.assert_not_called()
        assert response["status"] == "pending"
        assert response["payment_id"] == "ORDER-1"
        assert response["payment_url"] == "https://pay/ORDER-1"
        assert response["next_step"] == "confirm_generate_payment"
        assert response["structured_content"]["status"] == "payment_required"
        assert "https://pay/ORDER-1" in response["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_confirm_not_paid_does_not_run_tool(self, wrapper, confirm, func, store):
        await wrapper(prompt="cat", ctx=SimpleNamespace(session_id="sess_1"))

        response = await confirm(payment_id="ORDER-1")

        assert response["status"] == "error"
        assert response["message"] == "Payment status is CREATED, expected 'paid'"
        assert response["content"][0]["text"] == response["message"]
        func.assert_not_called()
        assert await store.get_by_payment_id("ORDER-1") is not None

    @pytest.mark.asyncio
    async def test_confirm_paid_runs_tool_once(self, wrapper, confirm, func, provider):
        await wrapper(prompt="cat", ctx=SimpleNamespace(session_id="sess_1"))
        provider.get_payment_status.return_value = "COMPLETED"

        response = await confirm(payment_id="ORDER-1")

        func.assert_awaited_once_with(prompt="cat")
        assert response["content"][0]["text"] == "image of cat"
        assert response["annotations"]["payment"]["status"] == "paid"

        again = await confirm(payment_id="ORDER-1")

        assert again["status"] == "error"
        assert again["message"] == "Unknown or expired payment_id"
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_confirm_uses_captured_args_and_confirm_ctx(self, func, register, provider, store):
        wrapper = make_paid_wrapper(func, register, provider, PRICE, "generate", state_store=store)
        confirm = register.call_args[0][2]
        initiate_ctx = SimpleNamespace(session_id="sess_1")
        confirm_ctx = SimpleNamespace(session_id="other")

        await wrapper({"prompt": "cat"}, initiate_ctx)
        provider.get_payment_status.return_value = "paid"
        await confirm({"payment_id": "ORDER-1", "prompt": "dog"}, confirm_ctx)

        func.assert_awaited_once_with({"prompt": "cat"}, confirm_ctx)

    @pytest.mark.asyncio
    async def test_repeated_call_reuses_pending_payment(self, wrapper, provider):
        ctx = SimpleNamespace(session_id="sess_1")

        first = await wrapper(prompt="cat", ctx=ctx)
        second = await wrapper(prompt="cat", ctx=ctx)

        assert provider.create_payment.call_count == 1
        assert first["payment_id"] == second["payment_id"] == "ORDER-1"
        assert second["structured_content"]["status"] == "payment_pending"
        assert second["next_step"] == "confirm_generate_payment"

    @pytest.mark.asyncio
    async def test_paid_session_runs_immediately_on_retry(self, wrapper, provider, func):
        ctx = SimpleNamespace(session_id="sess_1")
        await wrapper(prompt="cat", ctx=ctx)
        provider.get_payment_status.return_value = "paid"

        response = await wrapper(prompt="something else", ctx=ctx)

        func.assert_awaited_once_with(prompt="cat", ctx=ctx)
        assert response["content"][0]["text"] == "image of cat"
        assert provider.create_payment.call_count == 1

    @pytest.mark.asyncio
    async def test_unknown_payment_id(self, confirm, provider):
        response = await confirm(payment_id="nope")

        assert response["status"] == "error"
        assert response["reason"] == "unknown_payment_id"
        provider.get_payment_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_payment_id(self, confirm):
        with pytest.raises(PaymentValidationError):
            await confirm()

    @pytest.mark.asyncio
    async def test_provider_error_on_confirm_propagates(self, wrapper, confirm, provider, func):
        await wrapper(prompt="cat")
        provider.get_payment_status.side_effect = ConnectionError("provider down")

        with pytest.raises(ConnectionError):
            await confirm(payment_id="ORDER-1")
        func.assert_not_called()

    @pytest.mark.asyncio
    async def test_without_store_uses_private_store(self, func, register, provider):
        wrapper = make_paid_wrapper(func, register, provider, PRICE, "generate")
        confirm = register.call_args[0][2]

        await wrapper(prompt="cat")
        provider.get_payment_status.return_value = "succeeded"
        response = await confirm(payment_id="ORDER-1")

        func.assert_awaited_once_with(prompt="cat")
        assert response["content"][0]["text"] == "image of cat"

    @pytest.mark.asyncio
    async def test_tool_error_propagates(self, register, provider, store):
        func = AsyncMock(side_effect=ValueError("bad prompt"))
        wrapper = make_paid_wrapper(func, register, provider, PRICE, "generate", state_store=store)
        confirm = register.call_args[0][2]
        await wrapper(prompt="cat")
        provider.get_payment_status.return_value = "paid"

        with pytest.raises(ValueError, match="bad prompt"):
            await confirm(payment_id="ORDER-1")

    @pytest.mark.asyncio
    async def test_confirm_rejects_other_tools_payment(self, provider, store):
        charge = AsyncMock(return_value="charged")
        delete = AsyncMock(return_value="deleted")
        charge_register, delete_register = Mock(), Mock()
        charge_card = make_paid_wrapper(charge, charge_register, provider, PRICE, "charge_card", state_store=store)
        make_paid_wrapper(delete, delete_register, provider, PRICE, "delete_account", state_store=store)
        confirm_charge = charge_register.call_args[0][2]
        confirm_delete = delete_register.call_args[0][2]

        await charge_card(card="4242", ctx=SimpleNamespace(session_id="sess_1"))
        provider.get_payment_status.return_value = "paid"

        response = await confirm_delete(payment_id="ORDER-1")

        delete.assert_not_called()
        assert response["status"] == "error"
        assert response["reason"] == "payment_for_other_tool"
        assert "confirm_charge_card_payment" in response["message"]
        assert await store.get_by_payment_id("ORDER-1") is not None

        await confirm_charge(payment_id="ORDER-1")

        charge.assert_awaited_once_with(card="4242")

    @pytest.mark.asyncio
    async def test_failed_status_check_starts_new_payment(self, wrapper, provider, store):
        provider.create_payment.side_effect = [
            ("ORDER-1", "https://pay/ORDER-1"),
            ("ORDER-2", "https://pay/ORDER-2"),
        ]
        ctx = SimpleNamespace(session_id="sess_1")

        first = await wrapper(prompt="cat", ctx=ctx)
        provider.get_payment_status.side_effect = ConnectionError("provider down")
        second = await wrapper(prompt="cat", ctx=ctx)

        assert provider.create_payment.call_count == 2
        assert first["payment_id"] == "ORDER-1"
        assert second["payment_id"] == "ORDER-2"
        assert second["structured_content"]["status"] == "payment_required"
        assert await store.get_by_payment_id("ORDER-1") is None
        assert (await store.get_by_payment_id("ORDER-2")).session_key == "sess_1"

    @pytest.mark.asyncio
    async def test_slow_provider_does_not_block_event_loop(self, wrapper, confirm, provider):
        await wrapper(prompt="cat")

        def slow_status(payment_id):
            time.sleep(0.3)
            return "pending"

        provider.get_payment_status.side_effect = slow_status
        ticks = 0

        async def ticker():
            nonlocal ticks
            while True:
                await asyncio.sleep(0.01)
                ticks += 1

        task = asyncio.create_task(ticker())
        response = await confirm(payment_id="ORDER-1")
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert response["reason"] == "payment_not_completed"
        assert ticks > 5
