"""Tests for payment flow selection."""

import pytest

from paygate.payment.flows import make_flow
from paygate.payment.flows import elicitation, progress, two_step
from paygate.payment.payment_flow import PaymentFlow


class TestMakeFlow:
    def test_flow_names(self):
        assert make_flow("two_step") is two_step.make_paid_wrapper
        assert make_flow("elicitation") is elicitation.make_paid_wrapper
        assert make_flow("progress") is progress.make_paid_wrapper

    def test_enum_members(self):
        for flow in PaymentFlow:
            assert callable(make_flow(flow))

    def test_case_insensitive(self):
        assert make_flow("TWO_STEP") is two_step.make_paid_wrapper
        assert make_flow(" Progress ") is progress.make_paid_wrapper

    @pytest.mark.parametrize("name", ["unknown", "auto", "", "payment_flow"])
    def test_unknown_flow(self, name):
        with pytest.raises(ValueError, match="Unknown payment flow"):
            make_flow(name)

    def test_enum_values(self):
        assert PaymentFlow("elicitation") is PaymentFlow.ELICITATION
        assert PaymentFlow.TWO_STEP == "two_step"
