"""
Unit tests for the pipeline state machine.
"""

import pytest

from core.exceptions import InvalidTransitionError
from models.order import Order, OrderStatus
from services.pipeline import (
    KANBAN_STATUSES,
    PIPELINE,
    PipelineStateMachine,
    TransitionPolicy,
)


@pytest.fixture
def permissive():
    return PipelineStateMachine()


@pytest.fixture
def sequential():
    return PipelineStateMachine(TransitionPolicy.SEQUENTIAL)


class TestPermissivePolicy:
    """Any state may move to any state."""

    @pytest.mark.parametrize("current", list(OrderStatus))
    @pytest.mark.parametrize("target", list(OrderStatus))
    def test_every_transition_allowed(self, permissive, current, target):
        permissive.validate(current, target)

    def test_apply_returns_previous(self, permissive):
        order = Order.create("c-1", "m-1")
        previous = permissive.apply(order, OrderStatus.DELIVERED)
        assert previous is OrderStatus.PENDING_VALIDATION
        assert order.status is OrderStatus.DELIVERED

    def test_backwards_correction(self, permissive):
        order = Order.create("c-1", "m-1")
        order.status = OrderStatus.READY_FOR_DELIVERY
        permissive.apply(order, OrderStatus.SEWING)
        assert order.status is OrderStatus.SEWING


class TestSequentialPolicy:
    """One step at a time, either direction."""

    def test_next_step_allowed(self, sequential):
        sequential.validate(OrderStatus.SEWING, OrderStatus.FINISHING)

    def test_previous_step_allowed(self, sequential):
        sequential.validate(OrderStatus.FINISHING, OrderStatus.SEWING)

    def test_same_status_allowed(self, sequential):
        sequential.validate(OrderStatus.SEWING, OrderStatus.SEWING)

    def test_skip_rejected(self, sequential):
        with pytest.raises(InvalidTransitionError) as exc_info:
            sequential.validate(OrderStatus.PENDING_VALIDATION, OrderStatus.DELIVERED)
        assert exc_info.value.details["policy"] == "sequential"

    def test_rejected_apply_leaves_order_unchanged(self, sequential):
        order = Order.create("c-1", "m-1")
        with pytest.raises(InvalidTransitionError):
            sequential.apply(order, OrderStatus.READY_FOR_DELIVERY)
        assert order.status is OrderStatus.PENDING_VALIDATION


class TestPipelineHelpers:

    def test_initial_status(self):
        assert PipelineStateMachine.initial_status() is OrderStatus.PENDING_VALIDATION

    def test_kanban_columns_exclude_delivered(self):
        assert OrderStatus.DELIVERED not in KANBAN_STATUSES
        assert len(KANBAN_STATUSES) == 4

    def test_notifying_statuses(self):
        assert PipelineStateMachine.notifies(OrderStatus.READY_FOR_DELIVERY)
        assert PipelineStateMachine.notifies(OrderStatus.DELIVERED)
        assert not PipelineStateMachine.notifies(OrderStatus.FINISHING)

    def test_progress(self):
        assert PipelineStateMachine.progress(OrderStatus.PENDING_VALIDATION) == (0, len(PIPELINE))
        assert PipelineStateMachine.progress(OrderStatus.DELIVERED) == (4, 5)

    def test_policy_from_config(self):
        assert TransitionPolicy.from_config(" Sequential ") is TransitionPolicy.SEQUENTIAL

    def test_policy_from_config_rejects_unknown(self):
        with pytest.raises(ValueError):
            TransitionPolicy.from_config("strict")
