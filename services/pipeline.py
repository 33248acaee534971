"""
Pipeline state machine.

States, in order:
    PENDING_VALIDATION -> SEWING -> FINISHING -> READY_FOR_DELIVERY -> DELIVERED

By default any state may move to any other state (a card dropped on any
kanban column, any dropdown option). Managers rely on this to correct
mistakes. A SEQUENTIAL policy is available for workshops that want the
pipeline enforced one step at a time.
"""

from __future__ import annotations

from enum import Enum
from typing import Tuple

from core.exceptions import InvalidTransitionError
from models.order import Order, OrderStatus


PIPELINE: Tuple[OrderStatus, ...] = tuple(OrderStatus)

KANBAN_STATUSES: Tuple[OrderStatus, ...] = tuple(
    s for s in PIPELINE if s is not OrderStatus.DELIVERED
)

NOTIFYING_STATUSES = frozenset({OrderStatus.READY_FOR_DELIVERY, OrderStatus.DELIVERED})


class TransitionPolicy(Enum):
    PERMISSIVE = "permissive"
    SEQUENTIAL = "sequential"

    @classmethod
    def from_config(cls, value: str) -> "TransitionPolicy":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown PIPELINE_TRANSITION_POLICY {value!r}; "
                f"expected one of {[p.value for p in cls]}"
            )


class PipelineStateMachine:
    """Validates and applies status transitions, independent of routing."""

    def __init__(self, policy: TransitionPolicy = TransitionPolicy.PERMISSIVE):
        self._policy = policy

    @property
    def policy(self) -> TransitionPolicy:
        return self._policy

    @staticmethod
    def initial_status() -> OrderStatus:
        return OrderStatus.PENDING_VALIDATION

    def validate(self, current: OrderStatus, target: OrderStatus) -> None:
        """
        Raise if ``current -> target`` is not allowed.

        Re-setting the current status is allowed under both policies.

        Raises:
            InvalidTransitionError: Only under the SEQUENTIAL policy
        """
        if self._policy is TransitionPolicy.PERMISSIVE or current is target:
            return

        distance = PIPELINE.index(target) - PIPELINE.index(current)
        if abs(distance) != 1:
            raise InvalidTransitionError(current.value, target.value, self._policy.value)

    def apply(self, order: Order, target: OrderStatus) -> OrderStatus:
        """
        Validate then write ``target`` onto the order.

        Returns:
            The previous status
        """
        previous = order.status
        self.validate(previous, target)
        order.status = target
        return previous

    @staticmethod
    def notifies(status: OrderStatus) -> bool:
        """Entering these states produces a client-facing notification."""
        return status in NOTIFYING_STATUSES

    @staticmethod
    def progress(status: OrderStatus) -> Tuple[int, int]:
        """Position of ``status`` in the pipeline, for tracking timelines."""
        return PIPELINE.index(status), len(PIPELINE)
