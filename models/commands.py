"""
Dispatch commands and their results.

Every user action (drag a card, pick a dropdown option, press "claim") is a
discrete command value handed to ``DispatchService.execute``. Commands are
frozen so a request thread can build one and pass it on safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from models.order import Order, OrderStatus


@dataclass(frozen=True)
class CreateOrder:
    client_id: str
    model_id: str
    date: Optional[str] = None
    price: Optional[float] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class UpdateOrder:
    """Only business metadata is editable."""

    order_id: str
    price: Optional[float] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class SetStatus:
    order_id: str
    status: OrderStatus


@dataclass(frozen=True)
class AssignOrder:
    """``target`` is UNASSIGNED, WAITING_ROOM_ID or a workstation id."""

    order_id: str
    target: str


@dataclass(frozen=True)
class ClaimOrder:
    order_id: str
    workstation_id: str


Command = Union[CreateOrder, UpdateOrder, SetStatus, AssignOrder, ClaimOrder]


class ClaimDeclineReason(Enum):
    """Why a claim left the ledger untouched."""

    NOT_IN_POOL = "not_in_pool"
    DELIVERED = "delivered"
    UNPRICED = "unpriced"


@dataclass(frozen=True)
class ClaimResult:
    """
    Outcome of a claim.

    A declined claim is a normal result, not an error: the order may simply
    have been taken by another workstation a moment earlier.
    """

    order: Order
    claimed: bool
    reason: Optional[ClaimDeclineReason] = None

    @classmethod
    def accepted(cls, order: Order) -> "ClaimResult":
        return cls(order=order, claimed=True)

    @classmethod
    def declined(cls, order: Order, reason: ClaimDeclineReason) -> "ClaimResult":
        return cls(order=order, claimed=False, reason=reason)

    def to_dict(self) -> dict:
        return {
            "claimed": self.claimed,
            "reason": self.reason.value if self.reason else None,
            "order": self.order.to_dict(),
        }
