"""
Data models for Atelier Dispatch.

This module contains dataclasses for:
- Order: A production job and its routing
- Workstation / Notification: Workers and the in-app log
- AtelierData: The aggregate persisted as one unit
- Commands: Discrete user actions and claim results

Commands and results are frozen so they can cross threads safely.
"""

from .order import Order, OrderStatus, WAITING_ROOM_ID, UNASSIGNED, generate_ticket_id
from .workstation import Workstation, Notification, generate_access_code
from .atelier import AtelierData, AtelierSnapshot, SubscriptionState, SubscriptionStatus
from .commands import (
    CreateOrder,
    UpdateOrder,
    SetStatus,
    AssignOrder,
    ClaimOrder,
    ClaimResult,
    ClaimDeclineReason,
)

__all__ = [
    # Order models
    "Order",
    "OrderStatus",
    "WAITING_ROOM_ID",
    "UNASSIGNED",
    "generate_ticket_id",
    # Workstation models
    "Workstation",
    "Notification",
    "generate_access_code",
    # Aggregate models
    "AtelierData",
    "AtelierSnapshot",
    "SubscriptionState",
    "SubscriptionStatus",
    # Commands
    "CreateOrder",
    "UpdateOrder",
    "SetStatus",
    "AssignOrder",
    "ClaimOrder",
    "ClaimResult",
    "ClaimDeclineReason",
]
