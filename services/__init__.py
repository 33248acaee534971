"""
Services layer for Atelier Dispatch.

This module contains the business logic services:
- OrderLedger: Locked in-memory aggregate
- PipelineStateMachine: Status transition rules
- NotificationEmitter: In-app log entries for dispatch events
- AccessGate: Modes, page allow-lists and permissions
- DispatchService: Every order mutation and query
- SyncService: Debounced background write-through to the remote store

Thread Model:
    Request threads (Flask)
    └── DispatchService -> OrderLedger (one RLock)

    Sync thread (background)
    └── wakes on a short interval, flushes the aggregate after a quiet window
"""

from .ledger import OrderLedger
from .pipeline import PipelineStateMachine, TransitionPolicy, KANBAN_STATUSES
from .notifications import NotificationEmitter
from .access import AccessGate, AccessMode, AccessSession
from .dispatch import DispatchService, ALL_WORKSTATIONS
from .sync_service import SyncService

__all__ = [
    "OrderLedger",
    "PipelineStateMachine",
    "TransitionPolicy",
    "KANBAN_STATUSES",
    "NotificationEmitter",
    "AccessGate",
    "AccessMode",
    "AccessSession",
    "DispatchService",
    "ALL_WORKSTATIONS",
    "SyncService",
]
