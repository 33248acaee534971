"""
Notification emitter.

Produces human-readable, timestamped entries in the aggregate's notification
log as a side effect of dispatch and pipeline events. Entries are prepended
(newest first) and never deduplicated: setting the same status twice logs it
twice.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from models.atelier import AtelierData
from models.order import Order, OrderStatus
from models.workstation import Notification, Workstation
from logging_config import get_logger


logger = get_logger(__name__)

WAITING_ROOM_LABEL = "Salle des Commandes"


def status_message(order: Order, client_name: str, status: OrderStatus) -> str:
    return f'La commande #{order.ticket_id} pour {client_name} est maintenant "{status.value}".'


def assigned_message(order: Order, workstation: Workstation) -> str:
    return f"Commande #{order.ticket_id} assignée à {workstation.name}."


def pooled_message(order: Order) -> str:
    return f"Commande #{order.ticket_id} placée dans la {WAITING_ROOM_LABEL}."


def claimed_message(order: Order, workstation: Workstation) -> str:
    return f"Commande #{order.ticket_id} prise en charge par {workstation.name}."


def placed_message(order: Order, client_name: str) -> str:
    return f"Nouvelle commande #{order.ticket_id} passée par {client_name}."


class NotificationEmitter:
    """
    Appends notifications to an aggregate.

    Callers hold the ledger lock; the emitter only writes to the ``data``
    it is given.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def emit(self, data: AtelierData, message: str, order_id: Optional[str] = None) -> Notification:
        notification = Notification(
            id=str(uuid.uuid4()),
            message=message,
            date=self._clock().isoformat(),
            read=False,
            order_id=order_id,
        )
        data.notifications.insert(0, notification)
        logger.debug(f"Notification emitted: {message}")
        return notification

    def status_changed(self, data: AtelierData, order: Order) -> Notification:
        return self.emit(data, status_message(order, data.client_name(order.client_id), order.status), order.id)

    def assigned(self, data: AtelierData, order: Order, workstation: Workstation) -> Notification:
        return self.emit(data, assigned_message(order, workstation), order.id)

    def pooled(self, data: AtelierData, order: Order) -> Notification:
        return self.emit(data, pooled_message(order), order.id)

    def claimed(self, data: AtelierData, order: Order, workstation: Workstation) -> Notification:
        return self.emit(data, claimed_message(order, workstation), order.id)

    def placed(self, data: AtelierData, order: Order, client_name: str) -> Notification:
        # Placement notices are workshop-wide, not attached to the order
        return self.emit(data, placed_message(order, client_name))

    @staticmethod
    def mark_read(data: AtelierData, ids: Iterable[str]) -> int:
        """Flip ``read`` on the given notifications. Returns how many changed."""
        wanted = set(ids)
        changed = 0
        for notification in data.notifications:
            if notification.id in wanted and not notification.read:
                notification.read = True
                changed += 1
        return changed
