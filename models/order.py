"""
Order data models.

An order is one production job for the workshop. It moves through the
pipeline states in ``OrderStatus`` and is routed by ``workstation_id``:

    None               -> unassigned
    WAITING_ROOM_ID    -> shared pool ("Salle des Commandes")
    <workstation id>   -> a specific workstation

Wire format uses the remote store's camelCase keys.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional, Iterable

from core.exceptions import InvalidStatusError


WAITING_ROOM_ID = "waiting-room"
"""Routing sentinel for the shared pool. Never a real workstation id."""

UNASSIGNED = "unassigned"
"""Assign target meaning "clear the routing". Never stored on an order."""

TICKET_PREFIX = "CMD-"
TICKET_LENGTH = 6


class OrderStatus(Enum):
    """
    Production states, in pipeline order.

    Values are the strings stored in the aggregate.
    """

    PENDING_VALIDATION = "En attente de validation"
    SEWING = "En cours de couture"
    FINISHING = "En finition"
    READY_FOR_DELIVERY = "Prêt à livrer"
    DELIVERED = "Livré"

    @classmethod
    def parse(cls, value: Any) -> "OrderStatus":
        """
        Accept an ``OrderStatus``, its stored value, or its member name.

        Raises:
            InvalidStatusError: For anything else
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            pass
        if isinstance(value, str) and value in cls.__members__:
            return cls[value]
        raise InvalidStatusError(value)


def generate_ticket_id(existing: Iterable[str] = ()) -> str:
    """
    Generate a ``CMD-XXXXXX`` ticket not present in ``existing``.

    Args:
        existing: Ticket ids already in use

    Returns:
        New ticket id
    """
    taken = set(existing)
    while True:
        ticket_id = f"{TICKET_PREFIX}{uuid.uuid4().hex[:TICKET_LENGTH].upper()}"
        if ticket_id not in taken:
            return ticket_id


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Order:
    """
    A production job.

    ``id`` and ``ticket_id`` are assigned once at creation and never change.
    ``price`` and ``notes`` are business metadata; a price is required
    before a workstation may claim the order from the pool.
    """

    id: str
    """Opaque unique id (UUID)."""

    ticket_id: str
    """Human-facing code, ``CMD-XXXXXX``."""

    client_id: str
    """Reference to a client in the aggregate."""

    model_id: str
    """Reference to a catalogue model in the aggregate."""

    date: str
    """Promised/recorded delivery date (ISO-8601)."""

    status: OrderStatus = OrderStatus.PENDING_VALIDATION
    """Current pipeline state."""

    workstation_id: Optional[str] = None
    """Routing target (None, WAITING_ROOM_ID or a workstation id)."""

    price: Optional[float] = None
    """Agreed price, unset until the manager fixes it."""

    notes: Optional[str] = None
    """Free-text notes."""

    @classmethod
    def create(
        cls,
        client_id: str,
        model_id: str,
        date: Optional[str] = None,
        existing_tickets: Iterable[str] = (),
        price: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> "Order":
        """
        Create a fresh order at the start of the pipeline, unassigned.

        Args:
            client_id: Client reference
            model_id: Model reference
            date: ISO date (defaults to now)
            existing_tickets: Ticket ids already used, to keep tickets unique
            price: Optional price
            notes: Optional notes

        Returns:
            New Order in PENDING_VALIDATION
        """
        return cls(
            id=str(uuid.uuid4()),
            ticket_id=generate_ticket_id(existing_tickets),
            client_id=client_id,
            model_id=model_id,
            date=date or utc_now_iso(),
            status=OrderStatus.PENDING_VALIDATION,
            workstation_id=None,
            price=price,
            notes=notes,
        )

    @property
    def is_in_pool(self) -> bool:
        """Whether the order sits in the shared waiting room."""
        return self.workstation_id == WAITING_ROOM_ID

    @property
    def is_priced(self) -> bool:
        """Whether a non-zero price has been set. A price of 0 is not a quote."""
        return bool(self.price)

    @property
    def is_active(self) -> bool:
        """Delivered orders leave the active boards for the archive."""
        return self.status is not OrderStatus.DELIVERED

    def is_routed_to(self, workstation_id: Optional[str]) -> bool:
        """Whether the order is routed to the given real workstation."""
        return (
            workstation_id is not None
            and workstation_id != WAITING_ROOM_ID
            and self.workstation_id == workstation_id
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the aggregate's wire format."""
        data: Dict[str, Any] = {
            "id": self.id,
            "ticketId": self.ticket_id,
            "clientId": self.client_id,
            "modelId": self.model_id,
            "date": self.date,
            "status": self.status.value,
        }
        if self.workstation_id is not None:
            data["workstationId"] = self.workstation_id
        if self.price is not None:
            data["price"] = self.price
        if self.notes is not None:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        """
        Create from the aggregate's wire format.

        Raises:
            InvalidStatusError: If the stored status is not a pipeline state
        """
        return cls(
            id=data.get("id", ""),
            ticket_id=data.get("ticketId", ""),
            client_id=data.get("clientId", ""),
            model_id=data.get("modelId", ""),
            date=data.get("date", ""),
            status=OrderStatus.parse(data.get("status", OrderStatus.PENDING_VALIDATION.value)),
            workstation_id=data.get("workstationId") or None,
            price=data.get("price"),
            notes=data.get("notes"),
        )
