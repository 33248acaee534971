"""
Atelier aggregate models.

``AtelierData`` is the unit of durability: it is fetched whole on startup and
written back whole by the sync service. Orders, workstations and
notifications are typed because dispatch works on them; the remaining
collections belong to other screens and are carried through untouched so a
flush never drops them.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, List, Optional

from models.order import Order
from models.workstation import Workstation, Notification


OPAQUE_COLLECTIONS = (
    "clients",
    "models",
    "appointments",
    "fournitures",
    "expenses",
    "tutoriels",
)


class SubscriptionStatus(Enum):
    """Billing state of the workshop."""

    ACTIVE = "active"
    TRIAL = "trial"
    INACTIVE = "inactive"
    PENDING = "pending"


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp, treating naive values as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class SubscriptionState:
    """
    Subscription of the owning workshop.

    Only consulted by the access gate to pick the manager page allow-list;
    it never blocks dispatch or pipeline operations.
    """

    status: SubscriptionStatus = SubscriptionStatus.INACTIVE
    expires_at: Optional[datetime] = None
    plan: Optional[str] = None

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """Active or trial, and not past its expiry (if any)."""
        now = now or datetime.now(timezone.utc)
        if self.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL):
            return False
        return self.expires_at is None or self.expires_at > now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "plan": self.plan,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SubscriptionState":
        data = data or {}
        try:
            status = SubscriptionStatus(data.get("status", "inactive"))
        except ValueError:
            status = SubscriptionStatus.INACTIVE
        return cls(
            status=status,
            expires_at=_parse_datetime(data.get("expiresAt")),
            plan=data.get("plan"),
        )


@dataclass
class AtelierData:
    """
    The full per-workshop aggregate.

    Mutable; only ``OrderLedger`` should mutate it, under its lock.
    """

    orders: List[Order] = field(default_factory=list)
    workstations: List[Workstation] = field(default_factory=list)
    notifications: List[Notification] = field(default_factory=list)

    clients: List[Dict[str, Any]] = field(default_factory=list)
    models: List[Dict[str, Any]] = field(default_factory=list)
    appointments: List[Dict[str, Any]] = field(default_factory=list)
    fournitures: List[Dict[str, Any]] = field(default_factory=list)
    expenses: List[Dict[str, Any]] = field(default_factory=list)
    tutoriels: List[Dict[str, Any]] = field(default_factory=list)

    manager_profile: Dict[str, Any] = field(default_factory=dict)
    manager_access_code: str = ""
    model_of_the_month_id: Optional[str] = None
    favorite_ids: List[str] = field(default_factory=list)
    is_new: bool = False

    def find_order(self, order_id: str) -> Optional[Order]:
        return next((o for o in self.orders if o.id == order_id), None)

    def find_workstation(self, workstation_id: str) -> Optional[Workstation]:
        return next((w for w in self.workstations if w.id == workstation_id), None)

    def find_client(self, client_id: str) -> Optional[Dict[str, Any]]:
        return next((c for c in self.clients if c.get("id") == client_id), None)

    def find_model(self, model_id: str) -> Optional[Dict[str, Any]]:
        return next((m for m in self.models if m.get("id") == model_id), None)

    def client_name(self, client_id: str) -> str:
        """Display name of a client, empty when the reference is dangling."""
        client = self.find_client(client_id)
        return client.get("name", "") if client else ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire format (deep copy, safe to hand to another thread)."""
        data: Dict[str, Any] = {
            "orders": [o.to_dict() for o in self.orders],
            "workstations": [w.to_dict() for w in self.workstations],
            "notifications": [n.to_dict() for n in self.notifications],
            "managerProfile": deepcopy(self.manager_profile),
            "managerAccessCode": self.manager_access_code,
            "modelOfTheMonthId": self.model_of_the_month_id,
            "favoriteIds": list(self.favorite_ids),
            "isNew": self.is_new,
        }
        for name in OPAQUE_COLLECTIONS:
            data[name] = deepcopy(getattr(self, name))
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AtelierData":
        """Create from the wire format. Missing collections default to empty."""
        aggregate = cls(
            orders=[Order.from_dict(o) for o in data.get("orders") or []],
            workstations=[Workstation.from_dict(w) for w in data.get("workstations") or []],
            notifications=[Notification.from_dict(n) for n in data.get("notifications") or []],
            manager_profile=deepcopy(data.get("managerProfile") or {}),
            manager_access_code=data.get("managerAccessCode") or "",
            model_of_the_month_id=data.get("modelOfTheMonthId"),
            favorite_ids=list(data.get("favoriteIds") or []),
            is_new=bool(data.get("isNew", False)),
        )
        for name in OPAQUE_COLLECTIONS:
            setattr(aggregate, name, deepcopy(data.get(name) or []))
        return aggregate


@dataclass
class AtelierSnapshot:
    """
    What ``GET /atelier/{id}`` returns: workshop identity, subscription and data.
    """

    id: str
    name: str = ""
    subscription: SubscriptionState = field(default_factory=SubscriptionState)
    data: AtelierData = field(default_factory=AtelierData)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any], atelier_id: str = "") -> "AtelierSnapshot":
        """
        Parse the GET envelope. A bare aggregate body (no ``data`` key) is
        accepted too, with an inactive subscription.
        """
        if "data" in payload and isinstance(payload["data"], dict):
            return cls(
                id=payload.get("id", atelier_id),
                name=payload.get("name", ""),
                subscription=SubscriptionState.from_dict(payload.get("subscription")),
                data=AtelierData.from_dict(payload["data"]),
            )
        return cls(id=atelier_id, data=AtelierData.from_dict(payload))
