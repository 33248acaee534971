"""Workstation and notification records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Dict, Any, Optional

ACCESS_CODE_PREFIX = "POSTE-"
ACCESS_CODE_LENGTH = 4


def generate_access_code() -> str:
    """Generate a ``POSTE-XXXX`` workstation access code."""
    return f"{ACCESS_CODE_PREFIX}{uuid.uuid4().hex[:ACCESS_CODE_LENGTH].upper()}"


@dataclass
class Workstation:
    """A physical workstation that can own and claim orders."""

    id: str
    name: str
    access_code: str

    @classmethod
    def create(cls, name: str) -> "Workstation":
        return cls(id=str(uuid.uuid4()), name=name, access_code=generate_access_code())

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "accessCode": self.access_code}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workstation":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            access_code=data.get("accessCode", ""),
        )


@dataclass
class Notification:
    """
    In-app log entry.

    Append-only; the only field ever changed after creation is ``read``.
    """

    id: str
    message: str
    date: str
    read: bool = False
    order_id: Optional[str] = None
    review_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "message": self.message,
            "date": self.date,
            "read": self.read,
        }
        if self.order_id is not None:
            data["orderId"] = self.order_id
        if self.review_id is not None:
            data["reviewId"] = self.review_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Notification":
        return cls(
            id=data.get("id", ""),
            message=data.get("message", ""),
            date=data.get("date", ""),
            read=bool(data.get("read", False)),
            order_id=data.get("orderId"),
            review_id=data.get("reviewId"),
        )
