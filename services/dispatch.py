"""
Dispatch service: order routing, claiming and status changes.

This is the single entry point for every order mutation. It is constructed
once by the app factory and handed to the routes through ``app.config``;
nothing else writes to the ledger.

Routing targets:
    UNASSIGNED        - clear routing (stored as None)
    WAITING_ROOM_ID   - shared pool, any workstation may claim from it
    <workstation id>  - a specific workstation

Every mutating method takes the caller's ``AccessSession`` and checks it
BEFORE touching the ledger. The sequence check -> write -> notify runs
under the ledger lock, so two workstations claiming the same pooled order
cannot both win.

Flow (claim):
    1. Gate: session must be in workstation mode
    2. Under the ledger lock: order still in the pool? priced?
    3. If not: return a declined ClaimResult, nothing written
    4. Else: route to the workstation, force SEWING, emit notification
    5. Ledger listeners (sync service) are told after the lock is released

Usage:
    dispatch = DispatchService(ledger)
    order = dispatch.create_order(manager_session, client_id, model_id)
    dispatch.assign(manager_session, order.id, WAITING_ROOM_ID)
    result = dispatch.claim(workstation_session, order.id)
"""

from __future__ import annotations

import math
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from core.exceptions import (
    OrderNotFoundError,
    UnauthorizedError,
    ValidationError,
    WorkstationNotFoundError,
)
from models.atelier import AtelierData
from models.commands import (
    AssignOrder,
    ClaimDeclineReason,
    ClaimOrder,
    ClaimResult,
    Command,
    CreateOrder,
    SetStatus,
    UpdateOrder,
)
from models.order import Order, OrderStatus, UNASSIGNED, WAITING_ROOM_ID
from models.workstation import Notification, Workstation
from services.access import AccessGate, AccessMode, AccessSession
from services.ledger import OrderLedger
from services.notifications import NotificationEmitter
from services.pipeline import KANBAN_STATUSES, PipelineStateMachine
from logging_config import get_logger, get_order_logger


logger = get_logger(__name__)

ALL_WORKSTATIONS = "Tous"
"""Kanban filter value meaning "do not filter by routing"."""


def _date_key(order: Order) -> datetime:
    try:
        parsed = datetime.fromisoformat(order.date.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _copy(order: Order) -> Order:
    """Detached copy, safe to return outside the ledger lock."""
    return replace(order)


class DispatchService:
    """
    Order ledger operations for the three access modes.

    Attributes:
        ledger: The OrderLedger this service mutates
        pipeline: Transition rules
    """

    def __init__(
        self,
        ledger: OrderLedger,
        pipeline: Optional[PipelineStateMachine] = None,
        emitter: Optional[NotificationEmitter] = None,
        gate: Optional[AccessGate] = None,
    ):
        self.ledger = ledger
        self.pipeline = pipeline or PipelineStateMachine()
        self._emitter = emitter or NotificationEmitter()
        self._gate = gate or AccessGate()
        logger.info(f"DispatchService initialized (transition policy: {self.pipeline.policy.value})")

    # =========================================================================
    # ORDERS
    # =========================================================================

    def create_order(
        self,
        session: AccessSession,
        client_id: str,
        model_id: str,
        date: Optional[str] = None,
        price: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Create an order at the start of the pipeline, unassigned.

        Manager only. Raises ValidationError for an invalid price.
        """
        self._gate.require(session, "create_order", AccessMode.MANAGER)
        _validate_price(price)

        with self.ledger.mutation() as data:
            order = self._insert_order(data, client_id, model_id, date, price, notes)

        get_order_logger(order.id).info(f"Order {order.ticket_id} created for client {client_id}")
        return _copy(order)

    def place_order(
        self,
        session: AccessSession,
        model_id: str,
        name: str,
        phone: str,
        email: Optional[str] = None,
    ) -> Order:
        """
        Order placed from the public catalogue.

        Allowed in any mode. The client is matched by phone number, or created.
        """
        if not name or not phone:
            raise ValidationError("Client name and phone are required", {"name": name, "phone": phone})

        with self.ledger.mutation() as data:
            client = next((c for c in data.clients if c.get("phone") == phone), None)
            if client is None:
                client = {
                    "id": str(uuid.uuid4()),
                    "name": name,
                    "phone": phone,
                    "measurements": {},
                    "lastSeen": "Aujourd'hui",
                }
                if email:
                    client["email"] = email
                data.clients.insert(0, client)
                logger.info(f"New client registered from catalogue order: {name}")

            order = self._insert_order(data, client["id"], model_id, None, None, None)
            self._emitter.placed(data, order, client.get("name", name))

        get_order_logger(order.id).info(
            f"Order {order.ticket_id} placed from catalogue ({session.mode.value} mode)"
        )
        return _copy(order)

    def update_order(
        self,
        session: AccessSession,
        order_id: str,
        price: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Edit price and/or notes. ``None`` leaves a field unchanged.

        Manager only.
        """
        self._gate.require(session, "update_order", AccessMode.MANAGER)
        _validate_price(price)

        with self.ledger.mutation() as data:
            order = _require_order(data, order_id)
            if price is not None:
                order.price = price
            if notes is not None:
                order.notes = notes

        get_order_logger(order_id).info(f"Order {order.ticket_id} updated (price={order.price})")
        return _copy(order)

    def set_status(self, session: AccessSession, order_id: str, status: OrderStatus) -> Order:
        """
        Move an order to ``status``.

        Manager: any order. Workstation: only orders routed to it.
        Entering READY_FOR_DELIVERY or DELIVERED notifies, every time.
        """
        self._gate.require(session, "set_status", AccessMode.MANAGER, AccessMode.WORKSTATION)
        status = OrderStatus.parse(status)

        with self.ledger.mutation() as data:
            order = _require_order(data, order_id)
            if session.mode is AccessMode.WORKSTATION and not order.is_routed_to(session.workstation_id):
                raise UnauthorizedError("set_status", session.mode.value, "order is not routed to this workstation")

            previous = self.pipeline.apply(order, status)
            if self.pipeline.notifies(status):
                self._emitter.status_changed(data, order)

        get_order_logger(order_id).info(
            f"Order {order.ticket_id} status: '{previous.value}' -> '{status.value}'"
        )
        return _copy(order)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def assign(self, session: AccessSession, order_id: str, target: str) -> Order:
        """
        Route an order to nobody, the pool, or a workstation.

        Manager: always allowed. Workstation: only for an order it owns, and
        only to the pool or another workstation (a transfer).

        Raises:
            WorkstationNotFoundError: Target is not an existing workstation
            UnauthorizedError: Mode does not permit this routing change
        """
        self._gate.require(session, "assign", AccessMode.MANAGER, AccessMode.WORKSTATION)
        if not target:
            raise ValidationError("Assign target is required", {"order_id": order_id})

        with self.ledger.mutation() as data:
            order = _require_order(data, order_id)

            workstation: Optional[Workstation] = None
            if target not in (UNASSIGNED, WAITING_ROOM_ID):
                workstation = data.find_workstation(target)
                if workstation is None:
                    raise WorkstationNotFoundError(target)

            if session.mode is AccessMode.WORKSTATION:
                if not order.is_routed_to(session.workstation_id):
                    raise UnauthorizedError("assign", session.mode.value, "order is not routed to this workstation")
                if target == UNASSIGNED:
                    raise UnauthorizedError("assign", session.mode.value, "workstations cannot unassign orders")

            order.workstation_id = None if target == UNASSIGNED else target

            if workstation is not None:
                self._emitter.assigned(data, order, workstation)
            elif target == WAITING_ROOM_ID:
                self._emitter.pooled(data, order)

        get_order_logger(order_id).info(f"Order {order.ticket_id} routed to {target} ({session.mode.value} mode)")
        return _copy(order)

    def transfer(self, session: AccessSession, order_id: str, target: str) -> Order:
        """A workstation hands one of its orders to another workstation or the pool."""
        self._gate.require(session, "transfer", AccessMode.WORKSTATION)
        return self.assign(session, order_id, target)

    def claim(self, session: AccessSession, order_id: str) -> ClaimResult:
        """
        Take a pooled order for the session's workstation.

        Compare-and-swap: succeeds only if the order is STILL in the pool when
        the ledger lock is held. Delivered orders and orders without a price
        (missing or 0) are declined. Success routes the order to the
        workstation and forces SEWING.

        Returns:
            ClaimResult (declined results leave the ledger untouched)

        Raises:
            UnauthorizedError: Not in workstation mode
            OrderNotFoundError / WorkstationNotFoundError
        """
        self._gate.require(session, "claim", AccessMode.WORKSTATION)
        order_logger = get_order_logger(order_id)

        with self.ledger.reading() as current:
            workstation = current.find_workstation(session.workstation_id)
            if workstation is None:
                raise WorkstationNotFoundError(session.workstation_id)
            order = _require_order(current, order_id)

            if not order.is_in_pool:
                order_logger.warning(f"Claim of {order.ticket_id} by '{workstation.name}' declined: not in pool")
                return ClaimResult.declined(_copy(order), ClaimDeclineReason.NOT_IN_POOL)
            if not order.is_active:
                order_logger.warning(f"Claim of {order.ticket_id} by '{workstation.name}' declined: already delivered")
                return ClaimResult.declined(_copy(order), ClaimDeclineReason.DELIVERED)
            if not order.is_priced:
                order_logger.warning(f"Claim of {order.ticket_id} by '{workstation.name}' declined: no price")
                return ClaimResult.declined(_copy(order), ClaimDeclineReason.UNPRICED)

            # Still holding the (re-entrant) lock: nobody can claim in between
            with self.ledger.mutation() as data:
                order.workstation_id = workstation.id
                order.status = OrderStatus.SEWING
                self._emitter.claimed(data, order, workstation)

            claimed = _copy(order)

        order_logger.info(f"Order {claimed.ticket_id} claimed by '{workstation.name}'")
        return ClaimResult.accepted(claimed)

    def execute(self, session: AccessSession, command: Command):
        """
        Run a command value.

        Returns:
            Order for every command except ClaimOrder, which returns ClaimResult
        """
        if isinstance(command, CreateOrder):
            return self.create_order(
                session, command.client_id, command.model_id, command.date, command.price, command.notes
            )
        if isinstance(command, UpdateOrder):
            return self.update_order(session, command.order_id, command.price, command.notes)
        if isinstance(command, SetStatus):
            return self.set_status(session, command.order_id, command.status)
        if isinstance(command, AssignOrder):
            return self.assign(session, command.order_id, command.target)
        if isinstance(command, ClaimOrder):
            if session.workstation_id != command.workstation_id:
                raise UnauthorizedError("claim", session.mode.value, "session is bound to another workstation")
            return self.claim(session, command.order_id)
        raise TypeError(f"Unknown command: {type(command).__name__}")

    # =========================================================================
    # QUERIES
    # =========================================================================

    def kanban(
        self,
        session: AccessSession,
        workstation_filter: str = ALL_WORKSTATIONS,
        search: str = "",
    ) -> Dict[OrderStatus, List[Order]]:
        """
        Active orders grouped by column.

        Args:
            workstation_filter: ALL_WORKSTATIONS, UNASSIGNED, WAITING_ROOM_ID or a workstation id
            search: Case-insensitive match on client name, model title or ticket
        """
        self._gate.require(session, "kanban", AccessMode.MANAGER)
        needle = (search or "").strip().lower()
        board: Dict[OrderStatus, List[Order]] = {status: [] for status in KANBAN_STATUSES}

        with self.ledger.reading() as data:
            for order in data.orders:
                if not order.is_active:
                    continue
                if not _matches_routing(order, workstation_filter):
                    continue
                if needle and not _matches_search(data, order, needle):
                    continue
                board[order.status].append(_copy(order))
        return board

    def pool_orders(self, session: AccessSession) -> List[Order]:
        """Orders waiting in the shared pool (not delivered)."""
        self._gate.require(session, "pool_orders", AccessMode.WORKSTATION, AccessMode.MANAGER)
        with self.ledger.reading() as data:
            return [_copy(o) for o in data.orders if o.is_in_pool and o.is_active]

    def workstation_orders(self, session: AccessSession) -> List[Order]:
        """Active orders routed to the session's workstation."""
        self._gate.require(session, "workstation_orders", AccessMode.WORKSTATION)
        with self.ledger.reading() as data:
            return [
                _copy(o) for o in data.orders
                if o.is_routed_to(session.workstation_id) and o.is_active
            ]

    def archived_orders(self, session: AccessSession) -> List[Order]:
        """Delivered orders, for archive and finance screens."""
        self._gate.require(session, "archived_orders", AccessMode.MANAGER)
        with self.ledger.reading() as data:
            return [_copy(o) for o in data.orders if not o.is_active]

    def track(self, ticket_id: str) -> Optional[Order]:
        """Public ticket lookup (case-insensitive). None when not found."""
        wanted = (ticket_id or "").strip().lower()
        if not wanted:
            return None
        with self.ledger.reading() as data:
            order = next((o for o in data.orders if o.ticket_id.lower() == wanted), None)
            return _copy(order) if order else None

    # =========================================================================
    # WORKSTATIONS
    # =========================================================================

    def list_workstations(self) -> List[Workstation]:
        with self.ledger.reading() as data:
            return [replace(w) for w in data.workstations]

    def add_workstation(self, session: AccessSession, name: str) -> Workstation:
        self._gate.require(session, "add_workstation", AccessMode.MANAGER)
        if not name or not name.strip():
            raise ValidationError("Workstation name is required")

        with self.ledger.mutation() as data:
            taken = {w.access_code for w in data.workstations}
            workstation = Workstation.create(name.strip())
            while workstation.access_code in taken:
                workstation = Workstation.create(name.strip())
            data.workstations.append(workstation)

        logger.info(f"Workstation '{workstation.name}' added")
        return replace(workstation)

    def rename_workstation(self, session: AccessSession, workstation_id: str, name: str) -> Workstation:
        self._gate.require(session, "rename_workstation", AccessMode.MANAGER)
        if not name or not name.strip():
            raise ValidationError("Workstation name is required")

        with self.ledger.mutation() as data:
            workstation = data.find_workstation(workstation_id)
            if workstation is None:
                raise WorkstationNotFoundError(workstation_id)
            workstation.name = name.strip()

        return replace(workstation)

    def delete_workstation(self, session: AccessSession, workstation_id: str) -> int:
        """
        Remove a workstation and unassign every order routed to it.

        Returns:
            Number of orders unassigned
        """
        self._gate.require(session, "delete_workstation", AccessMode.MANAGER)

        with self.ledger.mutation() as data:
            workstation = data.find_workstation(workstation_id)
            if workstation is None:
                raise WorkstationNotFoundError(workstation_id)
            data.workstations.remove(workstation)
            released = 0
            for order in data.orders:
                if order.workstation_id == workstation_id:
                    order.workstation_id = None
                    released += 1

        logger.info(f"Workstation '{workstation.name}' deleted, {released} orders unassigned")
        return released

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def notifications(self, session: AccessSession) -> List[Notification]:
        self._gate.require(session, "notifications", AccessMode.MANAGER)
        with self.ledger.reading() as data:
            return [replace(n) for n in data.notifications]

    def unread_count(self) -> int:
        with self.ledger.reading() as data:
            return sum(1 for n in data.notifications if not n.read)

    def mark_notifications_read(self, session: AccessSession, ids: Iterable[str]) -> int:
        self._gate.require(session, "mark_notifications_read", AccessMode.MANAGER)
        with self.ledger.mutation() as data:
            return self._emitter.mark_read(data, ids)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _insert_order(
        self,
        data: AtelierData,
        client_id: str,
        model_id: str,
        date: Optional[str],
        price: Optional[float],
        notes: Optional[str],
    ) -> Order:
        order = Order.create(
            client_id=client_id,
            model_id=model_id,
            date=date,
            existing_tickets=[o.ticket_id for o in data.orders],
            price=price,
            notes=notes,
        )
        data.orders.append(order)
        data.orders.sort(key=_date_key, reverse=True)
        return order


def _require_order(data: AtelierData, order_id: str) -> Order:
    order = data.find_order(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def _validate_price(price: Optional[float]) -> None:
    if price is None:
        return
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise ValidationError("Price must be a number", {"price": price})
    # NaN and infinity cannot be written back to the store as JSON
    if not math.isfinite(price) or price < 0:
        raise ValidationError("Price must be a finite, non-negative number", {"price": str(price)})


def _matches_routing(order: Order, workstation_filter: str) -> bool:
    if not workstation_filter or workstation_filter == ALL_WORKSTATIONS:
        return True
    if workstation_filter == UNASSIGNED:
        return order.workstation_id is None
    return order.workstation_id == workstation_filter


def _matches_search(data: AtelierData, order: Order, needle: str) -> bool:
    if needle in order.ticket_id.lower():
        return True
    if needle in data.client_name(order.client_id).lower():
        return True
    model = data.find_model(order.model_id)
    return bool(model) and needle in str(model.get("title", "")).lower()
