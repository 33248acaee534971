"""
Order routes.

Handles:
- GET   /orders                 - Kanban board (manager), ?workstation=&q=
- POST  /orders                 - Create order (manager)
- POST  /orders/place           - Catalogue order (any mode)
- PATCH /orders/<id>            - Edit price / notes (manager)
- POST  /orders/<id>/status     - Move through the pipeline
- POST  /orders/<id>/assign     - Route to nobody / pool / workstation
- POST  /orders/<id>/claim      - Take a pooled order (workstation)
- GET   /orders/pool            - Orders in the waiting room
- GET   /orders/mine            - Orders routed to the bound workstation
- GET   /orders/archive         - Delivered orders (manager)
- GET   /orders/track/<ticket>  - Public ticket tracking

Each mutating handler builds a command and hands it to the dispatch service;
errors from the service are rendered by the app-level error handler.
"""

from flask import Blueprint, request

from core.exceptions import ValidationError
from models.commands import AssignOrder, ClaimOrder, CreateOrder, SetStatus, UpdateOrder
from models.order import OrderStatus
from services.dispatch import ALL_WORKSTATIONS
from routes.helpers import current_access, get_dispatch, json_body, require_page


orders_bp = Blueprint("orders", __name__, url_prefix="/orders")


def _orders_payload(orders):
    return {"orders": [o.to_dict() for o in orders]}


@orders_bp.route("", methods=["GET"])
def kanban():
    board = get_dispatch().kanban(
        current_access(),
        workstation_filter=request.args.get("workstation", ALL_WORKSTATIONS),
        search=request.args.get("q", ""),
    )
    return {"columns": {status.value: [o.to_dict() for o in orders] for status, orders in board.items()}}


@orders_bp.route("", methods=["POST"])
def create():
    body = json_body()
    if not body.get("clientId") or not body.get("modelId"):
        raise ValidationError("clientId and modelId are required")

    order = get_dispatch().execute(current_access(), CreateOrder(
        client_id=body["clientId"],
        model_id=body["modelId"],
        date=body.get("date"),
        price=body.get("price"),
        notes=body.get("notes"),
    ))
    return order.to_dict(), 201


@orders_bp.route("/place", methods=["POST"])
def place():
    body = json_body()
    if not body.get("modelId"):
        raise ValidationError("modelId is required")

    order = get_dispatch().place_order(
        current_access(),
        model_id=body["modelId"],
        name=str(body.get("name", "")).strip(),
        phone=str(body.get("phone", "")).strip(),
        email=body.get("email"),
    )
    return {"ticketId": order.ticket_id, "order": order.to_dict()}, 201


@orders_bp.route("/<order_id>", methods=["PATCH"])
def update(order_id: str):
    body = json_body()
    order = get_dispatch().execute(current_access(), UpdateOrder(
        order_id=order_id,
        price=body.get("price"),
        notes=body.get("notes"),
    ))
    return order.to_dict()


@orders_bp.route("/<order_id>/status", methods=["POST"])
def set_status(order_id: str):
    status = OrderStatus.parse(json_body().get("status"))
    order = get_dispatch().execute(current_access(), SetStatus(order_id=order_id, status=status))
    return order.to_dict()


@orders_bp.route("/<order_id>/assign", methods=["POST"])
def assign(order_id: str):
    target = json_body().get("target")
    if not target:
        raise ValidationError("target is required")

    order = get_dispatch().execute(current_access(), AssignOrder(order_id=order_id, target=str(target)))
    return order.to_dict()


@orders_bp.route("/<order_id>/claim", methods=["POST"])
def claim(order_id: str):
    access = current_access()
    result = get_dispatch().execute(access, ClaimOrder(order_id=order_id, workstation_id=access.workstation_id or ""))
    # Declined claims are an expected outcome, reported as a conflict
    return result.to_dict(), (200 if result.claimed else 409)


@orders_bp.route("/pool", methods=["GET"])
def pool():
    return _orders_payload(get_dispatch().pool_orders(current_access()))


@orders_bp.route("/mine", methods=["GET"])
def mine():
    return _orders_payload(get_dispatch().workstation_orders(current_access()))


@orders_bp.route("/archive", methods=["GET"])
def archive():
    access = current_access()
    require_page(access, "archives")
    return _orders_payload(get_dispatch().archived_orders(access))


@orders_bp.route("/track/<ticket_id>", methods=["GET"])
def track(ticket_id: str):
    dispatch = get_dispatch()
    order = dispatch.track(ticket_id)
    if order is None:
        return {"error": f"Aucune commande trouvée pour le ticket {ticket_id}"}, 404

    step, total = dispatch.pipeline.progress(order.status)
    return {
        "ticketId": order.ticket_id,
        "status": order.status.value,
        "step": step,
        "totalSteps": total,
        "date": order.date,
    }
