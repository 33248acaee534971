"""
Workstation and notification routes.

Handles:
- GET    /workstations          - List (manager or workstation)
- POST   /workstations          - Add, generates the POSTE-XXXX code (manager)
- PATCH  /workstations/<id>     - Rename (manager)
- DELETE /workstations/<id>     - Delete, unassigning its orders (manager)
- GET    /notifications         - Notification log, newest first (manager)
- POST   /notifications/read    - Mark notifications read (manager)
"""

from flask import Blueprint

from core.exceptions import UnauthorizedError
from services.access import AccessMode
from routes.helpers import current_access, get_dispatch, json_body, require_page


workstations_bp = Blueprint("workstations", __name__)


@workstations_bp.route("/workstations", methods=["GET"])
def list_workstations():
    access = current_access()
    if access.mode is AccessMode.CLIENT:
        raise UnauthorizedError("list_workstations", access.mode.value)

    workstations = get_dispatch().list_workstations()
    if access.mode is AccessMode.WORKSTATION:
        # Transfer targets only; access codes stay with the manager
        return {"workstations": [{"id": w.id, "name": w.name} for w in workstations]}
    return {"workstations": [w.to_dict() for w in workstations]}


@workstations_bp.route("/workstations", methods=["POST"])
def add_workstation():
    access = current_access()
    require_page(access, "gestionPostes")
    workstation = get_dispatch().add_workstation(access, str(json_body().get("name", "")))
    return workstation.to_dict(), 201


@workstations_bp.route("/workstations/<workstation_id>", methods=["PATCH"])
def rename_workstation(workstation_id: str):
    access = current_access()
    require_page(access, "gestionPostes")
    workstation = get_dispatch().rename_workstation(access, workstation_id, str(json_body().get("name", "")))
    return workstation.to_dict()


@workstations_bp.route("/workstations/<workstation_id>", methods=["DELETE"])
def delete_workstation(workstation_id: str):
    access = current_access()
    require_page(access, "gestionPostes")
    released = get_dispatch().delete_workstation(access, workstation_id)
    return {"deleted": workstation_id, "ordersUnassigned": released}


@workstations_bp.route("/notifications", methods=["GET"])
def notifications():
    dispatch = get_dispatch()
    items = dispatch.notifications(current_access())
    return {
        "notifications": [n.to_dict() for n in items],
        "unread": dispatch.unread_count(),
    }


@workstations_bp.route("/notifications/read", methods=["POST"])
def mark_read():
    ids = json_body().get("ids") or []
    changed = get_dispatch().mark_notifications_read(current_access(), [str(i) for i in ids])
    return {"marked": changed}
