"""
Access-mode routes.

Handles:
- GET  /session              - Current mode, bound workstation and page
- POST /session/manager      - Unlock manager mode with the manager code
- POST /session/workstation  - Unlock workstation mode with a POSTE-XXXX code
- POST /session/logout       - Back to client mode
- POST /session/navigate     - Change screen (redirects if not allowed)
"""

from flask import Blueprint

from routes.helpers import (
    current_access,
    get_dispatch,
    get_gate,
    json_body,
    save_access,
    subscription_active,
)
from logging_config import get_logger


logger = get_logger(__name__)

access_bp = Blueprint("access", __name__, url_prefix="/session")


def _session_payload(access, **extra):
    payload = access.to_dict()
    payload["subscriptionActive"] = subscription_active()
    payload.update(extra)
    return payload


@access_bp.route("", methods=["GET"])
def show():
    """Current access session, with the page allow-list enforced."""
    access = get_gate().enforce(current_access(), subscription_active())
    save_access(access)
    return _session_payload(access)


@access_bp.route("/manager", methods=["POST"])
def manager_login():
    code = str(json_body().get("code", ""))
    with get_dispatch().ledger.reading() as data:
        manager_code = data.manager_access_code

    ok, access = get_gate().login_manager(current_access(), code, manager_code, subscription_active())
    if not ok:
        return {"error": "Code d'accès incorrect"}, 401

    save_access(access)
    return _session_payload(access)


@access_bp.route("/workstation", methods=["POST"])
def workstation_login():
    code = str(json_body().get("code", ""))
    workstations = get_dispatch().list_workstations()

    ok, access, workstation = get_gate().login_workstation(current_access(), code, workstations)
    if not ok:
        return {"error": "Code de poste invalide"}, 401

    save_access(access)
    return _session_payload(access, workstation=workstation.to_dict())


@access_bp.route("/logout", methods=["POST"])
def logout():
    access = get_gate().logout(current_access())
    save_access(access)
    return _session_payload(access)


@access_bp.route("/navigate", methods=["POST"])
def navigate():
    page = str(json_body().get("page", ""))
    access = get_gate().navigate(current_access(), page, subscription_active())
    save_access(access)
    return _session_payload(access, redirected=access.page != page)
