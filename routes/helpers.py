"""
Shared helpers for route handlers.

Services live in ``app.config`` (set up by ``create_app``); the caller's
access session lives in the Flask session cookie.
"""

from typing import Any, Dict

from flask import current_app, request, session

from core.exceptions import UnauthorizedError, ValidationError
from services.access import AccessGate, AccessSession
from services.dispatch import DispatchService
from services.sync_service import SyncService


SESSION_KEY = "access"


def get_dispatch() -> DispatchService:
    return current_app.config["DISPATCH_SERVICE"]


def get_sync() -> SyncService:
    return current_app.config["SYNC_SERVICE"]


def get_gate() -> AccessGate:
    return current_app.config["ACCESS_GATE"]


def subscription_active() -> bool:
    return get_sync().subscription.is_active()


def current_access() -> AccessSession:
    """The caller's access session (client mode when none is stored)."""
    return AccessSession.from_dict(session.get(SESSION_KEY))


def save_access(access: AccessSession) -> None:
    session[SESSION_KEY] = access.to_dict()
    session.modified = True


def require_page(access: AccessSession, page: str) -> None:
    """
    Raise if the caller's mode cannot open ``page`` under the current
    subscription (archives and workstation management close when expired).
    """
    if page not in get_gate().allowed_pages(access.mode, subscription_active()):
        raise UnauthorizedError(page, access.mode.value, "screen not available")


def json_body() -> Dict[str, Any]:
    """Request JSON object, or ValidationError."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
