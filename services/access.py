"""
Access-mode gate.

Three modes share one workshop space:

    client       - public display mode, the default and the "logged out" state
    manager      - full control, unlocked with the workshop's manager code
    workstation  - bound to one Workstation, unlocked with its POSTE-XXXX code

The gate decides which screens each mode may show and which dispatch
operations it may perform. Subscription state only narrows the manager's
screen list; it never blocks orders, clients or the kanban board.

An ``AccessSession`` is a plain value. The HTTP layer stores it in the Flask
session cookie; tests build one directly.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Any, Iterable, Optional, Tuple

from core.exceptions import UnauthorizedError
from models.workstation import Workstation
from logging_config import get_logger


logger = get_logger(__name__)


class AccessMode(Enum):
    CLIENT = "client"
    MANAGER = "manager"
    WORKSTATION = "workstation"


CLIENT_PAGES: Tuple[str, ...] = (
    "accueil", "catalogue", "modeleDuMois", "favoris", "suiviCommande", "requestAppointment",
)

ACTIVE_MANAGER_PAGES: Tuple[str, ...] = (
    "dashboard", "clients", "commandes", "gestion", "gestionPostes", "agenda",
    "fournitures", "archives", "finances", "accueil", "catalogue", "modeleDuMois",
    "favoris", "suiviCommande", "studio", "tutoriels", "gestionTutoriels",
    "settings", "avisAtelier",
)

# No dashboard, finances, archives, gestionPostes or fournitures once expired
EXPIRED_MANAGER_PAGES: Tuple[str, ...] = (
    "clients", "commandes", "gestion", "agenda", "accueil", "catalogue",
    "modeleDuMois", "settings",
)

WORKSTATION_PAGES: Tuple[str, ...] = ("accueil", "salleCommandes")


@dataclass(frozen=True)
class AccessSession:
    """Who is acting, and which screen they are on."""

    mode: AccessMode = AccessMode.CLIENT
    workstation_id: Optional[str] = None
    page: str = "accueil"

    @property
    def is_manager(self) -> bool:
        return self.mode is AccessMode.MANAGER

    @property
    def is_workstation(self) -> bool:
        return self.mode is AccessMode.WORKSTATION and self.workstation_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "workstationId": self.workstation_id,
            "page": self.page,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AccessSession":
        """Rebuild from cookie data; anything unreadable falls back to client mode."""
        data = data or {}
        try:
            mode = AccessMode(data.get("mode", AccessMode.CLIENT.value))
        except ValueError:
            mode = AccessMode.CLIENT
        workstation_id = data.get("workstationId") if mode is AccessMode.WORKSTATION else None
        if mode is AccessMode.WORKSTATION and not workstation_id:
            mode = AccessMode.CLIENT
        return cls(mode=mode, workstation_id=workstation_id, page=data.get("page") or "accueil")


class AccessGate:
    """Mode switching, page allow-lists and operation permissions."""

    @staticmethod
    def allowed_pages(mode: AccessMode, subscription_active: bool) -> Tuple[str, ...]:
        if mode is AccessMode.MANAGER:
            return ACTIVE_MANAGER_PAGES if subscription_active else EXPIRED_MANAGER_PAGES
        if mode is AccessMode.WORKSTATION:
            return WORKSTATION_PAGES
        return CLIENT_PAGES

    @staticmethod
    def default_page(mode: AccessMode, subscription_active: bool) -> str:
        if mode is AccessMode.MANAGER:
            return "dashboard" if subscription_active else "clients"
        return "accueil"

    def enforce(self, session: AccessSession, subscription_active: bool) -> AccessSession:
        """
        Redirect to the mode's default page if the current one is not allowed.

        Run after every mode switch, navigation or subscription change.
        """
        if session.page in self.allowed_pages(session.mode, subscription_active):
            return session
        target = self.default_page(session.mode, subscription_active)
        logger.debug(f"Page '{session.page}' not allowed in {session.mode.value} mode, redirecting to '{target}'")
        return replace(session, page=target)

    def navigate(self, session: AccessSession, page: str, subscription_active: bool) -> AccessSession:
        return self.enforce(replace(session, page=page), subscription_active)

    def switch_mode(
        self,
        session: AccessSession,
        mode: AccessMode,
        subscription_active: bool,
        workstation_id: Optional[str] = None,
    ) -> AccessSession:
        """
        Change mode while keeping the current page when the new mode allows it.

        No credential check: use ``login_manager`` / ``login_workstation``
        for user-initiated switches.
        """
        bound = workstation_id if mode is AccessMode.WORKSTATION else None
        return self.enforce(replace(session, mode=mode, workstation_id=bound), subscription_active)

    def login_manager(
        self,
        session: AccessSession,
        code: str,
        manager_access_code: str,
        subscription_active: bool,
    ) -> Tuple[bool, AccessSession]:
        """
        Unlock manager mode.

        Returns:
            (success, new session). On failure the session is returned unchanged.
        """
        if not manager_access_code or code != manager_access_code:
            logger.warning("Manager login rejected: wrong access code")
            return False, session

        logger.info("Manager mode unlocked")
        return True, AccessSession(
            mode=AccessMode.MANAGER,
            page=self.default_page(AccessMode.MANAGER, subscription_active),
        )

    def login_workstation(
        self,
        session: AccessSession,
        code: str,
        workstations: Iterable[Workstation],
    ) -> Tuple[bool, AccessSession, Optional[Workstation]]:
        """
        Unlock workstation mode by access code.

        The input is stripped and upper-cased before an exact comparison.

        Returns:
            (success, new session, matched workstation or None)
        """
        normalized = (code or "").strip().upper()
        workstation = next((w for w in workstations if w.access_code == normalized), None)
        if workstation is None:
            logger.warning("Workstation login rejected: unknown access code")
            return False, session, None

        logger.info(f"Workstation mode unlocked for '{workstation.name}'")
        return True, AccessSession(
            mode=AccessMode.WORKSTATION,
            workstation_id=workstation.id,
            page="accueil",
        ), workstation

    @staticmethod
    def logout(session: AccessSession) -> AccessSession:
        """Leave manager/workstation mode. Always lands in client mode."""
        if session.mode is not AccessMode.CLIENT:
            logger.info(f"Leaving {session.mode.value} mode")
        return AccessSession()

    @staticmethod
    def require(session: AccessSession, operation: str, *modes: AccessMode) -> None:
        """
        Raise unless the session is in one of ``modes``.

        Raises:
            UnauthorizedError
        """
        if session.mode not in modes:
            logger.warning(f"'{operation}' refused in {session.mode.value} mode")
            raise UnauthorizedError(operation, session.mode.value)
        if session.mode is AccessMode.WORKSTATION and not session.workstation_id:
            logger.warning(f"'{operation}' refused: no workstation bound")
            raise UnauthorizedError(operation, session.mode.value, "no workstation bound")
