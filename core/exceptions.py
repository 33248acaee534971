"""
Custom exceptions for Atelier Dispatch.

Exception Hierarchy:
    AtelierDispatchError (base)
    ├── NotFoundError
    │   ├── OrderNotFoundError        - Unknown order id
    │   ├── WorkstationNotFoundError  - Unknown workstation id (assign target)
    │   └── AtelierNotFoundError      - Remote store has no such atelier
    ├── UnauthorizedError             - Operation not allowed in current mode
    ├── ValidationError
    │   ├── InvalidStatusError        - Not one of the five pipeline states
    │   └── InvalidTransitionError    - Rejected by a strict transition policy
    └── StoreUnavailableError         - Remote aggregate store unreachable

Usage:
    StoreUnavailableError during startup hydration makes the app fail fast.
    Everything else is raised to the request handler, which renders it as JSON
    with the status code in ``http_status``.

A declined claim is NOT an exception: see ``ClaimResult``.
"""

from typing import Optional, Dict, Any


class AtelierDispatchError(Exception):
    """
    Base exception for all Atelier Dispatch errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """JSON body for error responses."""
        return {"error": self.message, "details": self.details}


# =============================================================================
# LOOKUP ERRORS
# =============================================================================

class NotFoundError(AtelierDispatchError):
    """A referenced entity does not exist."""

    http_status = 404


class OrderNotFoundError(NotFoundError):
    """No order with the given id exists in the ledger."""

    def __init__(self, order_id: str):
        super().__init__(f"Order not found: {order_id}", {"order_id": order_id})
        self.order_id = order_id


class WorkstationNotFoundError(NotFoundError):
    """
    No workstation with the given id exists.

    Raised instead of writing a dangling ``workstationId`` onto an order.
    """

    def __init__(self, workstation_id: str):
        super().__init__(
            f"Workstation not found: {workstation_id}",
            {"workstation_id": workstation_id}
        )
        self.workstation_id = workstation_id


class AtelierNotFoundError(NotFoundError):
    """The remote store answered 404 for the atelier."""

    def __init__(self, atelier_id: str):
        super().__init__(f"Atelier not found: {atelier_id}", {"atelier_id": atelier_id})
        self.atelier_id = atelier_id


# =============================================================================
# ACCESS ERRORS
# =============================================================================

class UnauthorizedError(AtelierDispatchError):
    """
    The caller's access mode does not permit the operation.

    Always raised before the ledger is touched.
    """

    http_status = 403

    def __init__(self, operation: str, mode: str, reason: Optional[str] = None):
        message = f"'{operation}' is not permitted in {mode} mode"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"operation": operation, "mode": mode})
        self.operation = operation
        self.mode = mode


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class ValidationError(AtelierDispatchError):
    """Input is well-formed JSON but not a valid value for the domain."""

    http_status = 400


class InvalidStatusError(ValidationError):
    """Value is not one of the pipeline states."""

    def __init__(self, value: Any):
        super().__init__(f"Unknown order status: {value!r}", {"value": value})
        self.value = value


class InvalidTransitionError(ValidationError):
    """Transition rejected by the configured transition policy."""

    def __init__(self, current: str, target: str, policy: str):
        super().__init__(
            f"Transition from '{current}' to '{target}' is not allowed",
            {"current": current, "target": target, "policy": policy}
        )
        self.current = current
        self.target = target
        self.policy = policy


# =============================================================================
# REMOTE STORE ERRORS
# =============================================================================

class StoreUnavailableError(AtelierDispatchError):
    """
    Remote aggregate store failed to answer with a 2xx.

    Typical causes:
    - Backend not running or network unreachable
    - Timeout
    - Server-side error (5xx)
    """

    http_status = 503

    def __init__(self, operation: str, reason: str, status_code: Optional[int] = None):
        details: Dict[str, Any] = {"operation": operation, "reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(f"Remote store {operation} failed: {reason}", details)
        self.operation = operation
        self.reason = reason
        self.status_code = status_code
