"""
API routes.

Handles:
- /health - Health check with sync status
"""

from flask import Blueprint, current_app

from routes.helpers import get_sync


api_bp = Blueprint("api", __name__)


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    sync_service = get_sync()
    stats = sync_service.stats()
    health_status["sync"] = stats

    if sync_service.is_running:
        health_status["checks"]["sync"] = "ok" if stats["consecutive_failures"] == 0 else "failing"
    elif not current_app.config.get("SYNC_BACKGROUND", True):
        health_status["checks"]["sync"] = "disabled"
    else:
        health_status["checks"]["sync"] = "not_running"

    if health_status["checks"]["sync"] not in ("ok", "disabled"):
        health_status["status"] = "degraded"

    health_status["checks"]["subscription"] = (
        "active" if sync_service.subscription.is_active() else "inactive"
    )

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code
