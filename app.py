"""
Atelier Dispatch - Flask Application Entry Point.

This is a slim app factory that:
1. Hydrates the order ledger from the remote store (fail-fast)
2. Starts the sync service (separate thread)
3. Wires the dispatch service, pipeline and access gate
4. Registers route blueprints
5. Sets up JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Hydration (GET /atelier/{id})
    ├── Flask request handling (mutations under the ledger lock)
    └── Cleanup on shutdown (final flush, close HTTP client)

    Sync Thread (background)
    └── Debounced PUT /atelier/{id}/data of the whole aggregate

The ledger is the only shared state. Request threads mutate it, the sync
thread only reads deep-copied snapshots of it.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask

from logging_config import setup_logging, get_logger
from core.exceptions import AtelierDispatchError, AtelierNotFoundError, StoreUnavailableError
from core.remote_store import RemoteAtelierStore
from services.access import AccessGate
from services.dispatch import DispatchService
from services.ledger import OrderLedger
from services.notifications import NotificationEmitter
from services.pipeline import PipelineStateMachine, TransitionPolicy
from services.sync_service import SyncService
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """
    Get the base path for the application.

    In a frozen bundle: Returns the directory containing the executable
    In development: Returns the directory containing app.py
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent


def create_app(config_object: str = "config.Config", store=None) -> Flask:
    """
    Application factory - creates and configures Flask app.

    FAIL-FAST: If the workshop aggregate cannot be loaded, the app will not
    start. Serving an empty ledger would overwrite the remote data on the
    first flush.

    Args:
        config_object: Import path of the config class
        store: Pre-built remote store (tests inject a fake one)

    Returns:
        Configured Flask application

    Raises:
        AtelierNotFoundError: If ATELIER_ID does not exist remotely
        StoreUnavailableError: If the remote store cannot be reached
    """
    # Load .env from base path; .env always takes precedence over the shell
    env_file = _get_base_path() / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)

    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging (LOG_LEVEL wins over the DEBUG default)
    default_level = "DEBUG" if app.config.get("DEBUG") else "INFO"
    log_level = logging.getLevelName(str(app.config.get("LOG_LEVEL") or default_level).upper())
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown LOG_LEVEL: {app.config.get('LOG_LEVEL')}")

    root_logger = setup_logging(
        atelier_id=app.config.get("ATELIER_ID") or "-",
        log_level=log_level,
        log_dir=app.config.get("LOG_DIR") or None,
        enable_file_logging=app.config.get("ENVIRONMENT") == "production",
        max_bytes=app.config.get("LOG_FILE_MAX_BYTES", 10 * 1024 * 1024),
        backup_count=app.config.get("LOG_FILE_BACKUP_COUNT", 5),
    )

    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting Atelier Dispatch in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # CORE INITIALIZATION (FAIL-FAST)
    # =========================================================================

    atelier_id = app.config.get("ATELIER_ID")
    if not atelier_id:
        raise ValueError("ATELIER_ID must be configured")

    if store is None:
        store = RemoteAtelierStore(
            base_url=app.config["ATELIER_API_URL"],
            token=app.config.get("ATELIER_API_TOKEN") or None,
            timeout_seconds=app.config.get("REMOTE_TIMEOUT_SECONDS", 10.0),
        )

    ledger = OrderLedger()
    sync_service = SyncService(
        ledger,
        store,
        atelier_id,
        debounce_seconds=app.config.get("SYNC_DEBOUNCE_SECONDS", 1.0),
        poll_interval_seconds=app.config.get("SYNC_POLL_INTERVAL_SECONDS", 0.1),
        retry_base_seconds=app.config.get("SYNC_RETRY_BASE_SECONDS", 2.0),
        retry_max_seconds=app.config.get("SYNC_RETRY_MAX_SECONDS", 60.0),
    )

    try:
        snapshot = sync_service.hydrate()
        logger.info(f"Atelier '{snapshot.name or atelier_id}' loaded")
    except (AtelierNotFoundError, StoreUnavailableError) as e:
        logger.error(f"FATAL: Cannot start application - {e}")
        raise

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    pipeline = PipelineStateMachine(
        TransitionPolicy.from_config(app.config.get("PIPELINE_TRANSITION_POLICY", "permissive"))
    )
    gate = AccessGate()
    dispatch_service = DispatchService(
        ledger,
        pipeline=pipeline,
        emitter=NotificationEmitter(),
        gate=gate,
    )

    app.config["LEDGER"] = ledger
    app.config["ACCESS_GATE"] = gate
    app.config["DISPATCH_SERVICE"] = dispatch_service
    app.config["SYNC_SERVICE"] = sync_service

    if app.config.get("SYNC_BACKGROUND", True):
        sync_service.start()
        logger.info("Sync service started")
    else:
        logger.info("Sync background thread disabled")

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")

        # Stop sync thread and flush the last debounce window
        if sync_service:
            sync_service.stop()

        if store:
            store.close()

        logger.info("Shutdown complete")

    atexit.register(cleanup)
    app.extensions["atelier_cleanup"] = cleanup

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(AtelierDispatchError)
    def handle_domain_error(e: AtelierDispatchError):
        if e.http_status >= 500:
            logger.error(f"{type(e).__name__}: {e}")
        else:
            logger.info(f"Rejected request - {type(e).__name__}: {e}")
        return e.to_dict(), e.http_status

    @app.errorhandler(404)
    def handle_not_found(e):
        return {"error": "Not found"}, 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return {"error": "An unexpected error occurred"}, 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    # The reloader would hydrate and start a second sync thread
    app.run(debug=debug_mode, use_reloader=False)
