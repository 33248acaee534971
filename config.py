"""
Configuration for Atelier Dispatch.

The remote aggregate store is required: the app hydrates its ledger from it
at startup and fails fast if it cannot.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env early so environment variables are visible to the Config classes
load_dotenv(override=True)

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    SESSION_COOKIE_NAME = "atelier_session"
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # Remote aggregate store (GET /atelier/{id}, PUT /atelier/{id}/data)
    ATELIER_API_URL = os.environ.get("ATELIER_API_URL", "http://localhost:5000/api")
    ATELIER_API_TOKEN = os.environ.get("ATELIER_API_TOKEN", "")
    ATELIER_ID = os.environ.get("ATELIER_ID", "")
    REMOTE_TIMEOUT_SECONDS = float(os.environ.get("REMOTE_TIMEOUT_SECONDS", "10"))

    # ==========================================================================
    # Persistence Synchronizer
    # ==========================================================================
    # SYNC_DEBOUNCE_SECONDS: quiet period after the last mutation before the
    #   whole aggregate is written back. Mutations inside the window coalesce.
    #
    # SYNC_POLL_INTERVAL_SECONDS: how often the sync thread wakes to check.
    #   Must be well below the debounce window.
    #
    # SYNC_RETRY_BASE_SECONDS / SYNC_RETRY_MAX_SECONDS: backoff after a
    #   failed write. Doubles per consecutive failure, capped at the max.
    # ==========================================================================
    SYNC_DEBOUNCE_SECONDS = float(os.environ.get("SYNC_DEBOUNCE_SECONDS", "1.0"))
    SYNC_POLL_INTERVAL_SECONDS = float(os.environ.get("SYNC_POLL_INTERVAL_SECONDS", "0.1"))
    SYNC_RETRY_BASE_SECONDS = float(os.environ.get("SYNC_RETRY_BASE_SECONDS", "2.0"))
    SYNC_RETRY_MAX_SECONDS = float(os.environ.get("SYNC_RETRY_MAX_SECONDS", "60.0"))

    # "permissive" (any state to any state) or "sequential" (one step at a time)
    PIPELINE_TRANSITION_POLICY = os.environ.get("PIPELINE_TRANSITION_POLICY", "permissive")

    # Logging. LOG_LEVEL is a level name; empty means DEBUG when DEBUG is on,
    # INFO otherwise. Files under LOG_DIR are only written in production.
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "")
    LOG_DIR = os.environ.get("LOG_DIR", str(BASE_DIR / "logs"))
    LOG_FILE_MAX_BYTES = int(os.environ.get("LOG_FILE_MAX_BYTES", str(10 * 1024 * 1024)))
    LOG_FILE_BACKUP_COUNT = int(os.environ.get("LOG_FILE_BACKUP_COUNT", "5"))

    # Run the sync thread. Tests turn it off and drive SyncService.tick() directly
    SYNC_BACKGROUND = True


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 3600  # 1 hour


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    SECRET_KEY = "testing-secret-key"
    ATELIER_ID = "atelier-test"
    SYNC_DEBOUNCE_SECONDS = 1.0
    SYNC_POLL_INTERVAL_SECONDS = 0.05
    SYNC_BACKGROUND = False
