"""
Flask route blueprints for Atelier Dispatch.

This module contains all route handlers organized by functionality:
- api: Health check
- access: Mode switching (client / manager / workstation)
- orders: Pipeline, dispatch and claim operations
- workstations: Workstation management and notifications

Each blueprint is registered with the Flask app in create_app().
"""

from .api import api_bp
from .access import access_bp
from .orders import orders_bp
from .workstations import workstations_bp

__all__ = [
    "api_bp",
    "access_bp",
    "orders_bp",
    "workstations_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(api_bp)
    app.register_blueprint(access_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(workstations_bp)
