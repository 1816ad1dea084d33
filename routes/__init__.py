"""
Flask route blueprints for the pantry service.

- main: Health check
- api: Catalog and order JSON endpoints
- settings: Remote backend connect/disconnect
- events: Server-sent change signal stream

Each blueprint is registered with the Flask app in create_app().
"""

from .main import main_bp
from .api import api_bp
from .settings import settings_bp
from .events import events_bp

__all__ = [
    "main_bp",
    "api_bp",
    "settings_bp",
    "events_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(main_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(events_bp)
