"""
Pantry service - Flask application entry point.

The app factory:
1. Loads configuration and sets up logging
2. Builds the change bus, local key-value storage and backend selector
3. Reconnects to a previously configured remote database (silently falls
   back to local storage if that fails)
4. Seeds a starter catalog on an empty local install
5. Registers route blueprints and JSON error handlers

ARCHITECTURE:
    Request threads
    └── PantryService -> BackendSelector.store -> LocalStore | RemoteStore

    ChangeFeed thread (remote mode on PostgreSQL only)
    └── LISTEN pantry_changes -> ChangeBus.publish()

Observers (the /api/events stream) subscribe to the ChangeBus and refetch
on every signal.
"""

from __future__ import annotations

import asyncio
import atexit
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify

from logging_config import setup_logging, get_logger
from core.backend_selector import BackendSelector
from core.exceptions import PantryServiceError
from core.notification_bus import ChangeBus
from services.pantry_service import PantryService
from stores.key_value import KeyValueStore
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """
    Get the base path for the application.

    In PyInstaller bundle: Returns the directory containing the executable
    In development: Returns the directory containing app.py
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    return Path(__file__).parent


def create_app(
    config_object: str = "config.Config",
    overrides: Optional[Dict[str, Any]] = None,
) -> Flask:
    """
    Application factory - creates and configures the Flask app.

    Args:
        config_object: Import path of the config class
        overrides: Config values applied after the config class (tests)

    Returns:
        Configured Flask application
    """
    env_file = _get_base_path() / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)

    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting pantry service in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # STORAGE AND SERVICES
    # =========================================================================

    bus = ChangeBus()
    kv = KeyValueStore(
        Path(app.config["DATA_DIR"]),
        max_bytes=app.config.get("LOCAL_STORE_MAX_BYTES"),
    )
    selector = BackendSelector(
        kv,
        bus,
        remote_timeout=app.config.get("REMOTE_TIMEOUT_SECONDS", 10.0),
    )

    if selector.restore():
        logger.info("Restored remote mode from saved configuration")
    else:
        logger.info(f"Using local storage in {kv.directory}")

    service = PantryService(
        selector,
        bus,
        low_stock_threshold=app.config.get("LOW_STOCK_THRESHOLD", 10),
    )

    if app.config.get("SEED_ON_STARTUP"):
        seeded = asyncio.run(service.seed_initial_data())
        if seeded:
            logger.info(f"Seeded starter catalog ({seeded} items)")

    app.config["CHANGE_BUS"] = bus
    app.config["BACKEND_SELECTOR"] = selector
    app.config["PANTRY_SERVICE"] = service

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        selector.shutdown()
        logger.info("Shutdown complete")

    # Test apps are shut down by their fixtures
    if not app.config.get("TESTING"):
        atexit.register(cleanup)

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(PantryServiceError)
    def handle_service_error(e):
        logger.error(f"Unhandled service error: {e}")
        return jsonify({"success": False, "error": e.message}), 500

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return jsonify({"success": False, "error": "An unexpected error occurred."}), 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode, threaded=True)
