"""
Remote backend settings routes.

Handles:
- GET    /api/settings/remote - Current mode and endpoint (never the credential)
- POST   /api/settings/remote - Connect to a shared database
- DELETE /api/settings/remote - Disconnect and return to local mode
"""

from flask import (
    Blueprint,
    current_app,
    jsonify,
    request,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


def _selector():
    return current_app.config["BACKEND_SELECTOR"]


def _display_endpoint(endpoint: str) -> str:
    try:
        return make_url(endpoint).render_as_string(hide_password=True)
    except (ArgumentError, ValueError):
        return ""


@settings_bp.route("/remote", methods=["GET"])
def remote_status():
    selector = _selector()
    config = selector.current_config()
    return jsonify({
        "mode": "remote" if selector.is_remote else "local",
        "endpoint": _display_endpoint(config.endpoint) if config else None,
        "hasCredential": bool(config and config.credential),
    })


@settings_bp.route("/remote", methods=["POST"])
def connect_remote():
    """
    Body: {endpoint, credential?, createSchema?}

    endpoint is a database URL such as postgresql://user@host/db; the
    credential is used as its password.
    """
    payload = request.get_json(silent=True) or {}
    endpoint = (payload.get("endpoint") or "").strip()
    credential = payload.get("credential") or ""
    create_schema = bool(
        payload.get("createSchema", current_app.config.get("REMOTE_CREATE_SCHEMA", False))
    )

    if not endpoint:
        return jsonify({"success": False, "error": "Please provide an endpoint."}), 400

    if not _selector().configure(endpoint, credential, create_schema=create_schema):
        return jsonify({"success": False, "error": "Failed to initialize remote backend."}), 400

    logger.info(f"Connected to {_display_endpoint(endpoint)}")
    return jsonify({"success": True, "mode": "remote"})


@settings_bp.route("/remote", methods=["DELETE"])
def disconnect_remote():
    _selector().teardown()
    return jsonify({"success": True, "mode": "local"})
