"""
Main routes (health check).
"""

from flask import Blueprint, current_app, jsonify

main_bp = Blueprint("main", __name__)


@main_bp.route("/health", methods=["GET"])
def health():
    """Liveness plus the storage mode this process is using."""
    selector = current_app.config["BACKEND_SELECTOR"]
    return jsonify({
        "status": "ok",
        "mode": "remote" if selector.is_remote else "local",
    })
