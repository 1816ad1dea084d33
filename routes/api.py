"""
Catalog and order API routes (JSON).

Handles:
- /api/items               - List catalog, add or restock an item
- /api/items/<id>          - Delete an item
- /api/items/low-stock     - Items running low
- /api/items/out-of-stock  - Items at zero
- /api/orders              - List orders, place an order
- /api/orders/<id>/status  - Move an order along its lifecycle
- /api/orders/summary      - Order counts for the staff dashboard
"""

import bleach
from flask import (
    Blueprint,
    current_app,
    jsonify,
    request,
)

from core.exceptions import InvalidStatusTransitionError
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")

# Constants
MAX_NAME_LENGTH = 120
MAX_NOTES_LENGTH = 1000
MAX_ROOM_LENGTH = 40


def _sanitize_text(text, max_length: int = None) -> str:
    """Sanitize user input text."""
    if not text:
        return ""
    text = str(text).strip()
    text = bleach.clean(text, tags=[], strip=True)
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def _service():
    return current_app.config["PANTRY_SERVICE"]


def _bad_request(message: str, status: int = 400):
    return jsonify({"success": False, "error": message}), status


# =============================================================================
# ITEMS
# =============================================================================

@api_bp.route("/items", methods=["GET"])
async def list_items():
    items = await _service().get_items()
    return jsonify([item.to_dict() for item in items])


@api_bp.route("/items", methods=["POST"])
async def add_item():
    """
    Add a new item or restock an existing one.

    Body: {name, quantity, unit, category?, expiryDate?, notes?}
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _bad_request("Expected a JSON object")

    candidate = {
        "name": _sanitize_text(payload.get("name"), MAX_NAME_LENGTH),
        "quantity": payload.get("quantity"),
        "unit": _sanitize_text(payload.get("unit"), MAX_NAME_LENGTH),
        "category": _sanitize_text(payload.get("category"), MAX_NAME_LENGTH),
        "expiryDate": _sanitize_text(payload.get("expiryDate"), 40),
        "notes": _sanitize_text(payload.get("notes"), MAX_NOTES_LENGTH),
    }

    result = await _service().add_or_update_item(candidate)
    if not result.success:
        return jsonify(result.to_dict()), 400
    return jsonify(result.to_dict()), 200 if result.restocked else 201


@api_bp.route("/items/<item_id>", methods=["DELETE"])
async def delete_item(item_id: str):
    result = await _service().delete_item(item_id)
    if not result.success:
        return jsonify(result.to_dict()), 503
    return jsonify(result.to_dict())


@api_bp.route("/items/low-stock", methods=["GET"])
async def low_stock_items():
    threshold = request.args.get("threshold", type=int)
    items = await _service().get_low_stock_items(threshold)
    return jsonify([item.to_dict() for item in items])


@api_bp.route("/items/out-of-stock", methods=["GET"])
async def out_of_stock_items():
    items = await _service().get_out_of_stock_items()
    return jsonify([item.to_dict() for item in items])


# =============================================================================
# ORDERS
# =============================================================================

@api_bp.route("/orders", methods=["GET"])
async def list_orders():
    orders = await _service().get_orders()
    return jsonify([order.to_dict() for order in orders])


@api_bp.route("/orders", methods=["POST"])
async def place_order():
    """
    Place an order.

    Body: {roomNumber, items: [{itemId, quantity}, ...]}

    Item names and units are taken from the catalog at this moment.
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _bad_request("Expected a JSON object")

    room_number = _sanitize_text(payload.get("roomNumber"), MAX_ROOM_LENGTH)
    lines = payload.get("items")
    if not isinstance(lines, list) or not all(isinstance(line, dict) for line in lines):
        return _bad_request("items must be a list of {itemId, quantity}")

    service = _service()
    order = await service.build_order(room_number, lines)
    result = await service.place_order(order)

    if result.success:
        return jsonify(result.to_dict()), 201
    if result.stock_shortage:
        return jsonify(result.to_dict()), 409
    return jsonify(result.to_dict()), 400


@api_bp.route("/orders/<order_id>/status", methods=["PATCH"])
async def update_order_status(order_id: str):
    """Body: {status: "preparing" | "delivered" | "cancelled"}"""
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        return _bad_request("status is required")

    try:
        result = await _service().update_order_status(order_id, status)
    except InvalidStatusTransitionError as e:
        logger.warning(f"Rejected status change: {e.message}")
        return _bad_request(e.message, 409)

    if not result.success:
        return jsonify(result.to_dict()), 400
    return jsonify(result.to_dict())


@api_bp.route("/orders/summary", methods=["GET"])
async def order_summary():
    summary = await _service().get_order_summary()
    return jsonify(summary.to_dict())
