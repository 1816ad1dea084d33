"""
Entity field <-> database column translation.

Entities use compact camelCase field names (``addedDate``); the database
uses underscore column names (``added_date``). Every remote read and write
goes through the functions in this module, so a field is either mapped
here or not stored at all.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, Mapping

from models.order import Order
from models.pantry_item import PantryItem


ITEM_COLUMNS: Dict[str, str] = {
    "id": "id",
    "name": "name",
    "quantity": "quantity",
    "unit": "unit",
    "category": "category",
    "addedDate": "added_date",
    "expiryDate": "expiry_date",
    "notes": "notes",
    "imageUrl": "image_url",
}

ORDER_COLUMNS: Dict[str, str] = {
    "id": "id",
    "roomNumber": "room_number",
    "items": "items",
    "status": "status",
    "timestamp": "timestamp",
    "completedAt": "completed_at",
}


def _to_text(value: Any) -> Any:
    # Tables created elsewhere may use timestamp columns
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if isinstance(value, date):
        return value.isoformat()
    return value


def to_columns(fields: Mapping[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    """Rename entity fields to columns. Fields without a column are dropped."""
    return {column: fields.get(field) for field, column in mapping.items()}


def from_columns(row: Mapping[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    """Rename columns to entity fields. Unknown columns are ignored."""
    return {
        field: _to_text(row[column])
        for field, column in mapping.items()
        if column in row
    }


def item_to_row(item: PantryItem) -> Dict[str, Any]:
    return to_columns(item.to_dict(), ITEM_COLUMNS)


def item_from_row(row: Mapping[str, Any]) -> PantryItem:
    return PantryItem.from_dict(from_columns(row, ITEM_COLUMNS))


def order_to_row(order: Order) -> Dict[str, Any]:
    return to_columns(order.to_dict(), ORDER_COLUMNS)


def order_from_row(row: Mapping[str, Any]) -> Order:
    return Order.from_dict(from_columns(row, ORDER_COLUMNS))
