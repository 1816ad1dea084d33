"""
Catalog data models.

A PantryItem is one orderable line of stock. Items are mutable records:
merge-add raises the quantity, order placement lowers it, and nothing else
changes after creation except category and expiry on restock.

Serialization:
    to_dict()/from_dict() use the compact camelCase field names
    (``addedDate``, ``expiryDate``, ``imageUrl``). That is the shape kept
    in local storage and returned by the API; the remote store translates
    it to column names in stores/field_mapping.py.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional


class Category(str, Enum):
    """Catalog classification. Free-form strings are accepted too."""

    BEVERAGES = "Beverages"
    SNACKS = "Snacks"
    FOOD = "Food"
    STATIONERY = "Stationery"
    ELECTRONICS = "Electronics"
    OTHER = "Other"


class Unit(str, Enum):
    """Unit of measure. Free-form strings are accepted too."""

    PIECE = "pc"
    PACK = "pack"
    BOTTLE = "bottle"
    CAN = "can"
    CUP = "cup"
    PLATE = "plate"


DEFAULT_CATEGORY = Category.OTHER.value


def utc_timestamp() -> str:
    """Current time as an ISO 8601 UTC string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_id() -> str:
    return str(uuid.uuid4())


def _plain(value: Any) -> Any:
    # Enum members compare equal to their values but serialize differently
    return value.value if isinstance(value, Enum) else value


def normalize_name(name: str) -> str:
    """Dedup form of an item name: trimmed and lowercased."""
    return (name or "").strip().lower()


@dataclass
class ItemCandidate:
    """
    Input to merge-add: everything about an item except its identity.

    Built from user input; the service decides whether it becomes a new
    PantryItem or is merged into an existing one.
    """

    name: str
    quantity: int
    unit: str = Unit.PIECE.value
    category: str = DEFAULT_CATEGORY
    expiry_date: Optional[str] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None

    def __post_init__(self):
        self.unit = _plain(self.unit)
        self.category = _plain(self.category) or DEFAULT_CATEGORY

    @property
    def dedup_key(self) -> tuple:
        return (normalize_name(self.name), self.unit)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ItemCandidate":
        """Create from an API payload (camelCase keys)."""
        return cls(
            name=data.get("name", ""),
            quantity=data.get("quantity", 0),
            unit=data.get("unit") or Unit.PIECE.value,
            category=data.get("category") or DEFAULT_CATEGORY,
            expiry_date=data.get("expiryDate") or None,
            notes=data.get("notes") or None,
            image_url=data.get("imageUrl") or None,
        )


@dataclass
class PantryItem:
    """
    A catalog entry.

    Invariants (enforced by the service):
        - quantity >= 0
        - no two items share dedup_key
    """

    id: str
    """Opaque identifier, assigned at creation."""

    name: str
    """Display name."""

    quantity: int
    """Available stock."""

    unit: str
    """Unit value ('pc', 'cup', ...) or a custom string."""

    category: str = DEFAULT_CATEGORY
    """Category value or a custom string."""

    added_date: str = ""
    """ISO timestamp of creation."""

    expiry_date: Optional[str] = None
    """Optional ISO timestamp, informational only."""

    notes: Optional[str] = None

    image_url: Optional[str] = None

    def __post_init__(self):
        self.unit = _plain(self.unit)
        self.category = _plain(self.category)

    @property
    def dedup_key(self) -> tuple:
        return (normalize_name(self.name), self.unit)

    @property
    def is_out_of_stock(self) -> bool:
        return self.quantity <= 0

    def is_low_stock(self, threshold: int) -> bool:
        """Low stock means some left but no more than threshold; zero is out of stock."""
        return 0 < self.quantity <= threshold

    @classmethod
    def create(cls, candidate: ItemCandidate) -> "PantryItem":
        """Build a brand-new item with a fresh id and creation time."""
        return cls(
            id=new_id(),
            name=candidate.name.strip(),
            quantity=candidate.quantity,
            unit=candidate.unit,
            category=candidate.category,
            added_date=utc_timestamp(),
            expiry_date=candidate.expiry_date,
            notes=candidate.notes,
            image_url=candidate.image_url,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "category": self.category,
            "addedDate": self.added_date,
            "expiryDate": self.expiry_date,
        }
        if self.notes is not None:
            data["notes"] = self.notes
        if self.image_url is not None:
            data["imageUrl"] = self.image_url
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PantryItem":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            quantity=int(data.get("quantity") or 0),
            unit=data.get("unit") or Unit.PIECE.value,
            category=data.get("category") or DEFAULT_CATEGORY,
            added_date=data.get("addedDate") or "",
            expiry_date=data.get("expiryDate") or None,
            notes=data.get("notes"),
            image_url=data.get("imageUrl"),
        )
