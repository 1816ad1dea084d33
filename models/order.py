"""
Order data models.

An Order is a guest request for one or more catalog items, worked through
by staff from the queue.

Lifecycle:
    pending -> preparing -> delivered
    pending -> cancelled
    preparing -> cancelled

delivered and cancelled are terminal: completed_at is stamped on entry and
nothing moves the order afterwards.

OrderItem lines are frozen snapshots. The name and unit are copied from the
catalog at order time so later catalog edits (or deletion) do not rewrite
order history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple

from core.exceptions import InvalidStatusTransitionError
from models.pantry_item import new_id, utc_timestamp


class OrderStatus(str, Enum):
    """Status of a guest order."""

    PENDING = "pending"
    """Placed, waiting for staff."""

    PREPARING = "preparing"
    """Staff has started on it."""

    DELIVERED = "delivered"
    """Handed to the guest (terminal)."""

    CANCELLED = "cancelled"
    """Dropped before delivery (terminal)."""

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return not self.is_terminal


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

ALLOWED_TRANSITIONS: Dict[OrderStatus, frozenset] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, new_status: OrderStatus) -> bool:
    return new_status in ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class OrderItem:
    """One line of an order."""

    item_id: str
    """Catalog item this line draws from (reference, not ownership)."""

    name: str
    """Item name at order time."""

    quantity: int
    """Units requested."""

    unit: str
    """Item unit at order time."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "itemId": self.item_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderItem":
        return cls(
            item_id=data.get("itemId", data.get("item_id", "")),
            name=data.get("name", ""),
            quantity=int(data.get("quantity") or 0),
            unit=data.get("unit", ""),
        )


@dataclass
class Order:
    """
    A guest request.

    Only status and completed_at ever change after creation, and only
    through transition_to().
    """

    id: str
    room_number: str
    items: Tuple[OrderItem, ...]
    status: OrderStatus = OrderStatus.PENDING
    timestamp: str = ""
    completed_at: Optional[str] = None

    def __post_init__(self):
        self.items = tuple(self.items)
        self.status = OrderStatus(self.status)

    @classmethod
    def create(cls, room_number: str, items: List[OrderItem]) -> "Order":
        """Build a new pending order stamped with the current time."""
        return cls(
            id=new_id(),
            room_number=room_number,
            items=tuple(items),
            status=OrderStatus.PENDING,
            timestamp=utc_timestamp(),
        )

    def transition_to(self, new_status: OrderStatus, at: Optional[str] = None) -> None:
        """
        Move the order to new_status.

        Raises:
            InvalidStatusTransitionError: If the lifecycle does not allow it
        """
        new_status = OrderStatus(new_status)
        if not can_transition(self.status, new_status):
            raise InvalidStatusTransitionError(self.id, self.status.value, new_status.value)

        self.status = new_status
        if new_status.is_terminal:
            self.completed_at = at or utc_timestamp()

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "roomNumber": self.room_number,
            "items": [line.to_dict() for line in self.items],
            "status": self.status.value,
            "timestamp": self.timestamp,
        }
        if self.completed_at:
            data["completedAt"] = self.completed_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        return cls(
            id=data.get("id", ""),
            room_number=data.get("roomNumber", ""),
            items=tuple(OrderItem.from_dict(line) for line in data.get("items") or []),
            status=OrderStatus(data.get("status") or OrderStatus.PENDING.value),
            timestamp=data.get("timestamp", ""),
            completed_at=data.get("completedAt") or None,
        )


@dataclass
class OrderSummary:
    """Order counts for the staff dashboard."""

    total: int = 0
    counts: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_orders(cls, orders: List[Order]) -> "OrderSummary":
        counts = {status.value: 0 for status in OrderStatus}
        for order in orders:
            counts[order.status.value] += 1
        return cls(total=len(orders), counts=counts)

    @property
    def active(self) -> int:
        return self.counts.get("pending", 0) + self.counts.get("preparing", 0)

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "active": self.active, **self.counts}
