"""
Unit tests for catalog and order models.
"""

import pytest

from core.exceptions import InvalidStatusTransitionError
from models.order import Order, OrderItem, OrderStatus, OrderSummary, can_transition
from models.pantry_item import Category, ItemCandidate, PantryItem, Unit, normalize_name


# Fixtures

@pytest.fixture
def order():
    """A fresh pending order with one line."""
    return Order.create("204", [OrderItem("item-1", "Coffee", 2, "cup")])


class TestPantryItem:
    """Catalog item behaviour."""

    def test_dedup_key_ignores_case_and_whitespace(self):
        """Names compare trimmed and lowercased, units exactly."""
        a = ItemCandidate(" Coffee ", 1, Unit.CUP)
        b = PantryItem("x", "coffee", 5, "cup")
        assert a.dedup_key == b.dedup_key == ("coffee", "cup")
        assert normalize_name("  GREEN Tea ") == "green tea"

    def test_enum_values_are_stored_as_plain_strings(self):
        """Unit and category enums are kept as their string values."""
        candidate = ItemCandidate("Cola", 3, Unit.CAN, Category.BEVERAGES)
        assert candidate.unit == "can"
        assert candidate.category == "Beverages"
        assert type(candidate.unit) is str

    def test_create_assigns_identity(self):
        """New items get an id and an added date."""
        item = PantryItem.create(ItemCandidate("  Chips ", 4, Unit.PACK))
        assert item.id
        assert item.name == "Chips"
        assert item.added_date.endswith("Z")
        assert item.category == "Other"

    def test_to_dict_uses_camel_case(self):
        """Serialized items use addedDate/expiryDate."""
        item = PantryItem("id-1", "Tea", 3, "cup", "Beverages", "2026-01-01T00:00:00.000Z", "2026-02-01")
        data = item.to_dict()
        assert data["addedDate"] == "2026-01-01T00:00:00.000Z"
        assert data["expiryDate"] == "2026-02-01"
        assert "imageUrl" not in data
        assert PantryItem.from_dict(data) == item

    def test_low_stock_excludes_zero(self):
        """Zero is out of stock, not low stock."""
        assert not PantryItem("a", "A", 0, "pc").is_low_stock(10)
        assert PantryItem("a", "A", 0, "pc").is_out_of_stock
        assert PantryItem("b", "B", 1, "pc").is_low_stock(10)
        assert PantryItem("c", "C", 10, "pc").is_low_stock(10)
        assert not PantryItem("d", "D", 11, "pc").is_low_stock(10)


class TestOrderLifecycle:
    """Order status transitions."""

    def test_new_order_is_pending(self, order):
        """Created orders start pending with no completion time."""
        assert order.status == OrderStatus.PENDING
        assert order.completed_at is None
        assert order.timestamp

    @pytest.mark.parametrize("current,new,allowed", [
        (OrderStatus.PENDING, OrderStatus.PREPARING, True),
        (OrderStatus.PENDING, OrderStatus.CANCELLED, True),
        (OrderStatus.PREPARING, OrderStatus.DELIVERED, True),
        (OrderStatus.PREPARING, OrderStatus.CANCELLED, True),
        (OrderStatus.PENDING, OrderStatus.DELIVERED, False),
        (OrderStatus.DELIVERED, OrderStatus.PREPARING, False),
        (OrderStatus.DELIVERED, OrderStatus.DELIVERED, False),
        (OrderStatus.CANCELLED, OrderStatus.PENDING, False),
    ])
    def test_transition_table(self, current, new, allowed):
        """Only forward moves between non-terminal states are allowed."""
        assert can_transition(current, new) is allowed

    def test_completed_at_set_on_terminal(self, order):
        """completed_at appears only when the order reaches a terminal state."""
        order.transition_to(OrderStatus.PREPARING)
        assert order.completed_at is None

        order.transition_to(OrderStatus.DELIVERED, at="2026-10-19T12:00:00.000Z")
        assert order.status == OrderStatus.DELIVERED
        assert order.completed_at == "2026-10-19T12:00:00.000Z"

    def test_terminal_order_rejects_changes(self, order):
        """No transition out of a terminal state, and completed_at is kept."""
        order.transition_to("cancelled", at="2026-10-19T12:00:00.000Z")

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            order.transition_to("preparing")

        assert exc_info.value.current == "cancelled"
        assert exc_info.value.requested == "preparing"
        assert order.status == OrderStatus.CANCELLED
        assert order.completed_at == "2026-10-19T12:00:00.000Z"

    def test_order_dict_round_trip(self, order):
        """Serialized orders keep line snapshots and camelCase keys."""
        data = order.to_dict()
        assert data["roomNumber"] == "204"
        assert data["items"] == [{"itemId": "item-1", "name": "Coffee", "quantity": 2, "unit": "cup"}]
        assert "completedAt" not in data

        restored = Order.from_dict(data)
        assert restored == order
        assert isinstance(restored.items, tuple)

    def test_order_item_is_immutable(self):
        """Order lines cannot be edited after creation."""
        line = OrderItem("item-1", "Coffee", 2, "cup")
        with pytest.raises(AttributeError):
            line.quantity = 5


class TestOrderSummary:
    """Dashboard counts."""

    def test_counts_by_status(self):
        """Every status is counted, including zeros."""
        orders = [
            Order("1", "101", [OrderItem("a", "A", 1, "pc")], "pending", "t1"),
            Order("2", "102", [OrderItem("a", "A", 1, "pc")], "preparing", "t2"),
            Order("3", "103", [OrderItem("a", "A", 1, "pc")], "delivered", "t3", "t4"),
        ]
        summary = OrderSummary.from_orders(orders).to_dict()

        assert summary["total"] == 3
        assert summary["active"] == 2
        assert summary["delivered"] == 1
        assert summary["cancelled"] == 0
