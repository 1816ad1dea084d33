"""
Storage adapter contract.

Both backing stores expose the same four collection operations
(read/write items, read/write orders) with an async calling convention.
On top of those, the record-level operations the service needs have
default read-modify-write implementations here; the remote store
overrides them with targeted statements.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List

from core.exceptions import (
    InsufficientStockError,
    InvalidStatusTransitionError,
    ValidationError,
)
from models.order import Order, OrderStatus
from models.pantry_item import PantryItem


class PantryStore(ABC):
    """
    Base class for the local and remote adapters.

    Attributes:
        pushes_changes: True when the store publishes its own change
            signals (remote change feed). When False the service publishes
            after each successful mutation.
    """

    pushes_changes = False
    name = "store"

    # ------------------------------------------------------------------
    # Collection operations
    # ------------------------------------------------------------------

    @abstractmethod
    async def read_items(self) -> List[PantryItem]:
        ...

    @abstractmethod
    async def write_items(self, items: List[PantryItem]) -> None:
        ...

    @abstractmethod
    async def read_orders(self) -> List[Order]:
        ...

    @abstractmethod
    async def write_orders(self, orders: List[Order]) -> None:
        ...

    # ------------------------------------------------------------------
    # Record operations
    # ------------------------------------------------------------------

    async def save_item(self, item: PantryItem) -> None:
        """Replace the item with the same id, or prepend it if new."""
        items = await self.read_items()
        for index, existing in enumerate(items):
            if existing.id == item.id:
                items[index] = item
                break
        else:
            items.insert(0, item)
        await self.write_items(items)

    async def delete_item(self, item_id: str) -> bool:
        """
        Remove an item by id.

        Returns:
            True if something was removed. Nothing is written otherwise.
        """
        items = await self.read_items()
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) == len(items):
            return False
        await self.write_items(remaining)
        return True

    async def save_order_status(self, order: Order, expected: OrderStatus) -> bool:
        """
        Store order's new status only if the stored status is still expected.

        Returns:
            False if the order no longer exists (nothing written)

        Raises:
            InvalidStatusTransitionError: The stored status moved on since
                the caller read it
        """
        orders = await self.read_orders()
        for index, existing in enumerate(orders):
            if existing.id == order.id:
                break
        else:
            return False

        if existing.status != expected:
            raise InvalidStatusTransitionError(order.id, existing.status.value, order.status.value)
        orders[index] = order
        await self.write_orders(orders)
        return True

    async def commit_order(self, order: Order, deductions: Dict[str, int]) -> None:
        """
        Deduct stock and record a validated order.

        Items are written first, then orders. If the orders write fails the
        previous item collection is written back before re-raising, so a
        failed commit leaves both collections as they were.

        Raises:
            ValidationError: A deducted item vanished since validation
            InsufficientStockError: Stock fell below a line since validation
            StorageError: Either write failed
        """
        items = await self.read_items()
        previous = [PantryItem.from_dict(item.to_dict()) for item in items]
        by_id = {item.id: item for item in items}

        for item_id, quantity in deductions.items():
            item = by_id.get(item_id)
            if item is None:
                raise ValidationError(f"Item {item_id} no longer exists.")
            if item.quantity < quantity:
                raise InsufficientStockError(item.name, item.quantity, quantity)
            item.quantity -= quantity

        orders = await self.read_orders()
        orders.insert(0, order)

        await self.write_items(items)
        try:
            await self.write_orders(orders)
        except Exception:
            await self.write_items(previous)
            raise

    async def close(self) -> None:
        """Release any resources held by the store."""
