"""
Inventory and order service.

The one entry point for catalog and order operations. Callers never know
whether the local or the remote store is active: every call asks the
backend selector for the current store, reads fresh from it, and writes
back. Nothing is cached between calls.

Error handling:
    - Reads (get_items, get_orders and the queries built on them) degrade
      to empty results when the store fails, so display code keeps working.
    - Writes return OperationResult / OrderPlacementResult with
      success=False and a message instead of raising.
    - update_order_status raises InvalidStatusTransitionError for a move
      the order lifecycle does not allow.

Change signals:
    After a successful local write the service publishes on the bus. Remote
    writes are published by the change feed instead. No-op deletes and
    status updates for unknown orders write nothing, so the service
    publishes those itself in either mode.

Usage:
    service = PantryService(selector, bus)

    result = await service.add_or_update_item(
        ItemCandidate(name="Coffee", quantity=5, unit="cup")
    )
    placed = await service.place_order(order)
    if not placed.success:
        show(placed.error)
"""

from __future__ import annotations

from typing import Dict, List, Optional, Union

from core.backend_selector import BackendSelector
from core.exceptions import (
    InsufficientStockError,
    StorageError,
    ValidationError,
)
from core.notification_bus import ChangeBus
from logging_config import get_logger
from models.order import Order, OrderItem, OrderStatus, OrderSummary
from models.pantry_item import DEFAULT_CATEGORY, ItemCandidate, PantryItem, new_id, utc_timestamp
from models.results import OperationResult, OrderPlacementResult
from services.seed_data import build_starter_items
from stores.base import PantryStore


# Module logger
logger = get_logger(__name__)

DEFAULT_LOW_STOCK_THRESHOLD = 10


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class PantryService:
    """
    Catalog and order operations over whichever store is active.

    Args:
        selector: Backend selector providing the active store
        bus: Change bus for local write notifications
        low_stock_threshold: Default threshold for get_low_stock_items
    """

    def __init__(
        self,
        selector: BackendSelector,
        bus: ChangeBus,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ):
        self._selector = selector
        self._bus = bus
        self.low_stock_threshold = low_stock_threshold

    @property
    def is_remote(self) -> bool:
        return self._selector.is_remote

    def _changed(self, store: PantryStore, wrote: bool = True) -> None:
        # Stores that push changes only do so for writes that happened
        if not wrote or not store.pushes_changes:
            self._bus.publish()

    def _unknown_order(self, order_id: str) -> OperationResult:
        logger.debug(f"Status update for unknown order {order_id} ignored")
        self._changed(self._selector.store, wrote=False)
        return OperationResult(True, "No such order", record_id=order_id)

    # =========================================================================
    # ITEMS
    # =========================================================================

    async def get_items(self) -> List[PantryItem]:
        """All catalog items ordered by name; empty if the store fails."""
        store = self._selector.store
        try:
            items = await store.read_items()
        except StorageError as e:
            logger.warning(f"Could not load items from {store.name} store: {e}")
            return []
        return sorted(items, key=lambda item: (item.name.casefold(), item.name))

    @staticmethod
    def _validate_candidate(candidate: ItemCandidate) -> None:
        if not candidate.name or not candidate.name.strip():
            raise ValidationError("Item name is required.")
        if not _is_count(candidate.quantity) or candidate.quantity < 0:
            raise ValidationError(f"Invalid quantity for {candidate.name.strip()}: {candidate.quantity!r}")
        if not candidate.unit or not str(candidate.unit).strip():
            raise ValidationError("Item unit is required.")

    async def add_or_update_item(
        self, candidate: Union[ItemCandidate, Dict]
    ) -> OperationResult:
        """
        Add stock: merge into a matching item or create a new one.

        An item matches when its trimmed, lowercased name and its unit equal
        the candidate's. A match keeps its id, name and added date:
            - quantity grows by the candidate's quantity
            - category is replaced unless the candidate's is the default
            - expiry is replaced only if the candidate has one
        Otherwise a new item is created at the front of the catalog.

        Returns:
            OperationResult whose message says "Restocked ..." or "Added new item: ..."
        """
        if isinstance(candidate, dict):
            candidate = ItemCandidate.from_dict(candidate)

        try:
            self._validate_candidate(candidate)
        except ValidationError as e:
            return OperationResult(False, e.message)

        store = self._selector.store
        try:
            items = await store.read_items()
            existing = next(
                (item for item in items if item.dedup_key == candidate.dedup_key),
                None
            )

            if existing is not None:
                existing.quantity += candidate.quantity
                if candidate.category != DEFAULT_CATEGORY:
                    existing.category = candidate.category
                if candidate.expiry_date:
                    existing.expiry_date = candidate.expiry_date
                await store.save_item(existing)
                result = OperationResult(
                    True, f"Restocked {existing.name}", record_id=existing.id, restocked=True
                )
            else:
                item = PantryItem.create(candidate)
                await store.save_item(item)
                result = OperationResult(True, f"Added new item: {item.name}", record_id=item.id)

        except StorageError as e:
            logger.error(f"Could not save {candidate.name!r}: {e}")
            return OperationResult(False, e.message)

        logger.info(result.message)
        self._changed(store)
        return result

    async def delete_item(self, item_id: str) -> OperationResult:
        """Remove an item. An unknown id is a successful no-op."""
        store = self._selector.store
        try:
            removed = await store.delete_item(item_id)
        except StorageError as e:
            logger.error(f"Could not delete item {item_id}: {e}")
            return OperationResult(False, e.message)

        if removed:
            logger.info(f"Deleted item {item_id}")
            message = "Item deleted"
        else:
            logger.debug(f"Delete of unknown item {item_id} ignored")
            message = "No such item"

        self._changed(store, wrote=removed)
        return OperationResult(True, message, record_id=item_id)

    async def get_low_stock_items(self, threshold: Optional[int] = None) -> List[PantryItem]:
        """
        Items running low: 0 < quantity <= threshold.

        Items at zero are out of stock, not low, and are left out.
        """
        if threshold is None:
            threshold = self.low_stock_threshold
        return [item for item in await self.get_items() if item.is_low_stock(threshold)]

    async def get_out_of_stock_items(self) -> List[PantryItem]:
        return [item for item in await self.get_items() if item.is_out_of_stock]

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def get_orders(self) -> List[Order]:
        """All orders, newest first; empty if the store fails."""
        store = self._selector.store
        try:
            orders = await store.read_orders()
        except StorageError as e:
            logger.warning(f"Could not load orders from {store.name} store: {e}")
            return []
        return sorted(orders, key=lambda order: order.timestamp, reverse=True)

    async def get_order_summary(self) -> OrderSummary:
        return OrderSummary.from_orders(await self.get_orders())

    @staticmethod
    def _check_lines(order: Order) -> None:
        if not order.room_number or not str(order.room_number).strip():
            raise ValidationError("Room number is required.")
        if not order.items:
            raise ValidationError("Order has no items.")
        for line in order.items:
            if not _is_count(line.quantity) or line.quantity <= 0:
                raise ValidationError(f"Invalid quantity for {line.name}.")

    async def place_order(self, order: Order) -> OrderPlacementResult:
        """
        Validate an order against current stock, then deduct and record it.

        Validation is all-or-nothing: if any line references a missing item
        or asks for more than is on hand (lines for the same item are
        counted together), nothing is deducted and no order is recorded.

        The order is always recorded as pending. Local mode commits with a
        read-modify-write; the remote store commits in one transaction with
        guarded decrements, so a race lost between validation and commit is
        reported as a shortage rather than overselling.
        """
        try:
            self._check_lines(order)
        except ValidationError as e:
            return OrderPlacementResult.failed(e.message)

        store = self._selector.store
        try:
            items = await store.read_items()
        except StorageError as e:
            logger.error(f"Could not load stock for order: {e}")
            return OrderPlacementResult.failed(e.message)

        by_id = {item.id: item for item in items}
        requested: Dict[str, int] = {}
        for line in order.items:
            item = by_id.get(line.item_id)
            if item is None:
                return OrderPlacementResult.failed(f"Item {line.name} no longer exists.")
            requested[line.item_id] = requested.get(line.item_id, 0) + line.quantity
            if item.quantity < requested[line.item_id]:
                shortage = InsufficientStockError(item.name, item.quantity, requested[line.item_id])
                logger.info(f"Order for room {order.room_number} rejected: {shortage.message}")
                return OrderPlacementResult.failed(shortage.message, stock_shortage=True)

        if not order.id:
            order.id = new_id()
        if not order.timestamp:
            order.timestamp = utc_timestamp()
        order.status = OrderStatus.PENDING
        order.completed_at = None

        try:
            await store.commit_order(order, requested)
        except InsufficientStockError as e:
            logger.info(f"Order for room {order.room_number} lost a stock race: {e.message}")
            return OrderPlacementResult.failed(e.message, stock_shortage=True)
        except ValidationError as e:
            return OrderPlacementResult.failed(e.message)
        except StorageError as e:
            logger.error(f"Could not record order for room {order.room_number}: {e}")
            return OrderPlacementResult.failed(e.message)

        logger.info(
            f"Order {order.id[:8]} placed for room {order.room_number} "
            f"({len(order.items)} line(s))"
        )
        self._changed(store)
        return OrderPlacementResult.ok(order.id)

    async def build_order(self, room_number: str, lines: List[Dict]) -> Order:
        """
        Build a pending order from (itemId, quantity) requests.

        Names and units are snapshotted from the current catalog; lines for
        unknown items keep whatever name the request carried so placement
        can report them.
        """
        catalog = {item.id: item for item in await self.get_items()}
        order_items = []
        for line in lines:
            item_id = line.get("itemId", "")
            item = catalog.get(item_id)
            order_items.append(OrderItem(
                item_id=item_id,
                name=item.name if item else line.get("name", item_id),
                quantity=line.get("quantity", 0),
                unit=item.unit if item else line.get("unit", ""),
            ))
        return Order.create(room_number, order_items)

    async def update_order_status(
        self, order_id: str, new_status: Union[OrderStatus, str]
    ) -> OperationResult:
        """
        Move an order along its lifecycle.

        An unknown order id is a successful no-op. Entering delivered or
        cancelled stamps completed_at.

        Raises:
            InvalidStatusTransitionError: The move is not allowed, including
                any move out of a terminal status, or another caller changed
                the status after it was read
        """
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            return OperationResult(False, f"Unknown order status: {new_status}")

        store = self._selector.store
        try:
            orders = await store.read_orders()
        except StorageError as e:
            logger.error(f"Could not load orders for status update: {e}")
            return OperationResult(False, e.message)

        order = next((o for o in orders if o.id == order_id), None)
        if order is None:
            return self._unknown_order(order_id)

        previous = order.status
        order.transition_to(new_status)

        try:
            saved = await store.save_order_status(order, previous)
        except StorageError as e:
            logger.error(f"Could not update order {order_id}: {e}")
            return OperationResult(False, e.message)
        if not saved:
            return self._unknown_order(order_id)

        logger.info(f"Order {order_id[:8]}: {previous.value} -> {new_status.value}")
        self._changed(store)
        return OperationResult(True, f"Order {new_status.value}", record_id=order_id)

    # =========================================================================
    # SEEDING
    # =========================================================================

    async def seed_initial_data(self) -> int:
        """
        Fill an empty local catalog with the starter items.

        Never touches a remote store, so clients starting up do not push
        demo data into a shared database.

        Returns:
            Number of items written (0 when nothing was seeded)
        """
        if self._selector.is_remote:
            return 0

        store = self._selector.store
        try:
            if await store.read_items():
                return 0
            items = build_starter_items()
            await store.write_items(items)
        except StorageError as e:
            logger.error(f"Seeding failed: {e}")
            return 0

        logger.info(f"Seeded {len(items)} starter items")
        self._changed(store)
        return len(items)
