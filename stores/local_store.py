"""
Local single-device store.

Keeps the catalog and the orders as two JSON collections in a
KeyValueStore. Everything here completes synchronously; the methods are
async only so the service can treat both stores alike.
"""

from __future__ import annotations

from typing import List

from logging_config import get_logger
from models.order import Order
from models.pantry_item import PantryItem
from stores.base import PantryStore
from stores.key_value import KeyValueStore


logger = get_logger(__name__)

ITEMS_KEY = "pantry_service_items_v2"
ORDERS_KEY = "pantry_service_orders_v2"


class LocalStore(PantryStore):
    """Catalog and orders persisted on this device."""

    pushes_changes = False
    name = "local"

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def _load(self, key: str) -> list:
        data = self.kv.get(key)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.error(f"Expected a list under {key}, found {type(data).__name__}; reading as empty")
            return []
        return data

    async def read_items(self) -> List[PantryItem]:
        return [PantryItem.from_dict(d) for d in self._load(ITEMS_KEY)]

    async def write_items(self, items: List[PantryItem]) -> None:
        self.kv.set(ITEMS_KEY, [item.to_dict() for item in items])

    async def read_orders(self) -> List[Order]:
        return [Order.from_dict(d) for d in self._load(ORDERS_KEY)]

    async def write_orders(self, orders: List[Order]) -> None:
        self.kv.set(ORDERS_KEY, [order.to_dict() for order in orders])
