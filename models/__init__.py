"""
Data models for the pantry service.

- PantryItem / ItemCandidate: catalog entries and merge-add input
- Order / OrderItem / OrderStatus: guest orders and their lifecycle
- OperationResult / OrderPlacementResult: write outcomes
"""

from .pantry_item import Category, Unit, ItemCandidate, PantryItem
from .order import Order, OrderItem, OrderStatus, OrderSummary
from .results import OperationResult, OrderPlacementResult

__all__ = [
    # Catalog models
    "Category",
    "Unit",
    "ItemCandidate",
    "PantryItem",
    # Order models
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderSummary",
    # Results
    "OperationResult",
    "OrderPlacementResult",
]
