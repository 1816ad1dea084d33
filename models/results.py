"""
Operation result models.

Write operations on the pantry service report failure through these
results instead of raising, so callers can show the message directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class OperationResult:
    """Outcome of an item or order write (add, delete, status change)."""

    success: bool
    message: str
    record_id: Optional[str] = None
    restocked: bool = False
    """True when add_or_update_item merged into an existing item."""

    def to_dict(self) -> Dict[str, Any]:
        data = {"success": self.success, "message": self.message}
        if self.record_id:
            data["id"] = self.record_id
        if self.restocked:
            data["restocked"] = True
        return data


@dataclass(frozen=True)
class OrderPlacementResult:
    """Outcome of place_order."""

    success: bool
    error: Optional[str] = None
    order_id: Optional[str] = None
    stock_shortage: bool = False
    """True when the order failed because an item ran short."""

    @classmethod
    def ok(cls, order_id: str) -> "OrderPlacementResult":
        return cls(success=True, order_id=order_id)

    @classmethod
    def failed(cls, error: str, stock_shortage: bool = False) -> "OrderPlacementResult":
        return cls(success=False, error=error, stock_shortage=stock_shortage)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.error:
            data["error"] = self.error
        if self.order_id:
            data["orderId"] = self.order_id
        return data
