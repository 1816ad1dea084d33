"""
Custom exceptions for the pantry service.

Exception Hierarchy:
    PantryServiceError (base)
    ├── ValidationError                - Bad input or failed stock check (returned as a result)
    │   └── InsufficientStockError     - Requested more than is on hand
    ├── InvalidStatusTransitionError   - Order status change not allowed
    ├── ConfigurationError             - Remote endpoint/credential unusable
    └── StorageError                   - Backing store failed
        ├── StorageQuotaExceededError  - Local collection over capacity
        ├── RemoteStoreError           - Database/network failure
        └── StoreTimeoutError          - Remote call exceeded its timeout

Usage:
    None of these are fatal to the process. The service turns ValidationError
    and StorageError into failure results for write paths and empty results
    for read paths; InvalidStatusTransitionError is raised to the caller.
"""

from typing import Optional, Dict, Any


class PantryServiceError(Exception):
    """
    Base exception for all pantry service errors.

    All custom exceptions inherit from this class, allowing callers to catch
    every application-specific error with a single except clause.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# VALIDATION ERRORS - Reported to the caller as a failed result
# =============================================================================

class ValidationError(PantryServiceError):
    """
    Input rejected before anything was written.

    Covers missing required fields, negative quantities, empty orders and
    order lines that reference an item that no longer exists.
    """


class InsufficientStockError(ValidationError):
    """
    An order line asks for more than the item currently has.

    Raised during validation (nothing deducted yet) or by the remote
    store's guarded decrement, in which case the whole transaction is
    rolled back.
    """

    def __init__(self, item_name: str, available: int, requested: int):
        message = f"Not enough stock for {item_name}. Only {available} left."
        details = {
            "item_name": item_name,
            "available": available,
            "requested": requested,
        }
        super().__init__(message, details)
        self.item_name = item_name
        self.available = available
        self.requested = requested


class InvalidStatusTransitionError(PantryServiceError):
    """
    Order status change that the order lifecycle does not allow.

    Terminal states (delivered, cancelled) admit no further transition,
    including re-applying the same terminal state.
    """

    def __init__(self, order_id: str, current: str, requested: str):
        message = f"Cannot move order {order_id[:8]} from {current} to {requested}"
        details = {
            "order_id": order_id,
            "current": current,
            "requested": requested,
        }
        super().__init__(message, details)
        self.order_id = order_id
        self.current = current
        self.requested = requested


class ConfigurationError(PantryServiceError):
    """
    Remote backend configuration could not be turned into a client.

    Typical causes:
    - Endpoint is not a valid database URL
    - Database driver for the URL's dialect is not installed
    """

    def __init__(self, message: str, endpoint: Optional[str] = None):
        details = {}
        if endpoint:
            details["endpoint"] = endpoint
        super().__init__(message, details)
        self.endpoint = endpoint


# =============================================================================
# STORAGE ERRORS - Read paths degrade, write paths report failure
# =============================================================================

class StorageError(PantryServiceError):
    """Base class for backing store failures."""


class StorageQuotaExceededError(StorageError):
    """
    A local collection write would exceed the configured capacity.

    The previous contents of the collection are left in place.
    """

    def __init__(self, key: str, size: int, limit: int):
        message = f"Storage quota exceeded for {key}: {size} bytes (limit {limit})"
        details = {"key": key, "size": size, "limit": limit}
        super().__init__(message, details)
        self.key = key
        self.size = size
        self.limit = limit


class RemoteStoreError(StorageError):
    """The remote database rejected or failed a call."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"Remote {operation} failed: {message}", {"operation": operation})
        self.operation = operation


class StoreTimeoutError(StorageError):
    """A remote call did not complete within the configured timeout."""

    def __init__(self, operation: str, timeout_seconds: float):
        message = f"Remote {operation} timed out after {timeout_seconds:.1f}s"
        details = {
            "operation": operation,
            "timeout_seconds": timeout_seconds,
        }
        super().__init__(message, details)
        self.operation = operation
        self.timeout_seconds = timeout_seconds
