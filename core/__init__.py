"""
Core module for the pantry service.

Contains the infrastructure the service is built on:
- exceptions: Custom exception hierarchy
- notification_bus: Process-wide change signal
- backend_selector: Local/remote backend lifecycle (import it directly;
  it depends on the stores package)
"""

from .exceptions import (
    PantryServiceError,
    ValidationError,
    InsufficientStockError,
    InvalidStatusTransitionError,
    ConfigurationError,
    StorageError,
    StorageQuotaExceededError,
    RemoteStoreError,
    StoreTimeoutError,
)
from .notification_bus import ChangeBus, CHANGE_SIGNAL

__all__ = [
    "PantryServiceError",
    "ValidationError",
    "InsufficientStockError",
    "InvalidStatusTransitionError",
    "ConfigurationError",
    "StorageError",
    "StorageQuotaExceededError",
    "RemoteStoreError",
    "StoreTimeoutError",
    "ChangeBus",
    "CHANGE_SIGNAL",
]
