"""
Storage adapters.

LocalStore keeps both collections as JSON files on this device;
RemoteStore keeps them in a shared database and pairs with a change feed
for push notifications. Both implement PantryStore.
"""

from .base import PantryStore
from .key_value import KeyValueStore
from .local_store import LocalStore
from .remote_store import RemoteStore

__all__ = [
    "PantryStore",
    "KeyValueStore",
    "LocalStore",
    "RemoteStore",
]
