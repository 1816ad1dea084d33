"""
Backend selection: local single-device storage or a remote shared database.

The active backend is an explicit variant, never a "is there a handle"
check:

    LocalBackend(store)                 - default, nothing configured
    RemoteBackend(config, store, feed)  - configured and subscribed

configure() builds a complete RemoteBackend first and only then swaps it
in, so a failed configure leaves the previous backend untouched and a
half-built one is never visible. The saved configuration lives in the same
key-value store as the local collections, which is what lets restore()
reconnect after a restart.

Usage:
    selector = BackendSelector(kv, bus)
    selector.restore()                  # at startup, never raises

    selector.configure("postgresql://host/db", "secret")
    selector.is_remote                  # True
    selector.teardown()                 # back to local, remote data kept
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from core.exceptions import PantryServiceError, StorageError
from core.notification_bus import ChangeBus
from logging_config import get_logger
from stores.base import PantryStore
from stores.change_feed import ChangeFeed, build_change_feed
from stores.key_value import KeyValueStore
from stores.local_store import LocalStore
from stores.remote_store import RemoteStore


logger = get_logger(__name__)

REMOTE_CONFIG_KEY = "pantry_remote_config"


@dataclass(frozen=True)
class RemoteConfig:
    """Where the shared database is and how to authenticate."""

    endpoint: str
    credential: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"endpoint": self.endpoint, "credential": self.credential}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteConfig":
        return cls(
            endpoint=data.get("endpoint", ""),
            credential=data.get("credential", ""),
        )


@dataclass(frozen=True)
class LocalBackend:
    store: PantryStore
    is_remote = False

    def close(self) -> None:
        pass


@dataclass(frozen=True)
class RemoteBackend:
    config: RemoteConfig
    store: RemoteStore
    feed: ChangeFeed
    is_remote = True

    def close(self) -> None:
        self.feed.stop()
        self.store.dispose()


Backend = Union[LocalBackend, RemoteBackend]

RemoteFactory = Callable[[RemoteConfig, bool], RemoteBackend]


class BackendSelector:
    """
    Owns the active backend and its lifecycle.

    Args:
        kv: Durable key-value store (holds the saved remote config)
        bus: Change bus the remote feed publishes to
        local_store: Store used in local mode (defaults to LocalStore(kv))
        remote_timeout: Per-call timeout for remote stores
        remote_factory: Builds a RemoteBackend from a config; replaceable
            so tests can supply a fake
    """

    def __init__(
        self,
        kv: KeyValueStore,
        bus: ChangeBus,
        local_store: Optional[PantryStore] = None,
        remote_timeout: float = 10.0,
        remote_factory: Optional[RemoteFactory] = None,
    ):
        self.kv = kv
        self.bus = bus
        self.remote_timeout = remote_timeout
        self._local = LocalBackend(local_store or LocalStore(kv))
        self._active: Backend = self._local
        self._remote_factory = remote_factory or self._connect_remote
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def active(self) -> Backend:
        return self._active

    @property
    def is_remote(self) -> bool:
        return self._active.is_remote

    @property
    def store(self) -> PantryStore:
        return self._active.store

    def current_config(self) -> Optional[RemoteConfig]:
        """The saved remote configuration, or None in local mode."""
        try:
            data = self.kv.get(REMOTE_CONFIG_KEY)
        except StorageError as e:
            logger.error(f"Cannot read saved remote config: {e}")
            return None
        if not data or not data.get("endpoint"):
            return None
        return RemoteConfig.from_dict(data)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _connect_remote(self, config: RemoteConfig, create_schema: bool) -> RemoteBackend:
        store = RemoteStore.from_config(config.endpoint, config.credential, self.remote_timeout)
        try:
            if create_schema:
                store.create_schema()
            feed = build_change_feed(store, self.bus)
        except PantryServiceError:
            store.dispose()
            raise
        return RemoteBackend(config, store, feed)

    def configure(self, endpoint: str, credential: str = "", create_schema: bool = False) -> bool:
        """
        Switch to remote mode.

        Returns:
            True on success. On failure the current backend is unchanged.
        """
        config = RemoteConfig((endpoint or "").strip(), credential or "")
        if not config.endpoint:
            logger.error("Remote configuration rejected: endpoint is required")
            return False

        try:
            backend = self._remote_factory(config, create_schema)
        except PantryServiceError as e:
            logger.error(f"Remote configuration rejected: {e}")
            return False

        try:
            self.kv.set(REMOTE_CONFIG_KEY, config.to_dict())
        except StorageError as e:
            logger.error(f"Cannot save remote config: {e}")
            backend.close()
            return False

        with self._lock:
            previous = self._active
            # Old feed stops before the new one starts: one subscription at a time
            previous.close()
            backend.feed.start()
            self._active = backend

        logger.info(f"Remote mode active ({backend.store.dialect})")
        self.bus.publish()
        return True

    def teardown(self) -> None:
        """
        Return to local mode and forget the saved configuration.

        Data in the remote database is left alone.
        """
        with self._lock:
            previous = self._active
            self._active = self._local
            previous.close()

        try:
            self.kv.remove(REMOTE_CONFIG_KEY)
        except StorageError as e:
            logger.error(f"Cannot clear saved remote config: {e}")

        if previous.is_remote:
            logger.info("Remote mode disconnected, using local storage")
        self.bus.publish()

    def restore(self) -> bool:
        """
        Reconnect from the saved configuration at startup.

        Never raises. If the saved configuration no longer works the
        selector quietly stays in local mode.
        """
        config = self.current_config()
        if config is None:
            return False

        try:
            restored = self.configure(config.endpoint, config.credential)
        except Exception as e:
            logger.warning(f"Could not restore remote mode: {e}")
            return False

        if not restored:
            logger.warning("Saved remote configuration could not be used; staying local")
        return restored

    def shutdown(self) -> None:
        """Release the remote connection without forgetting the configuration."""
        with self._lock:
            previous = self._active
            self._active = self._local
        previous.close()
