"""
Remote change feeds.

A change feed turns remote row changes into change signals on the bus so
observers refetch without polling.

    PostgresChangeFeed  LISTENs on the channel fed by the NOTIFY triggers.
                        Sees writes from every device.
    EchoChangeFeed      Publishes after this process's own successful
                        writes. Used for databases without a push
                        channel (SQLite in development and tests) and
                        for PostgreSQL databases without the triggers.

Each remote context owns exactly one feed; the backend selector stops it
before a replacement is started.
"""

from __future__ import annotations

import select
import threading
from typing import Optional

from core.notification_bus import ChangeBus
from logging_config import get_logger, set_thread_name
from stores.remote_store import NOTIFY_CHANNEL, RemoteStore


logger = get_logger(__name__)


class ChangeFeed:
    """Base class: a subscription that can be started and stopped once each."""

    def __init__(self, store: RemoteStore, bus: ChangeBus):
        self.store = store
        self.bus = bus
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class EchoChangeFeed(ChangeFeed):
    """Publishes once per successful remote write made by this process."""

    def start(self) -> None:
        if self._running:
            return
        self.store.add_write_listener(self.bus.publish)
        self._running = True
        logger.info(f"Change feed started (echo, {self.store.dialect})")

    def stop(self) -> None:
        if not self._running:
            return
        self.store.remove_write_listener(self.bus.publish)
        self._running = False
        logger.info("Change feed stopped")


class PostgresChangeFeed(ChangeFeed):
    """
    Background LISTEN on the notification channel.

    Runs its own autocommit DBAPI connection outside the engine's pool.
    Notifications that arrive together are collapsed into one signal.
    Lost connections are retried after retry_delay seconds until stop()
    is called.
    """

    def __init__(
        self,
        store: RemoteStore,
        bus: ChangeBus,
        channel: str = NOTIFY_CHANNEL,
        poll_interval: float = 1.0,
        retry_delay: float = 5.0,
    ):
        super().__init__(store, bus)
        self.channel = channel
        self.poll_interval = poll_interval
        self.retry_delay = retry_delay
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._running:
            logger.warning("Change feed already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._listen_loop,
            name="ChangeFeed",
            daemon=True
        )
        self._running = True
        self._thread.start()

    def stop(self) -> None:
        if not self._running:
            return

        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=self.poll_interval + 5.0)
            if self._thread.is_alive():
                logger.warning("Change feed thread did not stop cleanly")

        self._running = False
        self._thread = None
        logger.info("Change feed stopped")

    def _connect(self):
        engine = self.store.engine
        cargs, cparams = engine.dialect.create_connect_args(engine.url)
        connection = engine.dialect.connect(*cargs, **cparams)
        connection.autocommit = True
        return connection

    def _listen_loop(self) -> None:
        set_thread_name("ChangeFeed")

        while not self._stop_event.is_set():
            connection = None
            try:
                connection = self._connect()
                with connection.cursor() as cursor:
                    cursor.execute(f"LISTEN {self.channel}")
                logger.info(f"Change feed listening on {self.channel}")
                self._drain(connection)
            except Exception as e:
                logger.warning(f"Change feed connection lost: {e}")
                self._stop_event.wait(self.retry_delay)
            finally:
                if connection is not None:
                    try:
                        connection.close()
                    except Exception as e:
                        logger.debug(f"Error closing change feed connection: {e}")

        logger.info("Change feed loop exiting")

    def _drain(self, connection) -> None:
        while not self._stop_event.is_set():
            ready, _, _ = select.select([connection], [], [], self.poll_interval)
            if not ready:
                continue

            connection.poll()
            if connection.notifies:
                tables = {n.payload for n in connection.notifies}
                connection.notifies.clear()
                logger.debug(f"Remote change on {', '.join(sorted(tables))}")
                self.bus.publish()


def build_change_feed(store: RemoteStore, bus: ChangeBus) -> ChangeFeed:
    """
    Pick the feed that matches the store's database.

    PostgreSQL gets the LISTEN feed only when the NOTIFY triggers are in
    place; without them nothing would ever arrive on the channel, so this
    process falls back to publishing its own writes.

    Raises:
        RemoteStoreError: The trigger check failed
    """
    if store.dialect == "postgresql":
        if store.notify_triggers_installed():
            return PostgresChangeFeed(store, bus)
        logger.warning(
            "NOTIFY triggers missing; only this process's writes will signal. "
            "Connect once with createSchema to install them."
        )
    return EchoChangeFeed(store, bus)
