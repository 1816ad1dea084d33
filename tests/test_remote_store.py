"""
Unit tests for the remote store, its column mapping and the change feeds.

The remote store runs against a SQLite file database through SQLAlchemy,
which exercises the same statements used against PostgreSQL.
"""

import asyncio
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select, update

from core.exceptions import (
    ConfigurationError,
    InsufficientStockError,
    InvalidStatusTransitionError,
    RemoteStoreError,
    StoreTimeoutError,
    ValidationError,
)
from core.notification_bus import ChangeBus
from models.order import Order, OrderItem, OrderStatus
from models.pantry_item import PantryItem
from stores.change_feed import EchoChangeFeed, PostgresChangeFeed, build_change_feed
from stores.field_mapping import (
    ITEM_COLUMNS,
    ORDER_COLUMNS,
    item_from_row,
    item_to_row,
    order_from_row,
    order_to_row,
)
from stores.remote_store import (
    POSTGRES_DRIVER,
    RemoteStore,
    create_remote_engine,
    orders_table,
    pantry_items,
)


# Fixtures

@pytest.fixture
def store(tmp_path):
    """Remote store on a fresh SQLite database with the schema created."""
    remote = RemoteStore.from_config(f"sqlite:///{tmp_path / 'remote.db'}", timeout_seconds=5)
    remote.create_schema()
    yield remote
    remote.dispose()


@pytest.fixture
def coffee():
    return PantryItem("item-coffee", "Coffee", 8, "cup", "Beverages", "2026-10-01T08:00:00.000Z")


@pytest.fixture
def tea():
    return PantryItem("item-tea", "Tea", 2, "cup", "Beverages", "2026-10-01T08:05:00.000Z")


def run(coro):
    return asyncio.run(coro)


class TestFieldMapping:
    """Column name translation."""

    def test_item_row_uses_underscore_columns(self, coffee):
        """Every item field maps to its snake-style column."""
        row = item_to_row(coffee)
        assert set(row) == set(ITEM_COLUMNS.values())
        assert row["added_date"] == "2026-10-01T08:00:00.000Z"
        assert row["expiry_date"] is None
        assert "addedDate" not in row

    def test_order_row_uses_underscore_columns(self):
        """Order rows carry room_number/completed_at and embedded lines."""
        order = Order("o-1", "204", [OrderItem("i", "Coffee", 2, "cup")], "pending", "2026-10-19T10:00:00.000Z")
        row = order_to_row(order)
        assert set(row) == set(ORDER_COLUMNS.values())
        assert row["room_number"] == "204"
        assert row["completed_at"] is None
        assert row["items"] == [{"itemId": "i", "name": "Coffee", "quantity": 2, "unit": "cup"}]

    def test_rows_map_back_to_entities(self, coffee):
        """Reading a row yields the same entity."""
        assert item_from_row(item_to_row(coffee)) == coffee

    def test_timestamp_columns_become_iso_strings(self):
        """Databases returning datetimes still give ISO strings."""
        row = {
            "id": "o-1",
            "room_number": "12",
            "items": [],
            "status": "delivered",
            "timestamp": datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc),
            "completed_at": datetime(2026, 10, 19, 11, 30),
        }
        order = order_from_row(row)
        assert order.timestamp == "2026-10-19T10:00:00.000Z"
        assert order.completed_at == "2026-10-19T11:30:00.000Z"
        assert order.room_number == "12"

    def test_unknown_columns_are_ignored(self):
        """Extra columns in a row do not break entity construction."""
        item = item_from_row({"id": "x", "name": "Pen", "quantity": 3, "unit": "pc", "owner": "ops"})
        assert item.name == "Pen"


class TestRemoteEngine:
    """Engine construction from configuration."""

    @pytest.mark.parametrize("endpoint", ["not a url", "http://example.com/project"])
    def test_bad_endpoint_raises_configuration_error(self, endpoint):
        """Unparseable URLs and unknown dialects are configuration errors."""
        with pytest.raises(ConfigurationError):
            create_remote_engine(endpoint, "secret")

    def test_credential_becomes_password(self):
        """The credential is applied as the URL password."""
        pytest.importorskip("psycopg2")
        engine = create_remote_engine("postgresql://pantry@db.example.com/pantry", "s3cret")
        assert engine.url.password == "s3cret"
        engine.dispose()

    @pytest.mark.parametrize("endpoint", [
        "postgresql://pantry@db.example.com/pantry",
        "postgresql+psycopg2://pantry@db.example.com/pantry",
    ])
    def test_postgres_urls_use_psycopg2(self, endpoint):
        """Bare PostgreSQL URLs resolve to the psycopg2 driver."""
        pytest.importorskip("psycopg2")
        engine = create_remote_engine(endpoint, "s3cret", statement_timeout=2.5)
        assert engine.url.drivername == POSTGRES_DRIVER == "postgresql+psycopg2"
        assert engine.dialect.driver == "psycopg2"
        engine.dispose()


class TestRemoteStore:
    """Collection and record operations."""

    def test_empty_tables(self, store):
        """Fresh tables read as empty collections."""
        assert run(store.read_items()) == []
        assert run(store.read_orders()) == []

    def test_items_read_ordered_by_name(self, store, coffee, tea):
        """read_items returns items by name."""
        run(store.write_items([tea, coffee]))
        assert [i.name for i in run(store.read_items())] == ["Coffee", "Tea"]

    def test_write_items_replaces_collection(self, store, coffee, tea):
        """Rows missing from a full write are removed."""
        run(store.write_items([coffee, tea]))
        coffee.quantity = 1
        run(store.write_items([coffee]))

        items = run(store.read_items())
        assert items == [coffee]

    def test_orders_read_newest_first(self, store):
        """read_orders sorts by timestamp descending."""
        line = [OrderItem("i", "Coffee", 1, "cup")]
        older = Order("o-1", "101", line, "pending", "2026-10-19T09:00:00.000Z")
        newer = Order("o-2", "102", line, "pending", "2026-10-19T10:00:00.000Z")
        run(store.write_orders([older, newer]))

        assert [o.id for o in run(store.read_orders())] == ["o-2", "o-1"]

    def test_save_item_and_delete(self, store, coffee):
        """save_item inserts then updates; delete reports whether it removed."""
        run(store.save_item(coffee))
        coffee.quantity = 30
        run(store.save_item(coffee))

        assert run(store.read_items())[0].quantity == 30
        assert run(store.delete_item(coffee.id)) is True
        assert run(store.delete_item(coffee.id)) is False

    def test_commit_order_is_atomic(self, store, coffee, tea):
        """A failing line rolls back earlier deductions and the order insert."""
        run(store.write_items([coffee, tea]))
        order = Order.create("204", [
            OrderItem(coffee.id, "Coffee", 3, "cup"),
            OrderItem(tea.id, "Tea", 5, "cup"),
        ])

        with pytest.raises(InsufficientStockError) as exc_info:
            run(store.commit_order(order, {coffee.id: 3, tea.id: 5}))

        assert exc_info.value.message == "Not enough stock for Tea. Only 2 left."
        quantities = {i.id: i.quantity for i in run(store.read_items())}
        assert quantities == {coffee.id: 8, tea.id: 2}
        assert run(store.read_orders()) == []

    def test_commit_order_guard_catches_race(self, store, coffee):
        """Stock taken by another device after validation fails the commit."""
        run(store.write_items([coffee]))
        order = Order.create("204", [OrderItem(coffee.id, "Coffee", 5, "cup")])

        # Another device buys most of the coffee in between
        with store.engine.begin() as conn:
            conn.execute(update(pantry_items).where(pantry_items.c.id == coffee.id).values(quantity=4))

        with pytest.raises(InsufficientStockError):
            run(store.commit_order(order, {coffee.id: 5}))

        with store.engine.connect() as conn:
            assert conn.execute(select(pantry_items.c.quantity)).scalar() == 4
            assert conn.execute(select(orders_table.c.id)).first() is None

    def test_commit_order_missing_item(self, store):
        """A line for a deleted item reports its snapshot name."""
        order = Order.create("204", [OrderItem("gone", "Ghost Pepper", 1, "pc")])

        with pytest.raises(ValidationError) as exc_info:
            run(store.commit_order(order, {"gone": 1}))

        assert exc_info.value.message == "Item Ghost Pepper no longer exists."

    def test_commit_order_success(self, store, coffee):
        """A valid commit decrements and stores the order with its lines."""
        run(store.write_items([coffee]))
        order = Order.create("204", [OrderItem(coffee.id, "Coffee", 8, "cup")])

        run(store.commit_order(order, {coffee.id: 8}))

        assert run(store.read_items())[0].quantity == 0
        stored = run(store.read_orders())
        assert stored == [order]

    def test_slow_call_times_out(self, tmp_path):
        """Calls past the timeout raise StoreTimeoutError."""
        slow = RemoteStore.from_config(f"sqlite:///{tmp_path / 'slow.db'}", timeout_seconds=0.05)
        try:
            with pytest.raises(StoreTimeoutError) as exc_info:
                run(slow._run("read_items", time.sleep, 0.5))
            assert exc_info.value.operation == "read_items"
        finally:
            slow.dispose()

    def test_timed_out_commit_is_rolled_back(self, tmp_path, coffee):
        """An order whose caller gave up leaves no trace in the database."""
        slow = RemoteStore.from_config(f"sqlite:///{tmp_path / 'slow.db'}", timeout_seconds=0.2)
        slow.create_schema()
        try:
            run(slow.write_items([coffee]))
            order = Order.create("204", [OrderItem(coffee.id, "Coffee", 3, "cup")])

            commit = slow._commit_order

            def stalled_commit(conn, order, deductions):
                commit(conn, order, deductions)
                time.sleep(0.6)

            slow._commit_order = stalled_commit

            with pytest.raises(StoreTimeoutError):
                run(slow.commit_order(order, {coffee.id: 3}))

            # asyncio.run waits for the worker thread, so the outcome is settled
            assert run(slow.read_items())[0].quantity == 8
            assert run(slow.read_orders()) == []
        finally:
            slow.dispose()

    def test_status_update_applies_once(self, store):
        """The stored status moves when it still matches the caller's read."""
        order = Order.create("204", [OrderItem("i", "Coffee", 1, "cup")])
        run(store.write_orders([order]))

        order.transition_to(OrderStatus.PREPARING)
        assert run(store.save_order_status(order, OrderStatus.PENDING)) is True
        assert run(store.read_orders())[0].status == OrderStatus.PREPARING

    def test_stale_status_update_is_rejected(self, store):
        """A device acting on an old status cannot overwrite a newer one."""
        order = Order.create("204", [OrderItem("i", "Coffee", 1, "cup")])
        run(store.write_orders([order]))

        # Another device cancels the order after this one read it
        with store.engine.begin() as conn:
            conn.execute(
                update(orders_table).where(orders_table.c.id == order.id).values(status="cancelled")
            )

        order.transition_to(OrderStatus.PREPARING)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            run(store.save_order_status(order, OrderStatus.PENDING))

        assert exc_info.value.details["current"] == "cancelled"
        assert run(store.read_orders())[0].status == OrderStatus.CANCELLED

    def test_status_update_for_missing_order(self, store):
        """Updating an order that is gone writes nothing."""
        order = Order.create("204", [OrderItem("i", "Coffee", 1, "cup")])
        order.transition_to(OrderStatus.PREPARING)

        assert run(store.save_order_status(order, OrderStatus.PENDING)) is False
        assert run(store.read_orders()) == []

    def test_missing_tables_raise_remote_error(self, tmp_path):
        """Database errors surface as RemoteStoreError, not empty results."""
        bare = RemoteStore.from_config(f"sqlite:///{tmp_path / 'bare.db'}")
        try:
            with pytest.raises(RemoteStoreError):
                run(bare.read_items())
        finally:
            bare.dispose()


class TestChangeFeeds:
    """Change feed selection and echo behaviour."""

    def test_sqlite_uses_echo_feed(self, store):
        """Databases without NOTIFY get the echo feed."""
        assert isinstance(build_change_feed(store, ChangeBus()), EchoChangeFeed)

    def test_postgres_uses_listen_feed(self):
        """PostgreSQL stores with the NOTIFY triggers get the LISTEN feed."""
        fake_store = MagicMock()
        fake_store.dialect = "postgresql"
        fake_store.notify_triggers_installed.return_value = True
        assert isinstance(build_change_feed(fake_store, ChangeBus()), PostgresChangeFeed)

    def test_postgres_without_triggers_uses_echo_feed(self):
        """Without the triggers, LISTEN would hear nothing; echo local writes instead."""
        fake_store = MagicMock()
        fake_store.dialect = "postgresql"
        fake_store.notify_triggers_installed.return_value = False

        feed = build_change_feed(fake_store, ChangeBus())

        assert isinstance(feed, EchoChangeFeed)
        fake_store.notify_triggers_installed.assert_called_once_with()

    def test_trigger_check_failure_raises(self):
        """A failed catalog query is a remote error, not a silent fallback."""
        fake_store = MagicMock()
        fake_store.dialect = "postgresql"
        fake_store.notify_triggers_installed.side_effect = RemoteStoreError("check_triggers", "denied")

        with pytest.raises(RemoteStoreError):
            build_change_feed(fake_store, ChangeBus())

    def test_sqlite_has_no_notify_triggers(self, store):
        assert store.notify_triggers_installed() is False

    def test_echo_feed_publishes_on_writes(self, store, coffee):
        """Each successful write publishes once while the feed runs."""
        bus = ChangeBus()
        feed = EchoChangeFeed(store, bus)
        feed.start()

        run(store.save_item(coffee))
        run(store.read_items())
        assert bus.published_count == 1

        feed.stop()
        run(store.save_item(coffee))
        assert bus.published_count == 1

    def test_echo_feed_start_is_idempotent(self, store, coffee):
        """Starting twice does not double the signals."""
        bus = ChangeBus()
        feed = EchoChangeFeed(store, bus)
        feed.start()
        feed.start()

        run(store.save_item(coffee))

        assert bus.published_count == 1
        feed.stop()

    def test_noop_delete_does_not_publish(self, store):
        """Deleting nothing is not a change."""
        bus = ChangeBus()
        EchoChangeFeed(store, bus).start()

        run(store.delete_item("missing"))

        assert bus.published_count == 0
