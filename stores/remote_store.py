"""
Remote shared store backed by a relational database.

Several devices point at the same database and see each other's writes.
Tables:

    pantry_items (id, name, quantity, unit, category, added_date,
                  expiry_date, notes, image_url)
    orders       (id, room_number, items, status, timestamp, completed_at)

Blocking SQLAlchemy calls run in a worker thread under an asyncio timeout,
so a hung database shows up as StoreTimeoutError instead of a call that
never returns. Database failures are raised as RemoteStoreError; nothing
is swallowed here, the service decides how to degrade.

Order placement is one transaction: each line's stock is decremented with
a guard (quantity >= requested) and the order row is inserted only if
every guard held. Two devices racing for the last unit cannot both win.
Status changes are conditional on the status the caller read, so two
devices cannot both move the same order.

A write whose caller timed out is rolled back rather than committed, and
on PostgreSQL the server enforces the same limit as a statement timeout.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Callable, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, NoSuchModuleError, SQLAlchemyError

from core.exceptions import (
    ConfigurationError,
    InsufficientStockError,
    InvalidStatusTransitionError,
    RemoteStoreError,
    StoreTimeoutError,
    ValidationError,
)
from logging_config import get_logger
from models.order import Order, OrderStatus
from models.pantry_item import PantryItem
from stores.base import PantryStore
from stores.field_mapping import (
    item_from_row,
    item_to_row,
    order_from_row,
    order_to_row,
)


logger = get_logger(__name__)

NOTIFY_CHANNEL = "pantry_changes"
NOTIFY_TRIGGERS = ("pantry_items_notify", "orders_notify")

POSTGRES_DRIVER = "postgresql+psycopg2"

metadata = MetaData()

pantry_items = Table(
    "pantry_items",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", Text, nullable=False),
    Column("quantity", Integer, nullable=False, default=0),
    Column("unit", Text),
    Column("category", Text),
    Column("added_date", String(40)),
    Column("expiry_date", String(40)),
    Column("notes", Text),
    Column("image_url", Text),
)

orders_table = Table(
    "orders",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("room_number", Text),
    Column("items", JSON),
    Column("status", String(16)),
    Column("timestamp", String(40)),
    Column("completed_at", String(40)),
)

# Statement-level triggers: one NOTIFY per committed write statement on
# either table. Listeners only learn which table changed.
POSTGRES_NOTIFY_DDL = [
    f"""
    CREATE OR REPLACE FUNCTION pantry_notify_change() RETURNS trigger AS $$
    BEGIN
        PERFORM pg_notify('{NOTIFY_CHANNEL}', TG_TABLE_NAME);
        RETURN NULL;
    END;
    $$ LANGUAGE plpgsql
    """,
    "DROP TRIGGER IF EXISTS pantry_items_notify ON pantry_items",
    """
    CREATE TRIGGER pantry_items_notify
    AFTER INSERT OR UPDATE OR DELETE ON pantry_items
    FOR EACH STATEMENT EXECUTE PROCEDURE pantry_notify_change()
    """,
    "DROP TRIGGER IF EXISTS orders_notify ON orders",
    """
    CREATE TRIGGER orders_notify
    AFTER INSERT OR UPDATE OR DELETE ON orders
    FOR EACH STATEMENT EXECUTE PROCEDURE pantry_notify_change()
    """,
]


def create_remote_engine(
    endpoint: str,
    credential: Optional[str] = None,
    statement_timeout: Optional[float] = None,
) -> Engine:
    """
    Build an engine for a database URL.

    The credential, when given, is used as the connection password so it
    can be kept out of the endpoint string. A bare ``postgresql://`` URL is
    pinned to psycopg2, the driver the change feed is written against. On
    PostgreSQL, statement_timeout (seconds) is also set on every connection
    so the server abandons statements the caller has stopped waiting for.
    No connection is opened here.

    Raises:
        ConfigurationError: The URL cannot be parsed or its driver is missing
    """
    try:
        url = make_url(endpoint)
        if url.drivername == "postgresql":
            url = url.set(drivername=POSTGRES_DRIVER)
        if credential and url.get_backend_name() != "sqlite":
            url = url.set(password=credential)

        connect_args = {}
        if statement_timeout and url.get_backend_name() == "postgresql":
            connect_args["options"] = f"-c statement_timeout={int(statement_timeout * 1000)}"

        return create_engine(url, pool_pre_ping=True, future=True, connect_args=connect_args)
    except (ArgumentError, NoSuchModuleError, ValueError, ImportError) as e:
        raise ConfigurationError(f"Invalid remote endpoint: {e}", endpoint=_redact(endpoint))


def _redact(endpoint: str) -> str:
    try:
        return make_url(endpoint).render_as_string(hide_password=True)
    except (ArgumentError, ValueError):
        return "<unparseable>"


class _WriteAbandoned(Exception):
    """Raised inside a write transaction whose caller has timed out."""


class RemoteStore(PantryStore):
    """
    Catalog and orders in a shared database.

    Args:
        engine: SQLAlchemy engine for the database
        timeout_seconds: Upper bound on any single call
    """

    pushes_changes = True
    name = "remote"

    def __init__(self, engine: Engine, timeout_seconds: float = 10.0):
        self.engine = engine
        self.timeout_seconds = timeout_seconds
        self._write_listeners: List[Callable[[], None]] = []

    @classmethod
    def from_config(
        cls,
        endpoint: str,
        credential: Optional[str] = None,
        timeout_seconds: float = 10.0,
    ) -> "RemoteStore":
        engine = create_remote_engine(endpoint, credential, statement_timeout=timeout_seconds)
        return cls(engine, timeout_seconds)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def create_schema(self) -> None:
        """
        Create the tables if missing; on PostgreSQL also install the
        NOTIFY triggers the change feed listens to.

        Raises:
            RemoteStoreError: The database rejected the DDL
        """
        try:
            metadata.create_all(self.engine)
            if self.dialect == "postgresql":
                with self.engine.begin() as conn:
                    for statement in POSTGRES_NOTIFY_DDL:
                        conn.execute(text(statement))
        except SQLAlchemyError as e:
            raise RemoteStoreError("create_schema", str(e))
        logger.info(f"Remote schema ready on {self.dialect}")

    def notify_triggers_installed(self) -> bool:
        """
        True when both NOTIFY triggers exist. Always False off PostgreSQL.

        Raises:
            RemoteStoreError: The catalog query failed
        """
        if self.dialect != "postgresql":
            return False
        query = text(
            "SELECT count(*) FROM pg_trigger "
            "WHERE NOT tgisinternal AND tgname = ANY(:names)"
        )
        try:
            with self.engine.connect() as conn:
                found = conn.execute(query, {"names": list(NOTIFY_TRIGGERS)}).scalar()
        except SQLAlchemyError as e:
            raise RemoteStoreError("check_triggers", str(e))
        return found == len(NOTIFY_TRIGGERS)

    # ------------------------------------------------------------------
    # Write notifications
    # ------------------------------------------------------------------

    def add_write_listener(self, callback: Callable[[], None]) -> None:
        self._write_listeners.append(callback)

    def remove_write_listener(self, callback: Callable[[], None]) -> None:
        if callback in self._write_listeners:
            self._write_listeners.remove(callback)

    def _written(self) -> None:
        for callback in list(self._write_listeners):
            callback()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _run(self, operation: str, fn, *args):
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(f"Remote {operation} timed out after {self.timeout_seconds}s")
            raise StoreTimeoutError(operation, self.timeout_seconds)
        except SQLAlchemyError as e:
            logger.error(f"Remote {operation} failed: {e}")
            raise RemoteStoreError(operation, str(getattr(e, "orig", None) or e))

    def _transaction(self, operation: str, abandoned: threading.Event, fn, *args):
        """
        Run fn(conn, *args) in one transaction on the worker thread.

        If the caller timed out while fn was running, the transaction is
        rolled back instead of committed.
        """
        try:
            with self.engine.begin() as conn:
                result = fn(conn, *args)
                if abandoned.is_set():
                    raise _WriteAbandoned(operation)
            return result
        except _WriteAbandoned:
            logger.warning(f"Remote {operation} rolled back after its caller timed out")
            return None

    async def _write(self, operation: str, fn, *args):
        abandoned = threading.Event()
        try:
            return await self._run(operation, self._transaction, operation, abandoned, fn, *args)
        except StoreTimeoutError:
            abandoned.set()
            raise

    async def _mutate(self, operation: str, fn, *args):
        result = await self._write(operation, fn, *args)
        self._written()
        return result

    # ------------------------------------------------------------------
    # Collection operations
    # ------------------------------------------------------------------

    def _select_items(self) -> List[PantryItem]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(pantry_items).order_by(pantry_items.c.name)).mappings()
            return [item_from_row(row) for row in rows]

    def _select_orders(self) -> List[Order]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(orders_table).order_by(orders_table.c.timestamp.desc())
            ).mappings()
            return [order_from_row(row) for row in rows]

    @staticmethod
    def _upsert(conn, table: Table, row: Dict) -> None:
        result = conn.execute(update(table).where(table.c.id == row["id"]).values(**row))
        if result.rowcount == 0:
            conn.execute(insert(table).values(**row))

    def _replace_all(self, conn, table: Table, rows: List[Dict]) -> None:
        ids = [row["id"] for row in rows]
        if ids:
            conn.execute(delete(table).where(table.c.id.not_in(ids)))
        else:
            conn.execute(delete(table))
        for row in rows:
            self._upsert(conn, table, row)

    async def read_items(self) -> List[PantryItem]:
        return await self._run("read_items", self._select_items)

    async def write_items(self, items: List[PantryItem]) -> None:
        rows = [item_to_row(item) for item in items]
        await self._mutate("write_items", self._replace_all, pantry_items, rows)

    async def read_orders(self) -> List[Order]:
        return await self._run("read_orders", self._select_orders)

    async def write_orders(self, orders: List[Order]) -> None:
        rows = [order_to_row(order) for order in orders]
        await self._mutate("write_orders", self._replace_all, orders_table, rows)

    # ------------------------------------------------------------------
    # Record operations
    # ------------------------------------------------------------------

    def _save_row(self, conn, table: Table, row: Dict) -> None:
        self._upsert(conn, table, row)

    def _delete_row(self, conn, item_id: str) -> bool:
        result = conn.execute(delete(pantry_items).where(pantry_items.c.id == item_id))
        return result.rowcount > 0

    def _update_status(self, conn, order: Order, expected: OrderStatus) -> bool:
        result = conn.execute(
            update(orders_table)
            .where(orders_table.c.id == order.id)
            .where(orders_table.c.status == expected.value)
            .values(status=order.status.value, completed_at=order.completed_at)
        )
        if result.rowcount == 1:
            return True

        # Someone else moved the order first; report against what they left
        current = conn.execute(
            select(orders_table.c.status).where(orders_table.c.id == order.id)
        ).first()
        if current is None:
            return False
        raise InvalidStatusTransitionError(order.id, current.status, order.status.value)

    def _commit_order(self, conn, order: Order, deductions: Dict[str, int]) -> None:
        names = {line.item_id: line.name for line in order.items}
        for item_id, quantity in deductions.items():
            result = conn.execute(
                update(pantry_items)
                .where(pantry_items.c.id == item_id)
                .where(pantry_items.c.quantity >= quantity)
                .values(quantity=pantry_items.c.quantity - quantity)
            )
            if result.rowcount == 1:
                continue

            # Guard failed: find out why, then let the transaction roll back
            current = conn.execute(
                select(pantry_items.c.name, pantry_items.c.quantity)
                .where(pantry_items.c.id == item_id)
            ).first()
            if current is None:
                raise ValidationError(f"Item {names.get(item_id, item_id)} no longer exists.")
            raise InsufficientStockError(current.name, current.quantity, quantity)

        conn.execute(insert(orders_table).values(**order_to_row(order)))

    async def save_item(self, item: PantryItem) -> None:
        await self._mutate("save_item", self._save_row, pantry_items, item_to_row(item))

    async def delete_item(self, item_id: str) -> bool:
        removed = await self._write("delete_item", self._delete_row, item_id)
        if removed:
            self._written()
        return bool(removed)

    async def save_order_status(self, order: Order, expected: OrderStatus) -> bool:
        updated = await self._write("save_order_status", self._update_status, order, expected)
        if updated:
            self._written()
        return bool(updated)

    async def commit_order(self, order: Order, deductions: Dict[str, int]) -> None:
        await self._mutate("commit_order", self._commit_order, order, deductions)

    def dispose(self) -> None:
        self._write_listeners.clear()
        self.engine.dispose()

    async def close(self) -> None:
        self.dispose()
