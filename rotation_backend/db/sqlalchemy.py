"""
Relational item store built on SQLAlchemy Core.

Each collection is a table with the columns:
    id (autoincrement), data (JSON text), used, assignedTo, createdBy, createdAt

Design:
- The engine is created in connect(), never at import time.
- Tables for the known collections are created with CREATE TABLE IF NOT EXISTS
  when connecting; other names get their table before their first statement.
- An in-memory SQLite database shares a single connection, so its statements
  are serialized with a lock held in the worker thread.
- Statements run on a sync engine inside a worker thread so callers always await.
- The payload is serialized to JSON text and parsed back on read.

URL resolution:
  1) DATABASE_URL
  2) SQLITE_FILE (composed into sqlite+pysqlite:///<file>)
"""

import asyncio
import functools
import json
import threading
from contextlib import nullcontext
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, TypeVar

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    false,
    func,
    insert,
    or_,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..core.errors import ConfigurationError, NotConnected, StorageOperationFailed
from ..core.logger import get_logger
from .base import ItemCollection, ItemStore, SelectionPolicy, StoredItem

logger = get_logger(__name__)

T = TypeVar("T")


# PUBLIC_INTERFACE
def resolve_db_url(database_url: Optional[str], sqlite_file: Optional[str]) -> str:
    """Return the SQLAlchemy URL to use or raise ConfigurationError if neither source is set."""
    url = (database_url or "").strip()
    if url:
        return url
    path = (sqlite_file or "").strip()
    if path:
        return f"sqlite+pysqlite:///{path}"
    raise ConfigurationError(
        "Database configuration not found. Provide DATABASE_URL or SQLITE_FILE for the sql backend."
    )


def _effective_db_params(url: str) -> Dict[str, Any]:
    """Parse and return effective DB connection params for logging without password."""
    parsed = make_url(url)
    return {
        "url_redacted": parsed.render_as_string(hide_password=True),
        "driver": parsed.drivername,
        "host": parsed.host,
        "port": parsed.port,
        "database": parsed.database,
    }


def _build_table(metadata: MetaData, name: str) -> Table:
    return Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("data", Text, nullable=False),
        Column("used", Boolean, nullable=False, default=False),
        Column("assignedTo", String(255), nullable=True),
        Column("createdBy", String(255), nullable=True),
        Column("createdAt", DateTime(timezone=True), nullable=True),
    )


def _to_item(row) -> StoredItem:
    m = row._mapping
    return StoredItem(
        id=str(m["id"]),
        data=json.loads(m["data"]) if m["data"] else {},
        used=bool(m["used"]),
        assigned_to=m["assignedTo"],
        created_by=m["createdBy"],
        created_at=m["createdAt"],
    )


def _pk(item_id: str) -> Any:
    return int(item_id) if str(item_id).isdigit() else item_id


class SqlItemCollection(ItemCollection):
    """Item operations over one table."""

    def __init__(
        self,
        name: str,
        table: Table,
        engine: Engine,
        lock: Optional[threading.Lock] = None,
        prepare: Optional[Callable[[], None]] = None,
    ):
        super().__init__(name)
        self._table = table
        self._engine = engine
        self._lock = lock
        self._prepare = prepare

    async def _run(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        def _call() -> T:
            with self._lock if self._lock is not None else nullcontext():
                if self._prepare is not None:
                    self._prepare()
                return fn(*args)

        try:
            return await asyncio.to_thread(_call)
        except SQLAlchemyError as exc:
            logger.error(
                "SQL operation failed.",
                exc_info=exc,
                extra={"collection": self.name, "operation": operation},
            )
            raise StorageOperationFailed(f"{operation} failed on {self.name}: {exc}", collection=self.name) from exc

    # --- sync statement helpers (run in a worker thread) ---

    def _count(self) -> int:
        with self._engine.connect() as conn:
            return int(conn.execute(select(func.count()).select_from(self._table)).scalar_one())

    def _insert_many(self, rows: Sequence[Dict[str, Any]]) -> List[str]:
        ids: List[str] = []
        with self._engine.begin() as conn:
            for row in rows:
                result = conn.execute(insert(self._table).values(**row))
                ids.append(str(result.inserted_primary_key[0]))
        return ids

    def _find_candidate(self, exclude_user: Optional[str], policy: SelectionPolicy) -> Optional[StoredItem]:
        t = self._table
        stmt = select(t).where(t.c.used == false())
        if exclude_user is not None:
            # NULL != 'x' is not true in SQL; unassigned rows must stay candidates
            stmt = stmt.where(or_(t.c.assignedTo.is_(None), t.c.assignedTo != exclude_user))
        if policy == SelectionPolicy.RANDOM:
            stmt = stmt.order_by(func.random())
        else:
            stmt = stmt.order_by(t.c.id)
        with self._engine.connect() as conn:
            row = conn.execute(stmt.limit(1)).first()
        return _to_item(row) if row is not None else None

    def _execute(self, stmt) -> int:
        with self._engine.begin() as conn:
            return int(conn.execute(stmt).rowcount or 0)

    def _list_items(self) -> List[StoredItem]:
        with self._engine.connect() as conn:
            rows = conn.execute(select(self._table).order_by(self._table.c.id)).all()
        return [_to_item(r) for r in rows]

    # --- ItemCollection ---

    async def count(self) -> int:
        return await self._run("count", self._count)

    async def insert_many(self, docs: Sequence[Dict[str, Any]]) -> List[str]:
        if not docs:
            return []
        rows = []
        for doc in docs:
            try:
                data = json.dumps(doc.get("data") or {}, ensure_ascii=False)
            except (TypeError, ValueError) as exc:
                raise StorageOperationFailed(
                    f"insert_many failed on {self.name}: payload is not JSON serializable: {exc}",
                    collection=self.name,
                ) from exc
            rows.append(
                {
                    "data": data,
                    "used": bool(doc.get("used", False)),
                    "assignedTo": doc.get("assignedTo"),
                    "createdBy": doc.get("createdBy"),
                    "createdAt": doc.get("createdAt"),
                }
            )
        return await self._run("insert_many", self._insert_many, rows)

    async def find_candidate(
        self,
        exclude_user: Optional[str] = None,
        policy: SelectionPolicy = SelectionPolicy.FIRST,
    ) -> Optional[StoredItem]:
        return await self._run("find_candidate", self._find_candidate, exclude_user, policy)

    async def assign(self, item_id: str, user_id: str) -> None:
        t = self._table
        stmt = update(t).where(t.c.id == _pk(item_id)).values(used=True, assignedTo=user_id)
        await self._run("assign", self._execute, stmt)

    async def reset_all(self) -> int:
        stmt = update(self._table).values(used=False, assignedTo=None)
        return await self._run("reset_all", self._execute, stmt)

    async def mark_all_used(self) -> int:
        t = self._table
        stmt = update(t).where(t.c.used == false()).values(used=True)
        return await self._run("mark_all_used", self._execute, stmt)

    async def delete_by_creator(self, user_id: str) -> int:
        t = self._table
        stmt = delete(t).where(t.c.createdBy == user_id)
        return await self._run("delete_by_creator", self._execute, stmt)

    async def list_items(self) -> List[StoredItem]:
        return await self._run("list_items", self._list_items)


# PUBLIC_INTERFACE
class SqlItemStore(ItemStore):
    """Item store backed by any SQLAlchemy-supported relational database."""

    def __init__(self, url: str, collections: Iterable[str] = (), echo: bool = False):
        if not (url or "").strip():
            raise ConfigurationError("A database URL is required for the sql item store")
        self._url = url
        self._echo = echo
        self._metadata = MetaData()
        self._tables: Dict[str, Table] = {}
        for name in collections:
            self._tables[name] = _build_table(self._metadata, name)
        self._engine: Optional[Engine] = None
        # held around every statement when the pool hands out one shared connection
        self._statement_lock: Optional[threading.Lock] = None
        self._pending_tables: Set[str] = set()
        self._ddl_lock = threading.Lock()

    def _engine_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"pool_pre_ping": True, "echo": bool(self._echo)}
        parsed = make_url(self._url)
        if parsed.get_backend_name() == "sqlite":
            # Statements run on worker threads; an in-memory database must share one connection
            kwargs["connect_args"] = {"check_same_thread": False}
            if parsed.database in (None, "", ":memory:"):
                kwargs["poolclass"] = StaticPool
        return kwargs

    def _connect_sync(self) -> Engine:
        engine = create_engine(self._url, **self._engine_kwargs())
        try:
            self._metadata.create_all(engine, checkfirst=True)
        except SQLAlchemyError:
            engine.dispose()
            raise
        return engine

    async def connect(self) -> None:
        if self._engine is not None:
            return
        try:
            self._engine = await asyncio.to_thread(self._connect_sync)
        except SQLAlchemyError as exc:
            logger.error("SQL connect failed.", exc_info=exc)
            raise StorageOperationFailed(f"Could not connect to database: {exc}") from exc
        self._statement_lock = threading.Lock() if isinstance(self._engine.pool, StaticPool) else None
        self._pending_tables.clear()
        logger.info(
            "SQLAlchemy engine initialized.",
            extra={"echo": bool(self._echo), "tables": sorted(self._tables), **_effective_db_params(self._url)},
        )

    async def disconnect(self) -> None:
        if self._engine is None:
            return
        engine, self._engine = self._engine, None
        await asyncio.to_thread(engine.dispose)
        logger.info("SQLAlchemy engine disposed.")

    def is_connected(self) -> bool:
        return self._engine is not None

    def _create_pending_table(self, name: str, engine: Engine) -> None:
        """CREATE TABLE IF NOT EXISTS for a collection first seen after connect (worker thread)."""
        if name not in self._pending_tables:
            return
        with self._ddl_lock:
            if name not in self._pending_tables:
                return
            self._tables[name].create(engine, checkfirst=True)
            self._pending_tables.discard(name)
            logger.info("Created table for collection.", extra={"collection": name})

    def get_collection(self, name: str) -> SqlItemCollection:
        if self._engine is None:
            raise NotConnected("Database not connected")
        table = self._tables.get(name)
        if table is None:
            table = _build_table(self._metadata, name)
            self._tables[name] = table
            self._pending_tables.add(name)
        prepare = None
        if name in self._pending_tables:
            prepare = functools.partial(self._create_pending_table, name, self._engine)
        return SqlItemCollection(name, table, self._engine, lock=self._statement_lock, prepare=prepare)

    async def ping(self) -> bool:
        engine = self._engine
        if engine is None:
            return False
        lock = self._statement_lock

        def _select_one() -> None:
            with lock if lock is not None else nullcontext():
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))

        try:
            await asyncio.to_thread(_select_one)
            return True
        except SQLAlchemyError as exc:
            logger.warning("DB connectivity check failed.", exc_info=exc)
            return False
