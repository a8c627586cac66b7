"""
ActiveStore Persistence Layer - SQL Backend

Ordered-cursor connection on top of SQLModel. Records are stored as JSON
documents in one generic table; every declared index is a table of
``(value, key)`` entries read back in index order, and ``where``/``all``
load records only until the requested page is full.

Blocking database work runs in a worker thread and every request is bounded
by ``request_timeout``; a request that misses its deadline raises
``RequestTimeoutError``.
"""

import asyncio
import json
import logging
import threading
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, TypeVar, Union

from sqlalchemy import UniqueConstraint
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, Session, SQLModel, col, create_engine, select

from ..config import DatabaseConfig, StoreConfig, get_settings
from ..errors import ConstraintError, MissingKeyError, RequestTimeoutError
from ..keys import RecordKey, is_missing_key, parse_key
from . import query
from .base import (
    ConnectionPlugin, CursorOptions, Direction, Operator, QueryResult, Resource, SearchOptions,
    StorageConnection
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreRow(SQLModel, table=True):
    """Provisioned store of a database"""
    __tablename__ = "activestore_stores"

    database: str = Field(primary_key=True)
    name: str = Field(primary_key=True)
    version: Optional[int] = None
    indexes: str = "[]"


class RecordRow(SQLModel, table=True):
    """One stored record; ``seq`` gives the primary scan order"""
    __tablename__ = "activestore_records"
    __table_args__ = (UniqueConstraint("database", "store", "record_key"),)

    seq: Optional[int] = Field(default=None, primary_key=True)
    database: str = Field(index=True)
    store: str = Field(index=True)
    record_key: str
    data: str


class IndexEntryRow(SQLModel, table=True):
    """One index entry; ``id`` orders entries that share a value"""
    __tablename__ = "activestore_index_entries"

    id: Optional[int] = Field(default=None, primary_key=True)
    database: str = Field(index=True)
    store: str = Field(index=True)
    index_name: str = Field(index=True)
    value: str
    record_key: str


TABLES = [StoreRow.__table__, RecordRow.__table__, IndexEntryRow.__table__]


def encode_key(key: RecordKey) -> str:
    """Encode a normalized key so ``1`` and ``"1"`` never collide."""
    return json.dumps(key)


def decode_key(raw: str) -> RecordKey:
    return json.loads(raw)


class SQLConnection(StorageConnection):
    """
    Connection over a SQLAlchemy engine.

    Args:
        config: Database declaration
        engine: SQLAlchemy engine, shared between databases of one plugin
        request_timeout: Seconds each request may take, defaults to settings
    """

    def __init__(self, config: DatabaseConfig, engine: Engine, request_timeout: Optional[float] = None):
        super().__init__(config)
        self._engine = engine
        self._lock = threading.Lock()
        self.request_timeout = request_timeout if request_timeout is not None else get_settings().request_timeout

    def get_engine(self) -> Engine:
        return self._engine

    async def _run(self, work: Callable[..., T], *args: Any) -> T:
        """Run blocking ``work(session, *args)`` in a thread under the request deadline."""
        def _unit() -> T:
            with self._lock, Session(self._engine) as session:
                return work(session, *args)

        try:
            return await asyncio.wait_for(asyncio.to_thread(_unit), timeout=self.request_timeout)
        except asyncio.TimeoutError as err:
            logger.error(f"Request on SQL database {self.name} exceeded {self.request_timeout}s")
            raise RequestTimeoutError() from err

    # Row helpers

    def _record_row(self, session: Session, store: str, key: RecordKey) -> Optional[RecordRow]:
        statement = select(RecordRow).where(
            RecordRow.database == self.name,
            RecordRow.store == store,
            RecordRow.record_key == encode_key(key),
        )
        return session.exec(statement).first()

    def _index_rows(self, session: Session, store: str, key: RecordKey) -> List[IndexEntryRow]:
        statement = select(IndexEntryRow).where(
            IndexEntryRow.database == self.name,
            IndexEntryRow.store == store,
            IndexEntryRow.record_key == encode_key(key),
        )
        return list(session.exec(statement).all())

    def _loader(self, session: Session, store: str) -> query.Loader:
        def load(key: RecordKey) -> Optional[Resource]:
            row = self._record_row(session, store, key)
            return json.loads(row.data) if row is not None else None
        return load

    def _entries(self, session: Session, store: str, index: str,
                 direction: Direction) -> Iterator[Tuple[str, RecordKey]]:
        ordering = [col(IndexEntryRow.value), col(IndexEntryRow.id)]
        if direction is Direction.DESC:
            ordering = [column.desc() for column in ordering]

        statement = (
            select(IndexEntryRow.value, IndexEntryRow.record_key)
            .where(
                IndexEntryRow.database == self.name,
                IndexEntryRow.store == store,
                IndexEntryRow.index_name == index,
            )
            .order_by(*ordering)
        )
        # Entries are fetched up front; records are only loaded until the page is full
        for value, raw_key in session.exec(statement).all():
            yield value, decode_key(raw_key)

    def _write_index_entries(self, session: Session, store: StoreConfig, key: RecordKey,
                             data: Mapping[str, Any]) -> None:
        for index in store.indexes:
            value = query.index_value(data, index.key_path)
            if value is None:
                continue
            session.add(IndexEntryRow(
                database=self.name,
                store=store.name,
                index_name=index.name,
                value=value,
                record_key=encode_key(key),
            ))

    # Units of work

    def _provision(self, session: Session) -> None:
        for store in self.config.stores:
            declared = [index.model_dump() for index in store.indexes]
            row = session.get(StoreRow, (self.name, store.name))

            if row is None:
                session.add(StoreRow(
                    database=self.name, name=store.name, version=self.config.version,
                    indexes=json.dumps(declared),
                ))
                continue

            known = {index["name"] for index in json.loads(row.indexes)}
            added = [index for index in store.indexes if index.name not in known]
            if added:
                self._backfill(session, store, added)
            row.indexes = json.dumps(declared)
            row.version = self.config.version
            session.add(row)

        session.commit()

    def _backfill(self, session: Session, store: StoreConfig, indexes: list) -> None:
        logger.info(f"Building {len(indexes)} new index(es) for {self.name}.{store.name}")
        rows = session.exec(
            select(RecordRow)
            .where(RecordRow.database == self.name, RecordRow.store == store.name)
            .order_by(col(RecordRow.seq))
        )
        partial = StoreConfig(name=store.name, indexes=indexes)
        for row in rows.all():
            self._write_index_entries(session, partial, decode_key(row.record_key), json.loads(row.data))

    def _set(self, session: Session, store: StoreConfig, key: RecordKey, data: Resource) -> None:
        for index in store.indexes:
            value = query.index_value(data, index.key_path)
            if not index.unique or value is None:
                continue
            holder = session.exec(
                select(IndexEntryRow).where(
                    IndexEntryRow.database == self.name,
                    IndexEntryRow.store == store.name,
                    IndexEntryRow.index_name == index.name,
                    IndexEntryRow.value == value,
                    IndexEntryRow.record_key != encode_key(key),
                )
            ).first()
            if holder is not None:
                raise ConstraintError(store.name, index.name, value)

        for entry in self._index_rows(session, store.name, key):
            session.delete(entry)

        row = self._record_row(session, store.name, key)
        if row is None:
            row = RecordRow(database=self.name, store=store.name, record_key=encode_key(key), data="")
        row.data = json.dumps(data)
        session.add(row)

        self._write_index_entries(session, store, key, data)
        session.commit()

    def _delete(self, session: Session, store: str, key: RecordKey) -> bool:
        for entry in self._index_rows(session, store, key):
            session.delete(entry)

        row = self._record_row(session, store, key)
        if row is not None:
            session.delete(row)
        session.commit()
        return row is not None

    def _where(self, session: Session, store: str, index: str, search: Any, options: SearchOptions) -> QueryResult:
        entries = self._entries(session, store, index, options.direction)
        return query.select(entries, self._loader(session, store), search, options)

    def _all(self, session: Session, store: str, index: Optional[str], options: CursorOptions) -> List[Resource]:
        if index:
            keys = (key for _, key in self._entries(session, store, index, options.direction))
        else:
            order = col(RecordRow.seq).desc() if options.direction is Direction.DESC else col(RecordRow.seq)
            statement = (
                select(RecordRow.record_key)
                .where(RecordRow.database == self.name, RecordRow.store == store)
                .order_by(order)
            )
            keys = (decode_key(raw) for raw in session.exec(statement).all())

        return query.scan(keys, self._loader(session, store), options)

    # Protocol

    async def provision(self) -> None:
        await self._run(self._provision)

    async def get(self, store: str, key: RecordKey) -> Optional[Resource]:
        self.store_config(store)
        if is_missing_key(key):
            return None
        return await self._run(lambda session: self._loader(session, store)(parse_key(key)))

    async def set(self, store: str, key: RecordKey, data: Resource) -> Resource:
        store_config = self.store_config(store)
        if is_missing_key(key):
            raise MissingKeyError()

        # Round-trip through JSON so index values match what is read back
        await self._run(self._set, store_config, parse_key(key), json.loads(json.dumps(data)))
        logger.debug(f"Stored {store}:{key} in SQL database {self.name}")
        return data

    async def delete(self, store: str, key: RecordKey) -> bool:
        self.store_config(store)
        return await self._run(self._delete, store, parse_key(key))

    async def where(self, store: str, index: str, search: Any,
                    options: Union[SearchOptions, Mapping[str, Any], None] = None) -> QueryResult:
        options = SearchOptions.coerce(options)
        store_config = self.store_config(store)

        if store_config.get_index(index) is None:
            return None if options.operator is Operator.EQUALS else []

        return await self._run(self._where, store, index, search, options)

    async def all(self, store: str, index: Optional[str] = None,
                  options: Union[CursorOptions, Mapping[str, Any], None] = None) -> List[Resource]:
        options = CursorOptions.coerce(options)
        store_config = self.store_config(store)

        if index and store_config.get_index(index) is None:
            return []

        return await self._run(self._all, store, index, options)

    async def close(self) -> None:
        """Release this connection; the engine belongs to the plugin and stays open"""
        logger.debug(f"Closing SQL database {self.name}")


class SQLPlugin(ConnectionPlugin):
    """
    Opens SQL connections.

    Args:
        url: SQLAlchemy database URL, in-memory SQLite by default
        request_timeout: Deadline in seconds for each request
        echo: Log emitted SQL
    """

    def __init__(self, url: str = "sqlite://", request_timeout: Optional[float] = None, echo: bool = False):
        self.url = url
        self.request_timeout = request_timeout
        self.echo = echo
        self._engine: Optional[Engine] = None

    def get_engine(self) -> Optional[Engine]:
        """The engine shared by every connection of this plugin, once one was opened"""
        return self._engine

    def _create_engine(self) -> Engine:
        kwargs: Dict[str, Any] = {"echo": self.echo}
        if self.url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool

        engine = create_engine(self.url, **kwargs)
        SQLModel.metadata.create_all(engine, tables=TABLES)
        return engine

    async def setup(self, config: DatabaseConfig) -> SQLConnection:
        if self._engine is None:
            self._engine = await asyncio.to_thread(self._create_engine)

        connection = SQLConnection(config, self._engine, self.request_timeout)
        await connection.provision()
        logger.debug(f"Opening SQL database {config.name} on {self.url}")
        return connection

    async def close(self) -> None:
        """Dispose the shared engine; every connection opened by this plugin stops working"""
        if self._engine is None:
            return
        engine, self._engine = self._engine, None
        await asyncio.to_thread(engine.dispose)
        logger.debug(f"Disposed SQL engine for {self.url}")
