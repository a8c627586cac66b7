"""
ActiveStore Persistence Layer - Memory Backend

In-memory connection implementation for development and testing.
Data is lost when the connection is dropped.
"""

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from ..config import DatabaseConfig
from ..errors import MissingKeyError
from ..keys import RecordKey, is_missing_key, parse_key
from . import query
from .base import (
    ConnectionPlugin, CursorOptions, Operator, QueryResult, Resource, SearchOptions, StorageConnection
)

logger = logging.getLogger(__name__)


class MemoryEngine:
    """Record and index storage of one in-memory database"""

    def __init__(self):
        self.stores: Dict[str, Dict[RecordKey, Resource]] = {}
        self.indexes: Dict[str, Dict[str, query.IndexMap]] = {}

    def provision(self, config: DatabaseConfig) -> None:
        """Create missing stores and indexes; new indexes are built from existing records"""
        for store in config.stores:
            records = self.stores.setdefault(store.name, {})
            store_indexes = self.indexes.setdefault(store.name, {})
            for index in store.indexes:
                if index.name not in store_indexes:
                    store_indexes[index.name] = query.build_index(index, records.items())


class MemoryConnection(StorageConnection):
    """
    Connection over plain dictionaries.

    Records are deep-copied on the way in and out so callers never share
    state with the store.
    """

    def __init__(self, config: DatabaseConfig, engine: Optional[MemoryEngine] = None):
        super().__init__(config)
        self._engine = engine or MemoryEngine()
        self._engine.provision(config)

    def get_engine(self) -> MemoryEngine:
        return self._engine

    def _records(self, store: str) -> Dict[RecordKey, Resource]:
        self.store_config(store)
        return self._engine.stores.setdefault(store, {})

    def _load(self, records: Dict[RecordKey, Resource]):
        def load(key: RecordKey) -> Optional[Resource]:
            record = records.get(key)
            return copy.deepcopy(record) if record is not None else None
        return load

    async def get(self, store: str, key: RecordKey) -> Optional[Resource]:
        records = self._records(store)
        if is_missing_key(key):
            return None
        return self._load(records)(parse_key(key))

    async def set(self, store: str, key: RecordKey, data: Resource) -> Resource:
        store_config = self.store_config(store)
        records = self._records(store)
        if is_missing_key(key):
            raise MissingKeyError()

        key = parse_key(key)
        stored = copy.deepcopy(dict(data))

        query.update_indexes(store_config, self._engine.indexes.setdefault(store, {}), key, stored)
        records[key] = stored

        logger.debug(f"Stored {store}:{key} in memory database {self.name}")
        return data

    async def delete(self, store: str, key: RecordKey) -> bool:
        records = self._records(store)
        key = parse_key(key)

        for index_map in self._engine.indexes.get(store, {}).values():
            query.remove_from_index(index_map, key)

        return records.pop(key, None) is not None

    async def where(self, store: str, index: str, search: Any,
                    options: Union[SearchOptions, Mapping[str, Any], None] = None) -> QueryResult:
        options = SearchOptions.coerce(options)
        records = self._records(store)
        index_map = self._engine.indexes.get(store, {}).get(index)

        if index_map is None:
            return None if options.operator is Operator.EQUALS else []

        entries = query.ordered_entries(index_map, options.direction)
        return query.select(entries, self._load(records), search, options)

    async def all(self, store: str, index: Optional[str] = None,
                  options: Union[CursorOptions, Mapping[str, Any], None] = None) -> List[Resource]:
        options = CursorOptions.coerce(options)
        records = self._records(store)

        if index:
            index_map = self._engine.indexes.get(store, {}).get(index)
            if index_map is None:
                return []
            keys = [key for _, key in query.ordered_entries(index_map, options.direction)]
        else:
            keys = query.ordered_keys(records, options.direction)

        return query.scan(keys, self._load(records), options)


class MemoryPlugin(ConnectionPlugin):
    """
    Opens in-memory connections.

    Engines are kept per database name, so re-opening a name sees the same
    data, the way re-opening a persistent database would.
    """

    def __init__(self):
        self._engines: Dict[str, MemoryEngine] = {}

    async def setup(self, config: DatabaseConfig) -> MemoryConnection:
        engine = self._engines.setdefault(config.name, MemoryEngine())
        logger.debug(f"Opening memory database {config.name}")
        return MemoryConnection(config, engine)


memory_plugin = MemoryPlugin()
