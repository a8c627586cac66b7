"""
ActiveStore Persistence Layer - Key/Value Backend

Flat key/value connection: every record, every store's key list and every
index lives under its own string key as a JSON document. Any
``MutableMapping[str, str]`` works as the engine (a dict, a ``shelve``
database, a browser-storage bridge...).

Layout for database ``db``, store ``users``, index ``email``::

    activestore:__db_users          {"indexes": {...}, "keys": [...]}
    activestore:__db_users_email    {"alice@test.com": ["u1"], ...}
    activestore:db_users:u1         {"id": "u1", ...}
"""

import json
import logging
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Union

from ..config import DatabaseConfig, StoreConfig
from ..errors import MissingKeyError
from ..keys import RecordKey, is_missing_key, parse_key
from . import query
from .base import (
    ConnectionPlugin, CursorOptions, Operator, QueryResult, Resource, SearchOptions, StorageConnection
)

logger = logging.getLogger(__name__)

KEY_PREFIX = "activestore:"


class KeyValueConnection(StorageConnection):
    """Connection over a flat string mapping."""

    def __init__(self, config: DatabaseConfig, mapping: MutableMapping[str, str], prefix: str = KEY_PREFIX):
        super().__init__(config)
        self._mapping = mapping
        self._prefix = prefix

    def get_engine(self) -> MutableMapping[str, str]:
        return self._mapping

    # Key layout

    def _record_key(self, store: str, key: RecordKey) -> str:
        return f"{self._prefix}{self.name}_{store}:{key}"

    def _table_key(self, store: str) -> str:
        return f"{self._prefix}__{self.name}_{store}"

    def _index_key(self, store: str, index: str) -> str:
        return f"{self._prefix}__{self.name}_{store}_{index}"

    def _read(self, key: str, default: Any = None) -> Any:
        raw = self._mapping.get(key)
        return json.loads(raw) if raw is not None else default

    def _write(self, key: str, value: Any) -> None:
        self._mapping[key] = json.dumps(value)

    # Provisioning

    def provision(self) -> None:
        """Create store tables and index tables that do not exist yet; new indexes are built from stored records."""
        for store in self.config.stores:
            table = self._read(self._table_key(store.name), {"indexes": {}, "keys": []})
            load = self._load(store.name)
            for index in store.indexes:
                table["indexes"][index.name] = {
                    "key": index.key_path,
                    "unique": index.unique,
                    "table": self._index_key(store.name, index.name),
                }
                if self._index_key(store.name, index.name) not in self._mapping:
                    stored = ((key, load(key)) for key in table["keys"])
                    index_map = query.build_index(index, ((key, record) for key, record in stored if record))
                    self._write(self._index_key(store.name, index.name), index_map)
            if self.config.version is not None:
                table["version"] = self.config.version
            self._write(self._table_key(store.name), table)

    # Protocol

    def _load(self, store: str):
        def load(key: RecordKey) -> Optional[Resource]:
            return self._read(self._record_key(store, key))
        return load

    def _index_maps(self, store: StoreConfig) -> Dict[str, query.IndexMap]:
        return {index.name: self._read(self._index_key(store.name, index.name), {}) for index in store.indexes}

    async def get(self, store: str, key: RecordKey) -> Optional[Resource]:
        self.store_config(store)
        if is_missing_key(key):
            return None
        return self._load(store)(parse_key(key))

    async def set(self, store: str, key: RecordKey, data: Resource) -> Resource:
        store_config = self.store_config(store)
        if is_missing_key(key):
            raise MissingKeyError()

        key = parse_key(key)
        payload = json.dumps(data)
        index_maps = self._index_maps(store_config)
        query.update_indexes(store_config, index_maps, key, json.loads(payload))

        for name, index_map in index_maps.items():
            self._write(self._index_key(store, name), index_map)

        table = self._read(self._table_key(store), {"indexes": {}, "keys": []})
        if key not in table["keys"]:
            table["keys"].append(key)
            self._write(self._table_key(store), table)

        self._mapping[self._record_key(store, key)] = payload
        logger.debug(f"Stored {store}:{key} in key/value database {self.name}")
        return data

    async def delete(self, store: str, key: RecordKey) -> bool:
        store_config = self.store_config(store)
        key = parse_key(key)

        for name, index_map in self._index_maps(store_config).items():
            query.remove_from_index(index_map, key)
            self._write(self._index_key(store, name), index_map)

        table = self._read(self._table_key(store), {"indexes": {}, "keys": []})
        if key in table["keys"]:
            table["keys"].remove(key)
            self._write(self._table_key(store), table)

        return self._mapping.pop(self._record_key(store, key), None) is not None

    async def where(self, store: str, index: str, search: Any,
                    options: Union[SearchOptions, Mapping[str, Any], None] = None) -> QueryResult:
        options = SearchOptions.coerce(options)
        store_config = self.store_config(store)

        if store_config.get_index(index) is None:
            return None if options.operator is Operator.EQUALS else []

        index_map = self._read(self._index_key(store, index), {})
        entries = query.ordered_entries(index_map, options.direction)
        return query.select(entries, self._load(store), search, options)

    async def all(self, store: str, index: Optional[str] = None,
                  options: Union[CursorOptions, Mapping[str, Any], None] = None) -> List[Resource]:
        options = CursorOptions.coerce(options)
        store_config = self.store_config(store)

        if index:
            if store_config.get_index(index) is None:
                return []
            index_map = self._read(self._index_key(store, index), {})
            keys = [key for _, key in query.ordered_entries(index_map, options.direction)]
        else:
            table = self._read(self._table_key(store), {"indexes": {}, "keys": []})
            keys = query.ordered_keys(table["keys"], options.direction)

        return query.scan(keys, self._load(store), options)


class KeyValuePlugin(ConnectionPlugin):
    """
    Opens key/value connections.

    Args:
        mapping: Storage shared by every database this plugin opens;
            a new dict when omitted
        prefix: Namespace prepended to every storage key
    """

    def __init__(self, mapping: Optional[MutableMapping[str, str]] = None, prefix: str = KEY_PREFIX):
        self.mapping = mapping if mapping is not None else {}
        self.prefix = prefix

    async def setup(self, config: DatabaseConfig) -> KeyValueConnection:
        connection = KeyValueConnection(config, self.mapping, self.prefix)
        connection.provision()
        logger.debug(f"Opening key/value database {config.name}")
        return connection
