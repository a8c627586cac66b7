"""
ActiveStore Persistence Layer - Base Classes

This module provides the contract every storage backend implements: point
get/set/delete, indexed queries (``where``) and full scans (``all``), along
with the options that drive matching and pagination.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from ..config import DatabaseConfig, StoreConfig
from ..errors import StoreNotFoundError
from ..keys import RecordKey

Resource = Dict[str, Any]
QueryResult = Union[Resource, List[Resource], None]


class Operator(str, Enum):
    """Match operators for indexed queries"""
    EQUALS = "equals"
    EQUALS_MANY = "equals_many"
    INCLUDES = "includes"
    NOT_EQUALS = "not_equals"
    NOT_INCLUDES = "not_includes"


class Direction(str, Enum):
    """Iteration direction over primary or index order"""
    ASC = "asc"
    DESC = "desc"


@dataclass
class CursorOptions:
    """Pagination options for scans"""
    offset: int = 0
    limit: Optional[int] = None
    direction: Direction = Direction.ASC

    def __post_init__(self):
        self.direction = Direction(self.direction or Direction.ASC)
        self.offset = max(int(self.offset or 0), 0)

    @classmethod
    def coerce(cls, options: Union['CursorOptions', Mapping[str, Any], None] = None, **overrides: Any):
        """
        Build options from an instance, a mapping or nothing, then apply overrides.

        ``None`` overrides are ignored so callers can pass optional arguments
        straight through.
        """
        overrides = {key: value for key, value in overrides.items() if value is not None}

        if isinstance(options, cls):
            return replace(options, **overrides) if overrides else options

        if isinstance(options, CursorOptions):
            values = {item.name: getattr(options, item.name) for item in fields(options)}
        else:
            values = dict(options or {})
        values.update(overrides)

        known = {item.name for item in fields(cls)}
        return cls(**{key: value for key, value in values.items() if key in known})


@dataclass
class SearchOptions(CursorOptions):
    """Pagination options plus the match operator for ``where``"""
    operator: Operator = Operator.EQUALS

    def __post_init__(self):
        super().__post_init__()
        self.operator = Operator(self.operator or Operator.EQUALS)


class StorageConnection(ABC):
    """
    Abstract base class for storage connections.

    Implementations must reproduce the matching and pagination rules of
    ``activestore.persistence.query`` exactly and must make every write
    visible to the next read on the same connection.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    def get_engine(self) -> Any:
        """Return the underlying storage object"""
        return None

    def store_config(self, store: str) -> StoreConfig:
        """Get the declaration of ``store`` or raise ``StoreNotFoundError``"""
        store_config = self.config.get_store(store)
        if store_config is None:
            raise StoreNotFoundError(store)
        return store_config

    @abstractmethod
    async def get(self, store: str, key: RecordKey) -> Optional[Resource]:
        """
        Load one record by key.

        Returns:
            The stored record, or None if the key is absent
        """
        pass

    @abstractmethod
    async def set(self, store: str, key: RecordKey, data: Resource) -> Resource:
        """
        Insert or replace a record and update every index of the store.

        Returns:
            The stored record
        """
        pass

    @abstractmethod
    async def delete(self, store: str, key: RecordKey) -> bool:
        """
        Delete a record and its index entries.

        Returns:
            True if a record was removed
        """
        pass

    @abstractmethod
    async def where(self, store: str, index: str, search: Any,
                    options: Union[SearchOptions, Mapping[str, Any], None] = None) -> QueryResult:
        """
        Query a store through one of its indexes.

        Returns:
            A single record or None for ``equals``, a list otherwise
        """
        pass

    @abstractmethod
    async def all(self, store: str, index: Optional[str] = None,
                  options: Union[CursorOptions, Mapping[str, Any], None] = None) -> List[Resource]:
        """Scan a store in primary order, or in the sorted order of ``index``"""
        pass

    async def close(self) -> None:
        """Release backend resources"""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class ConnectionPlugin(ABC):
    """Factory that opens a connection for a database declaration."""

    @abstractmethod
    async def setup(self, config: DatabaseConfig) -> StorageConnection:
        """
        Open a connection, provisioning stores and indexes on first open.

        Opening an already provisioned database must not change it.
        """
        pass

    async def close(self) -> None:
        """Release resources shared by the connections this plugin opened"""
        pass
