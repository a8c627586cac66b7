"""
ActiveStore - active-record objects over pluggable storage backends.

Records are pydantic models that know how to load, save, query and delete
themselves through a storage connection. Connections come from plugins
(in-memory, key/value mapping or SQL) and are registered by ``init_db``.
"""

from .collector import QueryCollector, collect
from .config import (
    DatabaseConfig, IndexConfig, LoggingConfig, Settings, StoreConfig, configure, configure_logging,
    get_settings, reset_settings,
)
from .core import (
    PARAMS_KEY, Cardinality, ParamBag, Record, Relationship, belongs_to, has_many, has_one,
)
from .database import (
    clear_databases, close_database, get_connection, get_default_connection, init_db,
    set_default_connection,
)
from .errors import (
    ActiveStoreError, ConfigurationError, ConstraintError, MissingKeyError, NoConnectionError,
    RecordTypeNotFoundError, RelationshipNotFoundError, RequestTimeoutError, StorageError,
    StoreNotFoundError,
)
from .events import (
    DB_INIT_ERROR, MODEL_OP_ERROR, EventBus, dispatch, event_bus, on_database_init_error,
    on_model_operation_error, subscribe, unsubscribe,
)
from .keys import generate_new_id, generate_new_slug, parse_key
from .persistence import (
    ConnectionPlugin, CursorOptions, Direction, KeyValuePlugin, MemoryPlugin, Operator,
    SearchOptions, SQLPlugin, StorageConnection, memory_plugin,
)

__version__ = "0.1.0"

__all__ = [
    # Records
    "Record",
    "Relationship",
    "Cardinality",
    "ParamBag",
    "PARAMS_KEY",
    "belongs_to",
    "has_one",
    "has_many",
    "collect",
    "QueryCollector",

    # Registry
    "init_db",
    "get_connection",
    "get_default_connection",
    "set_default_connection",
    "clear_databases",
    "close_database",

    # Storage
    "StorageConnection",
    "ConnectionPlugin",
    "CursorOptions",
    "SearchOptions",
    "Operator",
    "Direction",
    "MemoryPlugin",
    "memory_plugin",
    "KeyValuePlugin",
    "SQLPlugin",

    # Configuration
    "DatabaseConfig",
    "StoreConfig",
    "IndexConfig",
    "Settings",
    "LoggingConfig",
    "configure",
    "configure_logging",
    "get_settings",
    "reset_settings",

    # Events
    "EventBus",
    "event_bus",
    "dispatch",
    "subscribe",
    "unsubscribe",
    "on_database_init_error",
    "on_model_operation_error",
    "DB_INIT_ERROR",
    "MODEL_OP_ERROR",

    # Keys
    "parse_key",
    "generate_new_id",
    "generate_new_slug",

    # Errors
    "ActiveStoreError",
    "ConfigurationError",
    "StorageError",
    "RelationshipNotFoundError",
    "MissingKeyError",
    "NoConnectionError",
    "RecordTypeNotFoundError",
    "StoreNotFoundError",
    "ConstraintError",
    "RequestTimeoutError",
]
