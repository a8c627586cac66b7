"""
ActiveStore Persistence Module

The storage connection protocol and the backends that implement it.
"""

from .base import (
    ConnectionPlugin, CursorOptions, Direction, Operator, QueryResult, Resource, SearchOptions,
    StorageConnection,
)
from .keyvalue import KeyValueConnection, KeyValuePlugin
from .memory import MemoryConnection, MemoryEngine, MemoryPlugin, memory_plugin
from .sql import SQLConnection, SQLPlugin

__all__ = [
    "ConnectionPlugin",
    "CursorOptions",
    "Direction",
    "Operator",
    "QueryResult",
    "Resource",
    "SearchOptions",
    "StorageConnection",
    "KeyValueConnection",
    "KeyValuePlugin",
    "MemoryConnection",
    "MemoryEngine",
    "MemoryPlugin",
    "memory_plugin",
    "SQLConnection",
    "SQLPlugin",
]
