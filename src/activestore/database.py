"""
Connection Registry

Creates and caches one connection per logical database name and keeps the
process-wide default connection that records fall back to when no
connection was injected.

The registry is plain module state without locking; it is safe under
asyncio's single-threaded scheduling only.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from .config import DatabaseConfig
from .events import DB_INIT_ERROR, dispatch
from .persistence import ConnectionPlugin, StorageConnection, memory_plugin

logger = logging.getLogger(__name__)

_databases: Dict[str, StorageConnection] = {}
_default_connection: Optional[StorageConnection] = None


async def init_db(config: Union[DatabaseConfig, Mapping[str, Any]]) -> Optional[StorageConnection]:
    """
    Open (or reuse) the connection for a database declaration.

    A connection already opened under ``config.name`` is returned unchanged.
    Otherwise the configured plugin (the memory plugin by default) sets one
    up, it is cached and, unless ``default`` is False, becomes the default
    connection.

    Setup failures are logged and published on ``DB_INIT_ERROR``; the
    function then returns None.

    Args:
        config: ``DatabaseConfig`` or a mapping with the same keys

    Returns:
        The connection, or None if setup failed
    """
    if not isinstance(config, DatabaseConfig):
        config = DatabaseConfig.model_validate(config)

    if config.name in _databases:
        return _databases[config.name]

    plugin: ConnectionPlugin = config.plugin or memory_plugin

    try:
        connection = await plugin.setup(config)
    except Exception as err:
        logger.error(f"Failed to initialize database {config.name}: {err}")
        dispatch(DB_INIT_ERROR, err)
        return None

    _databases[config.name] = connection
    logger.info(f"Initialized database {config.name} with {plugin.__class__.__name__}")

    if config.default:
        set_default_connection(connection)

    return connection


def get_connection(name: str) -> Optional[StorageConnection]:
    """Get a cached connection by database name"""
    return _databases.get(name)


def get_default_connection() -> Optional[StorageConnection]:
    return _default_connection


def set_default_connection(connection: Optional[StorageConnection] = None) -> None:
    """Install the connection records use when none was injected; None unsets it"""
    global _default_connection
    _default_connection = connection


def clear_databases() -> None:
    """Forget every cached connection and the default connection"""
    _databases.clear()
    set_default_connection(None)


async def close_database(name: str) -> bool:
    """
    Close a cached connection and forget it.

    The default connection is unset when it is the one being closed.

    Returns:
        True if a connection was cached under ``name``
    """
    connection = _databases.pop(name, None)
    if connection is None:
        return False

    if _default_connection is connection:
        set_default_connection(None)

    await connection.close()
    logger.info(f"Closed database {name}")
    return True
