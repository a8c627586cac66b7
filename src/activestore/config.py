"""
Configuration Management for ActiveStore

Two kinds of configuration live here:

- ``Settings``: process-wide engine defaults (page size, relation limit,
  backend request deadline, logging), read from the environment or a dict.
- ``DatabaseConfig``: the declaration of one logical database (name, version,
  plugin, stores and their indexes), validated with pydantic.
"""

import logging
import os
from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "activestore"


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Settings:
    """Engine defaults"""
    per_page: int = 15
    relation_limit: int = 10_000
    request_timeout: float = 1.0
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'Settings':
        """Create settings from ``ACTIVESTORE_*`` environment variables"""
        environ = os.environ if environ is None else environ
        settings = cls()

        def _read(name: str, cast, default):
            raw = environ.get(name)
            if raw is None:
                return default
            try:
                return cast(raw)
            except ValueError:
                logger.warning(f"Ignoring invalid value {raw!r} for {name}, using {default!r}")
                return default

        settings.per_page = _read("ACTIVESTORE_PER_PAGE", int, settings.per_page)
        settings.relation_limit = _read("ACTIVESTORE_RELATION_LIMIT", int, settings.relation_limit)
        settings.request_timeout = _read("ACTIVESTORE_REQUEST_TIMEOUT", float, settings.request_timeout)
        settings.logging.level = environ.get("ACTIVESTORE_LOG_LEVEL", settings.logging.level).upper()
        return settings

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'Settings':
        """Create settings from a dictionary, ignoring unknown keys"""
        settings = cls()

        for item in dataclass_fields(cls):
            if item.name == "logging" or item.name not in config_dict:
                continue
            setattr(settings, item.name, config_dict[item.name])

        for key, value in config_dict.get("logging", {}).items():
            if hasattr(settings.logging, key):
                setattr(settings.logging, key, value)

        return settings


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the active settings, loading them from the environment on first use"""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def configure(**overrides: Any) -> Settings:
    """
    Override engine defaults for the whole process.

    Args:
        **overrides: Any ``Settings`` attribute, e.g. ``per_page=30``

    Returns:
        The updated settings
    """
    settings = get_settings()
    for key, value in overrides.items():
        if not hasattr(settings, key):
            raise AttributeError(f"Unknown setting: {key}")
        setattr(settings, key, value)
    return settings


def reset_settings() -> None:
    global _settings
    _settings = None


def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """Attach a stream handler to the package logger using the given config"""
    config = config or get_settings().logging
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(config.level.upper())

    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(config.format))
        package_logger.addHandler(handler)

    return package_logger


class IndexConfig(BaseModel):
    """A secondary index of a store"""
    name: str
    path: Optional[str] = None
    unique: bool = False

    @property
    def key_path(self) -> str:
        """Field path the index value is extracted from"""
        return self.path or self.name


class StoreConfig(BaseModel):
    """A named partition of records"""
    name: str
    indexes: List[IndexConfig] = Field(default_factory=list)

    def get_index(self, name: str) -> Optional[IndexConfig]:
        for index in self.indexes:
            if index.name == name:
                return index
        return None


class DatabaseConfig(BaseModel):
    """Declaration of one logical database"""
    model_config = ConfigDict(arbitrary_types_allowed=True, extra="allow")

    name: str
    version: Optional[int] = None
    plugin: Optional[Any] = None
    default: bool = True
    stores: List[StoreConfig] = Field(default_factory=list)

    def get_store(self, name: str) -> Optional[StoreConfig]:
        for store in self.stores:
            if store.name == name:
                return store
        return None
