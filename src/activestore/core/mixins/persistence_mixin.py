"""
PersistenceMixin: storage verbs on top of the connection protocol.

This mixin resolves the record's connection, runs get/save/delete and the
query verbs through it and resolves preloaded relationships. Failures coming
back from the connection are logged and published on ``MODEL_OP_ERROR``
before they propagate.
"""

import logging
from dataclasses import asdict
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Union

from ...config import get_settings
from ...database import get_default_connection
from ...errors import MissingKeyError, NoConnectionError
from ...events import MODEL_OP_ERROR, dispatch
from ...keys import is_generated_key, is_missing_key, parse_key
from ...persistence.base import (
    CursorOptions, Direction, Operator, Resource, SearchOptions, StorageConnection,
)
from ..relationships import Cardinality

logger = logging.getLogger(__name__)

Options = Union[CursorOptions, Mapping[str, Any], None]


def _option_values(options: Options, overrides: Dict[str, Any]) -> Dict[str, Any]:
    if isinstance(options, CursorOptions):
        values = asdict(options)
    else:
        values = dict(options or {})
    values.update({key: value for key, value in overrides.items() if value is not None})
    return values


class PersistenceMixin:
    """
    Persistence operations mixin.

    Provides get, save, delete, find, many and all against the injected
    connection or the registry default.
    """

    # Connection

    def connection(self) -> StorageConnection:
        """The injected connection, else the default one"""
        connection = self._connection or get_default_connection()
        if connection is None:
            raise NoConnectionError(
                f"No connection available for {type(self).__name__}. Call init_db() or inject one"
            )
        return connection

    def using(self, connection: Optional[StorageConnection]):
        """Inject the connection this record talks to"""
        self._connection = connection
        return self

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        except Exception as err:
            logger.error(f"{type(self).__name__}.{operation} on store {self.store_name()} failed: {err}")
            dispatch(MODEL_OP_ERROR, err)
            raise

    # Verbs

    async def get(self, key: Any):
        """
        Load the record stored under ``key`` into this instance.

        Returns:
            This instance with preloads resolved, or None if absent
        """
        connection = self.connection()
        data = await self._call("get", connection.get(self.store_name(), parse_key(key)))

        if not data:
            return None

        self.hydrate(data)
        return await self.load_relationships()

    async def save(self):
        """Write the record, generating a key first when it has none"""
        key = self.get_key()

        if is_missing_key(key):
            key = self.generate_key()
            setattr(self, self.get_key_field(), key)

        connection = self.connection()
        await self._call("save", connection.set(self.store_name(), parse_key(key), self._resource_to_save()))
        logger.debug(f"Saved {type(self).__name__} {key!r} to {self.store_name()}")

        self._params.instance = True
        self._params.new = is_generated_key(key)
        self._params.original = self._snapshot()

        return self

    async def delete(self) -> bool:
        key = self.get_key()

        if is_missing_key(key):
            raise MissingKeyError()

        connection = self.connection()
        deleted = await self._call("delete", connection.delete(self.store_name(), parse_key(key)))
        return bool(deleted)

    async def find(self, field: str, search: Any):
        """First record whose ``field`` index equals ``search``, loaded into this instance"""
        connection = self.connection()
        data = await self._call("find", connection.where(self.store_name(), field, search))

        if not data:
            return None

        self.hydrate(data)
        return await self.load_relationships()

    async def many(self, field: str, search: Any, options: Options = None, **overrides: Any) -> List[Any]:
        """
        Query records through the ``field`` index.

        Operator defaults to ``includes``, offset to 0 and limit to the page
        size. A ``SearchOptions`` instance always carries an operator
        (``equals`` unless set), which is used as given; mappings, keyword
        overrides and plain ``CursorOptions`` get the ``includes`` default.
        Every result is a new instance carrying this record's preloads.
        """
        values = _option_values(options, overrides)
        values["operator"] = values.get("operator") or Operator.INCLUDES
        values["offset"] = values.get("offset") or 0
        values["limit"] = values.get("limit") or self._per_page()

        connection = self.connection()
        resources = await self._call(
            "many", connection.where(self.store_name(), field, search, SearchOptions.coerce(values))
        )

        if isinstance(resources, Mapping):
            resources = [resources]

        return [await self._from_resource(resource) for resource in resources or [] if resource]

    async def all(self, index: Optional[str] = None, options: Options = None, **overrides: Any) -> List[Any]:
        """Scan the store in primary order, or in the order of ``index``"""
        values = _option_values(options, overrides)
        values["offset"] = values.get("offset") or 0
        values["limit"] = values.get("limit") or self._per_page()
        values["direction"] = values.get("direction") or Direction.ASC

        connection = self.connection()
        resources = await self._call(
            "all", connection.all(self.store_name(), index, CursorOptions.coerce(values))
        )

        return [await self._from_resource(resource) for resource in resources or [] if resource]

    # Relationships

    async def load_relationships(self):
        """Resolve every preloaded relationship onto this instance"""
        settings = get_settings()

        for name, relation in list(self._params.preload_relations.items()):
            related = relation.resolve()(connection=self._connection)

            if relation.cardinality == Cardinality.BELONGS:
                foreign_key = getattr(self, relation.foreign_key, None)
                if is_missing_key(foreign_key):
                    continue
                value = await related.get(parse_key(foreign_key))
            elif relation.cardinality == Cardinality.ONE:
                value = await related.find(relation.foreign_key, parse_key(self.get_key()))
            else:
                value = await related.many(
                    relation.foreign_key,
                    parse_key(self.get_key()),
                    operator=Operator.EQUALS_MANY,
                    limit=settings.relation_limit,
                )

            setattr(self, name, value)

        return self

    # Helpers

    async def _from_resource(self, resource: Resource):
        record = self.new_instance()
        record._params.preload_relations = dict(self._params.preload_relations)
        record.hydrate(resource)
        return await record.load_relationships()

    def _per_page(self) -> int:
        return self.PER_PAGE or get_settings().per_page
