"""
StateMixin: record lifecycle state without storage access.

This mixin provides key management, hydration, projection and dirty
tracking. It expects the host class to be a pydantic model exposing
``store_name``, ``fields``, ``relationships`` and ``get_key_field`` and
holding a ``ParamBag`` in ``self._params``.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from ...errors import RelationshipNotFoundError
from ...keys import generate_new_id, is_generated_key, is_missing_key
from ..params import PARAMS_KEY, ParamBag

logger = logging.getLogger(__name__)


class StateMixin:
    """
    Record state mixin.

    Provides hydrate, dirty checks, key generation and relationship
    preloading declarations.
    """

    # Keys

    def get_key(self) -> Any:
        return getattr(self, self.get_key_field(), None)

    def generate_key(self) -> str:
        """Generate a new key; hydrated instances also take it as their key."""
        key = generate_new_id()

        if self._params.instance:
            setattr(self, self.get_key_field(), key)

        return key

    # State

    def is_new(self) -> bool:
        return self._params.new

    def is_instance(self) -> bool:
        return self._params.instance

    def is_dirty(self) -> bool:
        """Whether fields changed since the last hydrate or save; True if never hydrated."""
        original = self._params.original
        if original is None:
            return True
        return self._snapshot() != original

    def is_clean(self) -> bool:
        return not self.is_dirty()

    @property
    def params(self) -> ParamBag:
        return self._params

    # Mutators

    def with_(self, relationship: str):
        """
        Preload a relationship on the next fetch.

        Args:
            relationship: Name of a relationship declared by ``relationships()``

        Returns:
            The same instance, so calls can be chained before ``get``/``many``
        """
        relation = self.relationships().get(relationship)

        if relation is None:
            raise RelationshipNotFoundError(relationship)

        self._params.preload_relations[relationship] = relation
        return self

    def hydrate(self, data: Mapping[str, Any]):
        """
        Fill the record from raw data and take a clean snapshot.

        Only projected fields are copied when ``fields()`` declares a
        projection. Preload declarations already on the instance are kept.
        Data named like a record method or property (``params``,
        ``connection``, ``save``...) is persisted and returned by
        ``resource()`` but not reachable as an attribute.
        """
        projection = self.fields()
        payload = dict(data)
        metadata = payload.pop(PARAMS_KEY, None)

        for name, value in payload.items():
            if projection is not None and name not in projection:
                continue
            if name.startswith("_"):
                # pydantic reserves underscore names for private attributes
                logger.debug(f"Skipping private attribute {name} while hydrating {type(self).__name__}")
                continue
            if name not in type(self).model_fields and hasattr(type(self), name):
                # shares a name with a method or property; kept as data only
                self.__pydantic_extra__[name] = value
                continue
            setattr(self, name, value)

        bag = self._params
        bag.restore_sync_metadata(metadata)

        key = self.get_key()
        bag.new = is_missing_key(key) or is_generated_key(key)
        bag.instance = True
        bag.original = self._snapshot()

        return self

    def new_instance(self):
        """Fresh bare instance of the same type, sharing the injected connection"""
        return type(self)(connection=self._connection)

    # Serialization

    def _dump_filter(self) -> Dict[str, Any]:
        excluded = set(self.relationships())
        projection: Optional[list] = self.fields()

        kwargs: Dict[str, Any] = {"exclude": excluded or None}
        if projection is not None:
            kwargs["include"] = set(projection) - excluded
        return kwargs

    def resource(self) -> Dict[str, Any]:
        """The persisted fields as a plain JSON-compatible dict"""
        return self.model_dump(mode="json", **self._dump_filter())

    def _snapshot(self) -> str:
        return self.model_dump_json(**self._dump_filter())

    def _resource_to_save(self) -> Dict[str, Any]:
        data = self.resource()
        data[PARAMS_KEY] = self._params.sync_metadata()
        return data
