"""
Record: the active-record base class.

Subclasses declare a store name and, optionally, a key field, a field
projection and relationships:

    class User(Record):
        name: str = ""

        def store_name(self) -> str:
            return "users"

        def relationships(self):
            return {"posts": has_many("Post", "user_id")}

Fields not declared on the class are accepted and persisted as extras.
"""

from abc import abstractmethod
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, PrivateAttr

from .mixins import PersistenceMixin, StateMixin
from .params import ParamBag
from .relationships import Relationship, register_record_type


class Record(StateMixin, PersistenceMixin, BaseModel):
    """Base class for all persisted records."""
    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)

    PER_PAGE: ClassVar[Optional[int]] = None

    _params: ParamBag = PrivateAttr(default_factory=ParamBag)
    _connection: Optional[Any] = PrivateAttr(default=None)

    def __init__(self, connection: Optional[Any] = None, **data: Any):
        super().__init__(**data)
        self._connection = connection

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        register_record_type(cls)

    @abstractmethod
    def store_name(self) -> str:
        """Name of the store holding records of this type"""
        pass

    def relationships(self) -> Dict[str, Relationship]:
        return {}

    def fields(self) -> Optional[List[str]]:
        """Persisted field names; None persists every field"""
        return None

    def get_key_field(self) -> str:
        return "id"
