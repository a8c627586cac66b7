"""
Relationship descriptors and the record type registry.

A relationship may name its related record type by class, by registered
class name, or through a zero-argument factory. Names and factories are
resolved only when the relationship is loaded, which lets two record types
refer to each other regardless of definition order.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, Type, Union

from ..errors import RecordTypeNotFoundError

if TYPE_CHECKING:
    from .record import Record

RelatedType = Union[str, Type['Record'], Callable[[], Type['Record']]]

_record_types: Dict[str, Type['Record']] = {}


class Cardinality(str, Enum):
    """How related records are found"""
    BELONGS = "belongs"  # this record holds the foreign key
    ONE = "one"          # first related record pointing at this one
    MANY = "many"        # every related record pointing at this one


@dataclass(frozen=True)
class Relationship:
    """Declaration of one relationship of a record type"""
    related: RelatedType
    cardinality: Cardinality
    foreign_key: str

    def __post_init__(self):
        object.__setattr__(self, "cardinality", Cardinality(self.cardinality))

    def resolve(self) -> Type['Record']:
        """Get the related record class"""
        related = self.related
        if isinstance(related, str):
            return record_type(related)
        if isinstance(related, type):
            return related
        return related()


def belongs_to(related: RelatedType, foreign_key: str) -> Relationship:
    return Relationship(related, Cardinality.BELONGS, foreign_key)


def has_one(related: RelatedType, foreign_key: str) -> Relationship:
    return Relationship(related, Cardinality.ONE, foreign_key)


def has_many(related: RelatedType, foreign_key: str) -> Relationship:
    return Relationship(related, Cardinality.MANY, foreign_key)


def register_record_type(cls: Type['Record']) -> None:
    """Register a record class under its name and its qualified name"""
    _record_types[cls.__name__] = cls
    _record_types[f"{cls.__module__}.{cls.__qualname__}"] = cls


def record_type(name: str) -> Type['Record']:
    try:
        return _record_types[name]
    except KeyError:
        raise RecordTypeNotFoundError(name) from None
