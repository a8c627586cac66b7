"""
ActiveStore Core Module

The active-record engine: records, their lifecycle state and relationships.
"""

from .params import PARAMS_KEY, ParamBag
from .record import Record
from .relationships import (
    Cardinality, Relationship, belongs_to, has_many, has_one, record_type, register_record_type,
)

__all__ = [
    "PARAMS_KEY",
    "ParamBag",
    "Record",
    "Cardinality",
    "Relationship",
    "belongs_to",
    "has_many",
    "has_one",
    "record_type",
    "register_record_type",
]
