"""
Core mixins for record functionality.

These mixins split the record lifecycle from storage access; ``Record``
combines both with pydantic's ``BaseModel``.
"""

from .persistence_mixin import PersistenceMixin
from .state_mixin import StateMixin

__all__ = ["PersistenceMixin", "StateMixin"]
