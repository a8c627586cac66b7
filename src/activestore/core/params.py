"""
Per-record lifecycle state.

The parameter bag lives in a pydantic private attribute, so it never shows up
in ``model_dump``. Only the synchronization metadata is persisted, under the
reserved ``PARAMS_KEY`` envelope next to the record fields.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

if TYPE_CHECKING:
    from .relationships import Relationship

PARAMS_KEY = "$params"


@dataclass
class ParamBag:
    """Lifecycle state of one record instance"""
    new: bool = True
    instance: bool = False
    original: Optional[str] = None
    preload_relations: Dict[str, 'Relationship'] = field(default_factory=dict)
    last_updated: Optional[Any] = None
    last_synced: Optional[Any] = None
    sync_errors: List[Any] = field(default_factory=list)

    def sync_metadata(self) -> Dict[str, Any]:
        """Metadata persisted with the record, opaque to the engine"""
        return {
            "last_updated": self.last_updated,
            "last_synced": self.last_synced,
            "sync_errors": list(self.sync_errors),
        }

    def restore_sync_metadata(self, metadata: Optional[Mapping[str, Any]]) -> None:
        if not metadata:
            return
        self.last_updated = metadata.get("last_updated", self.last_updated)
        self.last_synced = metadata.get("last_synced", self.last_synced)
        self.sync_errors = list(metadata.get("sync_errors") or [])
