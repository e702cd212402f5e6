from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.destination import Destination
from models.settings import PlannerSettings

@dataclass
class TripMeta:
    updated_at: Optional[int] = None
    updated_by: Optional[str] = None


@dataclass
class TripDocument:
    """Root document: the unit of local persistence and of remote sync."""
    destinations: List[Destination] = field(default_factory=list)
    settings: PlannerSettings = field(default_factory=PlannerSettings)
    meta: TripMeta = field(default_factory=TripMeta)

    def find_destination(self, destination_id: str) -> Optional[Destination]:
        return next((d for d in self.destinations if d.id == destination_id), None)

    def to_dict(self, updated_at: Optional[int] = None, updated_by: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "destinations": [d.to_dict() for d in self.destinations],
            "settings": self.settings.to_dict(),
        }
        if updated_at is not None:
            payload["meta"] = {"updatedAt": updated_at, "updatedBy": updated_by}
        return payload
