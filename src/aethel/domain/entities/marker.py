"""
Timeline Marker entity

Named annotation at a timeline position. Markers never affect object state.
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional

from aethel.domain.entities.aethel_object import new_id

DEFAULT_MARKER_COLOR = "#f59e0b"


@dataclass
class TimelineMarker:
    position: float
    label: str
    id: str = field(default_factory=new_id)
    description: Optional[str] = None
    color: str = DEFAULT_MARKER_COLOR

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "TimelineMarker":
        return TimelineMarker(
            id=data["id"],
            position=float(data["position"]),
            label=data.get("label") or data.get("name") or "",
            description=data.get("description"),
            color=data.get("color") or DEFAULT_MARKER_COLOR,
        )
