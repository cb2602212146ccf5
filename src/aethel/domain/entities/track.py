"""
Timeline Track entity

Optional per-index configuration of a timeline row. Placements reference
tracks by index; an index without configuration behaves as a default,
unlocked track.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


@dataclass
class TimelineTrack:
    index: int
    name: Optional[str] = None
    color: Optional[str] = None
    locked: bool = False
    muted: bool = False
    solo: bool = False
    height: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "TimelineTrack":
        return TimelineTrack(
            index=int(data["index"]),
            name=data.get("name"),
            color=data.get("color"),
            locked=bool(data.get("locked", False)),
            muted=bool(data.get("muted", False)),
            solo=bool(data.get("solo", False)),
            height=data.get("height"),
        )
