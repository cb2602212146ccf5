"""
Timeline derived types

Read-only views computed from the stores on demand.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from aethel.domain.entities import AethelObject, TimelinePlacement


@dataclass(frozen=True)
class ComputedObjectState:
    """
    Attributes of an object at a timeline position.

    mutations are the placements folded into computed_attributes (position <=
    the queried position), future_mutations the ones still ahead. Both are in
    fold order.
    """
    object_id: str
    position: float
    computed_attributes: Dict[str, Any]
    mutations: Tuple[TimelinePlacement, ...] = ()
    future_mutations: Tuple[TimelinePlacement, ...] = ()

    def get(self, key: str, default: Any = None) -> Any:
        return self.computed_attributes.get(key, default)


@dataclass(frozen=True)
class ObjectMutations:
    past: Tuple[TimelinePlacement, ...]
    future: Tuple[TimelinePlacement, ...]


@dataclass(frozen=True)
class TimelineBounds:
    min: float
    max: float

    @property
    def span(self) -> float:
        return self.max - self.min


@dataclass
class TimelineCard:
    """A rendered object's appearance in the book flow."""
    index: int
    object: AethelObject
    creation: Optional[TimelinePlacement] = None
    mutations_below: List[TimelinePlacement] = field(default_factory=list)


@dataclass(frozen=True)
class TrackLayoutPlan:
    """
    Result of planning a track insert/remove/move.

    tracks is the new configured track list, track_changes maps placement
    id -> new track index, removed_ids lists placements deleted with the track.
    """
    tracks: Tuple[Any, ...]
    track_changes: Dict[str, int]
    removed_ids: Tuple[str, ...] = ()
