"""
Timeline Placement entity

An occurrence of an object on the timeline: either the object's creation or a
mutation that changes some of its attributes from that position onward.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from aethel.domain.entities.aethel_object import new_id, utc_now, parse_datetime
from aethel.domain.errors import InvalidRangeError


class PlacementType(str, Enum):
    CREATION = "creation"
    MUTATION = "mutation"


class MutationDisplay(str, Enum):
    """How a mutation is drawn relative to the cards."""
    BETWEEN = "between"  # marker in the flow between two cards
    BELOW = "below"      # attached underneath a card


@dataclass
class AttributeChange:
    from_value: Any = None
    to_value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"from": copy.deepcopy(self.from_value), "to": copy.deepcopy(self.to_value)}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "AttributeChange":
        return AttributeChange(
            from_value=copy.deepcopy(data.get("from")),
            to_value=copy.deepcopy(data.get("to")),
        )


@dataclass
class MutationPayload:
    label: str
    changes: Dict[str, AttributeChange] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "changes": {key: change.to_dict() for key, change in self.changes.items()},
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MutationPayload":
        return MutationPayload(
            label=data.get("label", ""),
            changes={
                key: AttributeChange.from_dict(change)
                for key, change in (data.get("changes") or {}).items()
            },
        )


@dataclass
class TimelinePlacement:
    """
    Placement of an object on a track.

    Point placements have end_position None. Ranged placements cover the
    half-open interval [position, end_position).

    sequence is a monotonically increasing creation counter used to order
    mutations that share a position.
    """
    object_id: str
    type: PlacementType
    track: int = 0
    position: float = 0.0
    end_position: Optional[float] = None
    mutation: Optional[MutationPayload] = None
    id: str = field(default_factory=new_id)
    locked: bool = False
    group_id: Optional[str] = None
    thread_ids: List[str] = field(default_factory=list)
    mutation_display: Optional[MutationDisplay] = None
    attached_to_object_id: Optional[str] = None
    after_rendered_index: Optional[float] = None
    sequence: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def is_ranged(self) -> bool:
        return self.end_position is not None

    @property
    def is_mutation(self) -> bool:
        return self.type == PlacementType.MUTATION

    @property
    def end(self) -> float:
        """End of the occupied interval; point placements end where they start."""
        return self.end_position if self.end_position is not None else self.position

    def validate(self) -> None:
        if self.track < 0:
            raise InvalidRangeError(f"Placement '{self.id}' has negative track {self.track}")
        if self.end_position is not None and self.end_position <= self.position:
            raise InvalidRangeError(
                f"Placement '{self.id}' range is empty",
                start=self.position, end=self.end_position,
            )
        if self.is_mutation and self.mutation is None:
            raise ValueError(f"Mutation placement '{self.id}' has no mutation payload")
        if not self.is_mutation and self.mutation is not None:
            raise ValueError(f"Creation placement '{self.id}' carries a mutation payload")

    def intersects(self, start: float, end: float) -> bool:
        """Closed-interval test of [position, end] against [start, end]."""
        return self.position <= end and self.end >= start

    def copy(self) -> "TimelinePlacement":
        return copy.deepcopy(self)

    def fields(self, names: Iterable[str]) -> Dict[str, Any]:
        data = self.to_dict()
        return {name: data[name] for name in names}

    def with_fields(self, fields: Dict[str, Any]) -> "TimelinePlacement":
        """New placement with the given serialized fields replaced."""
        data = self.to_dict()
        unknown = set(fields) - set(data)
        if unknown:
            raise KeyError(f"Unknown placement fields: {sorted(unknown)}")
        data.update(copy.deepcopy(fields))
        return TimelinePlacement.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "object_id": self.object_id,
            "type": self.type.value,
            "track": self.track,
            "position": self.position,
            "end_position": self.end_position,
            "mutation": self.mutation.to_dict() if self.mutation else None,
            "locked": self.locked,
            "group_id": self.group_id,
            "thread_ids": list(self.thread_ids),
            "mutation_display": self.mutation_display.value if self.mutation_display else None,
            "attached_to_object_id": self.attached_to_object_id,
            "after_rendered_index": self.after_rendered_index,
            "sequence": self.sequence,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelinePlacement":
        mutation = data.get("mutation")
        display = data.get("mutation_display")
        return cls(
            id=data["id"],
            object_id=data["object_id"],
            type=PlacementType(data["type"]),
            track=int(data.get("track") or 0),
            position=float(data.get("position") or 0.0),
            end_position=None if data.get("end_position") is None else float(data["end_position"]),
            mutation=MutationPayload.from_dict(mutation) if mutation else None,
            locked=bool(data.get("locked", False)),
            group_id=data.get("group_id"),
            thread_ids=list(data.get("thread_ids") or []),
            mutation_display=MutationDisplay(display) if display else None,
            attached_to_object_id=data.get("attached_to_object_id"),
            after_rendered_index=data.get("after_rendered_index"),
            sequence=int(data.get("sequence") or 0),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )
