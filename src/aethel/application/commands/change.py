"""
Entity changes and their interpreter.

A change is plain data: which entity, what it looked like before and what it
looks like after. One interpreter applies a change forward (write ``after``)
or backward (write ``before``), so every command undoes by replaying its
recorded snapshots rather than by inverse arithmetic.

    before None          -> the change creates the entity (after is a full dict)
    after None           -> the change deletes the entity (before is a full dict)
    both present         -> field update (partial dicts with the same keys)

Track configuration is snapshotted as a whole: TRACKS changes carry the
complete list of track dicts.
"""
import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

from aethel.domain.entities import (
    AethelObject,
    Milestone,
    TimelineMarker,
    TimelinePlacement,
    TimelineTrack,
)

if TYPE_CHECKING:
    from aethel.application.document import Document

TRACKS_ENTITY_ID = "tracks"


class EntityKind(str, Enum):
    OBJECT = "object"
    PLACEMENT = "placement"
    TRACKS = "tracks"
    MARKER = "marker"
    MILESTONE = "milestone"


@dataclass(frozen=True)
class EntityChange:
    kind: EntityKind
    entity_id: str
    before: Optional[Any] = None
    after: Optional[Any] = None

    @property
    def is_create(self) -> bool:
        return self.before is None

    @property
    def is_delete(self) -> bool:
        return self.after is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "entity_id": self.entity_id,
            "before": copy.deepcopy(self.before),
            "after": copy.deepcopy(self.after),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "EntityChange":
        return EntityChange(
            kind=EntityKind(data["kind"]),
            entity_id=data["entity_id"],
            before=copy.deepcopy(data.get("before")),
            after=copy.deepcopy(data.get("after")),
        )


def created(kind: EntityKind, entity) -> EntityChange:
    return EntityChange(kind, entity.id, None, entity.to_dict())


def deleted(kind: EntityKind, entity) -> EntityChange:
    return EntityChange(kind, entity.id, entity.to_dict(), None)


def updated(kind: EntityKind, entity, fields: Dict[str, Any]) -> EntityChange:
    """Update of the given serialized fields; before is read from entity."""
    return EntityChange(kind, entity.id, entity.fields(fields.keys()), copy.deepcopy(fields))


def tracks_changed(before, after) -> EntityChange:
    return EntityChange(
        EntityKind.TRACKS,
        TRACKS_ENTITY_ID,
        [t.to_dict() for t in before],
        [t.to_dict() for t in after],
    )


def apply_change(document: "Document", change: EntityChange, forward: bool = True) -> None:
    """Write one side of change into the document's stores."""
    target = change.after if forward else change.before
    source = change.before if forward else change.after

    if change.kind == EntityKind.TRACKS:
        document.timeline.set_tracks([TimelineTrack.from_dict(t) for t in target or []])
        return

    if change.kind == EntityKind.OBJECT:
        registry = document.registry
        if target is None:
            registry.remove(change.entity_id)
        elif source is None:
            registry.add(AethelObject.from_dict(target))
        else:
            registry.replace(registry.require(change.entity_id).with_fields(target))

    elif change.kind == EntityKind.PLACEMENT:
        store = document.timeline
        if target is None:
            store.remove_placement(change.entity_id)
        elif source is None:
            store.add_placement(TimelinePlacement.from_dict(target))
        else:
            store.update_placement(change.entity_id, target)

    elif change.kind == EntityKind.MARKER:
        store = document.timeline
        if target is None:
            store.remove_marker(change.entity_id)
        elif source is None:
            store.add_marker(TimelineMarker.from_dict(target))
        else:
            marker = store.require_marker(change.entity_id).to_dict()
            marker.update(target)
            store.replace_marker(TimelineMarker.from_dict(marker))

    elif change.kind == EntityKind.MILESTONE:
        milestones = document.milestones
        if target is None:
            milestones.remove(change.entity_id)
        elif source is None:
            milestones.add(Milestone.from_dict(target))
        else:
            milestones.replace(milestones.require(change.entity_id).with_fields(target))

    else:
        raise ValueError(f"Unknown entity kind: {change.kind}")
