"""
Snapshot Serializer

Converts a document to and from a plain, JSON-compatible snapshot:

    {
        "schema_version": "3.0.0",
        "saved_at": "...",
        "objects": [...],
        "placements": [...],
        "tracks": [...],
        "markers": [...],
        "milestones": [...],
        "cursor": 0.0,
    }

Older project files are imported once on load:
- 1.x: camelCase track/position placements under "timeline"
- 2.x: card-based placements without positions; positions are derived from
  the rendered card order (see _position_from_card)

Deserialization validates everything and builds fresh stores. Nothing is
written to an existing document here, so a failing load leaves it untouched.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from aethel.application.registry.object_registry import ObjectRegistry
from aethel.application.timeline.milestone_store import MilestoneStore
from aethel.application.timeline.timeline_store import TimelineStore
from aethel.domain.entities import (
    AethelObject,
    Milestone,
    PlacementType,
    TimelineMarker,
    TimelinePlacement,
    TimelineTrack,
    utc_now,
)
from aethel.domain.errors import AethelError, SnapshotError
from aethel.utils.message import Log

SCHEMA_VERSION = "3.0.0"
SUPPORTED_MAJOR_VERSIONS = (1, 2, 3)

_PLACEMENT_KEYS = {
    "objectId": "object_id",
    "endPosition": "end_position",
    "groupId": "group_id",
    "threadIds": "thread_ids",
    "mutationDisplay": "mutation_display",
    "attachedToObjectId": "attached_to_object_id",
    "afterRenderedIndex": "after_rendered_index",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


@dataclass
class DocumentState:
    """Freshly built stores, ready to be swapped into a Document."""
    registry: ObjectRegistry
    timeline: TimelineStore
    milestones: MilestoneStore


def parse_version(version: Any) -> Tuple[int, int, int]:
    try:
        parts = [int(p) for p in str(version).split(".")]
    except ValueError:
        raise SnapshotError(f"Unreadable schema version '{version}'")
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class SnapshotSerializer:
    """Stateless snapshot conversion."""

    @staticmethod
    def serialize(registry: ObjectRegistry, timeline: TimelineStore, milestones: MilestoneStore) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "saved_at": utc_now().isoformat(),
            "objects": [obj.to_dict() for obj in registry.all()],
            "placements": [p.to_dict() for p in timeline.placements()],
            "tracks": [t.to_dict() for t in timeline.tracks],
            "markers": [m.to_dict() for m in timeline.markers],
            "milestones": [m.to_dict() for m in milestones.all()],
            "cursor": timeline.cursor_position,
        }

    @staticmethod
    def to_json(snapshot: Dict[str, Any]) -> str:
        return json.dumps(snapshot, ensure_ascii=False)

    @staticmethod
    def from_json(text: str) -> Dict[str, Any]:
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            raise SnapshotError(f"Snapshot is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise SnapshotError("Snapshot must be a JSON object")
        return data

    @classmethod
    def deserialize(
        cls,
        snapshot: Dict[str, Any],
        point_width: Optional[float] = None,
        magnetic_gap: Optional[float] = None,
    ) -> DocumentState:
        """
        Validate a snapshot (importing older schemas) and build new stores.

        Raises:
            SnapshotError: malformed snapshot, unknown schema or broken references
        """
        if not isinstance(snapshot, dict):
            raise SnapshotError("Snapshot must be a mapping")

        version = snapshot.get("schema_version", snapshot.get("version"))
        if version is None:
            raise SnapshotError("Snapshot has no schema version")
        major = parse_version(version)[0]
        if major not in SUPPORTED_MAJOR_VERSIONS:
            raise SnapshotError(f"Unsupported schema version '{version}'")
        if major < 3:
            Log.info(f"SnapshotSerializer: importing schema {version}")
            snapshot = cls.import_legacy(snapshot, major)

        errors = cls.validate(snapshot)
        if errors:
            raise SnapshotError("Invalid snapshot", errors)

        try:
            registry = ObjectRegistry([AethelObject.from_dict(o) for o in snapshot["objects"]])
            store_options = {}
            if point_width is not None:
                store_options["point_width"] = point_width
            if magnetic_gap is not None:
                store_options["magnetic_gap"] = magnetic_gap
            timeline = TimelineStore(
                placements=[TimelinePlacement.from_dict(p) for p in snapshot["placements"]],
                tracks=[TimelineTrack.from_dict(t) for t in snapshot.get("tracks", [])],
                markers=[TimelineMarker.from_dict(m) for m in snapshot.get("markers", [])],
                cursor_position=float(snapshot.get("cursor") or 0.0),
                **store_options,
            )
            milestones = MilestoneStore([Milestone.from_dict(m) for m in snapshot.get("milestones", [])])
        except (AethelError, KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"Snapshot could not be loaded: {e}")

        duplicates = timeline.find_duplicate_creations()
        if duplicates:
            Log.warning(f"SnapshotSerializer: objects with several creation placements: {sorted(duplicates)}")
        return DocumentState(registry, timeline, milestones)

    @staticmethod
    def validate(snapshot: Dict[str, Any]) -> List[str]:
        """Structural and referential checks. Returns error messages (empty if valid)."""
        errors: List[str] = []
        for key in ("objects", "placements"):
            if not isinstance(snapshot.get(key), list):
                errors.append(f"'{key}' must be a list")
        for key in ("tracks", "markers", "milestones"):
            if key in snapshot and not isinstance(snapshot[key], list):
                errors.append(f"'{key}' must be a list")
        if errors:
            return errors

        object_ids = set()
        for obj in snapshot["objects"]:
            if not isinstance(obj, dict) or not obj.get("id") or "name" not in obj:
                errors.append(f"object entry without id or name: {obj!r:.80}")
                continue
            if obj["id"] in object_ids:
                errors.append(f"duplicate object id '{obj['id']}'")
            object_ids.add(obj["id"])
        for obj in snapshot["objects"]:
            if isinstance(obj, dict) and obj.get("parent_id") and obj["parent_id"] not in object_ids:
                errors.append(f"object '{obj.get('id')}' has unknown parent '{obj['parent_id']}'")

        placement_ids = set()
        for placement in snapshot["placements"]:
            if not isinstance(placement, dict) or not placement.get("id"):
                errors.append(f"placement entry without id: {placement!r:.80}")
                continue
            pid = placement["id"]
            if pid in placement_ids:
                errors.append(f"duplicate placement id '{pid}'")
            placement_ids.add(pid)
            if placement.get("object_id") not in object_ids:
                errors.append(f"placement '{pid}' references unknown object '{placement.get('object_id')}'")
            if placement.get("type") not in (PlacementType.CREATION.value, PlacementType.MUTATION.value):
                errors.append(f"placement '{pid}' has unknown type '{placement.get('type')}'")
            elif (placement["type"] == PlacementType.MUTATION.value) != bool(placement.get("mutation")):
                errors.append(f"placement '{pid}': mutation payload must be present exactly for mutations")
            position = placement.get("position", 0)
            end = placement.get("end_position")
            track = placement.get("track", 0)
            bad = [name for name, value in (("position", position), ("end_position", end), ("track", track))
                   if value is not None and not _is_number(value)]
            if bad:
                errors.append(f"placement '{pid}' has non-numeric {', '.join(bad)}")
                continue
            if end is not None and end <= (position or 0):
                errors.append(f"placement '{pid}' has an empty range")
            if (track or 0) < 0:
                errors.append(f"placement '{pid}' has a negative track")

        indices = [t.get("index", -1) for t in snapshot.get("tracks", []) if isinstance(t, dict)]
        if not all(_is_number(index) for index in indices):
            errors.append(f"track indices must be numbers, got {indices}")
        elif sorted(indices) != list(range(len(indices))):
            errors.append(f"track indices must be contiguous from 0, got {sorted(indices)}")
        return errors

    # ------------------------------------------------------------------
    # Legacy import
    # ------------------------------------------------------------------

    @classmethod
    def import_legacy(cls, data: Dict[str, Any], major: int) -> Dict[str, Any]:
        timeline = data.get("timeline") or {}
        objects = [AethelObject.from_dict(o).to_dict() for o in data.get("objects") or []]
        raw_placements = [cls._snake_placement(p) for p in timeline.get("placements") or []]
        markers = [
            TimelineMarker.from_dict(m).to_dict()
            for m in ((timeline.get("current") or {}).get("markers") or [])
        ]

        if major >= 2:
            card_index = cls._card_indices(objects)
            for placement in raw_placements:
                if placement.get("position") is None:
                    placement["position"] = cls._position_from_card(placement, card_index)
                    placement["end_position"] = None
                    placement["track"] = 0

        for sequence, placement in enumerate(raw_placements, start=1):
            placement.setdefault("sequence", sequence)
            placement.setdefault("track", 0)
            if placement.get("track") is None:
                placement["track"] = 0

        cursor = timeline.get("cursorPosition")
        if cursor is None:
            cursor = timeline.get("cursorIndex", 0)

        return {
            "schema_version": SCHEMA_VERSION,
            "saved_at": data.get("savedAt") or utc_now().isoformat(),
            "objects": objects,
            "placements": raw_placements,
            "tracks": [TimelineTrack.from_dict(t).to_dict() for t in timeline.get("tracks") or []],
            "markers": markers,
            "milestones": [Milestone.from_dict(m).to_dict() for m in timeline.get("milestones") or []],
            "cursor": cursor or 0,
        }

    @staticmethod
    def _snake_placement(placement: Dict[str, Any]) -> Dict[str, Any]:
        converted = {_PLACEMENT_KEYS.get(key, key): value for key, value in placement.items()}
        converted.pop("slipOffset", None)
        return converted

    @staticmethod
    def _card_indices(objects: List[Dict[str, Any]]) -> Dict[str, int]:
        registry = ObjectRegistry([AethelObject.from_dict(o) for o in objects])
        rendered = [obj for obj in registry.walk() if obj.rendered]
        return {obj.id: index for index, obj in enumerate(rendered)}

    @staticmethod
    def _position_from_card(placement: Dict[str, Any], card_index: Dict[str, int]) -> float:
        """
        creation          -> index of the object's card
        'below' mutation  -> index of the card it is attached to
        'between' mutation -> halfway after after_rendered_index
        """
        if placement.get("type") == PlacementType.MUTATION.value:
            if placement.get("mutation_display") == "below" and placement.get("attached_to_object_id") in card_index:
                return float(card_index[placement["attached_to_object_id"]])
            if placement.get("after_rendered_index") is not None:
                return max(0.0, float(placement["after_rendered_index"]) + 0.5)
        return float(card_index.get(placement.get("object_id"), 0))
