"""
Timeline Commands

Undoable edits of placements, tracks and markers.

Every command reads current state in __init__ and records before/after
snapshots, so undo restores exact prior values (timestamps included).
Commands that move, resize, split or delete check locks at construction and
raise LockedEntityError without recording anything.
"""
from typing import Any, Dict, Iterable, Optional, TYPE_CHECKING

from aethel.application.commands.base_command import TimelineCommand
from aethel.application.commands.change import (
    EntityChange,
    EntityKind,
    created,
    deleted,
    tracks_changed,
    updated,
)
from aethel.domain.entities import (
    MutationDisplay,
    PlacementType,
    TimelineMarker,
    TimelinePlacement,
    TimelineTrack,
    utc_now,
)
from aethel.domain.errors import (
    DuplicateCreationError,
    InvalidRangeError,
    NotFoundError,
)

if TYPE_CHECKING:
    from aethel.application.document import Document


def _stamp(fields: Dict[str, Any]) -> Dict[str, Any]:
    fields["updated_at"] = utc_now().isoformat()
    return fields


# =============================================================================
# Placements
# =============================================================================

class AddPlacementCommand(TimelineCommand):
    """
    Put a placement on the timeline.

    Redo: adds the placement
    Undo: removes it

    pending_object_ids lists objects created earlier in the same batch, which
    do not exist yet when this command is constructed.
    """

    COMMAND_TYPE = "placement.add"

    def __init__(
        self,
        document: "Document",
        placement: TimelinePlacement,
        description: Optional[str] = None,
        pending_object_ids: Iterable[str] = (),
    ):
        if placement.object_id not in document.registry and placement.object_id not in set(pending_object_ids):
            raise NotFoundError("Object", placement.object_id, "placement target")
        if placement.type == PlacementType.CREATION:
            existing = document.timeline.get_creation_placement(placement.object_id)
            if existing is not None:
                raise DuplicateCreationError(placement.object_id, existing.id)
        placement.validate()
        if placement.sequence <= 0:
            placement.sequence = document.timeline.allocate_sequence()

        kind = "mutation" if placement.is_mutation else "placement"
        super().__init__(description or f"Add {kind}")
        self.placement_id = placement.id
        self._record(created(EntityKind.PLACEMENT, placement))


class RemovePlacementCommand(TimelineCommand):
    """
    Remove a placement (not its object).

    Redo: removes the placement
    Undo: restores the full copy captured at construction
    """

    COMMAND_TYPE = "placement.remove"

    def __init__(self, document: "Document", placement_id: str):
        placement = document.timeline.ensure_editable(placement_id, "delete")
        super().__init__("Delete mutation" if placement.is_mutation else "Delete placement")
        self._record(deleted(EntityKind.PLACEMENT, placement))


class UpdatePlacementCommand(TimelineCommand):
    """
    Generic field update (serialized field names, e.g. {"locked": True}).

    Does not check locks: lock toggling itself goes through this command.
    """

    COMMAND_TYPE = "placement.update"

    def __init__(self, document: "Document", placement_id: str, updates: Dict[str, Any],
                 description: str = "Update placement"):
        placement = document.timeline.require_placement(placement_id)
        super().__init__(description)
        self._record(updated(EntityKind.PLACEMENT, placement, _stamp(dict(updates))))


class MovePlacementCommand(TimelineCommand):
    """
    Move a placement to a new position and optionally a new track.

    Ranged placements keep their length.
    """

    COMMAND_TYPE = "placement.move"

    def __init__(self, document: "Document", placement_id: str, position: float,
                 track: Optional[int] = None, description: str = "Move placement"):
        store = document.timeline
        placement = store.ensure_editable(placement_id, "move", target_track=track)
        if position < 0:
            raise InvalidRangeError(f"Cannot move placement before the timeline start ({position})")
        if track is not None and track < 0:
            raise InvalidRangeError(f"Track index {track} is negative")

        fields: Dict[str, Any] = {"position": position}
        if placement.end_position is not None:
            fields["end_position"] = placement.end_position + (position - placement.position)
        if track is not None:
            fields["track"] = track

        super().__init__(description)
        self.placement_id = placement_id
        self.position = position
        self.track = placement.track if track is None else track
        self._record(updated(EntityKind.PLACEMENT, placement, _stamp(fields)))


class MagneticMovePlacementCommand(MovePlacementCommand):
    """
    Move that lands on the nearest free slot of the target track instead of
    overlapping another placement.

    exclude_ids are placements moving together with this one.
    """

    COMMAND_TYPE = "placement.move_magnetic"

    def __init__(self, document: "Document", placement_id: str, position: float,
                 track: Optional[int] = None, exclude_ids: Iterable[str] = ()):
        store = document.timeline
        current = store.require_placement(placement_id)
        target_track = current.track if track is None else track
        resolved = store.resolve_magnetic_position(placement_id, position, target_track, exclude_ids)
        super().__init__(document, placement_id, resolved, track, description="Move placement")
        self.requested_position = position


class ResizePlacementCommand(TimelineCommand):
    """
    Change the start and/or end of a placement.

    Raises InvalidRangeError if the result would be empty or negative.
    """

    COMMAND_TYPE = "placement.resize"

    def __init__(self, document: "Document", placement_id: str,
                 position: Optional[float] = None, end_position: Optional[float] = None):
        placement = document.timeline.ensure_editable(placement_id, "resize")
        start = placement.position if position is None else position
        end = placement.end_position if end_position is None else end_position
        if start < 0:
            raise InvalidRangeError(f"Cannot resize placement before the timeline start ({start})")
        if end is None or end <= start:
            raise InvalidRangeError(f"Resize would produce an empty range [{start}, {end})", start=start, end=end)

        super().__init__("Resize placement")
        self._record(updated(
            EntityKind.PLACEMENT, placement,
            _stamp({"position": start, "end_position": end}),
        ))


class SplitPlacementCommand(TimelineCommand):
    """
    Split a ranged placement [s, e) at m into [s, m) and a new [m, e).

    Redo: shortens the original, adds the right half
    Undo: removes the right half, restores the original end
    """

    COMMAND_TYPE = "placement.split"

    def __init__(self, document: "Document", placement_id: str, at: float):
        store = document.timeline
        left_fields, right = store.plan_split(placement_id, at)
        placement = store.require_placement(placement_id)
        super().__init__("Split placement")
        self.right_id = right.id
        self._record(
            updated(EntityKind.PLACEMENT, placement, left_fields),
            created(EntityKind.PLACEMENT, right),
        )


class MergePlacementsCommand(TimelineCommand):
    """
    Merge two placements of the same object: the earlier one grows to cover
    both, the later one is removed.
    """

    COMMAND_TYPE = "placement.merge"

    def __init__(self, document: "Document", first_id: str, second_id: str):
        store = document.timeline
        first = store.ensure_editable(first_id, "merge")
        second = store.ensure_editable(second_id, "merge")
        if first_id == second_id:
            raise InvalidRangeError("Cannot merge a placement with itself")
        if first.object_id != second.object_id:
            raise InvalidRangeError("Cannot merge placements of different objects")
        if first.type != second.type:
            raise InvalidRangeError("Cannot merge a creation with a mutation")

        earlier, later = (first, second) if (first.position, first.sequence) <= (second.position, second.sequence) else (second, first)
        end = max(earlier.end, later.end)

        super().__init__("Merge placements")
        self.merged_id = earlier.id
        if end > earlier.position:
            self._record(updated(EntityKind.PLACEMENT, earlier, _stamp({"end_position": end})))
        self._record(deleted(EntityKind.PLACEMENT, later))


class SetMutationDisplayCommand(TimelineCommand):
    """Switch a mutation between 'between' (flow) and 'below' (attached to a card)."""

    COMMAND_TYPE = "placement.mutation_display"

    def __init__(self, document: "Document", placement_id: str, display: MutationDisplay,
                 attached_to_object_id: Optional[str] = None, after_rendered_index: Optional[float] = None):
        placement = document.timeline.require_placement(placement_id)
        if not placement.is_mutation:
            raise InvalidRangeError(f"Placement '{placement_id}' is not a mutation")
        display = MutationDisplay(display)
        if display == MutationDisplay.BELOW:
            if attached_to_object_id is None:
                raise ValueError("'below' display needs attached_to_object_id")
            document.registry.require(attached_to_object_id)
            fields = {
                "mutation_display": display.value,
                "attached_to_object_id": attached_to_object_id,
                "after_rendered_index": None,
            }
        else:
            if after_rendered_index is None:
                raise ValueError("'between' display needs after_rendered_index")
            fields = {
                "mutation_display": display.value,
                "attached_to_object_id": None,
                "after_rendered_index": after_rendered_index,
            }
        super().__init__("Change mutation display")
        self._record(updated(EntityKind.PLACEMENT, placement, _stamp(fields)))


class AddPlacementToThreadCommand(TimelineCommand):
    """Associate placements with a thread object (many-to-many)."""

    COMMAND_TYPE = "placement.thread_add"

    def __init__(self, document: "Document", placement_ids: Iterable[str], thread_id: str):
        thread = document.registry.require(thread_id)
        super().__init__(f"Add to thread '{thread.name}'")
        for placement_id in placement_ids:
            placement = document.timeline.require_placement(placement_id)
            if thread_id in placement.thread_ids:
                continue
            self._record(updated(
                EntityKind.PLACEMENT, placement,
                _stamp({"thread_ids": placement.thread_ids + [thread_id]}),
            ))


class RemovePlacementFromThreadCommand(TimelineCommand):
    COMMAND_TYPE = "placement.thread_remove"

    def __init__(self, document: "Document", placement_ids: Iterable[str], thread_id: str):
        super().__init__("Remove from thread")
        for placement_id in placement_ids:
            placement = document.timeline.require_placement(placement_id)
            if thread_id not in placement.thread_ids:
                continue
            remaining = [t for t in placement.thread_ids if t != thread_id]
            self._record(updated(EntityKind.PLACEMENT, placement, _stamp({"thread_ids": remaining})))


class SetPlacementsLockedCommand(TimelineCommand):
    COMMAND_TYPE = "placement.lock"

    def __init__(self, document: "Document", placement_ids: Iterable[str], locked: bool):
        super().__init__("Lock placements" if locked else "Unlock placements")
        for placement_id in placement_ids:
            placement = document.timeline.require_placement(placement_id)
            if placement.locked != locked:
                self._record(updated(EntityKind.PLACEMENT, placement, _stamp({"locked": locked})))


class SetPlacementsGroupCommand(TimelineCommand):
    """Assign placements to a group (group_id None ungroups)."""

    COMMAND_TYPE = "placement.group"

    def __init__(self, document: "Document", placement_ids: Iterable[str], group_id: Optional[str]):
        super().__init__("Group placements" if group_id else "Ungroup placements")
        for placement_id in placement_ids:
            placement = document.timeline.require_placement(placement_id)
            if placement.group_id != group_id:
                self._record(updated(EntityKind.PLACEMENT, placement, _stamp({"group_id": group_id})))


# =============================================================================
# Tracks
# =============================================================================

class _TrackLayoutCommand(TimelineCommand):
    """Applies a TrackLayoutPlan: removed placements, renumbered placements, new track list."""

    def _record_plan(self, document: "Document", plan) -> None:
        store = document.timeline
        for placement_id in plan.removed_ids:
            self._record(deleted(EntityKind.PLACEMENT, store.require_placement(placement_id)))
        for placement_id, new_track in sorted(plan.track_changes.items()):
            placement = store.require_placement(placement_id)
            self._record(updated(EntityKind.PLACEMENT, placement, {"track": new_track}))
        self._record(tracks_changed(store.tracks, plan.tracks))


class InsertTrackCommand(_TrackLayoutCommand):
    COMMAND_TYPE = "track.insert"

    def __init__(self, document: "Document", index: int, track: Optional[TimelineTrack] = None):
        plan = document.timeline.plan_insert_track(index, track)
        super().__init__(f"Insert track {index + 1}")
        self._record_plan(document, plan)


class RemoveTrackCommand(_TrackLayoutCommand):
    """Remove a track together with its placements."""

    COMMAND_TYPE = "track.remove"

    def __init__(self, document: "Document", index: int):
        plan = document.timeline.plan_remove_track(index)
        super().__init__(f"Remove track {index + 1}")
        self._record_plan(document, plan)


class MoveTrackCommand(_TrackLayoutCommand):
    COMMAND_TYPE = "track.move"

    def __init__(self, document: "Document", from_index: int, to_index: int):
        plan = document.timeline.plan_move_track(from_index, to_index)
        super().__init__(f"Move track {from_index + 1}")
        self._record_plan(document, plan)


class UpdateTrackCommand(TimelineCommand):
    """Update track configuration (name, color, locked, muted, solo, height)."""

    COMMAND_TYPE = "track.update"

    def __init__(self, document: "Document", index: int, updates: Dict[str, Any]):
        store = document.timeline
        if index < 0 or index >= store.track_count():
            raise NotFoundError("Track", str(index))
        if "index" in updates:
            raise ValueError("Use MoveTrackCommand to change a track's index")
        before = store.tracks
        after = [TimelineTrack.from_dict(t.to_dict()) for t in before]
        while len(after) <= index:
            after.append(TimelineTrack(index=len(after)))
        data = after[index].to_dict()
        data.update(updates)
        after[index] = TimelineTrack.from_dict(data)

        if "locked" in updates and len(updates) == 1:
            description = f"{'Lock' if updates['locked'] else 'Unlock'} track {index + 1}"
        else:
            description = f"Update track {index + 1}"
        super().__init__(description)
        self._record(tracks_changed(before, after))


# =============================================================================
# Markers
# =============================================================================

class AddMarkerCommand(TimelineCommand):
    COMMAND_TYPE = "marker.add"

    def __init__(self, document: "Document", marker: TimelineMarker):
        if marker.position < 0:
            raise InvalidRangeError(f"Marker position {marker.position} is before the timeline start")
        super().__init__(f"Add marker '{marker.label}'")
        self.marker_id = marker.id
        self._record(created(EntityKind.MARKER, marker))


class RemoveMarkerCommand(TimelineCommand):
    COMMAND_TYPE = "marker.remove"

    def __init__(self, document: "Document", marker_id: str):
        marker = document.timeline.require_marker(marker_id)
        super().__init__(f"Remove marker '{marker.label}'")
        self._record(deleted(EntityKind.MARKER, marker))


class UpdateMarkerCommand(TimelineCommand):
    COMMAND_TYPE = "marker.update"

    def __init__(self, document: "Document", marker_id: str, updates: Dict[str, Any]):
        marker = document.timeline.require_marker(marker_id)
        current = marker.to_dict()
        unknown = set(updates) - set(current)
        if unknown:
            raise KeyError(f"Unknown marker fields: {sorted(unknown)}")
        super().__init__(f"Update marker '{marker.label}'")
        self._record(EntityChange(
            EntityKind.MARKER, marker_id,
            {key: current[key] for key in updates},
            dict(updates),
        ))
