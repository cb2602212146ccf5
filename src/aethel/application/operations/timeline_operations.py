"""
Timeline Operations

Entry point for every user-level timeline edit. Used by the editor
controllers, the rich-text editor integration and scripts.

Each operation builds the matching command(s) from current document state
and runs them through the document's CommandHistory, so every call is one
undo step. Operations return the executed command, or None when the edit
was rejected:

- LockedEntityError and InvalidRangeError are expected outcomes of user
  gestures (dragging a locked placement, resizing to an empty range). They
  are logged as warnings and the call returns None.
- NotFoundError, DuplicateCreationError and QuotaExceededError propagate.
"""
import uuid
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from aethel.application.commands import (
    AddMarkerCommand,
    AddMilestoneCommand,
    AddPlacementCommand,
    AddPlacementToThreadCommand,
    CreateObjectCommand,
    CreateObjectWithPlacementCommand,
    DeleteMilestoneCommand,
    DeleteObjectCommand,
    DuplicateObjectCommand,
    InsertTrackCommand,
    MagneticMovePlacementCommand,
    MergePlacementsCommand,
    MoveMilestoneCommand,
    MovePlacementCommand,
    MoveTrackCommand,
    RemoveMarkerCommand,
    RemovePlacementCommand,
    RemovePlacementFromThreadCommand,
    RemoveTrackCommand,
    ReorderObjectCommand,
    ReparentObjectCommand,
    ResizePlacementCommand,
    SetMutationDisplayCommand,
    SetPlacementsGroupCommand,
    SetPlacementsLockedCommand,
    ShiftMilestonesCommand,
    SplitPlacementCommand,
    TimelineCommand,
    ToggleRenderedCommand,
    UpdateMarkerCommand,
    UpdateMilestoneCommand,
    UpdateObjectCommand,
    UpdateTrackCommand,
)
from aethel.application.document import Document
from aethel.application.registry.object_registry import DROP_AFTER, DROP_BEFORE
from aethel.application.settings.timeline_settings import MOVEMENT_MAGNETIC
from aethel.application.timeline.cards import rendered_objects
from aethel.domain.entities import (
    AethelObject,
    AttributeChange,
    Milestone,
    MutationDisplay,
    MutationPayload,
    PlacementType,
    TimelineMarker,
    TimelinePlacement,
    TimelineTrack,
    new_id,
    utc_now,
)
from aethel.domain.errors import InvalidRangeError, LockedEntityError
from aethel.utils.message import Log

CLIPBOARD_CARD = "card"
CLIPBOARD_MUTATION = "mutation"
CLIPBOARD_PLACEMENT = "placement"

ChangeSpec = Mapping[str, Any]
Move = Tuple[str, float, Optional[int]]


def to_attribute_changes(changes: ChangeSpec) -> Dict[str, AttributeChange]:
    """
    Normalize mutation changes. Each value may be an AttributeChange, a
    {"from": ..., "to": ...} dict or a (from, to) pair.
    """
    result: Dict[str, AttributeChange] = {}
    for key, change in changes.items():
        if isinstance(change, AttributeChange):
            result[key] = change
        elif isinstance(change, dict):
            result[key] = AttributeChange.from_dict(change)
        elif isinstance(change, (tuple, list)) and len(change) == 2:
            result[key] = AttributeChange(change[0], change[1])
        else:
            raise ValueError(f"Cannot read change for '{key}': {change!r}")
    return result


class TimelineOperations:
    """
    User-level edits of one Document.

    Args:
        document: the document to edit
    """

    def __init__(self, document: Document):
        self.document = document

    @property
    def settings(self):
        return self.document.settings

    # =========================================================================
    # Execution helpers
    # =========================================================================

    def _run(self, action: str, factory: Callable[[], Optional[TimelineCommand]]) -> Optional[TimelineCommand]:
        """Build a command with factory and execute it; expected rejections return None."""
        try:
            command = factory()
            if command is None:
                return None
            return self.document.history.execute(command)
        except (LockedEntityError, InvalidRangeError) as e:
            Log.warning(f"TimelineOperations: {action} rejected: {e}")
            return None

    def _run_batch(self, action: str, description: str,
                   factory: Callable[[], Iterable[TimelineCommand]]) -> Optional[TimelineCommand]:
        """Build several commands and record them as one undo step."""
        try:
            batch = self.document.history.begin_batch(description)
            for command in factory():
                batch.add(command)
            return batch.commit()
        except (LockedEntityError, InvalidRangeError) as e:
            Log.warning(f"TimelineOperations: {action} rejected: {e}")
            return None

    # =========================================================================
    # Objects
    # =========================================================================

    def create_object(self, name: str, type_id: str, parent_id: Optional[str] = None,
                      **fields: Any) -> Optional[TimelineCommand]:
        obj = AethelObject(
            name=name,
            type_id=type_id,
            parent_id=parent_id,
            sort_order=self.document.registry.next_sort_order(parent_id),
            **fields,
        )
        return self._run("create object", lambda: CreateObjectCommand(self.document, obj))

    def create_object_with_placement(
        self,
        name: str,
        type_id: str,
        position: Optional[float] = None,
        track: int = 0,
        end_position: Optional[float] = None,
        parent_id: Optional[str] = None,
        **fields: Any,
    ) -> Optional[TimelineCommand]:
        """Create an object and its creation placement (at the cursor by default) in one step."""
        registry = self.document.registry
        obj = AethelObject(
            name=name,
            type_id=type_id,
            parent_id=parent_id,
            sort_order=registry.next_sort_order(parent_id),
            **fields,
        )
        placement = TimelinePlacement(
            object_id=obj.id,
            type=PlacementType.CREATION,
            track=track,
            position=self._position_or_cursor(position),
            end_position=end_position,
        )
        return self._run(
            "create object",
            lambda: CreateObjectWithPlacementCommand(self.document, obj, placement),
        )

    def update_object(self, object_id: str, updates: Dict[str, Any]) -> Optional[TimelineCommand]:
        return self._run("update object", lambda: UpdateObjectCommand(self.document, object_id, updates))

    def rename_object(self, object_id: str, name: str) -> Optional[TimelineCommand]:
        return self.update_object(object_id, {"name": name})

    def toggle_rendered(self, object_id: str) -> Optional[TimelineCommand]:
        return self._run("toggle rendered", lambda: ToggleRenderedCommand(self.document, object_id))

    def delete_object(self, object_id: str) -> Optional[TimelineCommand]:
        """Delete an object, its descendants and all their placements."""
        return self._run("delete object", lambda: DeleteObjectCommand(self.document, object_id))

    def reparent(self, object_id: str, target_id: Optional[str], position: str) -> Optional[TimelineCommand]:
        """Tree drop. InvalidReparentError propagates so the tree can refuse the drop."""
        return self._run(
            "reparent",
            lambda: ReparentObjectCommand(self.document, object_id, target_id, position),
        )

    def reorder_object(self, object_id: str, new_index: int) -> Optional[TimelineCommand]:
        return self._run("reorder", lambda: ReorderObjectCommand(self.document, object_id, new_index))

    def duplicate_object(self, object_id: str) -> Optional[TimelineCommand]:
        return self._run("duplicate object", lambda: DuplicateObjectCommand(self.document, object_id))

    # =========================================================================
    # Placements
    # =========================================================================

    def add_object_to_timeline(self, object_id: str, position: Optional[float] = None, track: int = 0,
                               end_position: Optional[float] = None) -> Optional[TimelineCommand]:
        """
        Give an existing object its creation placement.

        Raises:
            DuplicateCreationError: the object already has one
        """
        placement = TimelinePlacement(
            object_id=object_id,
            type=PlacementType.CREATION,
            track=track,
            position=self._position_or_cursor(position),
            end_position=end_position,
        )
        return self._run("add to timeline", lambda: AddPlacementCommand(self.document, placement))

    def add_mutation(
        self,
        object_id: str,
        label: str,
        changes: ChangeSpec,
        position: Optional[float] = None,
        track: Optional[int] = None,
        end_position: Optional[float] = None,
    ) -> Optional[TimelineCommand]:
        """
        Record attribute changes of an object at position (defaults to the
        cursor) on track (defaults to the object's creation track, else 0).
        """
        store = self.document.timeline
        if track is None:
            creation = store.get_creation_placement(object_id)
            track = creation.track if creation is not None else 0
        placement = TimelinePlacement(
            object_id=object_id,
            type=PlacementType.MUTATION,
            track=track,
            position=self._position_or_cursor(position),
            end_position=end_position,
            mutation=MutationPayload(label=label, changes=to_attribute_changes(changes)),
        )
        return self._run("add mutation", lambda: AddPlacementCommand(self.document, placement))

    def move(self, placement_id: str, position: float, track: Optional[int] = None) -> Optional[TimelineCommand]:
        """Move using the configured movement mode."""
        if self.settings.movement_mode == MOVEMENT_MAGNETIC:
            return self.move_magnetic(placement_id, position, track)
        return self._run("move", lambda: MovePlacementCommand(self.document, placement_id, position, track))

    def move_magnetic(self, placement_id: str, position: float,
                      track: Optional[int] = None) -> Optional[TimelineCommand]:
        return self._run(
            "move",
            lambda: MagneticMovePlacementCommand(self.document, placement_id, position, track),
        )

    def move_many(self, moves: Sequence[Move], magnetic: Optional[bool] = None) -> Optional[TimelineCommand]:
        """
        Move several placements as one undo step. moves holds
        (placement_id, position, track or None). If any placement is locked
        nothing moves.
        """
        if magnetic is None:
            magnetic = self.settings.movement_mode == MOVEMENT_MAGNETIC
        moving_ids = [placement_id for placement_id, _, _ in moves]

        def build():
            for placement_id, position, track in moves:
                if magnetic:
                    yield MagneticMovePlacementCommand(self.document, placement_id, position, track,
                                                       exclude_ids=moving_ids)
                else:
                    yield MovePlacementCommand(self.document, placement_id, position, track)

        return self._run_batch("move", f"Move {len(moves)} placements", build)

    def nudge(self, placement_ids: Iterable[str], direction: int,
              amount: Optional[float] = None) -> Optional[TimelineCommand]:
        """Shift placements left (direction -1) or right (+1) by the nudge amount."""
        step = (self.settings.nudge_amount if amount is None else amount) * (1 if direction >= 0 else -1)
        store = self.document.timeline
        moves = [
            (placement_id, max(0.0, store.require_placement(placement_id).position + step), None)
            for placement_id in placement_ids
        ]
        if not moves:
            return None
        return self.move_many(moves, magnetic=False)

    def move_to_track(self, placement_ids: Iterable[str], track_delta: int) -> Optional[TimelineCommand]:
        store = self.document.timeline
        moves = []
        for placement_id in placement_ids:
            placement = store.require_placement(placement_id)
            moves.append((placement_id, placement.position, placement.track + track_delta))
        if not moves:
            return None
        return self.move_many(moves, magnetic=False)

    def resize(self, placement_id: str, position: Optional[float] = None,
               end_position: Optional[float] = None) -> Optional[TimelineCommand]:
        return self._run(
            "resize",
            lambda: ResizePlacementCommand(self.document, placement_id, position, end_position),
        )

    def split(self, placement_id: str, at: Optional[float] = None) -> Optional[TimelineCommand]:
        """Split a ranged placement at position at (defaults to the cursor)."""
        at = self._position_or_cursor(at)
        return self._run("split", lambda: SplitPlacementCommand(self.document, placement_id, at))

    def split_many(self, placement_ids: Iterable[str], at: Optional[float] = None) -> Optional[TimelineCommand]:
        """Split several placements at one position as a single undo step."""
        at = self._position_or_cursor(at)
        ids = list(dict.fromkeys(placement_ids))
        return self._run_batch(
            "split", f"Split {len(ids)} placements",
            lambda: [SplitPlacementCommand(self.document, pid, at) for pid in ids],
        )

    def merge(self, first_id: str, second_id: str) -> Optional[TimelineCommand]:
        return self._run("merge", lambda: MergePlacementsCommand(self.document, first_id, second_id))

    def duplicate(self, placement_ids: Iterable[str], offset: Optional[float] = None) -> Optional[TimelineCommand]:
        """
        Copy placements offset later in time. Creation placements are skipped:
        an object has exactly one.
        """
        offset = self.settings.duplicate_offset if offset is None else offset
        store = self.document.timeline
        sources = [store.require_placement(pid) for pid in placement_ids]
        copies = []
        for source in sources:
            if source.type == PlacementType.CREATION:
                Log.warning(f"TimelineOperations: creation placement {source.id} cannot be duplicated, skipped")
                continue
            copies.append(self._copy_placement(source, source.position + offset, source.track))
        if not copies:
            return None
        return self._run_batch(
            "duplicate", f"Duplicate {len(copies)} placements",
            lambda: [AddPlacementCommand(self.document, p, description="Duplicate placement") for p in copies],
        )

    def delete(self, placement_id: str) -> Optional[TimelineCommand]:
        return self._run("delete", lambda: RemovePlacementCommand(self.document, placement_id))

    def delete_many(self, placement_ids: Iterable[str]) -> Optional[TimelineCommand]:
        ids = list(dict.fromkeys(placement_ids))
        return self._run_batch(
            "delete", f"Delete {len(ids)} placements",
            lambda: [RemovePlacementCommand(self.document, pid) for pid in ids],
        )

    def set_mutation_display(self, placement_id: str, display: MutationDisplay,
                             attached_to_object_id: Optional[str] = None,
                             after_rendered_index: Optional[float] = None) -> Optional[TimelineCommand]:
        return self._run(
            "change mutation display",
            lambda: SetMutationDisplayCommand(self.document, placement_id, display,
                                              attached_to_object_id, after_rendered_index),
        )

    def paste_at_cursor(self, kind: str, ids: Sequence[str]) -> Optional[TimelineCommand]:
        """
        Paste clipboard contents. Placements and mutations are copied so the
        earliest lands on the cursor, keeping their relative offsets; cards
        duplicate their objects.
        """
        if not ids:
            return None
        if kind == CLIPBOARD_CARD:
            return self._run_batch(
                "paste", f"Paste {len(ids)} cards",
                lambda: [DuplicateObjectCommand(self.document, object_id) for object_id in ids],
            )
        if kind not in (CLIPBOARD_MUTATION, CLIPBOARD_PLACEMENT):
            raise ValueError(f"Unknown clipboard kind: {kind}")

        store = self.document.timeline
        sources = [store.get_placement(pid) for pid in ids]
        sources = [p for p in sources if p is not None and p.type == PlacementType.MUTATION]
        if not sources:
            Log.warning("TimelineOperations: nothing pasteable on the clipboard")
            return None
        earliest = min(p.position for p in sources)
        cursor = store.cursor_position
        copies = [self._copy_placement(p, cursor + (p.position - earliest), p.track) for p in sources]
        return self._run_batch(
            "paste", f"Paste {len(copies)} placements",
            lambda: [AddPlacementCommand(self.document, p, description="Paste placement") for p in copies],
        )

    def _copy_placement(self, source: TimelinePlacement, position: float, track: int) -> TimelinePlacement:
        clone = source.copy()
        now = utc_now()
        clone.id = new_id()
        if clone.end_position is not None:
            clone.end_position = position + (source.end_position - source.position)
        clone.position = position
        clone.track = track
        clone.locked = False
        clone.group_id = None
        clone.sequence = 0
        clone.created_at = now
        clone.updated_at = now
        return clone

    # =========================================================================
    # Locks, groups and threads
    # =========================================================================

    def set_locked(self, placement_ids: Iterable[str], locked: bool) -> Optional[TimelineCommand]:
        ids = list(placement_ids)
        return self._run("lock", lambda: SetPlacementsLockedCommand(self.document, ids, locked))

    def toggle_locked(self, placement_ids: Iterable[str]) -> Optional[TimelineCommand]:
        """Lock all if any is unlocked, otherwise unlock all."""
        ids = list(placement_ids)
        store = self.document.timeline
        lock = any(not store.require_placement(pid).locked for pid in ids)
        return self.set_locked(ids, lock)

    def group(self, placement_ids: Iterable[str]) -> Optional[TimelineCommand]:
        ids = list(placement_ids)
        if len(ids) < 2:
            Log.warning("TimelineOperations: grouping needs at least two placements")
            return None
        group_id = str(uuid.uuid4())
        return self._run("group", lambda: SetPlacementsGroupCommand(self.document, ids, group_id))

    def ungroup(self, placement_ids: Iterable[str]) -> Optional[TimelineCommand]:
        ids = list(placement_ids)
        return self._run("ungroup", lambda: SetPlacementsGroupCommand(self.document, ids, None))

    def add_to_thread(self, placement_ids: Iterable[str], thread_id: str) -> Optional[TimelineCommand]:
        ids = list(placement_ids)
        return self._run("add to thread", lambda: AddPlacementToThreadCommand(self.document, ids, thread_id))

    def remove_from_thread(self, placement_ids: Iterable[str], thread_id: str) -> Optional[TimelineCommand]:
        ids = list(placement_ids)
        return self._run(
            "remove from thread",
            lambda: RemovePlacementFromThreadCommand(self.document, ids, thread_id),
        )

    # =========================================================================
    # Tracks
    # =========================================================================

    def insert_track(self, index: int, name: Optional[str] = None) -> Optional[TimelineCommand]:
        track = TimelineTrack(index=index, name=name)
        return self._run("insert track", lambda: InsertTrackCommand(self.document, index, track))

    def remove_track(self, index: int) -> Optional[TimelineCommand]:
        return self._run("remove track", lambda: RemoveTrackCommand(self.document, index))

    def move_track(self, from_index: int, to_index: int) -> Optional[TimelineCommand]:
        if from_index == to_index:
            return None
        return self._run("move track", lambda: MoveTrackCommand(self.document, from_index, to_index))

    def update_track(self, index: int, updates: Dict[str, Any]) -> Optional[TimelineCommand]:
        return self._run("update track", lambda: UpdateTrackCommand(self.document, index, updates))

    def set_track_locked(self, index: int, locked: bool) -> Optional[TimelineCommand]:
        return self.update_track(index, {"locked": locked})

    # =========================================================================
    # Markers
    # =========================================================================

    def add_marker(self, label: str, position: Optional[float] = None, **fields: Any) -> Optional[TimelineCommand]:
        marker = TimelineMarker(position=self._position_or_cursor(position), label=label, **fields)
        return self._run("add marker", lambda: AddMarkerCommand(self.document, marker))

    def remove_marker(self, marker_id: str) -> Optional[TimelineCommand]:
        return self._run("remove marker", lambda: RemoveMarkerCommand(self.document, marker_id))

    def update_marker(self, marker_id: str, updates: Dict[str, Any]) -> Optional[TimelineCommand]:
        if "position" in updates and updates["position"] < 0:
            Log.warning(f"TimelineOperations: marker position {updates['position']} rejected")
            return None
        return self._run("update marker", lambda: UpdateMarkerCommand(self.document, marker_id, updates))

    # =========================================================================
    # Milestones
    # =========================================================================

    def add_milestone(self, name: str, after_index: int, **fields: Any) -> Optional[TimelineCommand]:
        milestone = Milestone(name=name, after_index=after_index, **fields)
        return self._run("add milestone", lambda: AddMilestoneCommand(self.document, milestone))

    def update_milestone(self, milestone_id: str, updates: Dict[str, Any]) -> Optional[TimelineCommand]:
        return self._run(
            "update milestone",
            lambda: UpdateMilestoneCommand(self.document, milestone_id, updates),
        )

    def delete_milestone(self, milestone_id: str) -> Optional[TimelineCommand]:
        return self._run("delete milestone", lambda: DeleteMilestoneCommand(self.document, milestone_id))

    def move_milestone(self, milestone_id: str, after_index: int) -> Optional[TimelineCommand]:
        return self._run(
            "move milestone",
            lambda: MoveMilestoneCommand(self.document, milestone_id, after_index),
        )

    # =========================================================================
    # Cards
    # =========================================================================

    def add_object_as_card(self, object_id: str) -> Optional[TimelineCommand]:
        """Render an object as a card; milestones after its slot move down one card."""
        registry = self.document.registry
        obj = registry.require(object_id)
        if obj.rendered:
            return None
        order = [o.id for o in registry.walk() if o.rendered or o.id == object_id]
        index = order.index(object_id)
        return self._run_batch(
            "add card", f"Add '{obj.name}' to book",
            lambda: [
                ToggleRenderedCommand(self.document, object_id),
                ShiftMilestonesCommand(self.document, index, 1),
            ],
        )

    def remove_object_from_cards(self, object_id: str) -> Optional[TimelineCommand]:
        registry = self.document.registry
        obj = registry.require(object_id)
        if not obj.rendered:
            return None
        index = self.document.cards.get_card_index(object_id)
        if index is None:
            return self.toggle_rendered(object_id)
        return self._run_batch(
            "remove card", f"Remove '{obj.name}' from book",
            lambda: [
                ToggleRenderedCommand(self.document, object_id),
                ShiftMilestonesCommand(self.document, index, -1),
            ],
        )

    def reorder_card(self, object_id: str, new_index: int) -> Optional[TimelineCommand]:
        """Move a card to new_index in the book flow by placing it next to the card there."""
        cards = rendered_objects(self.document.registry)
        current = next((i for i, obj in enumerate(cards) if obj.id == object_id), None)
        if current is None:
            Log.warning(f"TimelineOperations: reorder card rejected: '{object_id}' is not a card")
            return None
        new_index = max(0, min(new_index, len(cards) - 1))
        if new_index == current:
            return None
        target = cards[new_index]
        position = DROP_AFTER if new_index > current else DROP_BEFORE
        return self._run(
            "reorder card",
            lambda: ReparentObjectCommand(self.document, object_id, target.id, position),
        )

    # =========================================================================
    # Navigation (not undoable)
    # =========================================================================

    def set_cursor(self, position: float) -> float:
        return self.document.timeline.set_cursor_position(position)

    def cursor_next(self) -> float:
        return self.document.timeline.cursor_next()

    def cursor_prev(self) -> float:
        return self.document.timeline.cursor_prev()

    def cursor_first(self) -> float:
        return self.document.timeline.cursor_first()

    def cursor_last(self) -> float:
        return self.document.timeline.cursor_last()

    def go_to_object(self, object_id: str) -> Optional[float]:
        return self.document.timeline.move_cursor_to_object(object_id)

    def go_to_marker(self, marker_id: str) -> float:
        marker = self.document.timeline.require_marker(marker_id)
        return self.document.timeline.set_cursor_position(marker.position)

    def _position_or_cursor(self, position: Optional[float]) -> float:
        return self.document.timeline.cursor_position if position is None else position
