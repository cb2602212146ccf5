"""
Timeline Store

Holds placements, track configuration, markers and the cursor, and computes
each object's state at a timeline position by folding its mutations.

Placements are indexed by (track, position, sequence, id) so track and range
queries are bisect lookups. Every mutating call bumps ``revision``; the
state-at-cursor memo is keyed on it and can never serve a stale result.

Like the ObjectRegistry, mutators here are raw and do not record history.
Use the commands in aethel.application.commands for undoable edits. The
plan_* methods validate an edit and describe it without applying it.
"""
import copy
import math
from bisect import bisect_left, bisect_right, insort
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from aethel.application.timeline.types import (
    ComputedObjectState,
    ObjectMutations,
    TimelineBounds,
    TrackLayoutPlan,
)
from aethel.domain.entities import (
    PlacementType,
    TimelineMarker,
    TimelinePlacement,
    TimelineTrack,
    new_id,
    utc_now,
)
from aethel.domain.errors import InvalidRangeError, LockedEntityError, NotFoundError
from aethel.utils.message import Log

TIMELINE_MIN = 0.0
DEFAULT_SPAN = 20.0
BOUNDS_PADDING = 5.0

DEFAULT_POINT_WIDTH = 1.0
DEFAULT_MAGNETIC_GAP = 0.0

_STATE_CACHE_LIMIT = 1024

_IndexKey = Tuple[int, float, int, str]


def _index_key(placement: TimelinePlacement) -> _IndexKey:
    return (placement.track, placement.position, placement.sequence, placement.id)


def fold_order_key(placement: TimelinePlacement) -> Tuple[float, int, str]:
    """Mutation fold order: position, then creation order, then id."""
    return (placement.position, placement.sequence, placement.id)


def fold_mutations(mutations: Iterable[TimelinePlacement]) -> Dict[str, object]:
    """
    Fold mutation placements (already in fold order) into an attribute map.

    A later mutation's ``changes[key].to`` overwrites earlier values of key.
    """
    attributes: Dict[str, object] = {}
    for placement in mutations:
        if placement.mutation is None:
            continue
        for key, change in placement.mutation.changes.items():
            attributes[key] = copy.deepcopy(change.to_value)
    return attributes


class TimelineStore:
    """
    In-memory timeline state.

    Args:
        placements: initial placements (validated)
        tracks: configured tracks; indices beyond these behave as default tracks
        markers: initial markers
        cursor_position: initial cursor
        point_width: cells occupied by a point placement during magnetic moves
        magnetic_gap: minimum gap kept between placements during magnetic moves
    """

    def __init__(
        self,
        placements: Optional[Iterable[TimelinePlacement]] = None,
        tracks: Optional[Iterable[TimelineTrack]] = None,
        markers: Optional[Iterable[TimelineMarker]] = None,
        cursor_position: float = 0.0,
        point_width: float = DEFAULT_POINT_WIDTH,
        magnetic_gap: float = DEFAULT_MAGNETIC_GAP,
    ):
        if point_width <= 0:
            raise ValueError("point_width must be positive")
        if magnetic_gap < 0:
            raise ValueError("magnetic_gap must be >= 0")

        self.point_width = point_width
        self.magnetic_gap = magnetic_gap
        self.revision = 0

        self._placements: Dict[str, TimelinePlacement] = {}
        self._index: List[_IndexKey] = []
        self._tracks: List[TimelineTrack] = []
        self._markers: List[TimelineMarker] = []
        self._cursor = max(TIMELINE_MIN, float(cursor_position))
        self._next_sequence = 1
        self._state_cache: Dict[Tuple[str, float], ComputedObjectState] = {}
        self._state_cache_revision = -1

        for placement in placements or []:
            self.add_placement(placement)
        self.set_tracks(list(tracks or []))
        for marker in markers or []:
            self.add_marker(marker)

    def _touch(self) -> None:
        self.revision += 1

    # ------------------------------------------------------------------
    # State at cursor
    # ------------------------------------------------------------------

    def get_object_state_at_cursor(self, object_id: str, position: Optional[float] = None) -> ComputedObjectState:
        """
        Attributes of object_id at position (defaults to the cursor).

        Mutations are sorted by position, creation order and id, then folded
        left to right. Only mutations at or before position contribute.
        """
        if position is None:
            position = self._cursor

        if self._state_cache_revision != self.revision:
            self._state_cache.clear()
            self._state_cache_revision = self.revision

        key = (object_id, float(position))
        state = self._state_cache.get(key)
        if state is None:
            state = self._compute_state(object_id, float(position))
            if len(self._state_cache) >= _STATE_CACHE_LIMIT:
                self._state_cache.clear()
            self._state_cache[key] = state

        # Callers get their own attribute map; the memo stays intact
        return ComputedObjectState(
            object_id=state.object_id,
            position=state.position,
            computed_attributes=copy.deepcopy(state.computed_attributes),
            mutations=state.mutations,
            future_mutations=state.future_mutations,
        )

    def _compute_state(self, object_id: str, position: float) -> ComputedObjectState:
        ordered = sorted(self.get_mutations_for_object(object_id), key=fold_order_key)
        past = tuple(p for p in ordered if p.position <= position)
        future = tuple(p for p in ordered if p.position > position)
        return ComputedObjectState(
            object_id=object_id,
            position=position,
            computed_attributes=fold_mutations(past),
            mutations=past,
            future_mutations=future,
        )

    def get_object_mutations(self, object_id: str) -> ObjectMutations:
        """Mutations of object_id split at the cursor."""
        state = self.get_object_state_at_cursor(object_id)
        return ObjectMutations(past=state.mutations, future=state.future_mutations)

    # ------------------------------------------------------------------
    # Placement queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._placements)

    def has_placement(self, placement_id: str) -> bool:
        return placement_id in self._placements

    def get_placement(self, placement_id: str) -> Optional[TimelinePlacement]:
        return self._placements.get(placement_id)

    def require_placement(self, placement_id: str) -> TimelinePlacement:
        placement = self._placements.get(placement_id)
        if placement is None:
            raise NotFoundError("Placement", placement_id)
        return placement

    def placements(self) -> List[TimelinePlacement]:
        """All placements in (track, position) order."""
        return [self._placements[key[3]] for key in self._index]

    def get_placements_for_object(self, object_id: str) -> List[TimelinePlacement]:
        return [p for p in self.placements() if p.object_id == object_id]

    def get_mutations_for_object(self, object_id: str) -> List[TimelinePlacement]:
        return [
            p for p in self._placements.values()
            if p.object_id == object_id and p.type == PlacementType.MUTATION
        ]

    def get_creation_placement(self, object_id: str) -> Optional[TimelinePlacement]:
        """The object's creation placement; the earliest one if duplicates exist."""
        creations = [
            p for p in self._placements.values()
            if p.object_id == object_id and p.type == PlacementType.CREATION
        ]
        if not creations:
            return None
        return min(creations, key=fold_order_key)

    def find_duplicate_creations(self) -> Dict[str, List[str]]:
        """object id -> creation placement ids, for objects with more than one."""
        by_object: Dict[str, List[TimelinePlacement]] = {}
        for placement in self._placements.values():
            if placement.type == PlacementType.CREATION:
                by_object.setdefault(placement.object_id, []).append(placement)
        return {
            object_id: [p.id for p in sorted(found, key=fold_order_key)]
            for object_id, found in by_object.items()
            if len(found) > 1
        }

    def get_placements_on_track(self, track: int) -> List[TimelinePlacement]:
        lo = bisect_left(self._index, (track, -math.inf))
        hi = bisect_left(self._index, (track + 1, -math.inf))
        return [self._placements[key[3]] for key in self._index[lo:hi]]

    def get_placements_in_range(
        self,
        start: float,
        end: float,
        tracks: Optional[Iterable[int]] = None,
    ) -> List[TimelinePlacement]:
        """
        Placements whose [position, end_position or position] intersects the
        closed interval [start, end], optionally limited to the given tracks.
        """
        if end < start:
            start, end = end, start
        track_list = sorted(set(tracks)) if tracks is not None else self.used_tracks()
        result: List[TimelinePlacement] = []
        for track in track_list:
            lo = bisect_left(self._index, (track, -math.inf))
            hi = bisect_right(self._index, (track, end, math.inf))
            for key in self._index[lo:hi]:
                placement = self._placements[key[3]]
                if placement.intersects(start, end):
                    result.append(placement)
        return result

    def get_placements_in_thread(self, thread_id: str) -> List[TimelinePlacement]:
        return [p for p in self.placements() if thread_id in p.thread_ids]

    def get_threads_for_placement(self, placement_id: str) -> List[str]:
        return list(self.require_placement(placement_id).thread_ids)

    def get_group(self, group_id: str) -> List[TimelinePlacement]:
        return [p for p in self.placements() if p.group_id == group_id]

    def used_tracks(self) -> List[int]:
        return sorted({key[0] for key in self._index})

    def allocate_sequence(self) -> int:
        """Next creation-order number for a placement about to be created."""
        value = self._next_sequence
        self._next_sequence += 1
        return value

    # ------------------------------------------------------------------
    # Placement mutation (raw)
    # ------------------------------------------------------------------

    def add_placement(self, placement: TimelinePlacement) -> None:
        if placement.id in self._placements:
            raise ValueError(f"Placement '{placement.id}' already exists")
        placement.validate()
        if placement.sequence <= 0:
            placement.sequence = self.allocate_sequence()
        else:
            self._next_sequence = max(self._next_sequence, placement.sequence + 1)
        self._placements[placement.id] = placement
        insort(self._index, _index_key(placement))
        self._touch()

    def remove_placement(self, placement_id: str) -> TimelinePlacement:
        placement = self.require_placement(placement_id)
        self._index.pop(bisect_left(self._index, _index_key(placement)))
        del self._placements[placement_id]
        self._touch()
        return placement

    def update_placement(self, placement_id: str, fields: Dict[str, object]) -> TimelinePlacement:
        """Replace serialized fields of a placement, keeping the index sorted."""
        current = self.require_placement(placement_id)
        updated = current.with_fields(fields)
        updated.validate()
        self._index.pop(bisect_left(self._index, _index_key(current)))
        self._placements[placement_id] = updated
        insort(self._index, _index_key(updated))
        self._touch()
        return updated

    # ------------------------------------------------------------------
    # Locks
    # ------------------------------------------------------------------

    def is_track_locked(self, track: int) -> bool:
        config = self.get_track(track)
        return bool(config and config.locked)

    def is_placement_locked(self, placement_id: str) -> bool:
        """Locked directly or through its track."""
        placement = self.require_placement(placement_id)
        return placement.locked or self.is_track_locked(placement.track)

    def ensure_editable(self, placement_id: str, action: str, target_track: Optional[int] = None) -> TimelinePlacement:
        """
        Return the placement if action may touch it.

        Raises:
            NotFoundError: unknown placement
            LockedEntityError: placement, its track or target_track is locked
        """
        placement = self.require_placement(placement_id)
        if placement.locked:
            raise LockedEntityError("Placement", placement_id, action)
        if self.is_track_locked(placement.track):
            raise LockedEntityError("Track", placement.track, action)
        if target_track is not None and target_track != placement.track and self.is_track_locked(target_track):
            raise LockedEntityError("Track", target_track, action)
        return placement

    # ------------------------------------------------------------------
    # Split
    # ------------------------------------------------------------------

    def plan_split(self, placement_id: str, at: float) -> Tuple[Dict[str, object], TimelinePlacement]:
        """
        Split a ranged placement [s, e) at s < at < e.

        Returns the fields to write on the original (now [s, at)) and the new
        right half [at, e). Mutations of the object keep their absolute
        positions.
        """
        placement = self.ensure_editable(placement_id, "split")
        if not placement.is_ranged:
            raise InvalidRangeError(f"Placement '{placement_id}' is not ranged")
        if not placement.position < at < placement.end_position:
            raise InvalidRangeError(
                f"Split point {at} outside ({placement.position}, {placement.end_position})",
                start=placement.position, end=placement.end_position,
            )

        now = utc_now()
        left_fields = {"end_position": at, "updated_at": now.isoformat()}
        right = placement.copy()
        right.id = new_id()
        right.position = at
        right.end_position = placement.end_position
        right.locked = False
        right.sequence = self.allocate_sequence()
        right.created_at = now
        right.updated_at = now
        return left_fields, right

    # ------------------------------------------------------------------
    # Magnetic move
    # ------------------------------------------------------------------

    def occupied_length(self, placement: TimelinePlacement) -> float:
        if placement.is_ranged:
            return placement.end_position - placement.position
        return self.point_width

    def occupied_intervals(self, track: int, exclude_ids: Iterable[str] = ()) -> List[Tuple[float, float]]:
        """Half-open [start, end) intervals taken on track, sorted by start."""
        excluded = set(exclude_ids)
        return [
            (p.position, p.position + self.occupied_length(p))
            for p in self.get_placements_on_track(track)
            if p.id not in excluded
        ]

    def resolve_magnetic_position(
        self,
        placement_id: str,
        position: float,
        track: int,
        exclude_ids: Iterable[str] = (),
    ) -> float:
        """
        Nearest position to the desired one where placement_id fits on track
        without overlapping another placement.

        Placements in exclude_ids (plus the placement itself) are ignored.
        Distance ties go to the earlier position.
        """
        placement = self.require_placement(placement_id)
        length = self.occupied_length(placement)
        excluded = set(exclude_ids) | {placement_id}
        intervals = self.occupied_intervals(track, excluded)
        return resolve_free_position(position, length, intervals, self.magnetic_gap)

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------

    @property
    def tracks(self) -> List[TimelineTrack]:
        return list(self._tracks)

    def track_count(self) -> int:
        """Configured tracks or the highest used index + 1, whichever is larger."""
        used = self._index[-1][0] + 1 if self._index else 0
        return max(len(self._tracks), used, 1)

    def get_track(self, index: int) -> Optional[TimelineTrack]:
        if 0 <= index < len(self._tracks):
            return self._tracks[index]
        return None

    def require_track(self, index: int) -> TimelineTrack:
        track = self.get_track(index)
        if track is None:
            raise NotFoundError("Track", str(index))
        return track

    def set_tracks(self, tracks: Sequence[TimelineTrack]) -> None:
        """Replace the track configuration. Indices must be 0..n-1."""
        ordered = sorted(tracks, key=lambda t: t.index)
        for expected, track in enumerate(ordered):
            if track.index != expected:
                raise ValueError(f"Track indices must be contiguous from 0, got {track.index} at {expected}")
        self._tracks = ordered
        self._touch()

    def _padded_tracks(self, count: int) -> List[TimelineTrack]:
        tracks = [TimelineTrack.from_dict(t.to_dict()) for t in self._tracks]
        while len(tracks) < count:
            tracks.append(TimelineTrack(index=len(tracks)))
        return tracks

    def plan_insert_track(self, index: int, track: Optional[TimelineTrack] = None) -> TrackLayoutPlan:
        """Insert a track at index; placements on tracks >= index shift down by one."""
        if index < 0:
            raise InvalidRangeError(f"Track index {index} is negative")
        tracks = self._padded_tracks(index)
        new_track = TimelineTrack.from_dict(track.to_dict()) if track else TimelineTrack(index=index)
        tracks.insert(index, new_track)
        for i, t in enumerate(tracks):
            t.index = i
        changes = {p.id: p.track + 1 for p in self._placements.values() if p.track >= index}
        return TrackLayoutPlan(tracks=tuple(tracks), track_changes=changes)

    def plan_remove_track(self, index: int) -> TrackLayoutPlan:
        """
        Remove a track with its placements; placements below move up by one.

        Raises:
            NotFoundError: index beyond every configured or used track
            LockedEntityError: the track or one of its placements is locked
        """
        if index < 0 or index >= self.track_count():
            raise NotFoundError("Track", str(index))
        if self.is_track_locked(index):
            raise LockedEntityError("Track", index, "remove")
        on_track = self.get_placements_on_track(index)
        for placement in on_track:
            if placement.locked:
                raise LockedEntityError("Placement", placement.id, "remove")

        tracks = self._padded_tracks(index + 1)
        tracks.pop(index)
        for i, t in enumerate(tracks):
            t.index = i
        changes = {p.id: p.track - 1 for p in self._placements.values() if p.track > index}
        return TrackLayoutPlan(
            tracks=tuple(tracks),
            track_changes=changes,
            removed_ids=tuple(p.id for p in on_track),
        )

    def plan_move_track(self, from_index: int, to_index: int) -> TrackLayoutPlan:
        """Move a track to a new index, renumbering every track in between."""
        count = max(self.track_count(), from_index + 1, to_index + 1)
        if from_index < 0 or to_index < 0:
            raise InvalidRangeError("Track indices must be >= 0")
        order = list(range(count))
        order.insert(to_index, order.pop(from_index))
        new_index = {old: new for new, old in enumerate(order)}

        padded = self._padded_tracks(count)
        tracks = [padded[old] for old in order]
        for i, t in enumerate(tracks):
            t.index = i
        changes = {
            p.id: new_index[p.track]
            for p in self._placements.values()
            if new_index[p.track] != p.track
        }
        return TrackLayoutPlan(tracks=tuple(tracks), track_changes=changes)

    # ------------------------------------------------------------------
    # Markers
    # ------------------------------------------------------------------

    @property
    def markers(self) -> List[TimelineMarker]:
        return list(self._markers)

    def get_marker(self, marker_id: str) -> Optional[TimelineMarker]:
        return next((m for m in self._markers if m.id == marker_id), None)

    def require_marker(self, marker_id: str) -> TimelineMarker:
        marker = self.get_marker(marker_id)
        if marker is None:
            raise NotFoundError("Marker", marker_id)
        return marker

    def get_marker_by_label(self, label: str) -> Optional[TimelineMarker]:
        needle = label.strip().lower()
        return next((m for m in self._markers if m.label.lower() == needle), None)

    def add_marker(self, marker: TimelineMarker) -> None:
        if self.get_marker(marker.id) is not None:
            raise ValueError(f"Marker '{marker.id}' already exists")
        self._markers.append(marker)
        self._markers.sort(key=lambda m: (m.position, m.id))
        self._touch()

    def remove_marker(self, marker_id: str) -> TimelineMarker:
        marker = self.require_marker(marker_id)
        self._markers.remove(marker)
        self._touch()
        return marker

    def replace_marker(self, marker: TimelineMarker) -> None:
        self.remove_marker(marker.id)
        self.add_marker(marker)

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    @property
    def cursor_position(self) -> float:
        return self._cursor

    def set_cursor_position(self, position: float) -> float:
        """Move the cursor (clamped to the timeline minimum). Not undoable."""
        position = max(TIMELINE_MIN, float(position))
        if position != self._cursor:
            self._cursor = position
            Log.debug(f"TimelineStore: cursor -> {position}")
        return self._cursor

    def _edges(self) -> List[float]:
        edges = set()
        for placement in self._placements.values():
            edges.add(placement.position)
            if placement.end_position is not None:
                edges.add(placement.end_position)
        edges.update(m.position for m in self._markers)
        return sorted(edges)

    def cursor_next(self) -> float:
        """Jump to the next placement edge or marker after the cursor."""
        edges = self._edges()
        i = bisect_right(edges, self._cursor)
        if i < len(edges):
            return self.set_cursor_position(edges[i])
        return self._cursor

    def cursor_prev(self) -> float:
        """Jump to the previous placement edge or marker before the cursor."""
        edges = self._edges()
        i = bisect_left(edges, self._cursor)
        if i > 0:
            return self.set_cursor_position(edges[i - 1])
        return self._cursor

    def cursor_first(self) -> float:
        edges = self._edges()
        return self.set_cursor_position(edges[0] if edges else TIMELINE_MIN)

    def cursor_last(self) -> float:
        edges = self._edges()
        return self.set_cursor_position(edges[-1] if edges else TIMELINE_MIN)

    def move_cursor_to_object(self, object_id: str) -> Optional[float]:
        """Put the cursor on the object's creation placement, if it has one."""
        creation = self.get_creation_placement(object_id)
        if creation is None:
            return None
        return self.set_cursor_position(creation.position)

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------

    def bounds(self) -> TimelineBounds:
        """Extent of the timeline content, padded, never shorter than DEFAULT_SPAN."""
        furthest = self._cursor
        for placement in self._placements.values():
            furthest = max(furthest, placement.position + self.occupied_length(placement))
        for marker in self._markers:
            furthest = max(furthest, marker.position)
        return TimelineBounds(TIMELINE_MIN, max(TIMELINE_MIN + DEFAULT_SPAN, furthest + BOUNDS_PADDING))


def resolve_free_position(
    position: float,
    length: float,
    intervals: Sequence[Tuple[float, float]],
    gap: float = 0.0,
    minimum: float = TIMELINE_MIN,
) -> float:
    """
    Nearest start >= minimum at which [start, start + length) keeps at least
    gap away from every interval. Ties resolve to the earlier start.
    """
    def fits(start: float) -> bool:
        if start < minimum:
            return False
        for occ_start, occ_end in intervals:
            if start < occ_end + gap and occ_start < start + length + gap:
                return False
        return True

    position = max(minimum, position)
    if fits(position):
        return position

    candidates = [position]
    for occ_start, occ_end in intervals:
        candidates.append(occ_start - length - gap)
        candidates.append(occ_end + gap)
    valid = [c for c in candidates if fits(c)]
    return min(valid, key=lambda c: (abs(c - position), c))
