"""
Tests for the TimelineStore.

Covers state folding at a position, range queries, magnetic slot
resolution, track layout plans, cursor navigation and bounds.
"""
import pytest

from aethel.application.timeline.timeline_store import (
    DEFAULT_SPAN,
    TimelineStore,
    fold_order_key,
    resolve_free_position,
)
from aethel.domain.entities import MutationPayload, PlacementType, TimelineMarker, TimelinePlacement, TimelineTrack
from aethel.domain.errors import InvalidRangeError, LockedEntityError, NotFoundError


def _point(object_id="obj", position=0.0, track=0, **kwargs):
    return TimelinePlacement(object_id=object_id, type=PlacementType.CREATION,
                             position=position, track=track, **kwargs)


# =============================================================================
# State at cursor
# =============================================================================

class TestStateAtPosition:
    """Tests for folding mutations into an object's state."""

    @pytest.fixture
    def frodo(self, ops):
        return ops.create_object_with_placement("Frodo", "character", position=0.0).object_id

    def test_mutations_apply_from_their_position_on(self, document, ops, frodo):
        """Test the status seen at 7 and 12 with mutations at 5 and 10."""
        ops.add_mutation(frodo, "Arrives", {"status": (None, "alive")}, position=5.0)
        ops.add_mutation(frodo, "Falls", {"status": ("alive", "dead")}, position=10.0)

        store = document.timeline
        assert store.get_object_state_at_cursor(frodo, 7.0).get("status") == "alive"
        assert store.get_object_state_at_cursor(frodo, 12.0).get("status") == "dead"
        assert store.get_object_state_at_cursor(frodo, 3.0).get("status") is None

    def test_mutation_at_query_position_is_included(self, document, ops, frodo):
        """Test that a mutation exactly at the queried position contributes."""
        ops.add_mutation(frodo, "Arrives", {"status": (None, "alive")}, position=5.0)
        state = document.timeline.get_object_state_at_cursor(frodo, 5.0)
        assert state.get("status") == "alive"
        assert len(state.mutations) == 1
        assert state.future_mutations == ()

    def test_same_position_folds_in_creation_order(self, document, ops, frodo):
        """Test that the later-created mutation wins on a position tie."""
        ops.add_mutation(frodo, "First", {"status": (None, "alive")}, position=5.0)
        ops.add_mutation(frodo, "Second", {"status": ("alive", "dead")}, position=5.0)
        assert document.timeline.get_object_state_at_cursor(frodo, 5.0).get("status") == "dead"

    def test_defaults_to_cursor(self, document, ops, frodo):
        """Test that omitting the position uses the cursor."""
        ops.add_mutation(frodo, "Arrives", {"status": (None, "alive")}, position=5.0)
        ops.set_cursor(6.0)
        assert document.timeline.get_object_state_at_cursor(frodo).get("status") == "alive"
        ops.set_cursor(1.0)
        assert document.timeline.get_object_state_at_cursor(frodo).get("status") is None

    def test_memo_never_serves_stale_state(self, document, ops, frodo):
        """Test that an edit after a query is visible to the next query."""
        store = document.timeline
        assert store.get_object_state_at_cursor(frodo, 8.0).get("status") is None
        ops.add_mutation(frodo, "Arrives", {"status": (None, "alive")}, position=5.0)
        assert store.get_object_state_at_cursor(frodo, 8.0).get("status") == "alive"

    def test_returned_attributes_are_copies(self, document, ops, frodo):
        """Test that mutating a returned state does not leak into the memo."""
        ops.add_mutation(frodo, "Arrives", {"inventory": (None, ["ring"])}, position=5.0)
        store = document.timeline
        state = store.get_object_state_at_cursor(frodo, 6.0)
        state.computed_attributes["inventory"].append("sword")
        assert store.get_object_state_at_cursor(frodo, 6.0).get("inventory") == ["ring"]

    def test_include_base_folds_over_object_attributes(self, document, ops):
        """Test that document state can start from the object's own attribute values."""
        command = ops.create_object_with_placement(
            "Sam", "character", position=0.0,
            attributes={"status": {"type": "string", "value": "home"}, "age": {"type": "number", "value": 38}},
        )
        sam = command.object_id
        ops.add_mutation(sam, "Leaves", {"status": ("home", "travelling")}, position=4.0)

        state = document.get_object_state_at_cursor(sam, 5.0, include_base=True)
        assert state.get("status") == "travelling"
        assert state.get("age") == 38

    def test_fold_order_key(self):
        """Test ordering by position, then sequence, then id."""
        a = _point(position=1.0, sequence=2, id="b")
        b = _point(position=1.0, sequence=1, id="z")
        c = _point(position=0.5, sequence=9, id="a")
        assert sorted([a, b, c], key=fold_order_key) == [c, b, a]


# =============================================================================
# Queries
# =============================================================================

class TestRangeQueries:
    """Tests for track and range lookups."""

    def test_box_range_selects_by_track_and_closed_interval(self, document, make_placement):
        """Test the placements meeting [3, 6] on tracks 0 and 1."""
        inside_point = make_placement(3.0, track=0)
        overlapping_range = make_placement(5.0, track=1, end_position=9.0)
        touching_end = make_placement(1.0, track=1, end_position=3.0)
        make_placement(0.0, track=0, end_position=2.5)
        make_placement(4.0, track=2)
        make_placement(6.5, track=1)

        hit = document.timeline.get_placements_in_range(3.0, 6.0, [0, 1])
        assert {p.id for p in hit} == {inside_point, overlapping_range, touching_end}

    def test_range_without_tracks_searches_every_track(self, document, make_placement):
        """Test that tracks=None covers all used tracks."""
        a = make_placement(2.0, track=0)
        b = make_placement(2.5, track=5)
        hit = document.timeline.get_placements_in_range(2.0, 3.0)
        assert [p.id for p in hit] == [a, b]

    def test_reversed_range_is_normalized(self, document, make_placement):
        pid = make_placement(4.0)
        assert [p.id for p in document.timeline.get_placements_in_range(5.0, 3.0)] == [pid]

    def test_placements_on_track_are_position_ordered(self, document, make_placement):
        """Test that track queries return placements sorted by position."""
        late = make_placement(8.0, track=1)
        early = make_placement(2.0, track=1)
        make_placement(5.0, track=0)
        assert [p.id for p in document.timeline.get_placements_on_track(1)] == [early, late]

    def test_require_placement_raises_not_found(self):
        with pytest.raises(NotFoundError):
            TimelineStore().require_placement("missing")

    def test_find_duplicate_creations(self):
        """Test that objects with several creation placements are reported in fold order."""
        store = TimelineStore([
            _point("frodo", 5.0, id="late"),
            _point("frodo", 1.0, id="early"),
            _point("sam", 2.0, id="only"),
        ])
        assert store.find_duplicate_creations() == {"frodo": ["early", "late"]}
        assert store.get_creation_placement("frodo").id == "early"


# =============================================================================
# Locks and split planning
# =============================================================================

class TestLocksAndSplit:

    def test_ensure_editable_checks_placement_and_track(self):
        """Test that locks on the placement, its track or the target track are reported."""
        store = TimelineStore(
            [_point("a", 1.0, id="locked", locked=True), _point("b", 1.0, track=1, id="free")],
            tracks=[TimelineTrack(index=0), TimelineTrack(index=1), TimelineTrack(index=2, locked=True)],
        )
        with pytest.raises(LockedEntityError):
            store.ensure_editable("locked", "move")
        with pytest.raises(LockedEntityError):
            store.ensure_editable("free", "move", target_track=2)
        assert store.ensure_editable("free", "move").id == "free"

    def test_plan_split_describes_both_halves(self):
        """Test that splitting [2, 8) at 5 plans [2, 5) and [5, 8)."""
        store = TimelineStore([_point("chapter", 2.0, end_position=8.0, id="ch")])
        left_fields, right = store.plan_split("ch", 5.0)
        assert left_fields["end_position"] == 5.0
        assert (right.position, right.end_position) == (5.0, 8.0)
        assert right.object_id == "chapter"
        assert right.id != "ch"
        # Planning does not touch the store
        assert store.require_placement("ch").end_position == 8.0

    @pytest.mark.parametrize("at", [2.0, 8.0, 9.5, 1.0])
    def test_plan_split_outside_open_range_is_rejected(self, at):
        store = TimelineStore([_point("chapter", 2.0, end_position=8.0, id="ch")])
        with pytest.raises(InvalidRangeError):
            store.plan_split("ch", at)

    def test_plan_split_of_point_is_rejected(self):
        store = TimelineStore([_point("frodo", 2.0, id="p")])
        with pytest.raises(InvalidRangeError):
            store.plan_split("p", 2.5)


# =============================================================================
# Magnetic slot resolution
# =============================================================================

class TestResolveFreePosition:
    """Tests for finding the nearest free slot on a track."""

    def test_free_position_is_kept(self):
        assert resolve_free_position(7.0, 1.0, [(0.0, 2.0), (3.0, 5.0)]) == 7.0

    def test_tie_goes_to_earlier_slot(self):
        """Test that a point dropped on an occupied cell at 5 lands at 4, not 6."""
        assert resolve_free_position(5.0, 1.0, [(5.0, 6.0)]) == 4.0

    def test_nearest_slot_wins(self):
        """Test that the closer free edge is preferred over the earlier one."""
        assert resolve_free_position(5.8, 1.0, [(5.0, 6.0)]) == 6.0

    def test_gap_between_intervals_is_used_when_it_fits(self):
        """Test that [2, 3) fits exactly between [0, 2) and [3, 5)."""
        assert resolve_free_position(1.0, 1.0, [(0.0, 2.0), (3.0, 5.0)]) == 2.0

    def test_never_resolves_before_timeline_start(self):
        """Test that the slot before an interval at 0 is not a candidate."""
        assert resolve_free_position(0.2, 1.0, [(0.0, 1.0)]) == 1.0

    def test_gap_is_kept_around_neighbours(self):
        assert resolve_free_position(1.5, 1.0, [(0.0, 2.0)], gap=0.5) == 2.5

    def test_store_excludes_moving_placements(self):
        """Test that placements moving together do not block each other."""
        store = TimelineStore([
            _point("a", 5.0, id="a"),
            _point("b", 6.0, id="b"),
        ])
        assert store.resolve_magnetic_position("a", 6.0, 0, exclude_ids=["b"]) == 6.0
        # Blocked by b at [6, 7): 5.0 and 7.0 are equally near, the earlier wins
        assert store.resolve_magnetic_position("a", 6.0, 0) == 5.0

    def test_ranged_placement_uses_its_length(self):
        store = TimelineStore([
            _point("a", 0.0, end_position=3.0, id="range"),
            _point("b", 4.0, id="point"),
        ])
        # [3.5, 6.5) overlaps the point at [4, 5); nearest fits are 1.0 and 5.0
        assert store.resolve_magnetic_position("range", 3.5, 0) == 5.0


# =============================================================================
# Track layout
# =============================================================================

class TestTrackPlans:

    def test_plan_insert_shifts_tracks_at_and_after_index(self):
        store = TimelineStore([_point("a", 1.0, track=0, id="t0"), _point("b", 1.0, track=2, id="t2")])
        plan = store.plan_insert_track(1)
        assert plan.track_changes == {"t2": 3}
        assert [t.index for t in plan.tracks] == [0, 1]

    def test_plan_remove_lists_placements_and_shifts_the_rest(self):
        store = TimelineStore([
            _point("a", 1.0, track=0, id="t0"),
            _point("b", 1.0, track=1, id="t1"),
            _point("c", 1.0, track=2, id="t2"),
        ])
        plan = store.plan_remove_track(1)
        assert plan.removed_ids == ("t1",)
        assert plan.track_changes == {"t2": 1}

    def test_plan_remove_refuses_locked_content(self):
        store = TimelineStore([_point("a", 1.0, track=1, id="t1", locked=True)])
        with pytest.raises(LockedEntityError):
            store.plan_remove_track(1)

    def test_plan_remove_unknown_track(self):
        with pytest.raises(NotFoundError):
            TimelineStore().plan_remove_track(4)

    def test_plan_move_renumbers_between(self):
        """Test moving track 0 to index 2 shifts tracks 1 and 2 up."""
        store = TimelineStore([
            _point("a", 1.0, track=0, id="t0"),
            _point("b", 1.0, track=1, id="t1"),
            _point("c", 1.0, track=2, id="t2"),
        ])
        plan = store.plan_move_track(0, 2)
        assert plan.track_changes == {"t0": 2, "t1": 0, "t2": 1}

    def test_set_tracks_requires_contiguous_indices(self):
        with pytest.raises(ValueError):
            TimelineStore(tracks=[TimelineTrack(index=0), TimelineTrack(index=2)])


# =============================================================================
# Cursor and bounds
# =============================================================================

class TestCursor:

    @pytest.fixture
    def store(self):
        return TimelineStore(
            [_point("a", 2.0, id="a"), _point("b", 4.0, end_position=6.0, id="b")],
            markers=[TimelineMarker(position=9.0, label="Climax")],
        )

    def test_next_and_prev_step_through_edges(self, store):
        """Test stepping over placement starts, ends and markers."""
        assert store.cursor_next() == 2.0
        assert store.cursor_next() == 4.0
        assert store.cursor_next() == 6.0
        assert store.cursor_next() == 9.0
        assert store.cursor_next() == 9.0
        assert store.cursor_prev() == 6.0

    def test_first_and_last(self, store):
        assert store.cursor_last() == 9.0
        assert store.cursor_first() == 2.0

    def test_cursor_is_clamped_at_start(self, store):
        assert store.set_cursor_position(-3.0) == 0.0

    def test_bounds_never_shorter_than_default_span(self):
        bounds = TimelineStore().bounds()
        assert bounds.min == 0.0
        assert bounds.span == DEFAULT_SPAN

    def test_bounds_are_padded_past_content(self):
        store = TimelineStore([_point("a", 30.0, end_position=40.0, id="far")])
        assert store.bounds().max == 45.0


class TestStoreConstruction:

    def test_rejects_non_positive_point_width(self):
        with pytest.raises(ValueError):
            TimelineStore(point_width=0)

    def test_rejects_invalid_placement(self):
        """Test that empty ranges are refused on insert."""
        with pytest.raises(InvalidRangeError):
            TimelineStore([_point("a", 3.0, end_position=3.0)])

    def test_mutation_without_payload_is_refused(self):
        with pytest.raises(ValueError):
            TimelineStore([TimelinePlacement(object_id="a", type=PlacementType.MUTATION)])

    def test_sequence_is_allocated_monotonically(self):
        store = TimelineStore()
        first = TimelinePlacement(object_id="a", type=PlacementType.MUTATION,
                                  mutation=MutationPayload("x"))
        second = TimelinePlacement(object_id="a", type=PlacementType.MUTATION,
                                   mutation=MutationPayload("y"))
        store.add_placement(first)
        store.add_placement(second)
        assert 0 < first.sequence < second.sequence
