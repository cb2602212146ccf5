"""
Tests for SnapCalculator.
"""
import pytest

from aethel.application.settings.timeline_settings import TimelineSettings
from aethel.application.timeline.timeline_store import TimelineStore
from aethel.domain.entities import PlacementType, TimelineMarker, TimelinePlacement
from aethel.ui.timeline.snap_calculator import SnapCalculator


@pytest.fixture
def store():
    placement = TimelinePlacement(object_id="o", type=PlacementType.CREATION,
                                  position=4.2, end_position=6.7, id="ranged")
    return TimelineStore(
        placements=[placement],
        markers=[TimelineMarker(position=8.4, label="Turn")],
        cursor_position=9.6,
    )


class TestGrid:

    def test_snaps_to_nearest_grid_line(self):
        assert SnapCalculator().snap(2.3) == 2.0
        assert SnapCalculator().snap(2.8) == 3.0

    def test_tie_goes_to_earlier_point(self):
        assert SnapCalculator().snap(2.5) == 2.0

    def test_reach_shrinks_with_zoom(self):
        calculator = SnapCalculator()
        assert calculator.reach(2.0) == 0.25
        assert calculator.snap(2.3, zoom=2.0) == 2.3

    def test_never_below_timeline_start(self):
        assert SnapCalculator().snap(-0.2) == 0.0

    def test_disabled(self):
        calculator = SnapCalculator()
        calculator.snap_enabled = False
        assert calculator.snap(2.3) == 2.3

    def test_invalid_grid(self):
        with pytest.raises(ValueError):
            SnapCalculator(grid_size=0)


class TestStorePoints:

    def test_snaps_to_placement_edge(self, store):
        assert SnapCalculator().snap(6.6, store=store) == 6.7

    def test_excluded_placement_is_ignored(self, store):
        """Test that a dragged placement does not snap to its own edges."""
        assert SnapCalculator().snap(6.6, store=store, exclude_ids=["ranged"]) == 7.0

    def test_snaps_to_marker_and_cursor(self, store):
        calculator = SnapCalculator()
        assert calculator.snap(8.3, store=store) == 8.4
        assert calculator.snap(9.5, store=store) == 9.6

    def test_from_settings(self):
        calculator = SnapCalculator.from_settings(TimelineSettings(snap_grid_size=0.25, snap_enabled=False))
        assert calculator.grid_size == 0.25
        assert calculator.snap_enabled is False
