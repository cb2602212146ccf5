"""
Tests for TimelineViewport coordinate mapping.

Default geometry: 1000 px wide with 120 px of track labels leaves an
880 px placement area; bounds [0, 20] at zoom 1 gives 44 px per unit.
"""
import pytest
from PyQt6.QtCore import QPointF, QRectF

from aethel.application.settings.timeline_settings import TimelineSettings
from aethel.application.timeline.timeline_store import TimelineStore
from aethel.application.timeline.types import TimelineBounds
from aethel.domain.entities import PlacementType, TimelinePlacement
from aethel.ui.timeline.geometry import TimelineViewport


@pytest.fixture
def viewport():
    return TimelineViewport()


def _placement(position, end_position=None, track=0):
    return TimelinePlacement(object_id="o", type=PlacementType.CREATION, position=position,
                             end_position=end_position, track=track)


class TestMapping:

    def test_default_geometry(self, viewport):
        assert viewport.area_width == 880
        assert viewport.visible_range == 20
        assert viewport.pixels_per_unit() == 44

    def test_position_and_x_are_inverse(self, viewport):
        assert viewport.position_to_x(5.0) == 340
        assert viewport.position_at_x(340) == pytest.approx(5.0)
        assert viewport.position_at_x(120) == 0

    def test_track_at_y(self, viewport):
        assert viewport.track_at_y(24) == 0
        assert viewport.track_at_y(63.9) == 0
        assert viewport.track_at_y(64) == 1
        assert viewport.track_at_y(10) == -1

    def test_position_at_point(self, viewport):
        position, track = viewport.position_at(QPointF(560, 70))
        assert position == pytest.approx(10.0)
        assert track == 1

    def test_ranged_placement_rect(self, viewport):
        rect = viewport.placement_rect(_placement(5.0, 10.0, track=1))
        assert (rect.left(), rect.right(), rect.top(), rect.height()) == (340, 560, 64, 40)

    def test_point_placement_rect_has_minimum_width(self, viewport):
        assert viewport.placement_rect(_placement(5.0)).width() == 44
        viewport.set_zoom(0.1)
        assert viewport.placement_rect(_placement(5.0)).width() == 8

    def test_rect_to_timeline_normalizes(self, viewport):
        """Test that a box dragged up and to the left maps like a normal one."""
        box = viewport.rect_to_timeline(QRectF(384, 100, -176, -60))
        assert box.start == pytest.approx(2.0)
        assert box.end == pytest.approx(6.0)
        assert box.tracks() == [0, 1]

    def test_rect_above_tracks_covers_no_track(self, viewport):
        box = viewport.rect_to_timeline(QRectF(200, 0, 10, 10))
        assert box.tracks() == []

    def test_rect_from_ruler_into_tracks_starts_at_first(self, viewport):
        box = viewport.rect_to_timeline(QRectF(200, 0, 10, 40))
        assert box.tracks() == [0]


class TestZoomAndScroll:

    def test_zoom_is_clamped(self, viewport):
        assert viewport.set_zoom(100) == 10
        assert viewport.set_zoom(0.001) == 0.1

    def test_zoom_keeps_anchor_position(self, viewport):
        """Test that the position under the anchor stays under it."""
        viewport.zoom_at(2.0, anchor_x=560)
        assert viewport.scroll_offset == pytest.approx(5.0)
        assert viewport.position_at_x(560) == pytest.approx(10.0)

    def test_zoom_in_and_out_use_step(self, viewport):
        assert viewport.zoom_in() == pytest.approx(1.2)
        assert viewport.zoom_out() == pytest.approx(1.0)

    def test_scroll_is_clamped(self, viewport):
        assert viewport.set_scroll_offset(50) == 0
        viewport.set_zoom(2.0)
        assert viewport.set_scroll_offset(50) == 10
        assert viewport.set_scroll_offset(-3) == 0

    def test_scroll_to_position(self, viewport):
        viewport.set_zoom(2.0)
        viewport.scroll_to_position(4.0)
        assert viewport.scroll_offset == 0
        viewport.scroll_to_position(15.0)
        assert (viewport.visible_min, viewport.visible_max) == (10, 20)

    def test_reset_zoom(self, viewport):
        viewport.zoom_at(4.0, anchor_x=900)
        viewport.reset_zoom()
        assert (viewport.zoom, viewport.scroll_offset) == (1.0, 0.0)

    def test_changes_emit_signal(self, viewport):
        events = []
        viewport.viewport_changed.connect(lambda: events.append(True))
        viewport.set_zoom(2.0)
        viewport.set_scroll_offset(1.0)
        viewport.resize(800, 300)
        assert len(events) == 3


class TestBounds:

    def test_fit_to_store(self, viewport):
        store = TimelineStore(placements=[_placement(30.0)])
        viewport.fit_to_store(store)
        assert (viewport.bounds.min, viewport.bounds.max) == (0.0, 36.0)

    def test_shrinking_bounds_clamps_scroll(self, viewport):
        viewport.set_bounds(TimelineBounds(0.0, 40.0))
        viewport.set_zoom(2.0)
        viewport.set_scroll_offset(20.0)
        viewport.set_bounds(TimelineBounds(0.0, 20.0))
        assert viewport.scroll_offset == 10.0

    def test_empty_bounds_rejected(self, viewport):
        with pytest.raises(ValueError):
            viewport.set_bounds(TimelineBounds(5.0, 5.0))

    def test_invalid_zoom_limits(self):
        with pytest.raises(ValueError):
            TimelineViewport(min_zoom=2.0, max_zoom=1.0)

    def test_from_settings(self):
        settings = TimelineSettings(track_height=60.0, track_label_width=200.0, max_zoom=4.0)
        viewport = TimelineViewport.from_settings(settings, width=1200)
        assert (viewport.track_height, viewport.area_width, viewport.max_zoom) == (60.0, 1000.0, 4.0)
