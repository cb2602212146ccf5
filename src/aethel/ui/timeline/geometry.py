"""
Timeline Viewport

Maps between screen coordinates and timeline space:

    visible_range = total_range / zoom
    visible_min   = bounds.min + scroll_offset
    position      = visible_min + (x - label_width) / area_width * visible_range
    track         = floor((y - tracks_top) / track_height)

Zoom is clamped to [min_zoom, max_zoom] and scroll to
[0, max(0, total_range - visible_range)].
"""
import math
from typing import Optional, Tuple

from PyQt6.QtCore import QObject, QPointF, QRectF, pyqtSignal

from aethel.application.timeline.timeline_store import DEFAULT_SPAN, TIMELINE_MIN, TimelineStore
from aethel.application.timeline.types import TimelineBounds
from aethel.domain.entities import TimelinePlacement
from aethel.ui.timeline.constants import (
    DEFAULT_VIEW_HEIGHT,
    DEFAULT_VIEW_WIDTH,
    DEFAULT_ZOOM,
    MAX_ZOOM,
    MIN_POINT_WIDTH_PX,
    MIN_ZOOM,
    TRACK_HEIGHT,
    TRACK_LABEL_WIDTH,
    TRACKS_TOP,
    ZOOM_STEP,
)
from aethel.ui.timeline.types import BoxRange


class TimelineViewport(QObject):
    """
    Zoom, scroll and pixel geometry of the timeline view.

    Signals:
        viewport_changed(): zoom, scroll, bounds or size changed
    """

    viewport_changed = pyqtSignal()

    def __init__(
        self,
        width: float = DEFAULT_VIEW_WIDTH,
        height: float = DEFAULT_VIEW_HEIGHT,
        label_width: float = TRACK_LABEL_WIDTH,
        tracks_top: float = TRACKS_TOP,
        track_height: float = TRACK_HEIGHT,
        min_zoom: float = MIN_ZOOM,
        max_zoom: float = MAX_ZOOM,
        zoom_step: float = ZOOM_STEP,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        if min_zoom <= 0 or min_zoom >= max_zoom:
            raise ValueError(f"Invalid zoom limits [{min_zoom}, {max_zoom}]")
        self.width = float(width)
        self.height = float(height)
        self.label_width = float(label_width)
        self.tracks_top = float(tracks_top)
        self.track_height = float(track_height)
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.zoom_step = zoom_step
        self._bounds = TimelineBounds(TIMELINE_MIN, TIMELINE_MIN + DEFAULT_SPAN)
        self._zoom = DEFAULT_ZOOM
        self._scroll = 0.0

    @classmethod
    def from_settings(cls, settings, width: float = DEFAULT_VIEW_WIDTH,
                      height: float = DEFAULT_VIEW_HEIGHT) -> "TimelineViewport":
        return cls(
            width=width,
            height=height,
            label_width=settings.track_label_width,
            tracks_top=settings.tracks_top,
            track_height=settings.track_height,
            min_zoom=settings.min_zoom,
            max_zoom=settings.max_zoom,
            zoom_step=settings.zoom_step,
        )

    # =========================================================================
    # State
    # =========================================================================

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def scroll_offset(self) -> float:
        return self._scroll

    @property
    def bounds(self) -> TimelineBounds:
        return self._bounds

    @property
    def total_range(self) -> float:
        return self._bounds.span

    @property
    def visible_range(self) -> float:
        return self.total_range / self._zoom

    @property
    def visible_min(self) -> float:
        return self._bounds.min + self._scroll

    @property
    def visible_max(self) -> float:
        return self.visible_min + self.visible_range

    @property
    def area_width(self) -> float:
        """Pixel width of the placement area (right of the track labels)."""
        return max(1.0, self.width - self.label_width)

    @property
    def max_scroll(self) -> float:
        return max(0.0, self.total_range - self.visible_range)

    def resize(self, width: float, height: float) -> None:
        self.width = float(width)
        self.height = float(height)
        self.viewport_changed.emit()

    def set_bounds(self, bounds: TimelineBounds) -> None:
        if bounds.span <= 0:
            raise ValueError(f"Empty timeline bounds [{bounds.min}, {bounds.max}]")
        self._bounds = bounds
        self._scroll = self._clamp_scroll(self._scroll)
        self.viewport_changed.emit()

    def fit_to_store(self, store: TimelineStore) -> None:
        self.set_bounds(store.bounds())

    # =========================================================================
    # Zoom and scroll
    # =========================================================================

    def clamp_zoom(self, zoom: float) -> float:
        return min(self.max_zoom, max(self.min_zoom, zoom))

    def _clamp_scroll(self, scroll: float) -> float:
        return min(self.max_scroll, max(0.0, scroll))

    def set_zoom(self, zoom: float) -> float:
        self._zoom = self.clamp_zoom(zoom)
        self._scroll = self._clamp_scroll(self._scroll)
        self.viewport_changed.emit()
        return self._zoom

    def set_scroll_offset(self, offset: float) -> float:
        self._scroll = self._clamp_scroll(offset)
        self.viewport_changed.emit()
        return self._scroll

    def zoom_at(self, zoom: float, anchor_x: Optional[float] = None) -> float:
        """
        Zoom keeping the timeline position under anchor_x at the same screen x
        (as far as the scroll clamp allows). anchor_x defaults to the view center.
        """
        if anchor_x is None:
            anchor_x = self.label_width + self.area_width / 2
        anchored = self.position_at_x(anchor_x)
        self._zoom = self.clamp_zoom(zoom)
        fraction = (anchor_x - self.label_width) / self.area_width
        new_visible_min = anchored - fraction * self.visible_range
        self._scroll = self._clamp_scroll(new_visible_min - self._bounds.min)
        self.viewport_changed.emit()
        return self._zoom

    def zoom_in(self, anchor_x: Optional[float] = None) -> float:
        return self.zoom_at(self._zoom * self.zoom_step, anchor_x)

    def zoom_out(self, anchor_x: Optional[float] = None) -> float:
        return self.zoom_at(self._zoom / self.zoom_step, anchor_x)

    def reset_zoom(self) -> None:
        self._zoom = self.clamp_zoom(DEFAULT_ZOOM)
        self._scroll = 0.0
        self.viewport_changed.emit()

    def scroll_to_position(self, position: float) -> None:
        """Center position in the view unless it is already visible."""
        if self.visible_min <= position <= self.visible_max:
            return
        self.set_scroll_offset(position - self._bounds.min - self.visible_range / 2)

    # =========================================================================
    # Mapping
    # =========================================================================

    def position_at_x(self, x: float) -> float:
        return self.visible_min + (x - self.label_width) / self.area_width * self.visible_range

    def position_to_x(self, position: float) -> float:
        return self.label_width + (position - self.visible_min) / self.visible_range * self.area_width

    def position_at(self, point: QPointF) -> Tuple[float, int]:
        return self.position_at_x(point.x()), self.track_at_y(point.y())

    def pixels_per_unit(self) -> float:
        return self.area_width / self.visible_range

    def track_at_y(self, y: float) -> int:
        """Track index under y; negative above the first track."""
        return math.floor((y - self.tracks_top) / self.track_height)

    def track_top(self, track: int) -> float:
        return self.tracks_top + track * self.track_height

    def placement_rect(self, placement: TimelinePlacement, point_width: float = 1.0) -> QRectF:
        """Screen rectangle of a placement; point placements span point_width units."""
        left = self.position_to_x(placement.position)
        if placement.end_position is not None:
            right = self.position_to_x(placement.end_position)
        else:
            right = max(self.position_to_x(placement.position + point_width), left + MIN_POINT_WIDTH_PX)
        return QRectF(left, self.track_top(placement.track), right - left, self.track_height)

    def rect_to_timeline(self, rect: QRectF) -> BoxRange:
        """Screen rectangle (any orientation) to a position interval and track range."""
        rect = rect.normalized()
        start = self.position_at_x(rect.left())
        end = self.position_at_x(rect.right())
        first = max(0, self.track_at_y(rect.top()))
        # A box wholly above the tracks covers none (last < first)
        last = self.track_at_y(rect.bottom())
        return BoxRange(start=start, end=end, first_track=first, last_track=last)
