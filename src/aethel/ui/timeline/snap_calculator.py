"""
Snap Calculator

Snaps timeline positions to the nearest snap point within reach:

- grid lines (multiples of grid_size)
- start and end edges of other placements
- markers
- the cursor

Reach is threshold / zoom timeline units, so snapping feels the same in
pixels at any zoom level. Equal distances go to the earlier point.
"""
import math
from typing import Iterable, List, Optional

from aethel.application.timeline.timeline_store import TIMELINE_MIN, TimelineStore
from aethel.ui.timeline.constants import DEFAULT_SNAP_GRID, SNAP_THRESHOLD


class SnapCalculator:

    def __init__(self, grid_size: float = DEFAULT_SNAP_GRID, threshold: float = SNAP_THRESHOLD):
        if grid_size <= 0:
            raise ValueError("grid_size must be positive")
        self.grid_size = grid_size
        self.threshold = threshold
        self.snap_enabled = True

    @classmethod
    def from_settings(cls, settings) -> "SnapCalculator":
        calculator = cls(settings.snap_grid_size, settings.snap_threshold)
        calculator.snap_enabled = settings.snap_enabled
        return calculator

    def reach(self, zoom: float) -> float:
        return self.threshold / zoom if zoom > 0 else self.threshold

    def grid_points(self, value: float) -> List[float]:
        """Grid lines on either side of value."""
        index = math.floor(value / self.grid_size)
        return [index * self.grid_size, (index + 1) * self.grid_size]

    def snap_points(
        self,
        value: float,
        store: Optional[TimelineStore] = None,
        exclude_ids: Iterable[str] = (),
    ) -> List[float]:
        points = self.grid_points(value)
        if store is not None:
            excluded = set(exclude_ids)
            for placement in store.placements():
                if placement.id in excluded:
                    continue
                points.append(placement.position)
                if placement.end_position is not None:
                    points.append(placement.end_position)
            points.extend(marker.position for marker in store.markers)
            points.append(store.cursor_position)
        return points

    def snap(
        self,
        value: float,
        zoom: float = 1.0,
        store: Optional[TimelineStore] = None,
        exclude_ids: Iterable[str] = (),
    ) -> float:
        """Nearest snap point within reach, else value unchanged (never below the timeline start)."""
        if not self.snap_enabled:
            return value
        reach = self.reach(zoom)
        candidates = [
            p for p in self.snap_points(value, store, exclude_ids)
            if p >= TIMELINE_MIN and abs(p - value) <= reach
        ]
        if not candidates:
            return value
        return min(candidates, key=lambda p: (abs(p - value), p))
