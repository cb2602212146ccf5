"""
Timeline Settings

User-tunable timeline behaviour: drag thresholds, zoom limits, snapping,
layout metrics, magnetic move spacing and history depth.
"""
from dataclasses import dataclass

from aethel.application.settings.base_settings import (
    BaseSettings,
    BaseSettingsManager,
    ValidationResult,
    validated_field,
)

MOVEMENT_FREE = "free"
MOVEMENT_MAGNETIC = "magnetic"


@dataclass
class TimelineSettings(BaseSettings):
    # Interaction
    drag_threshold_px: int = validated_field(3, min_value=0, max_value=50)
    drag_threshold_position: float = validated_field(0.01, min_value=0.0, max_value=5.0)
    movement_mode: str = validated_field(MOVEMENT_FREE, choices=[MOVEMENT_FREE, MOVEMENT_MAGNETIC])
    nudge_amount: float = validated_field(0.5, min_value=0.01, max_value=100.0)
    duplicate_offset: float = validated_field(1.0, min_value=0.0, max_value=1000.0)

    # Zoom
    min_zoom: float = validated_field(0.1, min_value=0.01, max_value=1.0)
    max_zoom: float = validated_field(10.0, min_value=1.0, max_value=100.0)
    zoom_step: float = validated_field(1.2, min_value=1.01, max_value=4.0)

    # Snapping
    snap_enabled: bool = True
    snap_grid_size: float = validated_field(1.0, min_value=0.01, max_value=100.0)
    snap_threshold: float = validated_field(0.5, min_value=0.0, max_value=10.0)

    # Layout (pixels)
    track_height: float = validated_field(40.0, min_value=16.0, max_value=400.0)
    track_label_width: float = validated_field(120.0, min_value=0.0, max_value=600.0)
    tracks_top: float = validated_field(24.0, min_value=0.0, max_value=200.0)
    resize_handle_width: float = validated_field(6.0, min_value=1.0, max_value=40.0)

    # Magnetic move
    magnetic_point_width: float = validated_field(1.0, min_value=0.01, max_value=100.0)
    magnetic_gap: float = validated_field(0.0, min_value=0.0, max_value=100.0)

    # History
    history_limit: int = validated_field(100, min_value=1, max_value=10000)

    def validate(self) -> ValidationResult:
        result = super().validate()
        if self.min_zoom >= self.max_zoom:
            result.add_error(f"min_zoom: {self.min_zoom} must be below max_zoom {self.max_zoom}")
        return result


class TimelineSettingsManager(BaseSettingsManager):
    """Timeline settings stored under the 'timeline' namespace."""

    NAMESPACE = "timeline"
    SETTINGS_CLASS = TimelineSettings

    @property
    def timeline(self) -> TimelineSettings:
        return self._settings

    @property
    def movement_mode(self) -> str:
        return self._settings.movement_mode

    @movement_mode.setter
    def movement_mode(self, value: str):
        self.set("movement_mode", value)

    @property
    def snap_enabled(self) -> bool:
        return self._settings.snap_enabled

    @snap_enabled.setter
    def snap_enabled(self, value: bool):
        self.set("snap_enabled", bool(value))

    @property
    def history_limit(self) -> int:
        return self._settings.history_limit

    @history_limit.setter
    def history_limit(self, value: int):
        self.set("history_limit", value)
