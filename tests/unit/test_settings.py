"""
Tests for TimelineSettings and TimelineSettingsManager.
"""
import pytest

from aethel.application.settings.timeline_settings import (
    MOVEMENT_MAGNETIC,
    TimelineSettings,
    TimelineSettingsManager,
)
from aethel.infrastructure.persistence.database import Database
from aethel.infrastructure.persistence.preferences_repository import PreferencesRepository


@pytest.fixture
def preferences():
    return PreferencesRepository(Database(":memory:"))


class TestTimelineSettings:

    def test_defaults_are_valid(self):
        settings = TimelineSettings()
        assert settings.is_valid()
        assert (settings.drag_threshold_px, settings.nudge_amount, settings.history_limit) == (3, 0.5, 100)

    def test_out_of_range_values(self):
        result = TimelineSettings(drag_threshold_px=51, history_limit=0).validate()
        assert not result.valid
        assert len(result.errors) == 2

    def test_unknown_movement_mode(self):
        assert not TimelineSettings(movement_mode="sticky").is_valid()

    def test_zoom_limits_must_be_ordered(self):
        """Test the cross-field rule: min_zoom below max_zoom."""
        result = TimelineSettings(min_zoom=1.0, max_zoom=1.0).validate()
        assert not result.valid
        assert result.errors[-1].startswith("min_zoom")

    def test_from_dict_ignores_unknown_and_fills_missing(self):
        settings = TimelineSettings.from_dict({"nudge_amount": 2.0, "retired_option": True})
        assert settings.nudge_amount == 2.0
        assert settings.history_limit == 100

    def test_validate_single_field(self):
        assert TimelineSettings(snap_threshold=-1.0).validate_field("snap_threshold").valid is False
        with pytest.raises(AttributeError):
            TimelineSettings().validate_field("nope")


class TestTimelineSettingsManager:

    def test_set_applies_and_signals(self):
        manager = TimelineSettingsManager()
        changed = []
        manager.settings_changed.connect(lambda key: changed.append(key))

        assert manager.set("nudge_amount", 0.25) is True
        assert manager.timeline.nudge_amount == 0.25
        assert changed == ["nudge_amount"]
        assert manager.set("nudge_amount", 0.25) is False

    def test_invalid_value_is_reverted(self):
        """Test that a rejected value leaves the old one and emits validation_failed."""
        manager = TimelineSettingsManager()
        failures = []
        manager.validation_failed.connect(lambda result: failures.append(result))

        assert manager.set("history_limit", 0) is False
        assert manager.history_limit == 100
        assert len(failures) == 1
        assert failures[0].errors[0].startswith("history_limit")

    def test_cross_field_violation_is_reverted(self):
        manager = TimelineSettingsManager()
        assert manager.set("min_zoom", 1.0) is True
        assert manager.set("max_zoom", 1.0) is False
        assert manager.timeline.max_zoom == 10.0

    def test_unknown_key(self):
        with pytest.raises(AttributeError):
            TimelineSettingsManager().set("colour_scheme", "dark")

    def test_property_setters(self):
        manager = TimelineSettingsManager()
        manager.movement_mode = MOVEMENT_MAGNETIC
        manager.snap_enabled = False
        assert manager.get("movement_mode") == MOVEMENT_MAGNETIC
        assert manager.get_all()["snap_enabled"] is False

    def test_values_persist_across_managers(self, preferences):
        TimelineSettingsManager(preferences).set("nudge_amount", 2.0)
        reloaded = TimelineSettingsManager(preferences)
        assert reloaded.timeline.nudge_amount == 2.0
        assert preferences.get("timeline.settings")["nudge_amount"] == 2.0

    def test_invalid_stored_settings_fall_back_to_defaults(self, preferences):
        preferences.set("timeline.settings", {"history_limit": -4})
        manager = TimelineSettingsManager(preferences)
        assert manager.history_limit == 100
        assert manager.is_loaded()

    def test_reset_to_defaults(self, preferences):
        manager = TimelineSettingsManager(preferences)
        manager.set("snap_grid_size", 0.25)
        manager.reset_to_defaults()
        assert manager.timeline.snap_grid_size == 1.0
        assert preferences.get("timeline.settings")["snap_grid_size"] == 1.0

    def test_stored_settings_with_retired_keys_still_load(self, preferences):
        """Test that keys no longer in TimelineSettings are dropped on load."""
        preferences.set("timeline.settings", {"autosave_delay_ms": 2000, "history_limit": 50})
        manager = TimelineSettingsManager(preferences)
        assert manager.history_limit == 50
        assert "autosave_delay_ms" not in manager.get_all()
        with pytest.raises(AttributeError):
            manager.set("autosave_delay_ms", 500)
