"""
Tests for shortcut parsing and the ShortcutMap.
"""
import pytest
from PyQt6.QtCore import Qt

from aethel.ui.timeline import shortcuts
from aethel.ui.timeline.shortcuts import ShortcutMap, format_shortcut, parse_shortcut

CTRL = Qt.KeyboardModifier.ControlModifier
SHIFT = Qt.KeyboardModifier.ShiftModifier


class TestParsing:

    def test_parse_with_modifiers(self):
        modifiers, key = parse_shortcut("Ctrl+Shift+Key_Z")
        assert modifiers == (CTRL | SHIFT).value
        assert key == Qt.Key.Key_Z.value

    def test_key_prefix_is_optional(self):
        assert parse_shortcut("Ctrl+Z") == parse_shortcut("Ctrl+Key_Z")

    @pytest.mark.parametrize("text", ["", "Ctrl+Key_Nope", "Hyper+Key_A"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_shortcut(text)

    def test_format_is_inverse(self):
        assert format_shortcut(CTRL | SHIFT, Qt.Key.Key_Z) == "Ctrl+Shift+Key_Z"
        assert parse_shortcut(format_shortcut(*parse_shortcut("Shift+Key_M"))) == parse_shortcut("Shift+Key_M")


class TestShortcutMap:

    def test_defaults(self):
        keymap = ShortcutMap()
        assert keymap.action_for(Qt.Key.Key_B) == shortcuts.RAZOR_TOOL
        assert keymap.action_for(Qt.Key.Key_M, SHIFT) == shortcuts.TOGGLE_MOVEMENT_MODE
        assert keymap.action_for(Qt.Key.Key_Y, CTRL) == shortcuts.REDO
        assert keymap.action_for(Qt.Key.Key_F12) is None

    def test_keypad_modifier_is_ignored(self):
        keymap = ShortcutMap()
        keypad = Qt.KeyboardModifier.KeypadModifier
        assert keymap.action_for(Qt.Key.Key_Left, keypad) == shortcuts.MOVE_LEFT

    def test_plain_ints_from_events(self):
        keymap = ShortcutMap()
        assert keymap.action_for(Qt.Key.Key_Z.value, CTRL.value) == shortcuts.UNDO

    def test_override_replaces_default(self):
        keymap = ShortcutMap({shortcuts.RAZOR_TOOL: "Key_C"})
        assert keymap.action_for(Qt.Key.Key_C) == shortcuts.RAZOR_TOOL
        assert keymap.action_for(Qt.Key.Key_B) is None
        assert keymap.shortcut_for(shortcuts.RAZOR_TOOL) == "Key_C"

    def test_invalid_override_keeps_default(self):
        keymap = ShortcutMap({shortcuts.RAZOR_TOOL: "Key_Nope"})
        assert keymap.shortcut_for(shortcuts.RAZOR_TOOL) == "Key_B"

    def test_conflicting_override_keeps_first_binding(self):
        """Test that a shortcut already taken by an earlier action is not stolen."""
        keymap = ShortcutMap({shortcuts.ZOOM_OUT: "Key_V"})
        assert keymap.action_for(Qt.Key.Key_V) == shortcuts.SELECT_TOOL
        assert keymap.bindings_for(shortcuts.ZOOM_OUT) == []

    def test_alternatives(self):
        keymap = ShortcutMap()
        assert len(keymap.bindings_for(shortcuts.DELETE)) == 2
        assert keymap.shortcuts[shortcuts.DELETE] == "Key_Delete, Key_Backspace"
