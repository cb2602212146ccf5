"""
Timeline keyboard shortcuts.

Shortcuts are stored as strings like "Key_Left" or "Ctrl+Shift+Key_Z"
(Qt key names, modifiers joined with "+"). Several alternatives for one
action are separated by commas.
"""
from typing import Dict, List, Optional, Tuple

from PyQt6.QtCore import Qt

from aethel.utils.message import Log


SELECT_TOOL = "Select Tool"
RAZOR_TOOL = "Razor Tool"
SLIP_TOOL = "Slip Tool"
SLIDE_TOOL = "Slide Tool"
ADD_MARKER = "Add Marker At Cursor"
TOGGLE_SNAP = "Toggle Snap"
TOGGLE_MOVEMENT_MODE = "Toggle Magnetic Mode"
SELECT_ALL = "Select All"
DELETE = "Delete Selection"
DUPLICATE = "Duplicate Selection"
COPY = "Copy"
PASTE = "Paste At Cursor"
GROUP = "Group Selection"
UNGROUP = "Ungroup Selection"
TOGGLE_LOCK = "Toggle Lock"
SPLIT = "Split At Cursor"
MOVE_LEFT = "Move Event Left"
MOVE_RIGHT = "Move Event Right"
MOVE_UP_TRACK = "Move Event Up Track"
MOVE_DOWN_TRACK = "Move Event Down Track"
UNDO = "Undo"
REDO = "Redo"
GO_TO_START = "Go To Start"
GO_TO_END = "Go To End"
ZOOM_IN = "Zoom In"
ZOOM_OUT = "Zoom Out"

DEFAULT_SHORTCUTS: Dict[str, str] = {
    SELECT_TOOL: "Key_V",
    RAZOR_TOOL: "Key_B",
    SLIP_TOOL: "Key_S",
    SLIDE_TOOL: "Key_D",
    ADD_MARKER: "Key_M",
    TOGGLE_SNAP: "Key_N",
    TOGGLE_MOVEMENT_MODE: "Shift+Key_M",
    SELECT_ALL: "Ctrl+Key_A",
    DELETE: "Key_Delete, Key_Backspace",
    DUPLICATE: "Ctrl+Key_D",
    COPY: "Ctrl+Key_C",
    PASTE: "Ctrl+Key_V",
    GROUP: "Ctrl+Key_G",
    UNGROUP: "Ctrl+Shift+Key_G",
    TOGGLE_LOCK: "Ctrl+Key_L",
    SPLIT: "Ctrl+Key_K",
    MOVE_LEFT: "Key_Left",
    MOVE_RIGHT: "Key_Right",
    MOVE_UP_TRACK: "Ctrl+Key_Up",
    MOVE_DOWN_TRACK: "Ctrl+Key_Down",
    UNDO: "Ctrl+Key_Z",
    REDO: "Ctrl+Shift+Key_Z, Ctrl+Key_Y",
    GO_TO_START: "Key_Home",
    GO_TO_END: "Key_End",
    ZOOM_IN: "Ctrl+Key_Equal",
    ZOOM_OUT: "Ctrl+Key_Minus",
}

_MODIFIERS = {
    "ctrl": Qt.KeyboardModifier.ControlModifier,
    "shift": Qt.KeyboardModifier.ShiftModifier,
    "alt": Qt.KeyboardModifier.AltModifier,
    "meta": Qt.KeyboardModifier.MetaModifier,
}

_MODIFIER_MASK = 0
for _modifier in _MODIFIERS.values():
    _MODIFIER_MASK |= _modifier.value

KeyCombo = Tuple[int, int]


def as_int(value) -> int:
    """Qt enums and flags (or plain ints from events) as int."""
    return value.value if hasattr(value, "value") else int(value)


def parse_shortcut(text: str) -> KeyCombo:
    """
    "Ctrl+Shift+Key_Z" -> (modifier bits, key code).

    Raises:
        ValueError: empty string or unknown key/modifier name
    """
    parts = [p.strip() for p in text.split("+") if p.strip()]
    if not parts:
        raise ValueError("Empty shortcut")
    key_name = parts[-1]
    if not key_name.startswith("Key_"):
        key_name = f"Key_{key_name}"
    try:
        key = Qt.Key[key_name]
    except KeyError:
        raise ValueError(f"Unknown key in shortcut '{text}': {parts[-1]}") from None

    modifiers = 0
    for name in parts[:-1]:
        modifier = _MODIFIERS.get(name.lower())
        if modifier is None:
            raise ValueError(f"Unknown modifier in shortcut '{text}': {name}")
        modifiers |= modifier.value
    return modifiers, key.value


def format_shortcut(modifiers, key) -> str:
    """Inverse of parse_shortcut for a single combination."""
    bits = as_int(modifiers)
    parts = [name.capitalize() for name, modifier in _MODIFIERS.items() if bits & modifier.value]
    parts.append(Qt.Key(as_int(key)).name)
    return "+".join(parts)


class ShortcutMap:
    """
    Lookup from key presses to action names.

    Args:
        overrides: action name -> shortcut string, replacing the defaults
            for those actions. Unparseable overrides are logged and the
            default is kept.
    """

    def __init__(self, overrides: Optional[Dict[str, str]] = None):
        self._shortcuts = dict(DEFAULT_SHORTCUTS)
        self._bindings: Dict[KeyCombo, str] = {}
        for action, text in (overrides or {}).items():
            try:
                for alternative in text.split(","):
                    parse_shortcut(alternative)
            except ValueError as e:
                Log.warning(f"ShortcutMap: ignoring shortcut for '{action}': {e}")
                continue
            self._shortcuts[action] = text
        self._rebuild()

    def _rebuild(self) -> None:
        self._bindings.clear()
        for action, text in self._shortcuts.items():
            for alternative in text.split(","):
                combo = parse_shortcut(alternative)
                existing = self._bindings.get(combo)
                if existing is not None and existing != action:
                    Log.warning(f"ShortcutMap: '{alternative.strip()}' bound to both '{existing}' and '{action}'")
                    continue
                self._bindings[combo] = action

    @property
    def shortcuts(self) -> Dict[str, str]:
        return dict(self._shortcuts)

    def shortcut_for(self, action: str) -> Optional[str]:
        return self._shortcuts.get(action)

    def bindings_for(self, action: str) -> List[KeyCombo]:
        return [combo for combo, bound in self._bindings.items() if bound == action]

    def action_for(self, key, modifiers=0) -> Optional[str]:
        """Action bound to key with modifiers (keypad and other modifiers are ignored)."""
        combo = (as_int(modifiers) & _MODIFIER_MASK, as_int(key))
        return self._bindings.get(combo)
