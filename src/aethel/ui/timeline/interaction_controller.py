"""
Timeline Interaction Controller

Routes pointer and keyboard input of the timeline view to the editor
state, the movement controller and timeline operations. Views feed it
widget-local coordinates and Qt button/key/modifier values; it never
touches widgets itself.

Pointer press:
    razor tool on a placement   -> split at the clicked position
    placement body              -> select, then begin move
    ranged placement edge       -> select, then begin resize
    empty area                  -> begin box selection (clears selection
                                   unless a toggle modifier is held)
"""
from typing import Callable, Dict, List, Optional

from PyQt6.QtCore import QObject, QPointF, QRectF, Qt, pyqtSignal

from aethel.application.document import Document
from aethel.application.operations.timeline_operations import TimelineOperations
from aethel.ui.timeline import shortcuts
from aethel.ui.timeline.constants import MIN_RESIZE_HANDLE_WIDTH, RESIZE_HANDLE_PERCENT
from aethel.ui.timeline.editor_state import TimelineEditor, is_toggle_click
from aethel.ui.timeline.geometry import TimelineViewport
from aethel.ui.timeline.movement_controller import MovementController
from aethel.ui.timeline.shortcuts import ShortcutMap
from aethel.ui.timeline.types import EditHandle, HitResult, Tool
from aethel.utils.message import Log


class TimelineInteractionController(QObject):
    """
    Signals:
        status_message(str, bool): message, is_error
    """

    status_message = pyqtSignal(str, bool)

    def __init__(
        self,
        document: Document,
        editor: TimelineEditor,
        viewport: TimelineViewport,
        operations: TimelineOperations,
        movement: Optional[MovementController] = None,
        shortcut_map: Optional[ShortcutMap] = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._document = document
        self._editor = editor
        self._viewport = viewport
        self._operations = operations
        self._movement = movement or MovementController(document, editor, viewport, operations, parent=self)
        self._shortcuts = shortcut_map or ShortcutMap()
        self._movement.status_message.connect(self.status_message)
        self._actions = self._build_actions()

    @property
    def movement(self) -> MovementController:
        return self._movement

    @property
    def shortcut_map(self) -> ShortcutMap:
        return self._shortcuts

    # =========================================================================
    # Hit testing
    # =========================================================================

    def handle_width(self, rect: QRectF) -> float:
        """Resize handle width for a placement rect; shrinks on narrow placements."""
        width = self._document.settings.resize_handle_width
        return max(MIN_RESIZE_HANDLE_WIDTH, min(width, rect.width() * RESIZE_HANDLE_PERCENT))

    def hit_test(self, pos: QPointF) -> HitResult:
        """Placement (and edge) under pos. Later placements on a track are on top."""
        position, track = self._viewport.position_at(pos)
        if track < 0 or pos.x() < self._viewport.label_width:
            return HitResult(position=position, track=max(0, track))

        store = self._document.timeline
        for placement in reversed(store.get_placements_on_track(track)):
            rect = self._viewport.placement_rect(placement, store.point_width)
            if not rect.contains(pos):
                continue
            handle = EditHandle.MOVE
            if placement.is_ranged:
                edge = self.handle_width(rect)
                if pos.x() <= rect.left() + edge:
                    handle = EditHandle.RESIZE_START
                elif pos.x() >= rect.right() - edge:
                    handle = EditHandle.RESIZE_END
            return HitResult(placement_id=placement.id, handle=handle, position=position, track=track)
        return HitResult(position=position, track=track)

    # =========================================================================
    # Pointer
    # =========================================================================

    def mouse_press(self, pos: QPointF, button: Qt.MouseButton = Qt.MouseButton.LeftButton,
                    modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier) -> bool:
        """Returns True if the press was consumed."""
        if button != Qt.MouseButton.LeftButton:
            return False
        hit = self.hit_test(pos)

        if self._editor.tool == Tool.RAZOR:
            if hit.is_empty:
                return False
            if hit.handle != EditHandle.MOVE:
                # Edges belong to resizing
                self.status_message.emit("Cannot split here", True)
                return True
            command = self._operations.split(hit.placement_id, at=hit.position)
            if command is None:
                self.status_message.emit("Cannot split here", True)
            return True

        if hit.is_empty:
            toggle = is_toggle_click(modifiers)
            if not toggle:
                self._editor.clear_selection()
            self._editor.begin_box_select(pos, additive=toggle)
            return True

        pid = hit.placement_id
        if is_toggle_click(modifiers) or not self._editor.is_selected(pid):
            self._editor.select_placement(pid, modifiers)
        if not self._editor.is_selected(pid):
            # Toggled off: nothing to drag
            return True

        if hit.handle in (EditHandle.RESIZE_START, EditHandle.RESIZE_END):
            self._movement.begin_resize(pid, pos, hit.handle)
        else:
            self._movement.begin_move(pid, pos, self._editor.selected_placement_ids)
        return True

    def mouse_move(self, pos: QPointF) -> None:
        if self._movement.is_active:
            self._movement.update_drag(pos)
        elif self._editor.is_box_selecting:
            self._editor.update_box_select(pos)

    def mouse_release(self, pos: QPointF, button: Qt.MouseButton = Qt.MouseButton.LeftButton):
        """Finish a drag (returns its command or None) or a box selection (returns the hit ids)."""
        if button != Qt.MouseButton.LeftButton:
            return None
        if self._movement.is_active:
            self._movement.update_drag(pos)
            command = self._movement.commit_drag()
            self._editor.prune_selection()
            return command
        if self._editor.is_box_selecting:
            self._editor.update_box_select(pos)
            return self._editor.finish_box_select(self._viewport)
        return None

    def wheel(self, pos: QPointF, delta_y: float,
              modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier) -> None:
        """Ctrl+wheel zooms around the pointer; plain wheel scrolls."""
        if modifiers & Qt.KeyboardModifier.ControlModifier:
            if delta_y > 0:
                self._viewport.zoom_in(pos.x())
            elif delta_y < 0:
                self._viewport.zoom_out(pos.x())
            return
        step = self._viewport.visible_range * 0.1
        self._viewport.set_scroll_offset(self._viewport.scroll_offset - step * (1 if delta_y > 0 else -1))

    # =========================================================================
    # Keyboard
    # =========================================================================

    def key_press(self, key, modifiers=Qt.KeyboardModifier.NoModifier) -> bool:
        """Returns True if the key was handled."""
        if shortcuts.as_int(key) == Qt.Key.Key_Escape.value:
            self.escape()
            return True
        if self._movement.is_active:
            return False
        action = self._shortcuts.action_for(key, modifiers)
        if action is None:
            return False
        handler = self._actions.get(action)
        if handler is None:
            Log.warning(f"TimelineInteractionController: no handler for action '{action}'")
            return False
        Log.debug(f"TimelineInteractionController: {action}")
        handler()
        return True

    def escape(self) -> None:
        """Cancel the drag, else the box selection, else clear the selection."""
        if self._movement.is_active:
            self._movement.cancel_drag()
        elif self._editor.is_box_selecting:
            self._editor.cancel_box_select()
        else:
            self._editor.clear_selection()

    def _build_actions(self) -> Dict[str, Callable[[], object]]:
        editor = self._editor
        ops = self._operations
        history = self._document.history
        return {
            shortcuts.SELECT_TOOL: lambda: editor.set_tool(Tool.SELECT),
            shortcuts.RAZOR_TOOL: lambda: editor.set_tool(Tool.RAZOR),
            shortcuts.SLIP_TOOL: lambda: editor.set_tool(Tool.SLIP),
            shortcuts.SLIDE_TOOL: lambda: editor.set_tool(Tool.SLIDE),
            shortcuts.ADD_MARKER: self._add_marker,
            shortcuts.TOGGLE_SNAP: editor.toggle_snap,
            shortcuts.TOGGLE_MOVEMENT_MODE: editor.toggle_movement_mode,
            shortcuts.SELECT_ALL: editor.select_all,
            shortcuts.DELETE: self._delete_selection,
            shortcuts.DUPLICATE: lambda: self._with_selection(ops.duplicate),
            shortcuts.COPY: editor.copy_selection,
            shortcuts.PASTE: self._paste,
            shortcuts.GROUP: lambda: self._with_selection(ops.group),
            shortcuts.UNGROUP: lambda: self._with_selection(ops.ungroup),
            shortcuts.TOGGLE_LOCK: lambda: self._with_selection(ops.toggle_locked),
            shortcuts.SPLIT: self._split_at_cursor,
            shortcuts.MOVE_LEFT: lambda: self._nudge(-1),
            shortcuts.MOVE_RIGHT: lambda: self._nudge(1),
            shortcuts.MOVE_UP_TRACK: lambda: self._with_selection(lambda ids: ops.move_to_track(ids, -1)),
            shortcuts.MOVE_DOWN_TRACK: lambda: self._with_selection(lambda ids: ops.move_to_track(ids, 1)),
            shortcuts.UNDO: lambda: self._after_history(history.undo()),
            shortcuts.REDO: lambda: self._after_history(history.redo()),
            shortcuts.GO_TO_START: lambda: self._viewport.scroll_to_position(ops.cursor_first()),
            shortcuts.GO_TO_END: lambda: self._viewport.scroll_to_position(ops.cursor_last()),
            shortcuts.ZOOM_IN: self._viewport.zoom_in,
            shortcuts.ZOOM_OUT: self._viewport.zoom_out,
        }

    # =========================================================================
    # Actions
    # =========================================================================

    def _with_selection(self, action: Callable[[List[str]], object]):
        ids = self._editor.selected_placement_ids
        if not ids:
            return None
        return action(ids)

    def _delete_selection(self):
        ids = self._editor.selected_placement_ids
        if not ids:
            return None
        command = self._operations.delete_many(ids)
        self._editor.prune_selection()
        return command

    def _paste(self):
        clipboard = self._editor.clipboard
        if clipboard is None:
            self.status_message.emit("Clipboard is empty", False)
            return None
        return self._operations.paste_at_cursor(clipboard.kind, clipboard.ids)

    def _add_marker(self):
        label = f"Marker {len(self._document.timeline.markers) + 1}"
        return self._operations.add_marker(label)

    def _split_at_cursor(self):
        cursor = self._document.timeline.cursor_position
        store = self._document.timeline
        selected = [store.require_placement(pid) for pid in self._editor.selected_placement_ids]
        targets = [p.id for p in selected if p.is_ranged and p.position < cursor < p.end_position]
        if not targets:
            self.status_message.emit("Nothing to split at the cursor", False)
            return None
        return self._operations.split_many(targets, at=cursor)

    def _nudge(self, direction: int):
        """Nudge the selection; without one, step the cursor between edges."""
        ids = self._editor.selected_placement_ids
        if ids:
            return self._operations.nudge(ids, direction)
        position = self._operations.cursor_next() if direction > 0 else self._operations.cursor_prev()
        self._viewport.scroll_to_position(position)
        return None

    def _after_history(self, ok: bool) -> None:
        self._editor.prune_selection()
        if not ok:
            self.status_message.emit("Nothing to undo or redo", False)
