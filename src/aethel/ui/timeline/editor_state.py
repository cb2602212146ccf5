"""
Timeline Editor State

Interaction state of the timeline view: selections, active tool, movement
mode, box selection, snapping, clipboard, highlights and thread visibility.

Nothing here edits the document. Selections are plain id sets; clicking a
grouped placement selects its whole group.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from PyQt6.QtCore import QObject, QPointF, QRectF, Qt, pyqtSignal

from aethel.application.document import Document
from aethel.application.operations.timeline_operations import (
    CLIPBOARD_CARD,
    CLIPBOARD_MUTATION,
    CLIPBOARD_PLACEMENT,
)
from aethel.application.settings.timeline_settings import MOVEMENT_FREE, MOVEMENT_MAGNETIC
from aethel.ui.timeline.geometry import TimelineViewport
from aethel.ui.timeline.types import Tool
from aethel.utils.message import Log

TOGGLE_MODIFIERS = (
    Qt.KeyboardModifier.ShiftModifier
    | Qt.KeyboardModifier.ControlModifier
    | Qt.KeyboardModifier.MetaModifier
)


def is_toggle_click(modifiers: Qt.KeyboardModifier) -> bool:
    """Shift, ctrl or cmd held: the click toggles instead of replacing."""
    return bool(modifiers & TOGGLE_MODIFIERS)


@dataclass
class Clipboard:
    kind: str
    ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "ids": list(self.ids)}


class TimelineEditor(QObject):
    """
    Signals:
        selection_changed(): any selection set changed
        tool_changed(str)
        movement_mode_changed(str)
        snap_changed(bool)
        clipboard_changed()
        box_selection_changed(): box rectangle started, moved or ended
        highlight_changed()
        threads_changed()
    """

    selection_changed = pyqtSignal()
    tool_changed = pyqtSignal(str)
    movement_mode_changed = pyqtSignal(str)
    snap_changed = pyqtSignal(bool)
    clipboard_changed = pyqtSignal()
    box_selection_changed = pyqtSignal()
    highlight_changed = pyqtSignal()
    threads_changed = pyqtSignal()

    def __init__(self, document: Document, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._document = document
        settings = document.settings

        self._placements: Dict[str, None] = {}  # ordered set
        self._cards: Dict[str, None] = {}
        self._mutations: Dict[str, None] = {}

        self._tool = Tool.SELECT
        self._movement_mode = settings.movement_mode
        self._snap_enabled = settings.snap_enabled
        self._snap_grid_size = settings.snap_grid_size

        self._box_origin: Optional[QPointF] = None
        self._box_rect: Optional[QRectF] = None
        self._box_additive = False

        self._clipboard: Optional[Clipboard] = None
        self._highlighted: Set[str] = set()
        self._visible_threads: Set[str] = set()
        self._expanded_threads: Set[str] = set()

        document.loaded.connect(self._on_document_loaded)

    @property
    def document(self) -> Document:
        return self._document

    def _on_document_loaded(self) -> None:
        self._placements.clear()
        self._cards.clear()
        self._mutations.clear()
        self._highlighted.clear()
        self._clipboard = None
        self.selection_changed.emit()

    # =========================================================================
    # Placement selection
    # =========================================================================

    @property
    def selected_placement_ids(self) -> List[str]:
        return list(self._placements)

    def is_selected(self, placement_id: str) -> bool:
        return placement_id in self._placements

    def _with_group(self, placement_id: str) -> List[str]:
        placement = self._document.timeline.require_placement(placement_id)
        if placement.group_id is None:
            return [placement_id]
        return [p.id for p in self._document.timeline.get_group(placement.group_id)]

    def select_placement(self, placement_id: str,
                         modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier) -> None:
        """Plain click replaces the selection; shift/ctrl/cmd click toggles."""
        ids = self._with_group(placement_id)
        if is_toggle_click(modifiers):
            if placement_id in self._placements:
                for pid in ids:
                    self._placements.pop(pid, None)
            else:
                for pid in ids:
                    self._placements[pid] = None
        else:
            self._placements = dict.fromkeys(ids)
        self.selection_changed.emit()

    def select_placements(self, placement_ids: Iterable[str], additive: bool = False) -> None:
        ids = list(placement_ids)
        if additive:
            for pid in ids:
                self._placements[pid] = None
        else:
            self._placements = dict.fromkeys(ids)
        self.selection_changed.emit()

    def select_all(self) -> None:
        self._placements = dict.fromkeys(p.id for p in self._document.timeline.placements())
        self.selection_changed.emit()

    def clear_selection(self) -> None:
        if not (self._placements or self._cards or self._mutations):
            return
        self._placements.clear()
        self._cards.clear()
        self._mutations.clear()
        self.selection_changed.emit()

    def prune_selection(self) -> None:
        """Forget selected ids that no longer exist (after delete or undo)."""
        store = self._document.timeline
        registry = self._document.registry
        before = (len(self._placements), len(self._cards), len(self._mutations))
        self._placements = {pid: None for pid in self._placements if store.has_placement(pid)}
        self._mutations = {pid: None for pid in self._mutations if store.has_placement(pid)}
        self._cards = {oid: None for oid in self._cards if oid in registry}
        if before != (len(self._placements), len(self._cards), len(self._mutations)):
            self.selection_changed.emit()

    # =========================================================================
    # Card and mutation selection
    # =========================================================================

    @property
    def selected_card_ids(self) -> List[str]:
        return list(self._cards)

    @property
    def selected_mutation_ids(self) -> List[str]:
        return list(self._mutations)

    def select_card(self, object_id: str,
                    modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier) -> None:
        self._cards = self._toggle_or_replace(self._cards, object_id, modifiers)
        self.selection_changed.emit()

    def select_mutation(self, placement_id: str,
                        modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier) -> None:
        self._mutations = self._toggle_or_replace(self._mutations, placement_id, modifiers)
        self.selection_changed.emit()

    @staticmethod
    def _toggle_or_replace(current: Dict[str, None], item_id: str,
                           modifiers: Qt.KeyboardModifier) -> Dict[str, None]:
        if not is_toggle_click(modifiers):
            return {item_id: None}
        updated = dict(current)
        if item_id in updated:
            del updated[item_id]
        else:
            updated[item_id] = None
        return updated

    # =========================================================================
    # Tool, movement mode, snap
    # =========================================================================

    @property
    def tool(self) -> Tool:
        return self._tool

    def set_tool(self, tool: Tool) -> None:
        tool = Tool(tool)
        if tool != self._tool:
            self._tool = tool
            Log.debug(f"TimelineEditor: tool -> {tool.value}")
            self.tool_changed.emit(tool.value)

    @property
    def movement_mode(self) -> str:
        return self._movement_mode

    @property
    def is_magnetic(self) -> bool:
        return self._movement_mode == MOVEMENT_MAGNETIC

    def set_movement_mode(self, mode: str) -> None:
        if mode not in (MOVEMENT_FREE, MOVEMENT_MAGNETIC):
            raise ValueError(f"Unknown movement mode: {mode}")
        if mode != self._movement_mode:
            self._movement_mode = mode
            self.movement_mode_changed.emit(mode)

    def toggle_movement_mode(self) -> None:
        self.set_movement_mode(MOVEMENT_FREE if self.is_magnetic else MOVEMENT_MAGNETIC)

    @property
    def snap_enabled(self) -> bool:
        return self._snap_enabled

    def set_snap_enabled(self, enabled: bool) -> None:
        if enabled != self._snap_enabled:
            self._snap_enabled = enabled
            self.snap_changed.emit(enabled)

    def toggle_snap(self) -> None:
        self.set_snap_enabled(not self._snap_enabled)

    @property
    def snap_grid_size(self) -> float:
        return self._snap_grid_size

    def set_snap_grid_size(self, size: float) -> None:
        if size <= 0:
            raise ValueError("Snap grid size must be positive")
        self._snap_grid_size = size

    # =========================================================================
    # Locks
    # =========================================================================

    def is_placement_locked(self, placement_id: str) -> bool:
        return self._document.timeline.is_placement_locked(placement_id)

    # =========================================================================
    # Box selection
    # =========================================================================

    @property
    def box_rect(self) -> Optional[QRectF]:
        return self._box_rect

    @property
    def is_box_selecting(self) -> bool:
        return self._box_origin is not None

    def begin_box_select(self, point: QPointF, additive: bool = False) -> None:
        self._box_origin = QPointF(point)
        self._box_rect = QRectF(point, point)
        self._box_additive = additive
        self.box_selection_changed.emit()

    def update_box_select(self, point: QPointF) -> None:
        if self._box_origin is None:
            return
        self._box_rect = QRectF(self._box_origin, point).normalized()
        self.box_selection_changed.emit()

    def finish_box_select(self, viewport: TimelineViewport) -> List[str]:
        """Select what the box covers; returns the ids it hit."""
        if self._box_rect is None:
            return []
        hit = self.box_select(self._box_rect, viewport, additive=self._box_additive)
        self.cancel_box_select()
        return hit

    def cancel_box_select(self) -> None:
        self._box_origin = None
        self._box_rect = None
        self._box_additive = False
        self.box_selection_changed.emit()

    def box_select(self, rect: QRectF, viewport: TimelineViewport, additive: bool = False) -> List[str]:
        """
        Select placements whose [position, end_position or position] meets
        the box's position interval on a track inside the box's track range.
        """
        box = viewport.rect_to_timeline(rect)
        hit = [
            p.id for p in self._document.timeline.get_placements_in_range(box.start, box.end, box.tracks())
        ]
        self.select_placements(hit, additive=additive)
        Log.debug(f"TimelineEditor: box selected {len(hit)} placements")
        return hit

    # =========================================================================
    # Clipboard
    # =========================================================================

    @property
    def clipboard(self) -> Optional[Clipboard]:
        return self._clipboard

    def copy_selection(self) -> Optional[Clipboard]:
        """Copy placements if any are selected, else mutations, else cards."""
        if self._placements:
            clipboard = Clipboard(CLIPBOARD_PLACEMENT, list(self._placements))
        elif self._mutations:
            clipboard = Clipboard(CLIPBOARD_MUTATION, list(self._mutations))
        elif self._cards:
            clipboard = Clipboard(CLIPBOARD_CARD, list(self._cards))
        else:
            return None
        self._clipboard = clipboard
        self.clipboard_changed.emit()
        return clipboard

    def clear_clipboard(self) -> None:
        self._clipboard = None
        self.clipboard_changed.emit()

    # =========================================================================
    # Highlights and threads
    # =========================================================================

    @property
    def highlighted_ids(self) -> Set[str]:
        return set(self._highlighted)

    def set_highlighted(self, ids: Iterable[str]) -> None:
        self._highlighted = set(ids)
        self.highlight_changed.emit()

    def highlight_thread(self, thread_id: str) -> None:
        self.set_highlighted(p.id for p in self._document.timeline.get_placements_in_thread(thread_id))

    @property
    def visible_thread_ids(self) -> Set[str]:
        return set(self._visible_threads)

    @property
    def expanded_thread_ids(self) -> Set[str]:
        return set(self._expanded_threads)

    def toggle_thread_visible(self, thread_id: str) -> None:
        self._visible_threads ^= {thread_id}
        self.threads_changed.emit()

    def toggle_thread_expanded(self, thread_id: str) -> None:
        self._expanded_threads ^= {thread_id}
        self.threads_changed.emit()

    # =========================================================================
    # View state
    # =========================================================================

    def get_snapshot(self) -> Dict[str, Any]:
        """View state for session restore (not part of the document)."""
        return {
            "selected_placement_ids": self.selected_placement_ids,
            "selected_card_ids": self.selected_card_ids,
            "selected_mutation_ids": self.selected_mutation_ids,
            "tool": self._tool.value,
            "movement_mode": self._movement_mode,
            "snap_enabled": self._snap_enabled,
            "snap_grid_size": self._snap_grid_size,
            "visible_thread_ids": sorted(self._visible_threads),
            "expanded_thread_ids": sorted(self._expanded_threads),
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self._placements = dict.fromkeys(snapshot.get("selected_placement_ids", []))
        self._cards = dict.fromkeys(snapshot.get("selected_card_ids", []))
        self._mutations = dict.fromkeys(snapshot.get("selected_mutation_ids", []))
        self.prune_selection()
        self.set_tool(Tool(snapshot.get("tool", Tool.SELECT.value)))
        self.set_movement_mode(snapshot.get("movement_mode", self._movement_mode))
        self.set_snap_enabled(bool(snapshot.get("snap_enabled", self._snap_enabled)))
        self.set_snap_grid_size(float(snapshot.get("snap_grid_size", self._snap_grid_size)))
        self._visible_threads = set(snapshot.get("visible_thread_ids", []))
        self._expanded_threads = set(snapshot.get("expanded_thread_ids", []))
        self.selection_changed.emit()
        self.threads_changed.emit()
