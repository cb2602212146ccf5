"""
Movement Controller
====================

Handles placement drag operations (move and resize) with a two-phase
protocol: while dragging, positions are only projected into a preview;
on release the preview is committed as one command (or one batch).

State Machine:
    IDLE -> (press) -> PENDING -> (threshold) -> DRAGGING -> (release) -> COMMITTING -> IDLE
                          |                         |
                          v                         v
                  (release w/o move)            (Escape)
                          |                         |
                          v                         v
                        IDLE                      IDLE

A press that never passes the drag threshold is a click: nothing is
committed. Locked placements never start a drag and are left out of
multi-selection drags.
"""
from typing import Dict, Iterable, List, Optional

from PyQt6.QtCore import QObject, QPointF, pyqtSignal

from aethel.application.commands import TimelineCommand
from aethel.application.document import Document
from aethel.application.operations.timeline_operations import TimelineOperations
from aethel.ui.timeline.constants import DRAG_THRESHOLD, MIN_RANGE_LENGTH
from aethel.ui.timeline.editor_state import TimelineEditor
from aethel.ui.timeline.geometry import TimelineViewport
from aethel.ui.timeline.snap_calculator import SnapCalculator
from aethel.ui.timeline.types import DragPreview, DragState, DragType, EditHandle, ItemDragState, Tool
from aethel.utils.message import Log


class MovementController(QObject):
    """
    Controls placement movement.

    Signals:
        drag_started(): threshold exceeded, preview active
        drag_updated(): preview changed
        drag_ended(): drag committed (or released as a click)
        drag_cancelled(): drag discarded (Escape)
        status_message(str, bool): message, is_error
    """

    drag_started = pyqtSignal()
    drag_updated = pyqtSignal()
    drag_ended = pyqtSignal()
    drag_cancelled = pyqtSignal()
    status_message = pyqtSignal(str, bool)

    def __init__(
        self,
        document: Document,
        editor: TimelineEditor,
        viewport: TimelineViewport,
        operations: TimelineOperations,
        snap_calculator: Optional[SnapCalculator] = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._document = document
        self._editor = editor
        self._viewport = viewport
        self._operations = operations
        self._snap = snap_calculator or SnapCalculator.from_settings(document.settings)

        settings = document.settings
        self.drag_threshold = settings.drag_threshold_px if settings else DRAG_THRESHOLD
        self.position_threshold = settings.drag_threshold_position

        self._state = DragState.IDLE
        self._handle = EditHandle.NONE
        self._primary_id: Optional[str] = None
        self._start_pos: Optional[QPointF] = None
        self._current_pos: Optional[QPointF] = None
        self._items: Dict[str, ItemDragState] = {}

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> DragState:
        return self._state

    @property
    def is_active(self) -> bool:
        """A press is being tracked (pending or dragging)."""
        return self._state in (DragState.PENDING, DragState.DRAGGING)

    @property
    def is_dragging(self) -> bool:
        return self._state == DragState.DRAGGING

    @property
    def drag_type(self) -> Optional[DragType]:
        if self._handle == EditHandle.MOVE:
            return DragType.MOVE
        if self._handle == EditHandle.RESIZE_START:
            return DragType.RESIZE_START
        if self._handle == EditHandle.RESIZE_END:
            return DragType.RESIZE_END
        return None

    @property
    def drag_context(self) -> Optional[dict]:
        if not self.is_active or self._primary_id is None:
            return None
        primary = self._items[self._primary_id]
        return {
            "type": self.drag_type.value,
            "start_position": primary.original_position,
            "start_track": primary.original_track,
            "current_position": primary.preview_position,
            "current_track": primary.preview_track,
            "placement_ids": list(self._items),
        }

    @property
    def preview(self) -> DragPreview:
        return DragPreview({
            pid: (item.preview_position, item.preview_end, item.preview_track)
            for pid, item in self._items.items()
        })

    # =========================================================================
    # Public API
    # =========================================================================

    def begin_move(self, placement_id: str, pos: QPointF, selected_ids: Iterable[str] = ()) -> bool:
        """
        Start tracking a move of placement_id, together with the selection if
        it belongs to it. Returns False if the press cannot start a drag.
        """
        if not self._can_begin(placement_id):
            return False
        store = self._document.timeline
        selected = list(selected_ids)
        ids = selected if placement_id in selected else [placement_id]

        primary = store.require_placement(placement_id)
        self._items.clear()
        skipped = 0
        for pid in ids:
            if pid != placement_id and store.is_placement_locked(pid):
                skipped += 1
                continue
            placement = store.require_placement(pid)
            self._items[pid] = ItemDragState(
                placement_id=pid,
                original_position=placement.position,
                original_end=placement.end_position,
                original_track=placement.track,
                position_offset=placement.position - primary.position,
                track_offset=placement.track - primary.track,
                preview_position=placement.position,
                preview_end=placement.end_position,
                preview_track=placement.track,
            )
        if skipped:
            self.status_message.emit(f"{skipped} locked placement(s) stay in place", False)

        self._start(placement_id, pos, EditHandle.MOVE)
        Log.debug(f"MovementController: begin_move for {len(self._items)} placements")
        return True

    def begin_resize(self, placement_id: str, pos: QPointF, handle: EditHandle) -> bool:
        """Start tracking a resize of one ranged placement from its start or end edge."""
        if handle not in (EditHandle.RESIZE_START, EditHandle.RESIZE_END):
            return False
        if not self._can_begin(placement_id):
            return False
        placement = self._document.timeline.require_placement(placement_id)
        if not placement.is_ranged:
            return False

        self._items = {placement_id: ItemDragState(
            placement_id=placement_id,
            original_position=placement.position,
            original_end=placement.end_position,
            original_track=placement.track,
            preview_position=placement.position,
            preview_end=placement.end_position,
            preview_track=placement.track,
        )}
        self._start(placement_id, pos, handle)
        Log.debug(f"MovementController: begin_resize {handle.name}")
        return True

    def update_drag(self, pos: QPointF) -> None:
        """Follow the pointer; switches to DRAGGING once past the threshold."""
        if not self.is_active:
            return
        self._current_pos = QPointF(pos)

        if self._state == DragState.PENDING:
            delta = pos - self._start_pos
            if delta.manhattanLength() < self.drag_threshold:
                return
            self._state = DragState.DRAGGING
            self.drag_started.emit()
            Log.debug("MovementController: drag threshold exceeded, DRAGGING")

        for pid, (position, end, track) in self.project_drag(pos).items.items():
            item = self._items[pid]
            item.preview_position = position
            item.preview_end = end
            item.preview_track = track
        self.drag_updated.emit()

    def project_drag(self, pos: QPointF) -> DragPreview:
        """Where the dragged placements would land for pointer pos. Does not touch any state."""
        if self._primary_id is None or self._start_pos is None:
            return DragPreview()
        if self._handle == EditHandle.MOVE:
            return self._project_move(pos)
        return self._project_resize(pos)

    def commit_drag(self) -> Optional[TimelineCommand]:
        """Turn the preview into one command. Returns it, or None for clicks and no-ops."""
        if not self.is_active:
            return None
        was_dragging = self._state == DragState.DRAGGING
        self._state = DragState.COMMITTING

        command = None
        try:
            if was_dragging:
                if self._handle == EditHandle.MOVE:
                    command = self._commit_move()
                else:
                    command = self._commit_resize()
        finally:
            # Emit BEFORE cleanup so handlers can read the preview
            self.drag_ended.emit()
            self._cleanup()
        return command

    def cancel_drag(self) -> None:
        """Discard the preview (Escape)."""
        if not self.is_active:
            return
        Log.debug("MovementController: cancelling drag")
        self.drag_cancelled.emit()
        self._cleanup()

    # =========================================================================
    # Internal - begin
    # =========================================================================

    def _can_begin(self, placement_id: str) -> bool:
        if self._state != DragState.IDLE:
            Log.warning("MovementController: drag requested while not IDLE")
            return False
        if self._editor.tool == Tool.RAZOR:
            return False
        if self._document.timeline.is_placement_locked(placement_id):
            self.status_message.emit("Placement is locked", True)
            return False
        return True

    def _start(self, placement_id: str, pos: QPointF, handle: EditHandle) -> None:
        self._state = DragState.PENDING
        self._handle = handle
        self._primary_id = placement_id
        self._start_pos = QPointF(pos)
        self._current_pos = QPointF(pos)

    # =========================================================================
    # Internal - projection
    # =========================================================================

    def _delta_position(self, pos: QPointF) -> float:
        return self._viewport.position_at_x(pos.x()) - self._viewport.position_at_x(self._start_pos.x())

    def _snapped(self, value: float) -> float:
        if not self._editor.snap_enabled:
            return value
        self._snap.grid_size = self._editor.snap_grid_size
        return self._snap.snap(value, self._viewport.zoom, self._document.timeline, exclude_ids=self._items)

    def _project_move(self, pos: QPointF) -> DragPreview:
        store = self._document.timeline
        primary = self._items[self._primary_id]

        new_position = self._snapped(max(0.0, primary.original_position + self._delta_position(pos)))
        new_track = self._viewport.track_at_y(pos.y())
        if new_track < 0:
            new_track = 0
        if new_track != primary.original_track and store.is_track_locked(new_track):
            new_track = primary.original_track

        items = {}
        for pid, item in self._items.items():
            position = max(0.0, new_position + item.position_offset)
            track = max(0, new_track + item.track_offset)
            if track != item.original_track and store.is_track_locked(track):
                track = item.original_track
            end = None
            if item.original_end is not None:
                end = position + (item.original_end - item.original_position)
            items[pid] = (position, end, track)
        return DragPreview(items)

    def _project_resize(self, pos: QPointF) -> DragPreview:
        item = self._items[self._primary_id]
        delta = self._delta_position(pos)
        start, end = item.original_position, item.original_end
        if self._handle == EditHandle.RESIZE_START:
            start = self._snapped(max(0.0, item.original_position + delta))
            start = min(start, end - MIN_RANGE_LENGTH)
        else:
            end = self._snapped(item.original_end + delta)
            end = max(end, start + MIN_RANGE_LENGTH)
        return DragPreview({self._primary_id: (start, end, item.original_track)})

    # =========================================================================
    # Internal - commit
    # =========================================================================

    def _changed(self, item: ItemDragState) -> bool:
        moved = abs(item.preview_position - item.original_position) >= self.position_threshold
        if item.original_end is not None and item.preview_end is not None:
            moved = moved or abs(item.preview_end - item.original_end) >= self.position_threshold
        return moved or item.preview_track != item.original_track

    def _commit_move(self) -> Optional[TimelineCommand]:
        moves: List = [
            (pid, item.preview_position, item.preview_track if item.preview_track != item.original_track else None)
            for pid, item in self._items.items()
            if self._changed(item)
        ]
        if not moves:
            return None
        command = self._operations.move_many(moves, magnetic=self._editor.is_magnetic)
        if command is not None:
            Log.info(f"MovementController: committed move of {len(moves)} placements")
            self.status_message.emit(
                f"Moved to {moves[0][1]:.2f}" if len(moves) == 1 else f"Moved {len(moves)} placements",
                False,
            )
        else:
            self.status_message.emit("Move rejected", True)
        return command

    def _commit_resize(self) -> Optional[TimelineCommand]:
        item = self._items[self._primary_id]
        if not self._changed(item):
            return None
        command = self._operations.resize(self._primary_id, item.preview_position, item.preview_end)
        if command is not None:
            Log.info(f"MovementController: committed resize of {self._primary_id}")
        else:
            self.status_message.emit("Resize rejected", True)
        return command

    def _cleanup(self) -> None:
        self._state = DragState.IDLE
        self._handle = EditHandle.NONE
        self._primary_id = None
        self._start_pos = None
        self._current_pos = None
        self._items.clear()
