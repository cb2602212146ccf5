"""
Timeline view logic: geometry, snapping, editor state, drag handling and
input routing. Widget-free; views forward Qt input to these objects.
"""
from aethel.ui.timeline.types import DragPreview, DragState, DragType, EditHandle, HitResult, Tool
from aethel.ui.timeline.geometry import TimelineViewport
from aethel.ui.timeline.snap_calculator import SnapCalculator
from aethel.ui.timeline.editor_state import Clipboard, TimelineEditor
from aethel.ui.timeline.movement_controller import MovementController
from aethel.ui.timeline.interaction_controller import TimelineInteractionController
from aethel.ui.timeline.shortcuts import DEFAULT_SHORTCUTS, ShortcutMap
