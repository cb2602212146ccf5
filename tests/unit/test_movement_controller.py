"""
Tests for MovementController.

Geometry uses the default viewport (44 px per unit, x = 120 + 44 * position,
track 0 between y 24 and 64). The ranged placement [2, 6) on track 0 spans
x 208 to 384.
"""
import pytest
from PyQt6.QtCore import QPointF

from aethel.application.settings.timeline_settings import MOVEMENT_MAGNETIC
from aethel.ui.timeline.editor_state import TimelineEditor
from aethel.ui.timeline.geometry import TimelineViewport
from aethel.ui.timeline.movement_controller import MovementController
from aethel.ui.timeline.types import DragState, EditHandle, Tool

PRESS = QPointF(300, 40)
THREE_UNITS_RIGHT = QPointF(432, 40)


@pytest.fixture
def editor(document):
    return TimelineEditor(document)


@pytest.fixture
def controller(document, editor, ops):
    return MovementController(document, editor, TimelineViewport(), ops)


@pytest.fixture
def ranged(make_placement):
    return make_placement(2.0, end_position=6.0)


def _placement(document, pid):
    return document.timeline.require_placement(pid)


# =============================================================================
# Move
# =============================================================================

class TestMove:

    def test_press_without_movement_is_a_click(self, document, controller, ranged):
        """Test that staying under the drag threshold commits nothing."""
        undo_count = document.history.undo_count()
        assert controller.begin_move(ranged, PRESS, [ranged])
        controller.update_drag(QPointF(302, 40))
        assert controller.state == DragState.PENDING

        assert controller.commit_drag() is None
        assert controller.state == DragState.IDLE
        assert document.history.undo_count() == undo_count

    def test_drag_commits_one_snapped_move(self, document, controller, ranged):
        started = []
        controller.drag_started.connect(lambda: started.append(True))
        controller.begin_move(ranged, PRESS, [ranged])
        controller.update_drag(QPointF(380, 40))
        controller.update_drag(THREE_UNITS_RIGHT)

        assert controller.is_dragging
        assert controller.preview.get(ranged) == (5.0, 9.0, 0)
        assert controller.drag_context["type"] == "move"
        assert len(started) == 1

        command = controller.commit_drag()
        assert command is not None
        placement = _placement(document, ranged)
        assert (placement.position, placement.end_position) == (5.0, 9.0)

    def test_project_drag_has_no_side_effects(self, controller, ranged):
        controller.begin_move(ranged, PRESS, [ranged])
        preview = controller.project_drag(THREE_UNITS_RIGHT)
        assert preview.get(ranged) == (5.0, 9.0, 0)
        assert controller.state == DragState.PENDING
        assert controller.preview.get(ranged) == (2.0, 6.0, 0)

    def test_drag_to_another_track(self, document, controller, ranged):
        controller.begin_move(ranged, PRESS, [ranged])
        controller.update_drag(QPointF(300, 70))
        controller.commit_drag()
        placement = _placement(document, ranged)
        assert (placement.position, placement.track) == (2.0, 1)

    def test_cancel_restores_nothing_changed(self, document, controller, ranged):
        cancelled = []
        controller.drag_cancelled.connect(lambda: cancelled.append(True))
        controller.begin_move(ranged, PRESS, [ranged])
        controller.update_drag(THREE_UNITS_RIGHT)
        controller.cancel_drag()

        assert cancelled == [True]
        assert controller.state == DragState.IDLE
        assert controller.preview.items == {}
        assert _placement(document, ranged).position == 2.0

    def test_selection_moves_together(self, document, controller, ranged, make_placement):
        other = make_placement(10.0, track=1)
        controller.begin_move(ranged, PRESS, [ranged, other])
        controller.update_drag(THREE_UNITS_RIGHT)
        controller.commit_drag()

        assert _placement(document, ranged).position == 5.0
        moved = _placement(document, other)
        assert (moved.position, moved.track) == (13.0, 1)
        assert document.history.undo_description() == "Move 2 placements"

    def test_snap_disabled_keeps_raw_delta(self, document, editor, controller, ranged):
        editor.set_snap_enabled(False)
        controller.begin_move(ranged, PRESS, [ranged])
        controller.update_drag(QPointF(322, 40))
        controller.commit_drag()
        assert _placement(document, ranged).position == pytest.approx(2.5)

    def test_magnetic_drop_avoids_overlap(self, document, editor, controller, make_placement):
        """Test that a magnetic drop next to a point lands in the nearest free slot."""
        make_placement(5.0)
        moving = make_placement(2.0)
        editor.set_movement_mode(MOVEMENT_MAGNETIC)

        controller.begin_move(moving, QPointF(230, 40), [moving])
        controller.update_drag(QPointF(362, 40))
        assert controller.preview.get(moving)[0] == 5.0
        controller.commit_drag()
        assert _placement(document, moving).position == 4.0


# =============================================================================
# Refusals
# =============================================================================

class TestRefusals:

    def test_locked_placement_does_not_drag(self, ops, controller, ranged):
        messages = []
        controller.status_message.connect(lambda text, is_error: messages.append((text, is_error)))
        ops.set_locked([ranged], True)

        assert controller.begin_move(ranged, PRESS, [ranged]) is False
        assert messages == [("Placement is locked", True)]
        assert controller.state == DragState.IDLE

    def test_locked_selection_member_stays(self, document, ops, controller, ranged, make_placement):
        other = make_placement(10.0, track=1)
        ops.set_locked([other], True)
        messages = []
        controller.status_message.connect(lambda text, is_error: messages.append(text))

        controller.begin_move(ranged, PRESS, [ranged, other])
        controller.update_drag(THREE_UNITS_RIGHT)
        controller.commit_drag()

        assert messages[0] == "1 locked placement(s) stay in place"
        assert _placement(document, ranged).position == 5.0
        assert _placement(document, other).position == 10.0

    def test_razor_tool_never_drags(self, editor, controller, ranged):
        editor.set_tool(Tool.RAZOR)
        assert controller.begin_move(ranged, PRESS, [ranged]) is False

    def test_second_press_while_active(self, controller, ranged):
        assert controller.begin_move(ranged, PRESS, [ranged])
        assert controller.begin_move(ranged, PRESS, [ranged]) is False

    def test_point_placement_cannot_resize(self, controller, make_placement):
        point = make_placement(3.0)
        assert controller.begin_resize(point, PRESS, EditHandle.RESIZE_END) is False
        assert controller.state == DragState.IDLE

    def test_resize_needs_an_edge_handle(self, controller, ranged):
        assert controller.begin_resize(ranged, PRESS, EditHandle.MOVE) is False


# =============================================================================
# Resize
# =============================================================================

class TestResize:

    def test_resize_end(self, document, controller, ranged):
        assert controller.begin_resize(ranged, QPointF(380, 40), EditHandle.RESIZE_END)
        controller.update_drag(QPointF(468, 40))
        assert controller.drag_context["type"] == "resize-end"
        controller.commit_drag()
        placement = _placement(document, ranged)
        assert (placement.position, placement.end_position) == (2.0, 8.0)

    def test_resize_start_keeps_minimum_length(self, document, controller, ranged):
        """Test that dragging the start edge past the end stops just short of it."""
        controller.begin_resize(ranged, QPointF(210, 40), EditHandle.RESIZE_START)
        controller.update_drag(QPointF(650, 40))
        controller.commit_drag()
        placement = _placement(document, ranged)
        assert placement.position == pytest.approx(5.99)
        assert placement.end_position == 6.0
