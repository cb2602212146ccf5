"""
Tests for TimelineEditor: selection, box selection, clipboard and view state.
"""
import pytest
from PyQt6.QtCore import QPointF, QRectF, Qt

from aethel.application.operations.timeline_operations import (
    CLIPBOARD_CARD,
    CLIPBOARD_MUTATION,
    CLIPBOARD_PLACEMENT,
)
from aethel.application.settings.timeline_settings import MOVEMENT_MAGNETIC
from aethel.ui.timeline.editor_state import TimelineEditor, is_toggle_click
from aethel.ui.timeline.geometry import TimelineViewport
from aethel.ui.timeline.types import Tool

SHIFT = Qt.KeyboardModifier.ShiftModifier
CTRL = Qt.KeyboardModifier.ControlModifier


@pytest.fixture
def editor(document):
    return TimelineEditor(document)


@pytest.fixture
def layout(make_placement):
    """[2, 6) on track 0, a point at 10 on track 1 and a point at 3 on track 2."""
    return {
        "ranged": make_placement(2.0, track=0, end_position=6.0),
        "late": make_placement(10.0, track=1),
        "low": make_placement(3.0, track=2),
    }


# =============================================================================
# Click selection
# =============================================================================

class TestClickSelection:

    def test_plain_click_replaces(self, editor, layout):
        editor.select_placement(layout["ranged"])
        editor.select_placement(layout["late"])
        assert editor.selected_placement_ids == [layout["late"]]

    @pytest.mark.parametrize("modifier", [SHIFT, CTRL, Qt.KeyboardModifier.MetaModifier])
    def test_modifier_click_toggles(self, editor, layout, modifier):
        editor.select_placement(layout["ranged"])
        editor.select_placement(layout["late"], modifier)
        assert editor.selected_placement_ids == [layout["ranged"], layout["late"]]
        editor.select_placement(layout["ranged"], modifier)
        assert editor.selected_placement_ids == [layout["late"]]

    def test_alt_is_not_a_toggle(self):
        assert not is_toggle_click(Qt.KeyboardModifier.AltModifier)
        assert is_toggle_click(SHIFT | Qt.KeyboardModifier.AltModifier)

    def test_click_selects_whole_group(self, editor, ops, layout):
        """Test that clicking one member of a group selects every member."""
        ops.group([layout["ranged"], layout["low"]])
        editor.select_placement(layout["low"])
        assert set(editor.selected_placement_ids) == {layout["ranged"], layout["low"]}

        editor.select_placement(layout["ranged"], SHIFT)
        assert editor.selected_placement_ids == []

    def test_select_all_and_clear(self, editor, layout):
        events = []
        editor.selection_changed.connect(lambda: events.append(True))
        editor.select_all()
        assert len(editor.selected_placement_ids) == 3
        editor.clear_selection()
        editor.clear_selection()
        assert editor.selected_placement_ids == []
        assert len(events) == 2

    def test_prune_after_delete(self, editor, ops, layout):
        editor.select_placements([layout["ranged"], layout["late"]])
        ops.delete(layout["late"])
        editor.prune_selection()
        assert editor.selected_placement_ids == [layout["ranged"]]

    def test_cards_and_mutations(self, editor):
        editor.select_card("a")
        editor.select_card("b", CTRL)
        editor.select_mutation("m")
        assert editor.selected_card_ids == ["a", "b"]
        assert editor.selected_mutation_ids == ["m"]

    def test_document_load_clears_selection(self, editor, document, layout):
        editor.select_all()
        document.load(document.snapshot())
        assert editor.selected_placement_ids == []


# =============================================================================
# Box selection
# =============================================================================

class TestBoxSelection:

    def test_box_covers_positions_and_tracks(self, editor, layout):
        """Box from position 1 to 4 over tracks 0 and 1 catches only the range."""
        viewport = TimelineViewport()
        editor.begin_box_select(QPointF(164, 30))
        assert editor.is_box_selecting
        editor.update_box_select(QPointF(296, 100))
        hit = editor.finish_box_select(viewport)

        assert hit == [layout["ranged"]]
        assert editor.selected_placement_ids == [layout["ranged"]]
        assert not editor.is_box_selecting
        assert editor.box_rect is None

    def test_additive_box_keeps_selection(self, editor, layout):
        viewport = TimelineViewport()
        editor.select_placement(layout["low"])
        editor.begin_box_select(QPointF(164, 30), additive=True)
        editor.update_box_select(QPointF(296, 100))
        editor.finish_box_select(viewport)
        assert set(editor.selected_placement_ids) == {layout["low"], layout["ranged"]}

    def test_box_dragged_backwards(self, editor, layout):
        viewport = TimelineViewport()
        hit = editor.box_select(QRectF(QPointF(600, 110), QPointF(500, 30)), viewport)
        assert hit == [layout["late"]]

    def test_box_in_ruler_selects_nothing(self, editor, make_placement):
        """Test that a box drawn only over the ruler strip hits no track."""
        make_placement(5.0)
        hit = editor.box_select(QRectF(QPointF(252, 2), QPointF(428, 20)), TimelineViewport())
        assert hit == []
        assert editor.selected_placement_ids == []

    def test_finish_without_box(self, editor):
        assert editor.finish_box_select(TimelineViewport()) == []


# =============================================================================
# Modes and clipboard
# =============================================================================

class TestModes:

    def test_tool_signal_only_on_change(self, editor):
        tools = []
        editor.tool_changed.connect(lambda tool: tools.append(tool))
        editor.set_tool(Tool.RAZOR)
        editor.set_tool("razor")
        assert tools == ["razor"]

    def test_movement_mode(self, editor):
        editor.toggle_movement_mode()
        assert editor.is_magnetic
        with pytest.raises(ValueError):
            editor.set_movement_mode("sticky")

    def test_snap(self, editor):
        changes = []
        editor.snap_changed.connect(lambda enabled: changes.append(enabled))
        editor.toggle_snap()
        assert changes == [False]
        with pytest.raises(ValueError):
            editor.set_snap_grid_size(0)


class TestClipboard:

    def test_copy_prefers_placements(self, editor):
        editor.select_card("card")
        editor.select_mutation("mutation")
        assert editor.copy_selection().kind == CLIPBOARD_MUTATION

        editor.select_placements(["p"])
        clipboard = editor.copy_selection()
        assert clipboard.to_dict() == {"kind": CLIPBOARD_PLACEMENT, "ids": ["p"]}

    def test_copy_cards(self, editor):
        editor.select_card("card")
        assert editor.copy_selection().kind == CLIPBOARD_CARD

    def test_nothing_selected(self, editor):
        assert editor.copy_selection() is None
        assert editor.clipboard is None


# =============================================================================
# Highlights, threads and view state
# =============================================================================

class TestViewState:

    def test_highlight_thread(self, editor, ops, layout):
        thread = ops.create_object("Quest", "note", is_thread=True).object_id
        ops.add_to_thread([layout["late"]], thread)
        editor.highlight_thread(thread)
        assert editor.highlighted_ids == {layout["late"]}

    def test_thread_toggles(self, editor):
        editor.toggle_thread_visible("t")
        editor.toggle_thread_expanded("t")
        editor.toggle_thread_visible("t")
        assert editor.visible_thread_ids == set()
        assert editor.expanded_thread_ids == {"t"}

    def test_snapshot_and_restore(self, editor, document, layout):
        """Test that restoring view state drops ids that no longer exist."""
        editor.select_placements([layout["ranged"], layout["late"]])
        editor.set_tool(Tool.SLIP)
        editor.set_movement_mode(MOVEMENT_MAGNETIC)
        editor.toggle_thread_visible("t")
        snapshot = editor.get_snapshot()
        snapshot["selected_placement_ids"].append("deleted")

        restored = TimelineEditor(document)
        restored.restore(snapshot)
        assert restored.selected_placement_ids == [layout["ranged"], layout["late"]]
        assert restored.tool == Tool.SLIP
        assert restored.is_magnetic
        assert restored.visible_thread_ids == {"t"}
