"""
Document

Session context for one open project: the object registry, timeline store,
milestones, card view and the command history bound to them.

No global state: create a Document and pass it to operations, controllers
and commands explicitly.
"""
from typing import Any, Dict, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from aethel.application.commands.history import CommandHistory
from aethel.application.registry.object_registry import ObjectRegistry
from aethel.application.settings.timeline_settings import TimelineSettings
from aethel.application.timeline.cards import CardView
from aethel.application.timeline.milestone_store import MilestoneStore
from aethel.application.timeline.timeline_store import TimelineStore
from aethel.application.timeline.types import ComputedObjectState
from aethel.infrastructure.persistence.snapshot_serializer import SnapshotSerializer
from aethel.utils.message import Log


class Document(QObject):
    """
    Signals:
        dirty_changed(bool): unsaved edits appeared or were saved/loaded away
        loaded(): a snapshot replaced the document contents
    """

    dirty_changed = pyqtSignal(bool)
    loaded = pyqtSignal()

    def __init__(self, settings: Optional[TimelineSettings] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.settings = settings or TimelineSettings()
        self.registry = ObjectRegistry()
        self.timeline = TimelineStore(
            point_width=self.settings.magnetic_point_width,
            magnetic_gap=self.settings.magnetic_gap,
        )
        self.milestones = MilestoneStore()
        self.cards = CardView(self.registry, self.timeline)
        self.history = CommandHistory(self, limit=self.settings.history_limit)
        self.history.history_changed.connect(self._on_history_changed)
        self._dirty = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def get_object_state_at_cursor(
        self,
        object_id: str,
        position: Optional[float] = None,
        include_base: bool = False,
    ) -> ComputedObjectState:
        """
        Object attributes at position (defaults to the cursor).

        With include_base, the object's own attribute values are the starting
        point and mutations are folded over them.
        """
        obj = self.registry.require(object_id)
        state = self.timeline.get_object_state_at_cursor(object_id, position)
        if not include_base:
            return state
        merged = {key: attr.get("value") if isinstance(attr, dict) else attr
                  for key, attr in obj.copy().attributes.items()}
        merged.update(state.computed_attributes)
        return ComputedObjectState(
            object_id=state.object_id,
            position=state.position,
            computed_attributes=merged,
            mutations=state.mutations,
            future_mutations=state.future_mutations,
        )

    def apply_settings(self, settings: TimelineSettings) -> None:
        """Apply changed timeline settings to the live stores and history."""
        self.settings = settings
        self.timeline.point_width = settings.magnetic_point_width
        self.timeline.magnetic_gap = settings.magnetic_gap
        self.history.set_limit(settings.history_limit)

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def mark_saved(self) -> None:
        self._set_dirty(False)

    def _on_history_changed(self) -> None:
        self._set_dirty(True)

    def _set_dirty(self, dirty: bool) -> None:
        if dirty != self._dirty:
            self._dirty = dirty
            self.dirty_changed.emit(dirty)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        return SnapshotSerializer.serialize(self.registry, self.timeline, self.milestones)

    def load(self, snapshot: Dict[str, Any]) -> None:
        """
        Replace the document contents with a snapshot.

        Everything is validated and built before anything is swapped in; on
        SnapshotError the current contents stay as they were. History is
        cleared on success.
        """
        state = SnapshotSerializer.deserialize(
            snapshot,
            point_width=self.settings.magnetic_point_width,
            magnetic_gap=self.settings.magnetic_gap,
        )
        self.registry = state.registry
        self.timeline = state.timeline
        self.milestones = state.milestones
        self.cards = CardView(self.registry, self.timeline)
        self.history.clear()
        self._set_dirty(False)
        Log.info(
            f"Document: loaded {len(self.registry)} objects, "
            f"{len(self.timeline)} placements, {len(self.milestones)} milestones"
        )
        self.loaded.emit()
