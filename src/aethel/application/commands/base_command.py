"""
Base Command Class - Aethel Command Standard

Foundation for all undoable timeline and object edits.

COMMAND STANDARD
================

1. INHERIT from TimelineCommand
2. CAPTURE everything undo needs in __init__, from current document state.
   Constructing against a missing entity raises NotFoundError, so a command
   that is guaranteed to fail never reaches the history.
3. RECORD the edit as EntityChange entries (self._record(...))
4. RUN commands through CommandHistory.execute(), never call execute() directly

TEMPLATE
--------
```python
class RenameMarkerCommand(TimelineCommand):
    COMMAND_TYPE = "marker.rename"

    def __init__(self, document, marker_id, label):
        marker = document.timeline.require_marker(marker_id)
        super().__init__(f"Rename marker '{marker.label}'")
        self._record(EntityChange(EntityKind.MARKER, marker_id,
                                  {"label": marker.label}, {"label": label}))
```

execute() applies the changes in order, undo() reverts them in reverse order.
If any change fails midway, the ones already applied are rolled back before
the error propagates: a command is either fully applied or not at all.
"""
import uuid
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from aethel.application.commands.change import EntityChange, apply_change

if TYPE_CHECKING:
    from aethel.application.document import Document


class TimelineCommand:
    """
    Undoable command made of recorded entity changes.

    Attributes:
        id: unique command id
        COMMAND_TYPE: stable type tag, used in serialized history and logs
        description: human-readable text for undo/redo menus
        changes: recorded EntityChange list, in execution order
    """

    COMMAND_TYPE: str = "base"

    def __init__(self, description: str, changes: Optional[List[EntityChange]] = None, command_id: Optional[str] = None):
        if not description:
            raise ValueError("Commands need a description")
        self.id = command_id or str(uuid.uuid4())
        self.description = description
        self.changes: List[EntityChange] = list(changes or [])

    @property
    def type(self) -> str:
        return self.COMMAND_TYPE

    def text(self) -> str:
        return self.description

    def _record(self, *changes: EntityChange) -> None:
        self.changes.extend(changes)

    def execute(self, document: "Document") -> None:
        self._apply(document, forward=True)

    def undo(self, document: "Document") -> None:
        self._apply(document, forward=False)

    def _apply(self, document: "Document", forward: bool) -> None:
        ordered = self.changes if forward else list(reversed(self.changes))
        applied: List[EntityChange] = []
        try:
            for change in ordered:
                apply_change(document, change, forward=forward)
                applied.append(change)
        except Exception:
            for change in reversed(applied):
                apply_change(document, change, forward=not forward)
            raise

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.COMMAND_TYPE,
            "description": self.description,
            "changes": [change.to_dict() for change in self.changes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelineCommand":
        """Rebuild a recorded command; it replays its changes without its original class."""
        command = TimelineCommand(
            data["description"],
            [EntityChange.from_dict(c) for c in data.get("changes", [])],
            command_id=data.get("id"),
        )
        command.COMMAND_TYPE = data.get("type", TimelineCommand.COMMAND_TYPE)
        return command

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.COMMAND_TYPE} '{self.description}' ({len(self.changes)} changes)>"

