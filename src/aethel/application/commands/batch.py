"""
Batches

A batch groups commands into one user-visible undo step: children execute in
insertion order and undo in reverse order.

    builder = history.begin_batch("Create 'Frodo'")
    builder.add(CreateObjectCommand(document, frodo))
    builder.add(AddPlacementCommand(document, placement, pending_object_ids=[frodo.id]))
    builder.commit()

or as a context manager (commits on success, cancels on error):

    with history.begin_batch("Delete 3 placements") as batch:
        for placement_id in ids:
            batch.add(RemovePlacementCommand(document, placement_id))
"""
from typing import List, Optional, TYPE_CHECKING

from aethel.application.commands.base_command import TimelineCommand
from aethel.utils.message import Log

if TYPE_CHECKING:
    from aethel.application.commands.history import CommandHistory
    from aethel.application.document import Document


class BatchCommand(TimelineCommand):
    """Composite command. If a child fails, children already applied are reverted."""

    COMMAND_TYPE = "batch"

    def __init__(self, description: str, commands: List[TimelineCommand]):
        super().__init__(description)
        self.commands: List[TimelineCommand] = list(commands)

    def execute(self, document: "Document") -> None:
        done: List[TimelineCommand] = []
        try:
            for command in self.commands:
                command.execute(document)
                done.append(command)
        except Exception:
            for command in reversed(done):
                command.undo(document)
            raise

    def undo(self, document: "Document") -> None:
        done: List[TimelineCommand] = []
        try:
            for command in reversed(self.commands):
                command.undo(document)
                done.append(command)
        except Exception:
            for command in reversed(done):
                command.execute(document)
            raise

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["commands"] = [command.to_dict() for command in self.commands]
        return data


class BatchBuilder:
    """Accumulates commands for one history entry."""

    def __init__(self, history: "CommandHistory", description: str):
        self._history = history
        self.description = description
        self._commands: List[TimelineCommand] = []
        self._closed = False

    def __len__(self) -> int:
        return len(self._commands)

    def __enter__(self) -> "BatchBuilder":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.commit()
        else:
            self.cancel()
        return False

    def add(self, command: TimelineCommand) -> "BatchBuilder":
        if self._closed:
            raise RuntimeError(f"Batch '{self.description}' is already closed")
        self._commands.append(command)
        return self

    def build(self) -> Optional[TimelineCommand]:
        """The command commit() would push: None, the single child, or a BatchCommand."""
        if not self._commands:
            return None
        if len(self._commands) == 1:
            return self._commands[0]
        return BatchCommand(self.description, self._commands)

    def commit(self) -> Optional[TimelineCommand]:
        """Execute and record the batch. Returns the pushed command, None if empty."""
        if self._closed:
            raise RuntimeError(f"Batch '{self.description}' is already closed")
        self._closed = True
        command = self.build()
        if command is None:
            Log.debug(f"BatchBuilder: '{self.description}' is empty, nothing recorded")
            return None
        self._history.execute(command)
        return command

    def cancel(self) -> None:
        self._commands.clear()
        self._closed = True
