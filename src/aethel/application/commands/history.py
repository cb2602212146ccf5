"""
Command History - undo/redo for timeline documents

Single entry point for every undoable edit:
1. execute() runs a command, records it and clears the redo stack
2. undo()/redo() move commands between the two stacks
3. every transition is logged and announced through history_changed

Commands executed while another command is running (nested calls) are
applied without being recorded; the outer command owns the history entry.

A command that fails during undo()/redo() after having executed successfully
means its history entry is corrupted: the failure is logged, the entry is
dropped and command_failed is emitted. The error is not propagated.
"""
from typing import List, Optional, TYPE_CHECKING

from PyQt6.QtCore import QObject, pyqtSignal

from aethel.application.commands.base_command import TimelineCommand
from aethel.application.commands.batch import BatchBuilder
from aethel.utils.message import Log

if TYPE_CHECKING:
    from aethel.application.document import Document

DEFAULT_HISTORY_LIMIT = 100


class CommandHistory(QObject):
    """
    Undo and redo stacks bound to one document.

    Signals:
        history_changed(): stacks changed (execute, undo, redo, clear)
        command_failed(str, str): description, error message of a dropped entry
    """

    history_changed = pyqtSignal()
    command_failed = pyqtSignal(str, str)

    def __init__(self, document: "Document", limit: int = DEFAULT_HISTORY_LIMIT, parent: Optional[QObject] = None):
        super().__init__(parent)
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self._document = document
        self._limit = limit
        self._undo_stack: List[TimelineCommand] = []
        self._redo_stack: List[TimelineCommand] = []
        self._executing = False
        self._command_count = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def limit(self) -> int:
        return self._limit

    def set_limit(self, limit: int) -> None:
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self._limit = limit
        overflow = len(self._undo_stack) - limit
        if overflow > 0:
            del self._undo_stack[:overflow]
            self.history_changed.emit()

    @property
    def is_executing(self) -> bool:
        return self._executing

    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    def undo_description(self) -> Optional[str]:
        return self._undo_stack[-1].description if self._undo_stack else None

    def redo_description(self) -> Optional[str]:
        return self._redo_stack[-1].description if self._redo_stack else None

    def undo_count(self) -> int:
        return len(self._undo_stack)

    def redo_count(self) -> int:
        return len(self._redo_stack)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, command: TimelineCommand) -> TimelineCommand:
        """
        Run command and record it.

        Errors raised by the command propagate; nothing is recorded then.
        """
        if self._executing:
            Log.debug(f"CommandHistory: nested '{command.description}' applied without recording")
            command.execute(self._document)
            return command

        self._executing = True
        try:
            command.execute(self._document)
        finally:
            self._executing = False

        self._undo_stack.append(command)
        if len(self._undo_stack) > self._limit:
            dropped = self._undo_stack.pop(0)
            Log.debug(f"CommandHistory: limit {self._limit} reached, dropped '{dropped.description}'")
        self._redo_stack.clear()
        self._command_count += 1
        Log.command(f"[{self._command_count}] {command.description} (undo: {len(self._undo_stack)})")
        self.history_changed.emit()
        return command

    def begin_batch(self, description: str) -> BatchBuilder:
        return BatchBuilder(self, description)

    def undo(self) -> bool:
        """Undo the last command. Returns False if nothing was undone."""
        if not self._undo_stack or self._executing:
            return False
        command = self._undo_stack.pop()
        if not self._run(command, "undo"):
            return False
        self._redo_stack.append(command)
        Log.debug(f"CommandHistory: undo '{command.description}'")
        self.history_changed.emit()
        return True

    def redo(self) -> bool:
        """Redo the last undone command. Returns False if nothing was redone."""
        if not self._redo_stack or self._executing:
            return False
        command = self._redo_stack.pop()
        if not self._run(command, "redo"):
            return False
        self._undo_stack.append(command)
        Log.debug(f"CommandHistory: redo '{command.description}'")
        self.history_changed.emit()
        return True

    def _run(self, command: TimelineCommand, action: str) -> bool:
        self._executing = True
        try:
            if action == "undo":
                command.undo(self._document)
            else:
                command.execute(self._document)
        except Exception as e:
            Log.error(
                f"CommandHistory: {action} of '{command.description}' failed, dropping entry: {e}",
                exc_info=True,
            )
            self.command_failed.emit(command.description, str(e))
            self.history_changed.emit()
            return False
        finally:
            self._executing = False
        return True

    def clear(self) -> None:
        self._undo_stack.clear()
        self._redo_stack.clear()
        Log.debug("CommandHistory: history cleared")
        self.history_changed.emit()

    def get_state(self) -> dict:
        """Stack summary for debugging and the history panel."""
        return {
            "total_commands": self._command_count,
            "can_undo": self.can_undo(),
            "can_redo": self.can_redo(),
            "undo_description": self.undo_description(),
            "redo_description": self.redo_description(),
            "undo_stack": [c.description for c in self._undo_stack],
            "redo_stack": [c.description for c in self._redo_stack],
        }
