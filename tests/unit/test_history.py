"""
Tests for CommandHistory and batches.
"""
import pytest

from aethel.application.commands import BatchCommand, CommandHistory, TimelineCommand


class CounterCommand(TimelineCommand):
    """Adds to a shared counter; undo subtracts."""

    def __init__(self, counter, amount=1, fail_undo=False):
        super().__init__(f"Add {amount}")
        self.counter = counter
        self.amount = amount
        self.fail_undo = fail_undo

    def execute(self, document):
        self.counter["value"] += self.amount

    def undo(self, document):
        if self.fail_undo:
            raise RuntimeError("undo exploded")
        self.counter["value"] -= self.amount


class NestingCommand(CounterCommand):
    """Runs another command through the history while executing."""

    def __init__(self, counter, history, inner):
        super().__init__(counter, 10)
        self.history = history
        self.inner = inner

    def execute(self, document):
        super().execute(document)
        self.history.execute(self.inner)


@pytest.fixture
def counter():
    return {"value": 0}


@pytest.fixture
def history(document):
    return document.history


# =============================================================================
# Stacks
# =============================================================================

class TestUndoRedo:

    def test_execute_undo_redo(self, history, counter):
        history.execute(CounterCommand(counter, 5))
        assert counter["value"] == 5
        assert history.undo_description() == "Add 5"

        assert history.undo() is True
        assert counter["value"] == 0
        assert history.can_redo()

        assert history.redo() is True
        assert counter["value"] == 5

    def test_nothing_to_undo(self, history):
        assert history.undo() is False
        assert history.redo() is False

    def test_execute_clears_redo(self, history, counter):
        history.execute(CounterCommand(counter))
        history.undo()
        history.execute(CounterCommand(counter, 2))
        assert not history.can_redo()
        assert history.redo_count() == 0

    def test_failed_execute_is_not_recorded(self, history):
        """Test that an exception from execute propagates and leaves the stacks alone."""
        class Exploding(TimelineCommand):
            def execute(self, document):
                raise ValueError("boom")

        with pytest.raises(ValueError):
            history.execute(Exploding("Explode"))
        assert history.undo_count() == 0
        assert history.is_executing is False

    def test_limit_drops_oldest(self, history, counter):
        history.set_limit(2)
        for amount in (1, 2, 3):
            history.execute(CounterCommand(counter, amount))
        assert history.undo_count() == 2
        assert history.get_state()["undo_stack"] == ["Add 2", "Add 3"]

    def test_lowering_limit_trims_existing_entries(self, history, counter):
        for amount in (1, 2, 3):
            history.execute(CounterCommand(counter, amount))
        history.set_limit(1)
        assert history.undo_count() == 1
        assert history.undo_description() == "Add 3"

    def test_invalid_limit(self, document):
        with pytest.raises(ValueError):
            CommandHistory(document, limit=0)


# =============================================================================
# Nesting and failures
# =============================================================================

class TestNestingAndFailures:

    def test_nested_execution_is_not_recorded(self, history, counter):
        """Test that a command run from inside another command gets no entry of its own."""
        inner = CounterCommand(counter, 1)
        history.execute(NestingCommand(counter, history, inner))
        assert counter["value"] == 11
        assert history.undo_count() == 1

    def test_failed_undo_drops_entry(self, history, counter):
        """Test that a failing undo is reported, dropped and not raised."""
        failures = []
        history.command_failed.connect(lambda description, error: failures.append((description, error)))
        history.execute(CounterCommand(counter, 3, fail_undo=True))

        assert history.undo() is False
        assert failures == [("Add 3", "undo exploded")]
        assert not history.can_undo()
        assert not history.can_redo()

    def test_history_changed_signal(self, history, counter):
        events = []
        history.history_changed.connect(lambda: events.append(True))
        history.execute(CounterCommand(counter))
        history.undo()
        history.redo()
        history.clear()
        assert len(events) == 4


# =============================================================================
# Batches
# =============================================================================

class TestBatchBuilder:

    def test_empty_batch_records_nothing(self, history):
        assert history.begin_batch("Nothing").commit() is None
        assert history.undo_count() == 0

    def test_single_command_is_pushed_directly(self, history, counter):
        command = CounterCommand(counter)
        pushed = history.begin_batch("One").add(command).commit()
        assert pushed is command
        assert history.undo_description() == "Add 1"

    def test_several_commands_become_one_step(self, history, counter):
        builder = history.begin_batch("Three")
        for amount in (1, 2, 3):
            builder.add(CounterCommand(counter, amount))
        pushed = builder.commit()

        assert isinstance(pushed, BatchCommand)
        assert counter["value"] == 6
        assert history.undo_count() == 1
        history.undo()
        assert counter["value"] == 0

    def test_context_manager_commits(self, history, counter):
        with history.begin_batch("Two") as batch:
            batch.add(CounterCommand(counter, 1))
            batch.add(CounterCommand(counter, 2))
        assert counter["value"] == 3
        assert history.undo_description() == "Two"

    def test_context_manager_cancels_on_error(self, history, counter):
        with pytest.raises(KeyError):
            with history.begin_batch("Broken") as batch:
                batch.add(CounterCommand(counter, 1))
                raise KeyError("while building")
        assert counter["value"] == 0
        assert history.undo_count() == 0

    def test_closed_batch_refuses_more_commands(self, history, counter):
        builder = history.begin_batch("Closed")
        builder.commit()
        with pytest.raises(RuntimeError):
            builder.add(CounterCommand(counter))


# =============================================================================
# Document integration
# =============================================================================

class TestDirtyTracking:

    def test_edits_mark_document_dirty(self, document, ops):
        states = []
        document.dirty_changed.connect(lambda dirty: states.append(dirty))
        ops.create_object("Frodo", "character")
        assert document.is_dirty
        document.mark_saved()
        assert not document.is_dirty
        assert states == [True, False]
