"""
Shared fixtures for the Aethel test suite.

Qt objects here are plain QObjects (signals work without a QApplication),
so no application fixture is needed.
"""
import pytest

from aethel.application.document import Document
from aethel.application.operations.timeline_operations import TimelineOperations
from aethel.application.settings.timeline_settings import TimelineSettings


@pytest.fixture
def settings():
    return TimelineSettings()


@pytest.fixture
def document(settings):
    return Document(settings)


@pytest.fixture
def ops(document):
    return TimelineOperations(document)


@pytest.fixture
def make_placement(ops):
    """Create an object with a creation placement; returns the placement id."""
    counter = {"n": 0}

    def _make(position, track=0, end_position=None, type_id="event", name=None):
        counter["n"] += 1
        command = ops.create_object_with_placement(
            name or f"Object {counter['n']}",
            type_id,
            position=position,
            track=track,
            end_position=end_position,
        )
        assert command is not None
        return command.placement_id

    return _make
