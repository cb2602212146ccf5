"""
Undoable commands for Aethel documents.

Usage:
    from aethel.application.commands import MovePlacementCommand

    document.history.execute(MovePlacementCommand(document, placement_id, 12.0))
"""
from aethel.application.commands.change import EntityChange, EntityKind, apply_change
from aethel.application.commands.base_command import TimelineCommand
from aethel.application.commands.batch import BatchCommand, BatchBuilder
from aethel.application.commands.history import CommandHistory, DEFAULT_HISTORY_LIMIT
from aethel.application.commands.object_commands import (
    CreateObjectCommand,
    CreateObjectWithPlacementCommand,
    UpdateObjectCommand,
    ToggleRenderedCommand,
    DeleteObjectCommand,
    ReparentObjectCommand,
    ReorderObjectCommand,
    DuplicateObjectCommand,
)
from aethel.application.commands.timeline_commands import (
    AddPlacementCommand,
    RemovePlacementCommand,
    UpdatePlacementCommand,
    MovePlacementCommand,
    MagneticMovePlacementCommand,
    ResizePlacementCommand,
    SplitPlacementCommand,
    MergePlacementsCommand,
    SetMutationDisplayCommand,
    AddPlacementToThreadCommand,
    RemovePlacementFromThreadCommand,
    SetPlacementsLockedCommand,
    SetPlacementsGroupCommand,
    InsertTrackCommand,
    RemoveTrackCommand,
    MoveTrackCommand,
    UpdateTrackCommand,
    AddMarkerCommand,
    RemoveMarkerCommand,
    UpdateMarkerCommand,
)
from aethel.application.commands.milestone_commands import (
    AddMilestoneCommand,
    UpdateMilestoneCommand,
    DeleteMilestoneCommand,
    MoveMilestoneCommand,
    ShiftMilestonesCommand,
)
