"""
Milestone Commands

Undoable milestone edits: add, update, delete, move and bulk shift.
"""
from typing import Any, Dict, TYPE_CHECKING

from aethel.application.commands.base_command import TimelineCommand
from aethel.application.commands.change import EntityKind, created, deleted, updated
from aethel.domain.entities import Milestone, utc_now

if TYPE_CHECKING:
    from aethel.application.document import Document


class AddMilestoneCommand(TimelineCommand):
    COMMAND_TYPE = "milestone.add"

    def __init__(self, document: "Document", milestone: Milestone):
        if milestone.after_index < -1:
            raise ValueError(f"Milestone after_index {milestone.after_index} is out of range")
        super().__init__(f"Add milestone '{milestone.name}'")
        self.milestone_id = milestone.id
        self._record(created(EntityKind.MILESTONE, milestone))


class UpdateMilestoneCommand(TimelineCommand):
    COMMAND_TYPE = "milestone.update"

    def __init__(self, document: "Document", milestone_id: str, updates: Dict[str, Any]):
        milestone = document.milestones.require(milestone_id)
        fields = dict(updates)
        fields["updated_at"] = utc_now().isoformat()
        super().__init__(f"Update milestone '{milestone.name}'")
        self._record(updated(EntityKind.MILESTONE, milestone, fields))


class DeleteMilestoneCommand(TimelineCommand):
    COMMAND_TYPE = "milestone.delete"

    def __init__(self, document: "Document", milestone_id: str):
        milestone = document.milestones.require(milestone_id)
        super().__init__(f"Delete milestone '{milestone.name}'")
        self._record(deleted(EntityKind.MILESTONE, milestone))


class MoveMilestoneCommand(UpdateMilestoneCommand):
    COMMAND_TYPE = "milestone.move"

    def __init__(self, document: "Document", milestone_id: str, after_index: int):
        super().__init__(document, milestone_id, {"after_index": after_index})
        self.description = f"Move milestone '{document.milestones.require(milestone_id).name}'"


class ShiftMilestonesCommand(TimelineCommand):
    """Shift every milestone at or after start_index by delta (cards inserted/removed)."""

    COMMAND_TYPE = "milestone.shift"

    def __init__(self, document: "Document", start_index: int, delta: int):
        milestones = document.milestones
        super().__init__("Shift milestones")
        now = utc_now().isoformat()
        for milestone_id, after_index in milestones.plan_shift_after(start_index, delta).items():
            self._record(updated(
                EntityKind.MILESTONE, milestones.require(milestone_id),
                {"after_index": after_index, "updated_at": now},
            ))
