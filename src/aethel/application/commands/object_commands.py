"""
Object Commands

Undoable edits of narrative objects. Deleting an object cascades to its
descendants and to every placement that references any of them; undo
restores all of it with identical field values.
"""
from typing import Any, Dict, Optional, TYPE_CHECKING

from aethel.application.commands.base_command import TimelineCommand
from aethel.application.commands.change import EntityKind, created, deleted, updated
from aethel.domain.entities import AethelObject, TimelinePlacement, utc_now

if TYPE_CHECKING:
    from aethel.application.document import Document


class CreateObjectCommand(TimelineCommand):
    COMMAND_TYPE = "object.create"

    def __init__(self, document: "Document", obj: AethelObject, description: Optional[str] = None):
        if obj.id in document.registry:
            raise ValueError(f"Object '{obj.id}' already exists")
        if obj.parent_id is not None:
            document.registry.require(obj.parent_id)
        super().__init__(description or f"Create '{obj.name}'")
        self.object_id = obj.id
        self._record(created(EntityKind.OBJECT, obj))


class CreateObjectWithPlacementCommand(TimelineCommand):
    """
    Create an object and its creation placement as one step.

    Redo: adds the object, then the placement
    Undo: removes the placement, then the object
    """

    COMMAND_TYPE = "object.create_with_placement"

    def __init__(self, document: "Document", obj: AethelObject, placement: TimelinePlacement):
        if placement.object_id != obj.id:
            raise ValueError("Placement must reference the new object")
        if obj.parent_id is not None:
            document.registry.require(obj.parent_id)
        placement.validate()
        if placement.sequence <= 0:
            placement.sequence = document.timeline.allocate_sequence()
        super().__init__(f"Create '{obj.name}'")
        self.object_id = obj.id
        self.placement_id = placement.id
        self._record(
            created(EntityKind.OBJECT, obj),
            created(EntityKind.PLACEMENT, placement),
        )


class UpdateObjectCommand(TimelineCommand):
    """Update serialized object fields, e.g. {"name": "Frodo", "color": "#fff"}."""

    COMMAND_TYPE = "object.update"

    def __init__(self, document: "Document", object_id: str, updates: Dict[str, Any],
                 description: Optional[str] = None):
        obj = document.registry.require(object_id)
        if "parent_id" in updates:
            raise ValueError("Use ReparentObjectCommand to change an object's parent")
        fields = dict(updates)
        fields["updated_at"] = utc_now().isoformat()
        super().__init__(description or f"Update '{obj.name}'")
        self._record(updated(EntityKind.OBJECT, obj, fields))


class ToggleRenderedCommand(UpdateObjectCommand):
    """Flip whether the object is a card in the book flow."""

    COMMAND_TYPE = "object.toggle_rendered"

    def __init__(self, document: "Document", object_id: str):
        obj = document.registry.require(object_id)
        verb = "Hide" if obj.rendered else "Show"
        super().__init__(document, object_id, {"rendered": not obj.rendered},
                         description=f"{verb} '{obj.name}' in book")


class DeleteObjectCommand(TimelineCommand):
    """
    Delete an object with its subtree and every placement referencing them.

    Locked placements are deleted too: the lock guards placement edits,
    not the lifetime of the object that owns them.
    """

    COMMAND_TYPE = "object.delete"

    def __init__(self, document: "Document", object_id: str):
        registry = document.registry
        obj = registry.require(object_id)
        subtree = [obj] + registry.get_descendants(object_id)
        doomed = {o.id for o in subtree}

        super().__init__(f"Delete '{obj.name}'")
        self.deleted_object_ids = [o.id for o in subtree]
        self.deleted_placement_ids = []
        for placement in document.timeline.placements():
            if placement.object_id in doomed:
                self.deleted_placement_ids.append(placement.id)
                self._record(deleted(EntityKind.PLACEMENT, placement))
        # Children before parents so undo re-adds parents first
        for node in reversed(subtree):
            self._record(deleted(EntityKind.OBJECT, node))


class ReparentObjectCommand(TimelineCommand):
    """Move an object before/after a sibling or inside a new parent."""

    COMMAND_TYPE = "object.reparent"

    def __init__(self, document: "Document", object_id: str, target_id: Optional[str], position: str):
        registry = document.registry
        fields = registry.plan_reparent(object_id, target_id, position)
        obj = registry.require(object_id)
        fields["updated_at"] = utc_now().isoformat()
        super().__init__(f"Move '{obj.name}'")
        self._record(updated(EntityKind.OBJECT, obj, fields))


class ReorderObjectCommand(TimelineCommand):
    COMMAND_TYPE = "object.reorder"

    def __init__(self, document: "Document", object_id: str, new_index: int):
        registry = document.registry
        sort_order = registry.plan_reorder(object_id, new_index)
        obj = registry.require(object_id)
        super().__init__(f"Reorder '{obj.name}'")
        self._record(updated(EntityKind.OBJECT, obj, {
            "sort_order": sort_order,
            "updated_at": utc_now().isoformat(),
        }))


class DuplicateObjectCommand(TimelineCommand):
    COMMAND_TYPE = "object.duplicate"

    def __init__(self, document: "Document", object_id: str):
        duplicate = document.registry.plan_duplicate(object_id)
        super().__init__(f"Duplicate '{document.registry.require(object_id).name}'")
        self.object_id = duplicate.id
        self._record(created(EntityKind.OBJECT, duplicate))
