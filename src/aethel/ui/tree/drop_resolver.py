"""
Object tree drop resolution.

Turns a drop over a tree row into a reparent request:

    folder row          -> inside
    other rows          -> top half before, bottom half after
    empty area          -> inside the root

Invalid drops (onto the dragged object, into its own subtree, or onto the
slot it already occupies) raise InvalidReparentError, so the tree can
refuse them while hovering.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from aethel.application.registry.object_registry import DROP_AFTER, DROP_BEFORE, DROP_INSIDE, ObjectRegistry
from aethel.domain.errors import InvalidReparentError


@dataclass(frozen=True)
class DropTarget:
    object_id: str
    target_id: Optional[str]
    position: str
    fields: Dict[str, Any] = field(default_factory=dict)


class DropResolver:

    def __init__(self, registry: ObjectRegistry):
        self._registry = registry

    def resolve_position(self, target_id: Optional[str], y_ratio: float) -> str:
        """Drop position for a pointer at y_ratio (0 = top, 1 = bottom) of the target row."""
        if target_id is None or self._registry.is_folder(target_id):
            return DROP_INSIDE
        return DROP_BEFORE if y_ratio < 0.5 else DROP_AFTER

    def resolve(self, object_id: str, target_id: Optional[str], y_ratio: float = 0.5) -> DropTarget:
        """
        Raises:
            NotFoundError: object or target missing
            InvalidReparentError: the drop would be a cycle or a no-op
        """
        position = self.resolve_position(target_id, y_ratio)
        fields = self._registry.plan_reparent(object_id, target_id, position)
        return DropTarget(object_id=object_id, target_id=target_id, position=position, fields=fields)

    def can_drop(self, object_id: str, target_id: Optional[str], y_ratio: float = 0.5) -> bool:
        try:
            self.resolve(object_id, target_id, y_ratio)
        except InvalidReparentError:
            return False
        return True
