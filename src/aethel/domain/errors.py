"""
Domain errors.

NotFound and QuotaExceeded are unexpected and surface to the caller.
LockedEntity and InvalidRange describe rejected user gestures; the operations
layer turns them into no-ops.
"""
from typing import Optional


class AethelError(Exception):
    """Base exception for timeline core errors."""
    pass


class NotFoundError(AethelError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity_name: str, entity_id: str, context: str = ""):
        self.entity_name = entity_name
        self.entity_id = entity_id
        self.context = context
        message = f"{entity_name} with id '{entity_id}' not found"
        if context:
            message += f" ({context})"
        super().__init__(message)


class LockedEntityError(AethelError):
    """Raised when a move/resize/split/delete touches a locked placement or track."""

    def __init__(self, entity_name: str, entity_id, action: str = ""):
        self.entity_name = entity_name
        self.entity_id = entity_id
        self.action = action
        message = f"{entity_name} '{entity_id}' is locked"
        if action:
            message += f" (cannot {action})"
        super().__init__(message)


class InvalidRangeError(AethelError):
    """Raised when an edit would produce an empty or negative range."""

    def __init__(self, message: str, start: Optional[float] = None, end: Optional[float] = None):
        self.start = start
        self.end = end
        super().__init__(message)


class InvalidReparentError(AethelError):
    """Raised when a tree drop targets the dragged node, a descendant, or changes nothing."""

    def __init__(self, object_id: str, target_id: Optional[str], reason: str):
        self.object_id = object_id
        self.target_id = target_id
        self.reason = reason
        super().__init__(f"Cannot move '{object_id}' relative to '{target_id}': {reason}")


class DuplicateCreationError(AethelError):
    """Raised when an object would get a second creation placement."""

    def __init__(self, object_id: str, existing_placement_id: str):
        self.object_id = object_id
        self.existing_placement_id = existing_placement_id
        super().__init__(
            f"Object '{object_id}' already has creation placement '{existing_placement_id}'"
        )


class QuotaExceededError(AethelError):
    """Raised by persistence when there is no room left to save a project."""

    def __init__(self, message: str, required_bytes: Optional[int] = None, quota_bytes: Optional[int] = None):
        self.required_bytes = required_bytes
        self.quota_bytes = quota_bytes
        super().__init__(message)


class SnapshotError(AethelError):
    """Raised when a project snapshot is malformed or uses an unknown schema."""

    def __init__(self, message: str, errors: Optional[list] = None):
        self.errors = list(errors or [])
        if self.errors:
            message = f"{message}: " + "; ".join(self.errors)
        super().__init__(message)
