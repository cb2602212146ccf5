"""
Timeline UI types

State enums and small value types shared by the editor controllers.
"""
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Tuple


class DragState(Enum):
    """State machine for drag operations."""
    IDLE = auto()
    PENDING = auto()      # Pointer down, waiting for the movement threshold
    DRAGGING = auto()     # Active drag, preview only
    COMMITTING = auto()   # Released, turning the preview into a command


class EditHandle(Enum):
    """Which part of a placement is being edited."""
    NONE = auto()
    MOVE = auto()
    RESIZE_START = auto()
    RESIZE_END = auto()


class Tool(str, Enum):
    SELECT = "select"
    RAZOR = "razor"
    SLIP = "slip"
    SLIDE = "slide"


class DragType(str, Enum):
    MOVE = "move"
    RESIZE_START = "resize-start"
    RESIZE_END = "resize-end"


@dataclass
class ItemDragState:
    """Original and preview values of one dragged placement."""
    placement_id: str
    original_position: float
    original_end: Optional[float]
    original_track: int
    position_offset: float = 0.0  # Offset from the primary placement
    track_offset: int = 0
    preview_position: float = 0.0
    preview_end: Optional[float] = None
    preview_track: int = 0


@dataclass(frozen=True)
class DragPreview:
    """Projected (position, end_position, track) per dragged placement."""
    items: Dict[str, Tuple[float, Optional[float], int]] = field(default_factory=dict)

    def get(self, placement_id: str) -> Optional[Tuple[float, Optional[float], int]]:
        return self.items.get(placement_id)


@dataclass(frozen=True)
class HitResult:
    placement_id: Optional[str] = None
    handle: EditHandle = EditHandle.NONE
    position: float = 0.0
    track: int = 0

    @property
    def is_empty(self) -> bool:
        return self.placement_id is None


@dataclass(frozen=True)
class BoxRange:
    """Box selection converted to timeline space."""
    start: float
    end: float
    first_track: int
    last_track: int

    def tracks(self) -> List[int]:
        return list(range(self.first_track, self.last_track + 1))
