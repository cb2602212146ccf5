"""
Milestone Store

Structural groupings (acts, parts, sections) anchored after rendered card
indices. Raw mutators; undoable edits go through milestone commands.
"""
from typing import Dict, Iterable, List, Optional, Tuple

from aethel.domain.entities import Milestone
from aethel.domain.errors import NotFoundError


class MilestoneStore:

    def __init__(self, milestones: Optional[Iterable[Milestone]] = None):
        self._milestones: Dict[str, Milestone] = {}
        self.revision = 0
        for milestone in milestones or []:
            self.add(milestone)

    def __len__(self) -> int:
        return len(self._milestones)

    def all(self) -> List[Milestone]:
        """Milestones ordered by after_index (then name for stable output)."""
        return sorted(self._milestones.values(), key=lambda m: (m.after_index, m.name.lower(), m.id))

    def get(self, milestone_id: str) -> Optional[Milestone]:
        return self._milestones.get(milestone_id)

    def require(self, milestone_id: str) -> Milestone:
        milestone = self._milestones.get(milestone_id)
        if milestone is None:
            raise NotFoundError("Milestone", milestone_id)
        return milestone

    def get_by_name(self, name: str) -> Optional[Milestone]:
        needle = name.strip().lower()
        return next((m for m in self.all() if m.name.lower() == needle), None)

    def get_milestone_after_index(self, index: int) -> Optional[Milestone]:
        """Last milestone anchored after card index, if any."""
        found = [m for m in self.all() if m.after_index == index]
        return found[-1] if found else None

    def has_milestone_after_index(self, index: int) -> bool:
        return self.get_milestone_after_index(index) is not None

    def get_section_for_index(self, index: int) -> Optional[Milestone]:
        """The milestone whose section contains card index (the last one anchored before it)."""
        current = None
        for milestone in self.all():
            if milestone.after_index < index:
                current = milestone
            else:
                break
        return current

    def get_section_range(self, milestone_id: str, total_cards: int) -> Tuple[int, int]:
        """Card indices [start, end) belonging to the milestone's section."""
        ordered = self.all()
        position = next((i for i, m in enumerate(ordered) if m.id == milestone_id), None)
        if position is None:
            raise NotFoundError("Milestone", milestone_id)
        start = ordered[position].after_index + 1
        if position < len(ordered) - 1:
            end = ordered[position + 1].after_index + 1
        else:
            end = total_cards
        return start, max(start, end)

    def plan_shift_after(self, start_index: int, delta: int) -> Dict[str, int]:
        """milestone id -> new after_index for milestones at or after start_index."""
        return {
            m.id: max(0, m.after_index + delta)
            for m in self.all()
            if m.after_index >= start_index and max(0, m.after_index + delta) != m.after_index
        }

    def add(self, milestone: Milestone) -> None:
        if milestone.id in self._milestones:
            raise ValueError(f"Milestone '{milestone.id}' already exists")
        self._milestones[milestone.id] = milestone
        self.revision += 1

    def replace(self, milestone: Milestone) -> None:
        self.require(milestone.id)
        self._milestones[milestone.id] = milestone
        self.revision += 1

    def remove(self, milestone_id: str) -> Milestone:
        milestone = self.require(milestone_id)
        del self._milestones[milestone_id]
        self.revision += 1
        return milestone
