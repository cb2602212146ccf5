"""
Milestone entity

Structural grouping (part, act, section, book) anchored after a rendered card
index. Independent of placements.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from aethel.domain.entities.aethel_object import new_id, utc_now, parse_datetime


class MilestoneExport(str, Enum):
    PART = "part"
    ACT = "act"
    SECTION = "section"
    BOOK = "book"


@dataclass
class Milestone:
    name: str
    after_index: int
    id: str = field(default_factory=new_id)
    color: Optional[str] = None
    description: Optional[str] = None
    export_as: Optional[MilestoneExport] = None
    export_title: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def copy(self) -> "Milestone":
        return copy.deepcopy(self)

    def fields(self, names: Iterable[str]) -> Dict[str, Any]:
        data = self.to_dict()
        return {name: data[name] for name in names}

    def with_fields(self, fields: Dict[str, Any]) -> "Milestone":
        data = self.to_dict()
        unknown = set(fields) - set(data)
        if unknown:
            raise KeyError(f"Unknown milestone fields: {sorted(unknown)}")
        data.update(fields)
        return Milestone.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "after_index": self.after_index,
            "color": self.color,
            "description": self.description,
            "export_as": self.export_as.value if self.export_as else None,
            "export_title": self.export_title,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Milestone":
        export_as = data.get("export_as", data.get("exportAs"))
        return cls(
            id=data["id"],
            name=data["name"],
            after_index=int(data.get("after_index", data.get("afterIndex", 0))),
            color=data.get("color"),
            description=data.get("description"),
            export_as=MilestoneExport(export_as) if export_as else None,
            export_title=data.get("export_title", data.get("exportTitle")),
            created_at=parse_datetime(data.get("created_at", data.get("createdAt"))),
            updated_at=parse_datetime(data.get("updated_at", data.get("updatedAt"))),
        )
