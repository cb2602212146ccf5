"""
Aethel Object entity

A narrative object (character, location, chapter, ...). Objects form a tree
through parent_id and carry typed attributes whose values can change over the
timeline through mutation placements.
"""
from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return utc_now()
    # Accept the trailing 'Z' written by older project files
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class AethelObject:
    """
    Narrative object.

    Attributes:
        attributes: key -> typed value, e.g. {"status": {"type": "string", "value": "alive"}}
        content: opaque reference to rich-text content owned by the editor
        rendered: whether the object appears as a card in the book output
    """
    name: str
    type_id: str
    id: str = field(default_factory=new_id)
    parent_id: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    sort_order: float = 0.0
    rendered: bool = False
    attributes: Dict[str, Any] = field(default_factory=dict)
    aliases: List[str] = field(default_factory=list)
    content: Any = None
    is_thread: bool = False
    thread_color: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def copy(self) -> "AethelObject":
        return copy.deepcopy(self)

    def fields(self, names: Iterable[str]) -> Dict[str, Any]:
        data = self.to_dict()
        return {name: data[name] for name in names}

    def with_fields(self, fields: Dict[str, Any]) -> "AethelObject":
        """New object with the given serialized fields replaced."""
        data = self.to_dict()
        unknown = set(fields) - set(data)
        if unknown:
            raise KeyError(f"Unknown object fields: {sorted(unknown)}")
        data.update(copy.deepcopy(fields))
        return AethelObject.from_dict(data)

    def matches_name(self, name: str) -> bool:
        """Case-insensitive match against the name and every alias."""
        needle = name.strip().lower()
        if self.name.lower() == needle:
            return True
        return any(alias.lower() == needle for alias in self.aliases)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type_id": self.type_id,
            "parent_id": self.parent_id,
            "color": self.color,
            "icon": self.icon,
            "sort_order": self.sort_order,
            "rendered": self.rendered,
            "attributes": copy.deepcopy(self.attributes),
            "aliases": list(self.aliases),
            "content": copy.deepcopy(self.content),
            "is_thread": self.is_thread,
            "thread_color": self.thread_color,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AethelObject":
        attributes = data.get("attributes") or {}
        # Older files store attributes as a list of {key, value}
        if isinstance(attributes, list):
            attributes = {item["key"]: item["value"] for item in attributes}
        return cls(
            id=data["id"],
            name=data["name"],
            type_id=data.get("type_id") or data.get("typeId") or "note",
            parent_id=data.get("parent_id", data.get("parentId")),
            color=data.get("color"),
            icon=data.get("icon"),
            sort_order=float(data.get("sort_order", data.get("sortOrder", 0.0)) or 0.0),
            rendered=bool(data.get("rendered", False)),
            attributes=copy.deepcopy(attributes),
            aliases=list(data.get("aliases") or []),
            content=copy.deepcopy(data.get("content")),
            is_thread=bool(data.get("is_thread", data.get("isThread", False))),
            thread_color=data.get("thread_color", data.get("threadColor")),
            created_at=parse_datetime(data.get("created_at", data.get("createdAt"))),
            updated_at=parse_datetime(data.get("updated_at", data.get("updatedAt"))),
        )
