"""
Object types

Built-in kinds of narrative object. Each carries the default icon and color
that objects of that type fall back to when neither they nor any ancestor
override it.
"""
from dataclasses import dataclass
from typing import Dict, Any


@dataclass(frozen=True)
class ObjectType:
    id: str
    name: str
    icon: str
    color: str
    is_content_type: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "color": self.color,
            "is_content_type": self.is_content_type,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ObjectType":
        return ObjectType(
            id=data["id"],
            name=data.get("name") or data["id"].title(),
            icon=data.get("icon", "📝"),
            color=data.get("color", DEFAULT_OBJECT_COLOR),
            is_content_type=bool(data.get("is_content_type", True)),
        )


DEFAULT_OBJECT_COLOR = "#78716c"
FOLDER_TYPE_ID = "folder"
FALLBACK_TYPE_ID = "note"

BUILTIN_OBJECT_TYPES: Dict[str, ObjectType] = {
    "chapter": ObjectType("chapter", "Chapter", "📖", "#3b82f6"),
    "scene": ObjectType("scene", "Scene", "🎬", "#8b5cf6"),
    "character": ObjectType("character", "Character", "👤", "#06b6d4"),
    "location": ObjectType("location", "Location", "📍", "#22c55e"),
    "item": ObjectType("item", "Item", "⚔️", "#f59e0b"),
    "event": ObjectType("event", "Event", "⚡", "#ec4899"),
    "note": ObjectType("note", "Note", "📝", "#64748b"),
    FOLDER_TYPE_ID: ObjectType(FOLDER_TYPE_ID, "Folder", "📁", DEFAULT_OBJECT_COLOR, is_content_type=False),
}


def get_builtin_type(type_id: str) -> ObjectType:
    """Look up a built-in type, falling back to 'note' for unknown ids."""
    return BUILTIN_OBJECT_TYPES.get(type_id, BUILTIN_OBJECT_TYPES[FALLBACK_TYPE_ID])
