"""
Object Registry

Canonical in-memory store of narrative objects: lookup, hierarchy,
color/icon inheritance and name search.

Mutators on this class are raw: they do not record history. Every
user-visible change goes through a command (see aethel.application.commands),
which calls add/replace/remove here. The plan_* methods compute what a
hierarchy edit would write without applying it.
"""
from typing import Dict, List, Optional

from aethel.domain.entities import (
    AethelObject,
    ObjectType,
    BUILTIN_OBJECT_TYPES,
    DEFAULT_OBJECT_COLOR,
    FOLDER_TYPE_ID,
)
from aethel.domain.entities.object_types import FALLBACK_TYPE_ID
from aethel.domain.errors import NotFoundError, InvalidReparentError
from aethel.utils.message import Log

MIN_SEARCH_LENGTH = 2

DROP_BEFORE = "before"
DROP_AFTER = "after"
DROP_INSIDE = "inside"
DROP_POSITIONS = (DROP_BEFORE, DROP_AFTER, DROP_INSIDE)


class ObjectRegistry:
    """
    Store of AethelObjects keyed by id.

    revision increments on every mutation so derived views (cards, rendered
    order) can memoize safely.
    """

    def __init__(self, objects: Optional[List[AethelObject]] = None):
        self._objects: Dict[str, AethelObject] = {}
        self._types: Dict[str, ObjectType] = dict(BUILTIN_OBJECT_TYPES)
        self.revision = 0
        for obj in objects or []:
            self._objects[obj.id] = obj

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    def register_type(self, object_type: ObjectType) -> None:
        self._types[object_type.id] = object_type

    def get_type(self, type_id: str) -> ObjectType:
        return self._types.get(type_id, self._types[FALLBACK_TYPE_ID])

    def types(self) -> List[ObjectType]:
        return list(self._types.values())

    def is_folder(self, object_id: str) -> bool:
        return self.require(object_id).type_id == FOLDER_TYPE_ID

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, object_id: str) -> bool:
        return object_id in self._objects

    def get(self, object_id: str) -> Optional[AethelObject]:
        return self._objects.get(object_id)

    def require(self, object_id: str) -> AethelObject:
        obj = self._objects.get(object_id)
        if obj is None:
            raise NotFoundError("Object", object_id)
        return obj

    def all(self) -> List[AethelObject]:
        return list(self._objects.values())

    def get_children(self, parent_id: Optional[str]) -> List[AethelObject]:
        """Children of parent_id (None = roots) ordered by sort_order, then name."""
        children = [obj for obj in self._objects.values() if obj.parent_id == parent_id]
        children.sort(key=lambda obj: (obj.sort_order, obj.name.lower()))
        return children

    def get_descendants(self, object_id: str) -> List[AethelObject]:
        """All descendants of object_id, depth-first in tree order."""
        result: List[AethelObject] = []
        for child in self.get_children(object_id):
            result.append(child)
            result.extend(self.get_descendants(child.id))
        return result

    def walk(self) -> List[AethelObject]:
        """Every object reachable from the roots, depth-first in tree order."""
        result: List[AethelObject] = []
        for root in self.get_children(None):
            result.append(root)
            result.extend(self.get_descendants(root.id))
        return result

    def get_ancestors(self, object_id: str) -> List[AethelObject]:
        """Parent chain from the direct parent up to the root."""
        chain: List[AethelObject] = []
        seen = {object_id}
        current = self.require(object_id).parent_id
        while current is not None and current not in seen:
            parent = self._objects.get(current)
            if parent is None:
                break
            chain.append(parent)
            seen.add(current)
            current = parent.parent_id
        return chain

    def is_descendant(self, candidate_id: Optional[str], ancestor_id: str) -> bool:
        """
        True if candidate_id is ancestor_id or lies below it.

        Walks candidate's parent chain up to the root.
        """
        seen = set()
        current = candidate_id
        while current is not None and current not in seen:
            if current == ancestor_id:
                return True
            seen.add(current)
            obj = self._objects.get(current)
            if obj is None:
                return False
            current = obj.parent_id
        return False

    def get_by_name(self, name: str) -> Optional[AethelObject]:
        """First object whose name or alias matches, case-insensitively."""
        for obj in self._objects.values():
            if obj.matches_name(name):
                return obj
        return None

    def get_all_matches(self, word: str) -> List[AethelObject]:
        """Every object whose name or alias equals word (at least two characters)."""
        if len(word.strip()) < MIN_SEARCH_LENGTH:
            return []
        return [obj for obj in self._objects.values() if obj.matches_name(word)]

    def get_threads(self) -> List[AethelObject]:
        return [obj for obj in self._objects.values() if obj.is_thread]

    # ------------------------------------------------------------------
    # Inheritance
    # ------------------------------------------------------------------

    def get_effective_color(self, object_id: str) -> str:
        """Own color, else the nearest ancestor's, else the type default."""
        obj = self._objects.get(object_id)
        if obj is None:
            return DEFAULT_OBJECT_COLOR
        if obj.color:
            return obj.color
        for ancestor in self.get_ancestors(object_id):
            if ancestor.color:
                return ancestor.color
        return self.get_type(obj.type_id).color

    def get_effective_icon(self, object_id: str) -> str:
        """Own icon, else the nearest ancestor's, else the type default."""
        obj = self._objects.get(object_id)
        if obj is None:
            return self.get_type(FALLBACK_TYPE_ID).icon
        if obj.icon:
            return obj.icon
        for ancestor in self.get_ancestors(object_id):
            if ancestor.icon:
                return ancestor.icon
        return self.get_type(obj.type_id).icon

    def is_color_inherited(self, object_id: str) -> bool:
        return not self.require(object_id).color

    def is_icon_inherited(self, object_id: str) -> bool:
        return not self.require(object_id).icon

    # ------------------------------------------------------------------
    # Planning (no mutation)
    # ------------------------------------------------------------------

    def plan_reparent(self, object_id: str, target_id: Optional[str], position: str) -> dict:
        """
        Fields (parent_id, sort_order) that moving object_id relative to
        target_id would write.

        Raises:
            NotFoundError: object or target missing
            InvalidReparentError: target is the object or one of its
                descendants, or the move changes nothing
        """
        if position not in DROP_POSITIONS:
            raise ValueError(f"Unknown drop position: {position}")
        obj = self.require(object_id)
        if target_id is not None:
            self.require(target_id)
            if self.is_descendant(target_id, object_id):
                raise InvalidReparentError(object_id, target_id, "target is the dragged object or its descendant")

        if position == DROP_INSIDE:
            siblings = [s for s in self.get_children(target_id) if s.id != object_id]
            sort_order = max((s.sort_order for s in siblings), default=0.0) + 1
            fields = {"parent_id": target_id, "sort_order": sort_order}
        else:
            if target_id is None:
                raise InvalidReparentError(object_id, None, f"'{position}' needs a target")
            target = self.require(target_id)
            siblings = [s for s in self.get_children(target.parent_id) if s.id != object_id]
            index = next(i for i, s in enumerate(siblings) if s.id == target_id)
            if position == DROP_BEFORE:
                if index == 0:
                    sort_order = target.sort_order - 1
                else:
                    sort_order = (siblings[index - 1].sort_order + target.sort_order) / 2
            else:
                if index >= len(siblings) - 1:
                    sort_order = target.sort_order + 1
                else:
                    sort_order = (target.sort_order + siblings[index + 1].sort_order) / 2
            fields = {"parent_id": target.parent_id, "sort_order": sort_order}

        if self._lands_in_same_slot(obj, fields["parent_id"], target_id, position):
            raise InvalidReparentError(object_id, target_id, "object is already there")
        return fields

    def _lands_in_same_slot(self, obj: AethelObject, new_parent: Optional[str],
                            target_id: Optional[str], position: str) -> bool:
        if new_parent != obj.parent_id:
            return False
        siblings = self.get_children(obj.parent_id)
        index = next(i for i, s in enumerate(siblings) if s.id == obj.id)
        if position == DROP_INSIDE:
            return index == len(siblings) - 1
        neighbour = index + 1 if position == DROP_BEFORE else index - 1
        return 0 <= neighbour < len(siblings) and siblings[neighbour].id == target_id

    def plan_reorder(self, object_id: str, new_index: int) -> float:
        """sort_order that puts object_id at new_index among its siblings."""
        obj = self.require(object_id)
        siblings = [s for s in self.get_children(obj.parent_id) if s.id != object_id]
        if new_index < 0 or new_index > len(siblings):
            raise IndexError(f"Index {new_index} out of range for {len(siblings)} siblings")
        if not siblings:
            return 0.0
        if new_index == 0:
            return siblings[0].sort_order - 1
        if new_index >= len(siblings):
            return siblings[-1].sort_order + 1
        return (siblings[new_index - 1].sort_order + siblings[new_index].sort_order) / 2

    def plan_duplicate(self, object_id: str) -> AethelObject:
        """Copy of object_id named '<name> (copy)', ordered right after it."""
        obj = self.require(object_id)
        duplicate = AethelObject(
            name=f"{obj.name} (copy)",
            type_id=obj.type_id,
            parent_id=obj.parent_id,
            color=obj.color,
            icon=obj.icon,
            rendered=obj.rendered,
            attributes=obj.copy().attributes,
            aliases=list(obj.aliases),
            content=obj.copy().content,
            is_thread=obj.is_thread,
            thread_color=obj.thread_color,
        )
        siblings = self.get_children(obj.parent_id)
        index = next(i for i, s in enumerate(siblings) if s.id == object_id)
        if index < len(siblings) - 1:
            duplicate.sort_order = (obj.sort_order + siblings[index + 1].sort_order) / 2
        else:
            duplicate.sort_order = obj.sort_order + 1
        return duplicate

    def next_sort_order(self, parent_id: Optional[str]) -> float:
        return max((s.sort_order for s in self.get_children(parent_id)), default=-1.0) + 1

    # ------------------------------------------------------------------
    # Raw mutation (used by the command interpreter)
    # ------------------------------------------------------------------

    def add(self, obj: AethelObject) -> None:
        if obj.id in self._objects:
            raise ValueError(f"Object '{obj.id}' already exists")
        self._objects[obj.id] = obj
        self.revision += 1
        Log.debug(f"ObjectRegistry: added '{obj.name}' ({obj.id})")

    def replace(self, obj: AethelObject) -> None:
        if obj.id not in self._objects:
            raise NotFoundError("Object", obj.id)
        self._objects[obj.id] = obj
        self.revision += 1

    def remove(self, object_id: str) -> AethelObject:
        obj = self._objects.pop(object_id, None)
        if obj is None:
            raise NotFoundError("Object", object_id)
        self.revision += 1
        Log.debug(f"ObjectRegistry: removed '{obj.name}' ({object_id})")
        return obj
