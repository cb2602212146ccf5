"""
Card view

Rendered objects form the book flow: each one is a card, in depth-first tree
order. Mutations can be drawn underneath a card ('below') or in the flow
between two cards ('between').
"""
from typing import Dict, List, Optional

from aethel.application.registry.object_registry import ObjectRegistry
from aethel.application.timeline.timeline_store import TimelineStore, fold_order_key
from aethel.application.timeline.types import TimelineCard
from aethel.domain.entities import AethelObject, MutationDisplay, PlacementType, TimelinePlacement


def rendered_objects(registry: ObjectRegistry) -> List[AethelObject]:
    return [obj for obj in registry.walk() if obj.rendered]


def build_cards(registry: ObjectRegistry, store: TimelineStore) -> List[TimelineCard]:
    cards = [
        TimelineCard(index=index, object=obj, creation=store.get_creation_placement(obj.id))
        for index, obj in enumerate(rendered_objects(registry))
    ]
    by_object = {card.object.id: card for card in cards}
    for placement in sorted(store.placements(), key=fold_order_key):
        if placement.type != PlacementType.MUTATION:
            continue
        if placement.mutation_display == MutationDisplay.BELOW:
            card = by_object.get(placement.attached_to_object_id)
            if card is not None:
                card.mutations_below.append(placement)
    return cards


def mutations_between(store: TimelineStore) -> Dict[float, List[TimelinePlacement]]:
    """after_rendered_index -> mutations drawn in the flow after that card."""
    result: Dict[float, List[TimelinePlacement]] = {}
    for placement in sorted(store.placements(), key=fold_order_key):
        if placement.type != PlacementType.MUTATION:
            continue
        if placement.mutation_display == MutationDisplay.BETWEEN and placement.after_rendered_index is not None:
            result.setdefault(placement.after_rendered_index, []).append(placement)
    return result


class CardView:
    """Memoized cards, rebuilt whenever the registry or store revision moves."""

    def __init__(self, registry: ObjectRegistry, store: TimelineStore):
        self._registry = registry
        self._store = store
        self._key = None
        self._cards: List[TimelineCard] = []

    def cards(self) -> List[TimelineCard]:
        key = (self._registry.revision, self._store.revision)
        if key != self._key:
            self._cards = build_cards(self._registry, self._store)
            self._key = key
        return list(self._cards)

    def get_card_index(self, object_id: str) -> Optional[int]:
        return next((c.index for c in self.cards() if c.object.id == object_id), None)

    def get_card_at(self, index: int) -> Optional[TimelineCard]:
        cards = self.cards()
        return cards[index] if 0 <= index < len(cards) else None
