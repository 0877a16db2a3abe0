"""Granting heroes and items to a player's collection."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Iterable

from oden.domain.entities import Hero, Item, ItemDetails, ItemTemplate

IdFactory = Callable[[], str]


def new_id() -> str:
    return str(uuid.uuid4())


def item_details(item: Item, template: ItemTemplate) -> ItemDetails:
    return ItemDetails(
        id=item.id,
        item_template_id=item.item_template_id,
        quantity=item.quantity,
        name=template.name,
        type=template.type,
        rarity=template.rarity,
        description=template.description,
        slot=template.slot,
        atk_bonus=template.atk_bonus,
        hp_bonus=template.hp_bonus,
        effect=template.effect,
        effect_value=template.effect_value,
    )


@dataclass
class Collection:
    """Working copy of what a user owns while grants are applied.

    ``touched_heroes``/``touched_items`` keep the records that must be written
    back, in grant order.
    """

    user_id: str
    heroes_by_type: dict[str, Hero] = field(default_factory=dict)
    stacks: dict[str, Item] = field(default_factory=dict)
    touched_heroes: dict[str, Hero] = field(default_factory=dict)
    touched_items: dict[str, Item] = field(default_factory=dict)

    @classmethod
    def of(cls, user_id: str, heroes: Iterable[Hero], items: Iterable[Item]) -> "Collection":
        col = cls(user_id=user_id)
        for hero in heroes:
            col.heroes_by_type.setdefault(hero.hero_type_id, hero)
        for item in items:
            # first record per template is the stack we grow
            col.stacks.setdefault(item.item_template_id, item)
        return col

    def grant_hero(self, hero_type_id: str, new_id: IdFactory, now: datetime) -> Hero | None:
        """Create the hero unless the user already has that type."""
        if hero_type_id in self.heroes_by_type:
            return None
        hero = Hero(id=new_id(), user_id=self.user_id, hero_type_id=hero_type_id, created_at=now)
        self.heroes_by_type[hero_type_id] = hero
        self.touched_heroes[hero.id] = hero
        return hero

    def grant_item(self, template: ItemTemplate, new_id: IdFactory, now: datetime, quantity: int = 1) -> Item:
        if template.stackable and template.id in self.stacks:
            current = self.stacks[template.id]
            item = replace(current, quantity=current.quantity + quantity)
        else:
            item = Item(
                id=new_id(),
                user_id=self.user_id,
                item_template_id=template.id,
                quantity=quantity,
                acquired_at=now,
            )
        if template.stackable or template.id not in self.stacks:
            self.stacks[template.id] = item
        self.touched_items[item.id] = item
        return item
