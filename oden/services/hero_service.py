from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from oden.domain.entities import HeroDetails, ItemDetails, PlayerResources
from oden.domain.inventory import item_details
from oden.domain.progression import hero_details
from oden.services.store import GameStore


async def list_heroes(db: AsyncSession, user_id: str) -> list[HeroDetails]:
    store = GameStore(db)
    heroes = await store.list_heroes(user_id)
    types = await store.list_hero_types({h.hero_type_id for h in heroes})
    return [hero_details(h, types[h.hero_type_id]) for h in heroes]


async def list_items(db: AsyncSession, user_id: str) -> list[ItemDetails]:
    store = GameStore(db)
    items = await store.list_items(user_id)
    templates = await store.list_item_templates({i.item_template_id for i in items})
    return [item_details(i, templates[i.item_template_id]) for i in items]


async def get_resources(db: AsyncSession, user_id: str) -> PlayerResources:
    resources = await GameStore(db).get_resources(user_id)
    await db.commit()
    return resources
