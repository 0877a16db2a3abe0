"""
Summon session orchestration without I/O.

``perform_summon`` validates the request, charges the cost (or the daily
free claim), runs the rarity resolver once per pull against the evolving
session and materializes the grants. The caller persists the returned
``SummonOutcome`` as one unit.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping

from oden.domain.entities import (
    PULL_COUNTS,
    Banner,
    CurrencyKind,
    Hero,
    HeroType,
    Item,
    ItemTemplate,
    PlayerResources,
    PullKind,
    ResultKind,
    SummonMultiResult,
    SummonResult,
    SummonSession,
)
from oden.domain.errors import AlreadyClaimedToday, BannerInactive, InvalidPullKind
from oden.domain.inventory import Collection, IdFactory, item_details, new_id
from oden.domain.progression import hero_details
from oden.domain.rarity import SummonPool, resolve_pull


@dataclass(frozen=True)
class SummonOutcome:
    response: SummonMultiResult
    session: SummonSession
    resources: PlayerResources
    heroes: tuple[Hero, ...]
    items: tuple[Item, ...]
    currency: CurrencyKind | None
    spent: int

    @property
    def results(self) -> tuple[SummonResult, ...]:
        return self.response.results


def parse_pull_kind(raw) -> PullKind:
    try:
        return PullKind(raw)
    except ValueError:
        raise InvalidPullKind(pull_kind=raw) from None


def perform_summon(
    *,
    user_id: str,
    banner: Banner,
    pull_kind: PullKind | str,
    session: SummonSession,
    resources: PlayerResources,
    owned_heroes: Iterable[Hero],
    owned_items: Iterable[Item],
    hero_types: Mapping[str, HeroType],
    item_templates: Mapping[str, ItemTemplate],
    rng: random.Random,
    now: datetime,
    id_factory: IdFactory = new_id,
) -> SummonOutcome:
    kind = parse_pull_kind(pull_kind)
    if not banner.is_active(now):
        raise BannerInactive(banner_id=banner.id)
    pool = SummonPool.build(banner, hero_types.values(), item_templates.values())

    currency: CurrencyKind | None = None
    spent = 0
    if kind == PullKind.DAILY_FREE:
        if not banner.has_daily_free_summon:
            raise InvalidPullKind("Banner has no daily free summon", banner_id=banner.id)
        if not session.can_claim_free_summon(now):
            raise AlreadyClaimedToday(banner_id=banner.id)
        session = session.claim_free_summon(now)
    else:
        currency = banner.cost.currency
        spent = banner.cost.for_pull(kind)
        resources = resources.debit(currency, spent)

    collection = Collection.of(user_id, owned_heroes, owned_items)
    results: list[SummonResult] = []
    new_heroes = []
    for _ in range(PULL_COUNTS[kind]):
        pulled = resolve_pull(banner, session, rng, pool=pool, now=now)
        session = pulled.session
        results.append(
            SummonResult(
                id=id_factory(),
                user_id=user_id,
                banner_id=banner.id,
                result_type=pool.kind,
                result_id=pulled.result_id,
                rarity=pulled.rarity,
                is_featured=pulled.is_featured,
                is_pity_break=pulled.is_pity_break,
                pull_number=session.pull_count,
                timestamp=now,
            )
        )
        if pool.kind == ResultKind.HERO:
            hero = collection.grant_hero(pulled.result_id, id_factory, now)
            if hero is not None:
                new_heroes.append(hero_details(hero, hero_types[hero.hero_type_id]))
        else:
            collection.grant_item(item_templates[pulled.result_id], id_factory, now)

    items = tuple(collection.touched_items.values())
    response = SummonMultiResult(
        banner_id=banner.id,
        banner_name=banner.name,
        results=tuple(results),
        new_heroes=tuple(new_heroes),
        new_items=tuple(item_details(i, item_templates[i.item_template_id]) for i in items),
    )
    return SummonOutcome(
        response=response,
        session=session,
        resources=resources,
        heroes=tuple(collection.touched_heroes.values()),
        items=items,
        currency=currency,
        spent=spent,
    )
