from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from oden.core.clock import Clock, utc_now
from oden.core.db import unit_of_work
from oden.core.locks import KeyedLock, get_locks, resources_key, session_key
from oden.core.rng import RngFactory, default_rng
from oden.domain.entities import Banner, CurrencyKind, RequirementType, SummonMultiResult, SummonRateInfo
from oden.domain.errors import BannerNotFound
from oden.domain.gacha import parse_pull_kind, perform_summon
from oden.domain.rarity import rate_info
from oden.services import mission_service
from oden.services.store import GameStore

logger = logging.getLogger(__name__)

_SPEND_EVENTS = {
    CurrencyKind.GOLD: RequirementType.SPEND_GOLD,
    CurrencyKind.GEM: RequirementType.SPEND_GEMS,
}


async def list_banners(db: AsyncSession, *, clock: Clock = utc_now, active_only: bool = True) -> list[Banner]:
    now = clock()
    banners = await GameStore(db).list_banners()
    if active_only:
        banners = [b for b in banners if b.is_active(now)]
    return banners


async def get_rate_info(db: AsyncSession, user_id: str, banner_id: str) -> SummonRateInfo:
    store = GameStore(db)
    banner = await store.get_banner(banner_id)
    if banner is None:
        raise BannerNotFound(banner_id=banner_id)
    session = await store.get_summon_session(user_id, banner_id)
    featured = await store.list_hero_types(banner.featured_heroes)
    return rate_info(banner, session, [featured[i] for i in sorted(featured)])


async def summon(
    db: AsyncSession,
    user_id: str,
    banner_id: str,
    pull_kind: str,
    *,
    rng_factory: RngFactory = default_rng,
    clock: Clock = utc_now,
    locks: KeyedLock | None = None,
) -> SummonMultiResult:
    """
    Debit, pull and grant as one transaction:
      - (user, banner) session and the user's balances are locked
      - nothing is written unless every pull resolved
    """
    kind = parse_pull_kind(pull_kind)
    locks = locks or get_locks()
    store = GameStore(db)

    banner = await store.get_banner(banner_id)
    if banner is None:
        raise BannerNotFound(banner_id=banner_id)

    async with locks.hold(session_key(user_id, banner_id), resources_key(user_id)):
        async with unit_of_work(db):
            now = clock()
            resources = await store.get_resources(user_id, for_update=True)
            session = await store.get_summon_session(user_id, banner_id, for_update=True)
            outcome = perform_summon(
                user_id=user_id,
                banner=banner,
                pull_kind=kind,
                session=session,
                resources=resources,
                owned_heroes=await store.list_heroes(user_id),
                owned_items=await store.list_items(user_id),
                hero_types=await store.list_hero_types(),
                item_templates=await store.list_item_templates(),
                rng=rng_factory(),
                now=now,
            )

            await store.save_summon_session(outcome.session)
            await store.save_resources(outcome.resources)
            for hero in outcome.heroes:
                await store.save_hero(hero)
            for item in outcome.items:
                await store.save_item(item)
            await store.add_summon_results(outcome.results)

            await mission_service.ingest_event(db, user_id, RequirementType.SUMMON, len(outcome.results), banner_id, now)
            if outcome.heroes:
                await mission_service.ingest_event(db, user_id, RequirementType.OWN_HEROES, len(outcome.heroes), now=now)
            if outcome.items:
                await mission_service.ingest_event(db, user_id, RequirementType.COLLECT_ITEMS, len(outcome.results), now=now)
            spend_event = _SPEND_EVENTS.get(outcome.currency)
            if spend_event is not None:
                await mission_service.ingest_event(db, user_id, spend_event, outcome.spent, now=now)

    top = [r for r in outcome.results if r.rarity == banner.top_rarity]
    logger.info(
        "summon user=%s banner=%s kind=%s pulls=%d top=%d pity=%d",
        user_id, banner_id, kind.value, len(outcome.results), len(top), outcome.session.pity,
    )
    return outcome.response
