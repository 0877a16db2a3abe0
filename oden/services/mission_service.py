"""
Mission assignment, progress ingestion and reward claims.

``ingest_event`` is called by other services inside their own transaction
and never commits; ``claim`` and ``assign_missions`` own theirs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from oden.core.clock import Clock, utc_now
from oden.core.db import unit_of_work
from oden.core.locks import KeyedLock, get_locks, resources_key
from oden.domain.entities import CurrencyKind, Mission, MissionTemplate, RequirementType
from oden.domain.errors import MissionNotClaimable, MissionNotFound
from oden.domain.inventory import Collection, new_id
from oden.domain.progression import advance_mission, claim_mission, is_expired, new_mission
from oden.services.store import GameStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MissionView:
    mission: Mission
    template: MissionTemplate


@dataclass(frozen=True)
class MissionClaim:
    mission: Mission
    gold: int
    gems: int
    items: tuple[str, ...]


async def ingest_event(
    db: AsyncSession,
    user_id: str,
    requirement: RequirementType,
    amount: int = 1,
    target_id: str | None = None,
    now: datetime | None = None,
) -> list[Mission]:
    """
    Called by gameplay services:
      ingest_event(db, uid, RequirementType.WIN_BATTLES, 1, stage_id)
    Advances every live mission of the user watching ``requirement``.
    Returns the missions completed by this event.
    """
    if amount <= 0:
        return []
    now = now or utc_now()
    store = GameStore(db)
    templates = await store.list_mission_templates()

    completed = []
    for mission in await store.list_missions(user_id):
        tpl = templates.get(mission.mission_template_id)
        if tpl is None or tpl.requirement_type != requirement:
            continue
        if tpl.target_id and tpl.target_id != target_id:
            continue
        if is_expired(mission, now):
            continue
        updated, done = advance_mission(mission, tpl, amount, now)
        if updated is mission:
            continue
        await store.save_mission(updated)
        if done:
            completed.append(updated)
            logger.info("mission completed user=%s mission=%s template=%s", user_id, updated.id, tpl.id)
    return completed


async def assign_missions(
    db: AsyncSession,
    user_id: str,
    template_ids: Iterable[str] | None = None,
    *,
    clock: Clock = utc_now,
) -> list[Mission]:
    """Give the user a fresh mission for every template they have no live one of.

    Expired daily/weekly missions are replaced; story and achievement
    missions never expire so they are handed out once.
    """
    async with unit_of_work(db):
        return await _assign(db, user_id, template_ids, clock())


async def _assign(db: AsyncSession, user_id: str, template_ids, now: datetime) -> list[Mission]:
    store = GameStore(db)
    await store.ensure_user(user_id)
    templates = await store.list_mission_templates()
    wanted = sorted(templates) if template_ids is None else [t for t in template_ids if t in templates]

    live = {m.mission_template_id for m in await store.list_missions(user_id) if not is_expired(m, now)}
    assigned = []
    for template_id in wanted:
        if template_id in live:
            continue
        mission = new_mission(new_id(), user_id, templates[template_id], now)
        await store.save_mission(mission)
        assigned.append(mission)
    return assigned


async def list_missions(db: AsyncSession, user_id: str, *, clock: Clock = utc_now) -> list[MissionView]:
    """Live missions, refreshing assignments first."""
    now = clock()
    async with unit_of_work(db):
        await _assign(db, user_id, None, now)
    store = GameStore(db)
    templates = await store.list_mission_templates()
    return [
        MissionView(mission=m, template=templates[m.mission_template_id])
        for m in await store.list_missions(user_id)
        if not is_expired(m, now) and m.mission_template_id in templates
    ]


async def claim(
    db: AsyncSession,
    user_id: str,
    mission_id: str,
    *,
    clock: Clock = utc_now,
    locks: KeyedLock | None = None,
) -> MissionClaim:
    locks = locks or get_locks()
    async with locks.hold(resources_key(user_id)):
        async with unit_of_work(db):
            now = clock()
            store = GameStore(db)
            mission = await store.get_mission(mission_id)
            if mission is None or mission.user_id != user_id:
                raise MissionNotFound(mission_id=mission_id)
            if is_expired(mission, now):
                raise MissionNotClaimable("Mission has expired", mission_id=mission_id)
            claimed, ok = claim_mission(mission, now)
            if not ok:
                raise MissionNotClaimable(mission_id=mission_id, status=mission.status.value)

            tpl = await store.get_mission_template(mission.mission_template_id)
            resources = await store.get_resources(user_id, for_update=True)
            resources = resources.credit(CurrencyKind.GOLD, tpl.gold_reward).credit(CurrencyKind.GEM, tpl.gems_reward)

            if tpl.item_rewards:
                templates = await store.list_item_templates(tpl.item_rewards)
                collection = Collection.of(user_id, (), await store.list_items(user_id))
                for template_id in tpl.item_rewards:
                    collection.grant_item(templates[template_id], new_id, now)
                for item in collection.touched_items.values():
                    await store.save_item(item)
                await ingest_event(db, user_id, RequirementType.COLLECT_ITEMS, len(tpl.item_rewards), now=now)

            await store.save_resources(resources)
            await store.save_mission(claimed)

    logger.info("mission claimed user=%s mission=%s gold=%s gems=%s", user_id, mission_id, tpl.gold_reward, tpl.gems_reward)
    return MissionClaim(mission=claimed, gold=tpl.gold_reward, gems=tpl.gems_reward, items=tpl.item_rewards)
