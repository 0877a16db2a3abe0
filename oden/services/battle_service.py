from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from oden.core.clock import Clock, utc_now
from oden.core.config import settings
from oden.core.db import unit_of_work
from oden.core.locks import KeyedLock, get_locks, resources_key
from oden.core.rng import RngFactory, default_rng
from oden.domain import battle
from oden.domain.combat import POLICIES
from oden.domain.entities import BattleResult, CurrencyKind, RequirementType
from oden.domain.errors import TeamNotFound
from oden.services import mission_service
from oden.services.store import GameStore

logger = logging.getLogger(__name__)


async def resolve_stage(
    db: AsyncSession,
    user_id: str,
    team_id: str,
    stage_id: str,
    *,
    rng_factory: RngFactory = default_rng,
    clock: Clock = utc_now,
    locks: KeyedLock | None = None,
) -> BattleResult:
    """Fight ``stage_id`` with ``team_id`` and persist everything it earned."""
    locks = locks or get_locks()
    store = GameStore(db)

    async with locks.hold(resources_key(user_id)):
        async with unit_of_work(db):
            now = clock()
            team = await store.get_team(team_id)
            if team is None:
                raise TeamNotFound(team_id=team_id)
            heroes = {h.id: h for h in await store.list_heroes(user_id)}
            stage = await store.get_stage(stage_id)
            enemy_types = await store.get_enemy_types(stage.enemy_type_ids) if stage else {}
            drop_ids = [d.item_template_id for d in stage.drops] if stage else []

            outcome = battle.resolve_stage(
                user_id=user_id,
                team=team,
                heroes=heroes,
                hero_types=await store.list_hero_types({h.hero_type_id for h in heroes.values()}),
                stage=stage,
                enemy_types=enemy_types,
                rng=rng_factory(),
                now=now,
                item_templates=await store.list_item_templates(drop_ids) if drop_ids else {},
                owned_items=await store.list_items(user_id) if drop_ids else (),
                policy=POLICIES.get(settings.BATTLE_POLICY),
                max_turns=settings.BATTLE_MAX_TURNS,
                exp_split=settings.BATTLE_EXP_SPLIT,
            )
            result = outcome.result

            for hero in outcome.heroes:
                await store.save_hero(hero)
            for item in outcome.items:
                await store.save_item(item)
            if result.rewards.gold:
                resources = await store.get_resources(user_id, for_update=True)
                await store.save_resources(resources.credit(CurrencyKind.GOLD, result.rewards.gold))
            await store.add_battle_result(result)

            await mission_service.ingest_event(db, user_id, RequirementType.COMPLETE_BATTLES, 1, stage_id, now)
            await mission_service.ingest_event(db, user_id, RequirementType.KILL_ENEMIES, outcome.report.enemies_defeated, stage_id, now)
            if outcome.victory:
                await mission_service.ingest_event(db, user_id, RequirementType.WIN_BATTLES, 1, stage_id, now)
            levels = sum(lu.new_level - lu.old_level for lu in outcome.level_ups)
            await mission_service.ingest_event(db, user_id, RequirementType.LEVEL_UP_HERO, levels, now=now)
            await mission_service.ingest_event(db, user_id, RequirementType.COLLECT_ITEMS, len(result.rewards.items), now=now)

    logger.info(
        "battle user=%s team=%s stage=%s result=%s turns=%d gold=%d",
        user_id, team_id, stage_id, result.result.value, len(result.battle_log), result.rewards.gold,
    )
    return result


async def get_battle(db: AsyncSession, user_id: str, battle_id: str) -> BattleResult | None:
    result = await GameStore(db).get_battle_result(battle_id)
    if result is None or result.user_id != user_id:
        return None
    return result
