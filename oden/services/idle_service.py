from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from sqlalchemy.ext.asyncio import AsyncSession

from oden.core.clock import Clock, utc_now
from oden.core.config import settings
from oden.core.db import unit_of_work
from oden.core.locks import KeyedLock, get_locks, resources_key
from oden.domain.battle import apply_experience, split_experience, team_heroes
from oden.domain.entities import CurrencyKind, LevelUpView, RequirementType
from oden.domain.errors import TeamNotFound
from oden.domain.idle import compute_idle_rewards
from oden.services import mission_service
from oden.services.store import GameStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdleClaim:
    minutes: int
    gold: int
    experience: dict[str, int]
    level_ups: tuple[LevelUpView, ...] = ()


async def claim_idle(
    db: AsyncSession,
    user_id: str,
    team_id: str | None = None,
    *,
    clock: Clock = utc_now,
    locks: KeyedLock | None = None,
) -> IdleClaim:
    """Pay out gold (and team experience) accrued since the last claim."""
    locks = locks or get_locks()
    store = GameStore(db)

    async with locks.hold(resources_key(user_id)):
        async with unit_of_work(db):
            now = clock()
            lineup = []
            if team_id is not None:
                team = await store.get_team(team_id)
                if team is None:
                    raise TeamNotFound(team_id=team_id)
                heroes = {h.id: h for h in await store.list_heroes(user_id)}
                lineup = team_heroes(user_id, team, heroes)

            resources = await store.get_resources(user_id, for_update=True)
            rewards = compute_idle_rewards(
                resources.last_idle_claim,
                now,
                settings.IDLE_GOLD_PER_MINUTE,
                settings.IDLE_EXP_PER_MINUTE,
                settings.MAX_IDLE_HOURS,
            )

            experience = split_experience(rewards.experience, [hero.id for _, hero in lineup])
            level_ups = apply_experience({hero.id: hero for _, hero in lineup}, experience)
            for lu in level_ups:
                await store.save_hero(lu.hero)

            resources = resources.credit(CurrencyKind.GOLD, rewards.gold)
            await store.save_resources(replace(resources, last_idle_claim=rewards.claimed_until))

            levels = sum(lu.new_level - lu.old_level for lu in level_ups)
            await mission_service.ingest_event(db, user_id, RequirementType.LEVEL_UP_HERO, levels, now=now)

    logger.info("idle claim user=%s minutes=%d gold=%d", user_id, rewards.minutes, rewards.gold)
    return IdleClaim(
        minutes=rewards.minutes,
        gold=rewards.gold,
        experience=experience,
        level_ups=tuple(
            LevelUpView(hero_id=lu.hero.id, old_level=lu.old_level, new_level=lu.new_level)
            for lu in level_ups
            if lu.leveled_up
        ),
    )


async def preview_idle(db: AsyncSession, user_id: str, *, clock: Clock = utc_now):
    """What ``claim_idle`` would pay right now. Writes nothing beyond opening the account."""
    resources = await GameStore(db).get_resources(user_id)
    await db.commit()
    return compute_idle_rewards(
        resources.last_idle_claim,
        clock(),
        settings.IDLE_GOLD_PER_MINUTE,
        settings.IDLE_EXP_PER_MINUTE,
        settings.MAX_IDLE_HOURS,
    )
