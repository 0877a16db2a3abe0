from __future__ import annotations

import logging
from typing import Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from oden.core.clock import Clock, utc_now
from oden.core.db import unit_of_work
from oden.domain.entities import Team
from oden.domain.errors import HeroNotOwned, TeamNotFound
from oden.services.store import GameStore

logger = logging.getLogger(__name__)


async def get_team(db: AsyncSession, user_id: str, team_id: str) -> Team:
    team = await GameStore(db).get_team(team_id)
    if team is None or team.user_id != user_id:
        raise TeamNotFound(team_id=team_id)
    return team


async def save_team(
    db: AsyncSession,
    user_id: str,
    team_id: str,
    positions: Mapping,
    *,
    clock: Clock = utc_now,
) -> Team:
    """Replace every slot of ``team_id``; unmentioned positions become empty.

    A team id already taken by another user reads as not found.
    """
    async with unit_of_work(db):
        now = clock()
        store = GameStore(db)
        existing = await store.get_team(team_id)
        if existing is not None and existing.user_id != user_id:
            raise TeamNotFound(team_id=team_id)

        team = Team.from_positions(
            team_id,
            user_id,
            positions,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        for hero_id in team.hero_ids():
            hero = await store.get_hero(hero_id)
            if hero is None or hero.user_id != user_id:
                raise HeroNotOwned(hero_id=hero_id)

        await store.ensure_user(user_id)
        await store.save_team(team)

    logger.info("team saved user=%s team=%s heroes=%d", user_id, team_id, team.count())
    return team
