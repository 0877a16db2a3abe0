from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from oden.core.clock import as_utc
from oden.domain.entities import (
    Hero,
    HeroDetails,
    HeroType,
    Mission,
    MissionStatus,
    MissionTemplate,
    MissionType,
)

EXP_PER_LEVEL = 100
# +10% of base stats per level above 1, kept in tenths to stay in integers
STAT_GROWTH_TENTHS = 1


@dataclass(frozen=True)
class HeroStats:
    hp: int
    atk: int


@dataclass(frozen=True)
class LevelUp:
    hero: Hero
    old_level: int
    new_level: int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


def level_for_experience(experience: int) -> int:
    return 1 + max(0, int(experience)) // EXP_PER_LEVEL


def _scaled(base: int, level: int) -> int:
    return base * (10 + STAT_GROWTH_TENTHS * (level - 1)) // 10


def hero_stats(hero_type: HeroType, level: int) -> HeroStats:
    """HP/ATK for a hero of ``hero_type`` at ``level``. Never persisted."""
    lvl = max(1, int(level))
    return HeroStats(hp=_scaled(hero_type.base_hp, lvl), atk=_scaled(hero_type.base_atk, lvl))


def add_experience(hero: Hero, amount: int) -> LevelUp:
    gain = max(0, int(amount or 0))
    experience = hero.experience + gain
    updated = replace(hero, experience=experience, level=level_for_experience(experience))
    return LevelUp(hero=updated, old_level=hero.level, new_level=updated.level)


def hero_details(hero: Hero, hero_type: HeroType) -> HeroDetails:
    stats = hero_stats(hero_type, hero.level)
    return HeroDetails(
        id=hero.id,
        hero_type_id=hero.hero_type_id,
        name=hero_type.name,
        rarity=hero_type.rarity,
        level=hero.level,
        experience=hero.experience,
        hp=stats.hp,
        atk=stats.atk,
        skills=hero_type.skills,
    )


# ---------------------------------------------------------------------------
# Missions
# ---------------------------------------------------------------------------

def _next_midnight(now: datetime, days: int) -> datetime:
    start = as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)
    return start + timedelta(days=days)


def new_mission(mission_id: str, user_id: str, template: MissionTemplate, now: datetime) -> Mission:
    expires_at = None
    if template.type == MissionType.DAILY:
        expires_at = _next_midnight(now, 1)
    elif template.type == MissionType.WEEKLY:
        expires_at = _next_midnight(now, 7)
    return Mission(
        id=mission_id,
        user_id=user_id,
        mission_template_id=template.id,
        assigned_at=now,
        expires_at=expires_at,
    )


def is_expired(mission: Mission, now: datetime) -> bool:
    if mission.expires_at is None:
        return False
    return as_utc(now) > as_utc(mission.expires_at)


def advance_mission(
    mission: Mission, template: MissionTemplate, delta: int, now: datetime
) -> tuple[Mission, bool]:
    """Add ``delta`` progress. Returns ``(mission, completed_now)``.

    Only ``in_progress`` missions move; anything else comes back untouched.
    """
    if mission.status != MissionStatus.IN_PROGRESS or delta <= 0:
        return mission, False

    value = mission.current_value + delta
    if value >= template.target_value:
        done = replace(
            mission,
            current_value=template.target_value,
            status=MissionStatus.COMPLETED,
            completed_at=now,
        )
        return done, True
    return replace(mission, current_value=value), False


def claim_mission(mission: Mission, now: datetime) -> tuple[Mission, bool]:
    if mission.status != MissionStatus.COMPLETED:
        return mission, False
    return replace(mission, status=MissionStatus.CLAIMED, claimed_at=now), True
