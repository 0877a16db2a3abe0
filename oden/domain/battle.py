"""
Stage battles: validate the team, run the fight, work out rewards.

Nothing is stored here. ``resolve_stage`` hands back the battle record and
every hero/item record that changed so the service can write them in one
transaction.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, Sequence

from oden.domain.combat import (
    DEFAULT_MAX_TURNS,
    CombatReport,
    Policy,
    enemy_combatant,
    hero_combatant,
    simulate,
)
from oden.domain.entities import (
    BattleResult,
    EnemyType,
    Hero,
    HeroType,
    Item,
    ItemTemplate,
    LevelUpView,
    Outcome,
    Rewards,
    Stage,
    Team,
)
from oden.domain.errors import EmptyTeam, HeroNotOwned, InvalidCatalog, StageNotFound, TeamNotFound
from oden.domain.inventory import Collection, IdFactory, new_id
from oden.domain.progression import LevelUp, add_experience

SPLIT_ALL = "all"
SPLIT_SURVIVORS = "survivors"


@dataclass(frozen=True)
class BattleOutcome:
    result: BattleResult
    report: CombatReport
    heroes: tuple[Hero, ...] = ()
    items: tuple[Item, ...] = ()
    level_ups: tuple[LevelUp, ...] = ()

    @property
    def victory(self) -> bool:
        return self.result.result == Outcome.VICTORY


def split_experience(total: int, hero_ids: Sequence[str]) -> dict[str, int]:
    """Even split, the remainder going one point each to the earliest ids."""
    if not hero_ids or total <= 0:
        return {}
    share, remainder = divmod(int(total), len(hero_ids))
    return {hero_id: share + (1 if idx < remainder else 0) for idx, hero_id in enumerate(hero_ids)}


def roll_drops(stage: Stage, rng: random.Random) -> tuple[str, ...]:
    return tuple(drop.item_template_id for drop in stage.drops if rng.random() < drop.chance)


def team_heroes(user_id: str, team: Team, heroes: Mapping[str, Hero]) -> list[tuple[int, Hero]]:
    """Slot heroes in position order. Raises unless every one is the user's."""
    if team.user_id != user_id:
        raise TeamNotFound(team_id=team.id)
    positions = team.positions()
    if not positions:
        raise EmptyTeam(team_id=team.id)
    out = []
    for position, hero_id in sorted(positions.items()):
        hero = heroes.get(hero_id)
        if hero is None or hero.user_id != user_id:
            raise HeroNotOwned(hero_id=hero_id)
        out.append((position, hero))
    return out


def apply_experience(
    heroes: Mapping[str, Hero], experience: Mapping[str, int]
) -> list[LevelUp]:
    return [add_experience(heroes[hero_id], amount) for hero_id, amount in experience.items()]


def resolve_stage(
    *,
    user_id: str,
    team: Team,
    heroes: Mapping[str, Hero],
    hero_types: Mapping[str, HeroType],
    stage: Stage | None,
    enemy_types: Mapping[str, EnemyType],
    rng: random.Random,
    now: datetime,
    item_templates: Mapping[str, ItemTemplate] | None = None,
    owned_items: Iterable[Item] = (),
    policy: Policy | None = None,
    max_turns: int = DEFAULT_MAX_TURNS,
    exp_split: str = SPLIT_ALL,
    id_factory: IdFactory = new_id,
) -> BattleOutcome:
    lineup = team_heroes(user_id, team, heroes)
    if stage is None:
        raise StageNotFound()

    missing = [tid for tid in stage.enemy_type_ids if tid not in enemy_types]
    if missing:
        raise InvalidCatalog(f"Stage references unknown enemies: {missing}", stage_id=stage.id)

    side = [hero_combatant(hero, hero_types[hero.hero_type_id], pos) for pos, hero in lineup]
    foes = [enemy_combatant(enemy_types[tid], pos) for pos, tid in enumerate(stage.enemy_type_ids, start=1)]
    report = simulate(side, foes, rng=rng, policy=policy, max_turns=max_turns)

    rewards = Rewards()
    level_ups: list[LevelUp] = []
    items: tuple[Item, ...] = ()
    if report.outcome == Outcome.VICTORY:
        if exp_split == SPLIT_SURVIVORS:
            alive = set(report.survivors)
            receivers = [hero.id for _, hero in lineup if hero.id in alive]
        else:
            receivers = [hero.id for _, hero in lineup]
        experience = split_experience(stage.exp_reward, receivers)
        drops = roll_drops(stage, rng)
        rewards = Rewards(gold=stage.gold_reward, experience=experience, items=drops)
        level_ups = apply_experience(heroes, experience)

        if drops and item_templates is not None:
            collection = Collection.of(user_id, (), owned_items)
            for template_id in drops:
                collection.grant_item(item_templates[template_id], id_factory, now)
            items = tuple(collection.touched_items.values())

    result = BattleResult(
        id=id_factory(),
        user_id=user_id,
        team_id=team.id,
        stage_id=stage.id,
        result=report.outcome,
        battle_log=report.turns,
        rewards=rewards,
        created_at=now,
        level_ups=tuple(
            LevelUpView(hero_id=lu.hero.id, old_level=lu.old_level, new_level=lu.new_level)
            for lu in level_ups
            if lu.leveled_up
        ),
    )
    return BattleOutcome(
        result=result,
        report=report,
        heroes=tuple(lu.hero for lu in level_ups),
        items=items,
        level_ups=tuple(level_ups),
    )
