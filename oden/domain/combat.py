"""
Deterministic team-vs-enemies combat.

Turn order is fixed: every full turn interleaves living units by ascending
position, team first (T1, E1, T2, E2, ...). Each acting unit asks the
decision policy for a skill and targets, deals ``floor(atk * multiplier)``
to each target and the action is appended to the turn log. The fight stops
the moment a side has nobody standing.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass, field, replace
from typing import Callable, Sequence

from oden.domain.entities import (
    BASIC_ATTACK,
    BattleAction,
    BattleTurn,
    EnemyType,
    Hero,
    HeroType,
    Outcome,
    Skill,
)
from oden.domain.progression import hero_stats

TEAM = "team"
ENEMY = "enemy"
DEFAULT_MAX_TURNS = 100


@dataclass
class Combatant:
    """Mutable per-battle copy of a unit. Templates are never touched."""

    id: str
    name: str
    side: str
    position: int
    max_hp: int
    hp: int
    atk: int
    skills: tuple[Skill, ...] = ()
    cooldowns: dict[str, int] = field(default_factory=dict)
    # skills put on cooldown during the current turn; they start ticking next turn
    fresh: set[str] = field(default_factory=set, init=False, repr=False)

    @property
    def alive(self) -> bool:
        return self.hp > 0

    def ready_skills(self) -> list[Skill]:
        return [s for s in self.skills if self.cooldowns.get(s.id, 0) <= 0]

    def use(self, skill: Skill) -> None:
        if skill.cooldown > 0:
            self.cooldowns[skill.id] = skill.cooldown
            self.fresh.add(skill.id)

    def take(self, damage: int) -> int:
        self.hp = max(0, self.hp - damage)
        return self.hp

    def tick(self) -> None:
        for skill_id, remaining in self.cooldowns.items():
            if skill_id not in self.fresh and remaining > 0:
                self.cooldowns[skill_id] = remaining - 1
        self.fresh.clear()


def hero_combatant(hero: Hero, hero_type: HeroType, position: int) -> Combatant:
    stats = hero_stats(hero_type, hero.level)
    return Combatant(
        id=hero.id,
        name=hero_type.name,
        side=TEAM,
        position=position,
        max_hp=stats.hp,
        hp=stats.hp,
        atk=stats.atk,
        skills=hero_type.skills or (BASIC_ATTACK,),
    )


def enemy_combatant(enemy_type: EnemyType, position: int) -> Combatant:
    return Combatant(
        id=f"{enemy_type.id}_{position}",
        name=enemy_type.name,
        side=ENEMY,
        position=position,
        max_hp=enemy_type.hp,
        hp=enemy_type.hp,
        atk=enemy_type.atk,
        skills=enemy_type.skills or (BASIC_ATTACK,),
    )


@dataclass(frozen=True)
class Decision:
    skill: Skill | None
    targets: tuple[Combatant, ...] = ()


Policy = Callable[[Combatant, Sequence[Combatant], Sequence[Combatant], "random.Random | None"], Decision]


def default_policy(actor, allies, opponents, rng=None) -> Decision:
    """First ready skill; lowest-HP living opponent, ties to the lowest position."""
    ready = actor.ready_skills()
    living = [o for o in opponents if o.alive]
    if not ready or not living:
        return Decision(None)
    skill = ready[0]
    if skill.targets_all:
        return Decision(skill, tuple(sorted(living, key=lambda u: u.position)))
    target = min(living, key=lambda u: (u.hp, u.position))
    return Decision(skill, (target,))


def random_target_policy(actor, allies, opponents, rng=None) -> Decision:
    """First ready skill; target drawn from ``rng`` among living opponents."""
    ready = actor.ready_skills()
    living = sorted((o for o in opponents if o.alive), key=lambda u: u.position)
    if not ready or not living:
        return Decision(None)
    skill = ready[0]
    if skill.targets_all:
        return Decision(skill, tuple(living))
    return Decision(skill, (rng.choice(living) if rng else living[0],))


POLICIES: dict[str, Policy] = {
    "lowest_hp": default_policy,
    "random": random_target_policy,
}


@dataclass(frozen=True)
class CombatReport:
    outcome: Outcome
    turns: tuple[BattleTurn, ...]
    survivors: tuple[str, ...]
    enemies_defeated: int
    heroes_fallen: int
    finished_by: str | None = None


def _copy(units: Sequence[Combatant]) -> list[Combatant]:
    return sorted((replace(u, cooldowns=dict(u.cooldowns)) for u in units), key=lambda u: u.position)


def _turn_order(team: list[Combatant], enemies: list[Combatant]) -> list[Combatant]:
    heroes = [u for u in team if u.alive]
    foes = [u for u in enemies if u.alive]
    order: list[Combatant] = []
    for idx in range(max(len(heroes), len(foes))):
        if idx < len(heroes):
            order.append(heroes[idx])
        if idx < len(foes):
            order.append(foes[idx])
    return order


def _apply(actor: Combatant, decision: Decision) -> list[BattleAction]:
    targets = [t for t in decision.targets if t.alive]
    if decision.skill is None or not targets:
        return [BattleAction(actor=actor.id, target=None, skill_used=None, damage_dealt=0, target_hp_remaining=None)]

    skill = decision.skill
    actor.use(skill)
    damage = max(0, math.floor(actor.atk * skill.damage_multiplier))
    actions = []
    for target in targets:
        remaining = target.take(damage)
        actions.append(
            BattleAction(
                actor=actor.id,
                target=target.id,
                skill_used=skill.id,
                damage_dealt=damage,
                target_hp_remaining=remaining,
            )
        )
    return actions


def decide_outcome(team_alive: bool, enemies_alive: bool, acting_side: str) -> Outcome:
    if team_alive and not enemies_alive:
        return Outcome.VICTORY
    if enemies_alive and not team_alive:
        return Outcome.DEFEAT
    # both sides wiped by one action: whoever acted takes it
    return Outcome.VICTORY if acting_side == TEAM else Outcome.DEFEAT


def simulate(
    team: Sequence[Combatant],
    enemies: Sequence[Combatant],
    rng: random.Random | None = None,
    policy: Policy | None = None,
    max_turns: int = DEFAULT_MAX_TURNS,
) -> CombatReport:
    """Run the fight to completion and return outcome plus turn log.

    Inputs are copied, so the same arguments always replay the same fight.
    Running out of ``max_turns`` counts as a defeat.
    """
    policy = policy or default_policy
    team = _copy(team)
    enemies = _copy(enemies)

    turns: list[BattleTurn] = []
    outcome: Outcome | None = None
    finished_by: str | None = None

    if not any(u.alive for u in enemies):
        outcome = Outcome.VICTORY
    elif not any(u.alive for u in team):
        outcome = Outcome.DEFEAT

    turn_no = 0
    while outcome is None and turn_no < max_turns:
        turn_no += 1
        actions: list[BattleAction] = []
        for actor in _turn_order(team, enemies):
            if not actor.alive:
                continue
            allies, opponents = (team, enemies) if actor.side == TEAM else (enemies, team)
            actions.extend(_apply(actor, policy(actor, allies, opponents, rng)))

            team_alive = any(u.alive for u in team)
            enemies_alive = any(u.alive for u in enemies)
            if not team_alive or not enemies_alive:
                outcome = decide_outcome(team_alive, enemies_alive, actor.side)
                finished_by = actor.id
                break
        for unit in team + enemies:
            unit.tick()
        turns.append(BattleTurn(turn=turn_no, actions=tuple(actions)))

    if outcome is None:
        outcome = Outcome.DEFEAT

    return CombatReport(
        outcome=outcome,
        turns=tuple(turns),
        survivors=tuple(u.id for u in team if u.alive),
        enemies_defeated=sum(1 for u in enemies if not u.alive),
        heroes_fallen=sum(1 for u in team if not u.alive),
        finished_by=finished_by,
    )
