"""
Plain data shapes shared by the game cores.

These are storage-agnostic: ``oden.services.store`` maps them to and from
SQLAlchemy rows. Records are frozen; state transitions return new values via
``dataclasses.replace`` so a resolver never mutates what it was handed.
"""
from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Mapping

from oden.core.clock import as_utc
from oden.domain.errors import DuplicateHeroInTeam, InsufficientCurrency, InvalidTeamPosition


class Rarity(str, enum.Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


# highest first; cumulative sampling walks tiers in this order
RARITIES_DESC = (Rarity.LEGENDARY, Rarity.EPIC, Rarity.RARE, Rarity.UNCOMMON, Rarity.COMMON)
LOWEST_RARITY = Rarity.COMMON


class ResultKind(str, enum.Enum):
    HERO = "hero"
    ITEM = "item"


class CurrencyKind(str, enum.Enum):
    GOLD = "gold"
    GEM = "gem"
    SUMMON_TICKET = "summon_ticket"
    SPECIAL_TICKET = "special_ticket"


class PullKind(str, enum.Enum):
    SINGLE = "single"
    TEN = "ten"
    DAILY_FREE = "daily_free"


PULL_COUNTS = {PullKind.SINGLE: 1, PullKind.TEN: 10, PullKind.DAILY_FREE: 1}


class BannerType(str, enum.Enum):
    STANDARD = "standard"
    EVENT = "event"
    SPECIAL = "special"


class ItemType(str, enum.Enum):
    EQUIPMENT = "equipment"
    CONSUMABLE = "consumable"
    MATERIAL = "material"


class Outcome(str, enum.Enum):
    VICTORY = "victory"
    DEFEAT = "defeat"


class MissionType(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    STORY = "story"
    ACHIEVEMENT = "achievement"


class MissionStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CLAIMED = "claimed"


class RequirementType(str, enum.Enum):
    COMPLETE_BATTLES = "complete_battles"
    WIN_BATTLES = "win_battles"
    KILL_ENEMIES = "kill_enemies"
    LEVEL_UP_HERO = "level_up_hero"
    OWN_HEROES = "own_heroes"
    COLLECT_ITEMS = "collect_items"
    SUMMON = "summon"
    SPEND_GOLD = "spend_gold"
    SPEND_GEMS = "spend_gems"


# ---------------------------------------------------------------------------
# Templates (read-only catalog)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Skill:
    id: str
    name: str
    damage_multiplier: float = 1.0
    cooldown: int = 0
    targets_all: bool = False
    description: str = ""


BASIC_ATTACK = Skill(id="basic_attack", name="Attack")


@dataclass(frozen=True)
class HeroType:
    id: str
    name: str
    rarity: Rarity
    base_hp: int
    base_atk: int
    skills: tuple[Skill, ...] = ()
    description: str = ""
    image_url: str = ""


@dataclass(frozen=True)
class EnemyType:
    id: str
    name: str
    hp: int
    atk: int
    skills: tuple[Skill, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class ItemTemplate:
    id: str
    name: str
    type: ItemType
    rarity: Rarity
    description: str = ""
    image_url: str = ""
    slot: str | None = None
    atk_bonus: int = 0
    hp_bonus: int = 0
    effect: str | None = None
    effect_value: int = 0

    @property
    def stackable(self) -> bool:
        return self.type != ItemType.EQUIPMENT


@dataclass(frozen=True)
class StageDrop:
    item_template_id: str
    chance: float


MAX_STAGE_ENEMIES = 5


@dataclass(frozen=True)
class Stage:
    id: str
    name: str
    enemy_type_ids: tuple[str, ...]
    gold_reward: int = 0
    exp_reward: int = 0
    drops: tuple[StageDrop, ...] = ()
    description: str = ""

    def __post_init__(self):
        if not 1 <= len(self.enemy_type_ids) <= MAX_STAGE_ENEMIES:
            raise ValueError(f"Stage {self.id} must list 1..{MAX_STAGE_ENEMIES} enemies")


@dataclass(frozen=True)
class SummonCost:
    currency: CurrencyKind
    single: int
    ten: int | None = None

    def for_pull(self, kind: PullKind) -> int:
        if kind == PullKind.DAILY_FREE:
            return 0
        if kind == PullKind.TEN:
            return self.ten if self.ten is not None else self.single * 10
        return self.single


@dataclass(frozen=True, eq=False)
class Banner:
    id: str
    name: str
    rates: Mapping[Rarity, float]
    cost: SummonCost
    start_time: datetime
    end_time: datetime | None = None
    featured_rate: float = 0.0
    guarantee_threshold: int | None = None
    featured_heroes: frozenset[str] = frozenset()
    featured_items: frozenset[str] = frozenset()
    hero_pool: tuple[str, ...] | None = None
    item_pool: tuple[str, ...] | None = None
    result_kind: ResultKind = ResultKind.HERO
    has_daily_free_summon: bool = False
    lost_featured_grants_guarantee: bool = True
    type: BannerType = BannerType.STANDARD
    description: str = ""
    image_url: str = ""

    def is_active(self, now: datetime) -> bool:
        if now < self.start_time:
            return False
        if self.end_time is not None and now >= self.end_time:
            return False
        return True

    @property
    def top_rarity(self) -> Rarity | None:
        for rarity in RARITIES_DESC:
            if rarity in self.rates:
                return rarity
        return None

    @property
    def top_rate(self) -> float:
        top = self.top_rarity
        base = self.rates.get(top, 0.0) if top else 0.0
        return base + self.featured_rate

    @property
    def featured_ids(self) -> frozenset[str]:
        if self.result_kind == ResultKind.HERO:
            return self.featured_heroes
        return self.featured_items

    @property
    def restricted_pool(self) -> tuple[str, ...] | None:
        if self.result_kind == ResultKind.HERO:
            return self.hero_pool
        return self.item_pool


# ---------------------------------------------------------------------------
# Player state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Hero:
    id: str
    user_id: str
    hero_type_id: str
    level: int = 1
    experience: int = 0
    created_at: datetime | None = None


@dataclass(frozen=True)
class Item:
    id: str
    user_id: str
    item_template_id: str
    quantity: int = 1
    acquired_at: datetime | None = None
    equipped_to_hero_id: str | None = None


_BALANCE_FIELDS = {
    CurrencyKind.GOLD: "gold",
    CurrencyKind.GEM: "gems",
    CurrencyKind.SUMMON_TICKET: "summon_tickets",
    CurrencyKind.SPECIAL_TICKET: "special_tickets",
}


@dataclass(frozen=True)
class PlayerResources:
    user_id: str
    gold: int = 0
    gems: int = 0
    summon_tickets: int = 0
    special_tickets: int = 0
    last_idle_claim: datetime | None = None

    def balance(self, kind: CurrencyKind) -> int:
        return getattr(self, _BALANCE_FIELDS[CurrencyKind(kind)])

    def debit(self, kind: CurrencyKind, amount: int) -> "PlayerResources":
        if amount < 0:
            raise ValueError("Debit amount must be non-negative")
        have = self.balance(kind)
        if have < amount:
            raise InsufficientCurrency(currency=CurrencyKind(kind).value, required=amount, available=have)
        return replace(self, **{_BALANCE_FIELDS[CurrencyKind(kind)]: have - amount})

    def credit(self, kind: CurrencyKind, amount: int) -> "PlayerResources":
        if amount < 0:
            raise ValueError("Credit amount must be non-negative")
        return replace(self, **{_BALANCE_FIELDS[CurrencyKind(kind)]: self.balance(kind) + amount})


@dataclass(frozen=True)
class SummonSession:
    user_id: str
    banner_id: str
    pull_count: int = 0
    last_top_rarity_at: int = 0
    has_guarantee: bool = False
    last_free_summon_at: datetime | None = None
    id: str | None = None

    @property
    def pity(self) -> int:
        """Pulls since the last top-rarity hit (all pulls if never hit)."""
        return self.pull_count - self.last_top_rarity_at

    def can_claim_free_summon(self, now: datetime) -> bool:
        if self.last_free_summon_at is None:
            return True
        # calendar days compared in UTC
        return as_utc(self.last_free_summon_at).date() < as_utc(now).date()

    def claim_free_summon(self, now: datetime) -> "SummonSession":
        return replace(self, last_free_summon_at=now)


@dataclass(frozen=True)
class SummonResult:
    id: str
    user_id: str
    banner_id: str
    result_type: ResultKind
    result_id: str
    rarity: Rarity
    is_featured: bool
    is_pity_break: bool
    pull_number: int
    timestamp: datetime


@dataclass(frozen=True)
class HeroBasicInfo:
    id: str
    name: str
    rarity: Rarity
    image_url: str = ""


@dataclass(frozen=True)
class SummonRateInfo:
    banner_id: str
    legendary_rate: float
    featured_hero_rate: float
    guarantee_threshold: int | None
    current_pity: int
    has_guarantee_active: bool
    featured_heroes: tuple[HeroBasicInfo, ...] = ()


@dataclass(frozen=True)
class HeroDetails:
    id: str
    hero_type_id: str
    name: str
    rarity: Rarity
    level: int
    experience: int
    hp: int
    atk: int
    skills: tuple[Skill, ...] = ()


@dataclass(frozen=True)
class ItemDetails:
    id: str
    item_template_id: str
    quantity: int
    name: str
    type: ItemType
    rarity: Rarity
    description: str = ""
    slot: str | None = None
    atk_bonus: int = 0
    hp_bonus: int = 0
    effect: str | None = None
    effect_value: int = 0


@dataclass(frozen=True)
class SummonMultiResult:
    banner_id: str
    banner_name: str
    results: tuple[SummonResult, ...]
    new_heroes: tuple[HeroDetails, ...] = ()
    new_items: tuple[ItemDetails, ...] = ()


TEAM_SIZE = 5


@dataclass(frozen=True)
class Team:
    """Five ordered slots; ``slots[0]`` is position 1."""

    id: str
    user_id: str
    slots: tuple[str | None, ...] = (None,) * TEAM_SIZE
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        if len(self.slots) != TEAM_SIZE:
            raise InvalidTeamPosition(f"Team must have exactly {TEAM_SIZE} slots")
        seen = set()
        for hero_id in self.slots:
            if hero_id is None:
                continue
            if hero_id in seen:
                raise DuplicateHeroInTeam(hero_id=hero_id)
            seen.add(hero_id)

    @classmethod
    def from_positions(cls, team_id: str, user_id: str, positions: Mapping[int, str | None], **kw) -> "Team":
        slots: list[str | None] = [None] * TEAM_SIZE
        for raw, hero_id in positions.items():
            try:
                position = int(raw)
            except (TypeError, ValueError):
                raise InvalidTeamPosition(position=raw) from None
            _check_position(position)
            slots[position - 1] = hero_id or None
        return cls(id=team_id, user_id=user_id, slots=tuple(slots), **kw)

    def hero_at(self, position: int) -> str | None:
        _check_position(position)
        return self.slots[position - 1]

    def assign(self, position: int, hero_id: str | None) -> "Team":
        _check_position(position)
        if hero_id is not None:
            for idx, current in enumerate(self.slots, start=1):
                if current == hero_id and idx != position:
                    raise DuplicateHeroInTeam(hero_id=hero_id, position=idx)
        slots = list(self.slots)
        slots[position - 1] = hero_id
        return replace(self, slots=tuple(slots))

    def positions(self) -> dict[int, str]:
        return {idx: hero_id for idx, hero_id in enumerate(self.slots, start=1) if hero_id}

    def hero_ids(self) -> list[str]:
        return [hero_id for hero_id in self.slots if hero_id]

    def count(self) -> int:
        return len(self.hero_ids())


def _check_position(position: int) -> None:
    if not isinstance(position, int) or isinstance(position, bool) or not 1 <= position <= TEAM_SIZE:
        raise InvalidTeamPosition(position=position)


# ---------------------------------------------------------------------------
# Battle records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BattleAction:
    actor: str
    target: str | None
    skill_used: str | None
    damage_dealt: int
    target_hp_remaining: int | None


@dataclass(frozen=True)
class BattleTurn:
    turn: int
    actions: tuple[BattleAction, ...]


@dataclass(frozen=True)
class Rewards:
    gold: int = 0
    experience: Mapping[str, int] = field(default_factory=dict)
    items: tuple[str, ...] = ()

    def to_json(self) -> str:
        return json.dumps({"gold": self.gold, "experience": dict(self.experience), "items": list(self.items)})

    @classmethod
    def from_json(cls, raw: str | None) -> "Rewards":
        if not raw:
            return cls()
        data = json.loads(raw)
        return cls(
            gold=int(data.get("gold", 0)),
            experience={k: int(v) for k, v in (data.get("experience") or {}).items()},
            items=tuple(data.get("items") or ()),
        )


@dataclass(frozen=True)
class LevelUpView:
    hero_id: str
    old_level: int
    new_level: int


@dataclass(frozen=True)
class BattleResult:
    id: str
    user_id: str
    team_id: str
    stage_id: str
    result: Outcome
    battle_log: tuple[BattleTurn, ...]
    rewards: Rewards
    created_at: datetime
    level_ups: tuple[LevelUpView, ...] = ()


# ---------------------------------------------------------------------------
# Missions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MissionTemplate:
    id: str
    title: str
    type: MissionType
    requirement_type: RequirementType
    target_value: int
    description: str = ""
    target_id: str | None = None
    gold_reward: int = 0
    gems_reward: int = 0
    experience_reward: int = 0
    item_rewards: tuple[str, ...] = ()


@dataclass(frozen=True)
class Mission:
    id: str
    user_id: str
    mission_template_id: str
    status: MissionStatus = MissionStatus.IN_PROGRESS
    current_value: int = 0
    assigned_at: datetime | None = None
    completed_at: datetime | None = None
    claimed_at: datetime | None = None
    expires_at: datetime | None = None
