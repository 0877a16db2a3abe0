"""
Row <-> domain mapping over one ``AsyncSession``.

The game cores never see ORM rows. Services read through ``GameStore``,
hand frozen domain records to the pure engines and write the returned
records back through the same store, inside the caller's transaction.
Timestamps are normalized to aware UTC on the way out because sqlite
hands back naive values.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from oden.core.clock import as_utc, utc_now
from oden.core.config import settings
from oden.domain.entities import (
    Banner,
    BannerType,
    BattleAction,
    BattleResult,
    BattleTurn,
    CurrencyKind,
    EnemyType,
    Hero,
    HeroType,
    Item,
    ItemTemplate,
    ItemType,
    LevelUpView,
    Mission,
    MissionStatus,
    MissionTemplate,
    MissionType,
    Outcome,
    PlayerResources,
    Rarity,
    RequirementType,
    ResultKind,
    Rewards,
    Skill,
    Stage,
    StageDrop,
    SummonCost,
    SummonResult,
    SummonSession,
    Team,
)
from oden.domain.inventory import new_id
from oden.models.battle import BattleResultRow
from oden.models.catalog import (
    BannerRow,
    EnemyTypeRow,
    HeroTypeRow,
    ItemTemplateRow,
    MissionTemplateRow,
    StageRow,
)
from oden.models.collection import HeroRow, ItemRow, TeamRow
from oden.models.gacha import SummonResultRow, SummonSessionRow
from oden.models.mission import MissionRow
from oden.models.user import PlayerResourcesRow, User


def _opt_utc(value: datetime | None) -> datetime | None:
    return as_utc(value) if value is not None else None


# ---------------------------------------------------------------------------
# rows -> domain
# ---------------------------------------------------------------------------

def skill_from_json(raw: dict) -> Skill:
    return Skill(
        id=str(raw["id"]),
        name=str(raw.get("name") or raw["id"]),
        damage_multiplier=float(raw.get("damage_multiplier", 1.0)),
        cooldown=int(raw.get("cooldown", 0)),
        targets_all=bool(raw.get("targets_all", False)),
        description=str(raw.get("description") or ""),
    )


def skill_to_json(skill: Skill) -> dict:
    return {
        "id": skill.id,
        "name": skill.name,
        "damage_multiplier": skill.damage_multiplier,
        "cooldown": skill.cooldown,
        "targets_all": skill.targets_all,
        "description": skill.description,
    }


def _hero_type(row: HeroTypeRow) -> HeroType:
    return HeroType(
        id=row.id,
        name=row.name,
        rarity=Rarity(row.rarity),
        base_hp=row.base_hp,
        base_atk=row.base_atk,
        skills=tuple(skill_from_json(s) for s in row.skills_json or ()),
        description=row.description or "",
        image_url=row.image_url or "",
    )


def _enemy_type(row: EnemyTypeRow) -> EnemyType:
    return EnemyType(
        id=row.id,
        name=row.name,
        hp=row.hp,
        atk=row.atk,
        skills=tuple(skill_from_json(s) for s in row.skills_json or ()),
        description=row.description or "",
    )


def _item_template(row: ItemTemplateRow) -> ItemTemplate:
    return ItemTemplate(
        id=row.id,
        name=row.name,
        type=ItemType(row.type),
        rarity=Rarity(row.rarity),
        description=row.description or "",
        image_url=row.image_url or "",
        slot=row.slot,
        atk_bonus=row.atk_bonus or 0,
        hp_bonus=row.hp_bonus or 0,
        effect=row.effect,
        effect_value=row.effect_value or 0,
    )


def _stage(row: StageRow) -> Stage:
    return Stage(
        id=row.id,
        name=row.name,
        enemy_type_ids=tuple(row.enemy_type_ids),
        gold_reward=row.gold_reward or 0,
        exp_reward=row.exp_reward or 0,
        drops=tuple(
            StageDrop(item_template_id=d["item_template_id"], chance=float(d["chance"]))
            for d in row.drops_json or ()
        ),
        description=row.description or "",
    )


def _banner(row: BannerRow) -> Banner:
    return Banner(
        id=row.id,
        name=row.name,
        type=BannerType(row.type),
        description=row.description or "",
        image_url=row.image_url or "",
        result_kind=ResultKind(row.result_kind),
        rates={Rarity(k): float(v) for k, v in (row.rates_json or {}).items()},
        featured_rate=row.featured_rate or 0.0,
        guarantee_threshold=row.guarantee_threshold,
        featured_heroes=frozenset(row.featured_heroes or ()),
        featured_items=frozenset(row.featured_items or ()),
        hero_pool=tuple(row.hero_pool) if row.hero_pool is not None else None,
        item_pool=tuple(row.item_pool) if row.item_pool is not None else None,
        cost=SummonCost(
            currency=CurrencyKind(row.cost_currency),
            single=row.cost_single,
            ten=row.cost_ten,
        ),
        has_daily_free_summon=bool(row.has_daily_free_summon),
        lost_featured_grants_guarantee=bool(row.lost_featured_grants_guarantee),
        start_time=as_utc(row.start_time),
        end_time=_opt_utc(row.end_time),
    )


def _mission_template(row: MissionTemplateRow) -> MissionTemplate:
    return MissionTemplate(
        id=row.id,
        title=row.title,
        description=row.description or "",
        type=MissionType(row.type),
        requirement_type=RequirementType(row.requirement_type),
        target_value=row.target_value,
        target_id=row.target_id,
        gold_reward=row.gold_reward or 0,
        gems_reward=row.gems_reward or 0,
        experience_reward=row.experience_reward or 0,
        item_rewards=tuple(row.item_rewards or ()),
    )


def _hero(row: HeroRow) -> Hero:
    return Hero(
        id=row.id,
        user_id=row.user_id,
        hero_type_id=row.hero_type_id,
        level=row.level,
        experience=row.experience,
        created_at=_opt_utc(row.created_at),
    )


def _item(row: ItemRow) -> Item:
    return Item(
        id=row.id,
        user_id=row.user_id,
        item_template_id=row.item_template_id,
        quantity=row.quantity,
        acquired_at=_opt_utc(row.acquired_at),
        equipped_to_hero_id=row.equipped_to_hero_id,
    )


def _team(row: TeamRow) -> Team:
    return Team(
        id=row.id,
        user_id=row.user_id,
        slots=tuple(row.slots),
        created_at=_opt_utc(row.created_at),
        updated_at=_opt_utc(row.updated_at),
    )


def _resources(row: PlayerResourcesRow) -> PlayerResources:
    return PlayerResources(
        user_id=row.user_id,
        gold=row.gold,
        gems=row.gems,
        summon_tickets=row.summon_tickets,
        special_tickets=row.special_tickets,
        last_idle_claim=_opt_utc(row.last_idle_claim),
    )


def _session(row: SummonSessionRow) -> SummonSession:
    return SummonSession(
        id=row.id,
        user_id=row.user_id,
        banner_id=row.banner_id,
        pull_count=row.pull_count,
        last_top_rarity_at=row.last_top_rarity_at,
        has_guarantee=bool(row.has_guarantee),
        last_free_summon_at=_opt_utc(row.last_free_summon_at),
    )


def _mission(row: MissionRow) -> Mission:
    return Mission(
        id=row.id,
        user_id=row.user_id,
        mission_template_id=row.mission_template_id,
        status=MissionStatus(row.status),
        current_value=row.current_value,
        assigned_at=_opt_utc(row.assigned_at),
        completed_at=_opt_utc(row.completed_at),
        claimed_at=_opt_utc(row.claimed_at),
        expires_at=_opt_utc(row.expires_at),
    )


def battle_log_to_json(turns: Iterable[BattleTurn]) -> list[dict]:
    return [
        {
            "turn": t.turn,
            "actions": [
                {
                    "actor": a.actor,
                    "target": a.target,
                    "skill_used": a.skill_used,
                    "damage_dealt": a.damage_dealt,
                    "target_hp_remaining": a.target_hp_remaining,
                }
                for a in t.actions
            ],
        }
        for t in turns
    ]


def battle_log_from_json(raw: list | None) -> tuple[BattleTurn, ...]:
    return tuple(
        BattleTurn(turn=int(t["turn"]), actions=tuple(BattleAction(**a) for a in t.get("actions", ())))
        for t in raw or ()
    )


def _battle_result(row: BattleResultRow) -> BattleResult:
    return BattleResult(
        id=row.id,
        user_id=row.user_id,
        team_id=row.team_id,
        stage_id=row.stage_id,
        result=Outcome(row.result),
        battle_log=battle_log_from_json(row.battle_log),
        rewards=Rewards.from_json(row.rewards_json),
        created_at=as_utc(row.created_at),
        level_ups=tuple(LevelUpView(**lu) for lu in row.level_ups or ()),
    )


# ---------------------------------------------------------------------------
# catalog domain -> rows (seeding)
# ---------------------------------------------------------------------------

def _hero_type_row(t: HeroType) -> HeroTypeRow:
    return HeroTypeRow(
        id=t.id, name=t.name, rarity=t.rarity.value, base_hp=t.base_hp, base_atk=t.base_atk,
        skills_json=[skill_to_json(s) for s in t.skills], description=t.description, image_url=t.image_url,
    )


def _enemy_type_row(t: EnemyType) -> EnemyTypeRow:
    return EnemyTypeRow(
        id=t.id, name=t.name, hp=t.hp, atk=t.atk,
        skills_json=[skill_to_json(s) for s in t.skills], description=t.description,
    )


def _item_template_row(t: ItemTemplate) -> ItemTemplateRow:
    return ItemTemplateRow(
        id=t.id, name=t.name, type=t.type.value, rarity=t.rarity.value, description=t.description,
        image_url=t.image_url, slot=t.slot, atk_bonus=t.atk_bonus, hp_bonus=t.hp_bonus,
        effect=t.effect, effect_value=t.effect_value,
    )


def _stage_row(s: Stage) -> StageRow:
    return StageRow(
        id=s.id, name=s.name, enemy_type_ids=list(s.enemy_type_ids), gold_reward=s.gold_reward,
        exp_reward=s.exp_reward, description=s.description,
        drops_json=[{"item_template_id": d.item_template_id, "chance": d.chance} for d in s.drops],
    )


def _banner_row(b: Banner) -> BannerRow:
    return BannerRow(
        id=b.id, name=b.name, type=b.type.value, description=b.description, image_url=b.image_url,
        result_kind=b.result_kind.value,
        rates_json={r.value: rate for r, rate in b.rates.items()},
        featured_rate=b.featured_rate,
        guarantee_threshold=b.guarantee_threshold,
        featured_heroes=sorted(b.featured_heroes),
        featured_items=sorted(b.featured_items),
        hero_pool=list(b.hero_pool) if b.hero_pool is not None else None,
        item_pool=list(b.item_pool) if b.item_pool is not None else None,
        cost_currency=b.cost.currency.value, cost_single=b.cost.single, cost_ten=b.cost.ten,
        has_daily_free_summon=b.has_daily_free_summon,
        lost_featured_grants_guarantee=b.lost_featured_grants_guarantee,
        start_time=b.start_time, end_time=b.end_time,
    )


def _mission_template_row(t: MissionTemplate) -> MissionTemplateRow:
    return MissionTemplateRow(
        id=t.id, title=t.title, description=t.description, type=t.type.value,
        requirement_type=t.requirement_type.value, target_value=t.target_value, target_id=t.target_id,
        gold_reward=t.gold_reward, gems_reward=t.gems_reward, experience_reward=t.experience_reward,
        item_rewards=list(t.item_rewards),
    )


_TEMPLATE_ROWS = {
    HeroType: _hero_type_row,
    EnemyType: _enemy_type_row,
    ItemTemplate: _item_template_row,
    Stage: _stage_row,
    Banner: _banner_row,
    MissionTemplate: _mission_template_row,
}


class GameStore:
    def __init__(self, db: AsyncSession, starting_gold: int | None = None, starting_gems: int | None = None):
        self.db = db
        self.starting_gold = settings.STARTING_GOLD if starting_gold is None else starting_gold
        self.starting_gems = settings.STARTING_GEMS if starting_gems is None else starting_gems

    # -- catalog ----------------------------------------------------------

    async def put_template(self, template) -> None:
        await self.db.merge(_TEMPLATE_ROWS[type(template)](template))

    async def get_banner(self, banner_id: str) -> Banner | None:
        row = await self.db.get(BannerRow, banner_id)
        return _banner(row) if row else None

    async def list_banners(self) -> list[Banner]:
        rows = (await self.db.execute(select(BannerRow).order_by(BannerRow.id))).scalars().all()
        return [_banner(r) for r in rows]

    async def get_hero_type(self, hero_type_id: str) -> HeroType | None:
        row = await self.db.get(HeroTypeRow, hero_type_id)
        return _hero_type(row) if row else None

    async def list_hero_types(self, ids: Iterable[str] | None = None) -> dict[str, HeroType]:
        q = select(HeroTypeRow)
        if ids is not None:
            q = q.where(HeroTypeRow.id.in_(list(ids)))
        rows = (await self.db.execute(q)).scalars().all()
        return {r.id: _hero_type(r) for r in rows}

    async def get_item_template(self, template_id: str) -> ItemTemplate | None:
        row = await self.db.get(ItemTemplateRow, template_id)
        return _item_template(row) if row else None

    async def list_item_templates(self, ids: Iterable[str] | None = None) -> dict[str, ItemTemplate]:
        q = select(ItemTemplateRow)
        if ids is not None:
            q = q.where(ItemTemplateRow.id.in_(list(ids)))
        rows = (await self.db.execute(q)).scalars().all()
        return {r.id: _item_template(r) for r in rows}

    async def get_stage(self, stage_id: str) -> Stage | None:
        row = await self.db.get(StageRow, stage_id)
        return _stage(row) if row else None

    async def get_enemy_types(self, ids: Iterable[str]) -> dict[str, EnemyType]:
        rows = (await self.db.execute(select(EnemyTypeRow).where(EnemyTypeRow.id.in_(list(ids))))).scalars().all()
        return {r.id: _enemy_type(r) for r in rows}

    async def get_mission_template(self, template_id: str) -> MissionTemplate | None:
        row = await self.db.get(MissionTemplateRow, template_id)
        return _mission_template(row) if row else None

    async def list_mission_templates(self) -> dict[str, MissionTemplate]:
        rows = (await self.db.execute(select(MissionTemplateRow))).scalars().all()
        return {r.id: _mission_template(r) for r in rows}

    # -- players ----------------------------------------------------------

    async def ensure_user(self, user_id: str) -> None:
        if await self.db.get(User, user_id) is None:
            self.db.add(User(id=user_id, created_at=utc_now()))
            await self.db.flush()

    async def get_resources(self, user_id: str, for_update: bool = False) -> PlayerResources:
        """Balances for ``user_id``; first access opens the account with starting balances."""
        row = await self.db.get(PlayerResourcesRow, user_id, with_for_update=for_update)
        if row is None:
            await self.ensure_user(user_id)
            row = PlayerResourcesRow(
                user_id=user_id,
                gold=self.starting_gold,
                gems=self.starting_gems,
                summon_tickets=0,
                special_tickets=0,
                last_idle_claim=None,
            )
            self.db.add(row)
            await self.db.flush()
        return _resources(row)

    async def save_resources(self, resources: PlayerResources) -> None:
        await self.db.merge(
            PlayerResourcesRow(
                user_id=resources.user_id,
                gold=resources.gold,
                gems=resources.gems,
                summon_tickets=resources.summon_tickets,
                special_tickets=resources.special_tickets,
                last_idle_claim=resources.last_idle_claim,
            )
        )

    async def get_summon_session(self, user_id: str, banner_id: str, for_update: bool = False) -> SummonSession:
        q = select(SummonSessionRow).where(
            SummonSessionRow.user_id == user_id, SummonSessionRow.banner_id == banner_id
        )
        if for_update:
            q = q.with_for_update()
        row = (await self.db.execute(q)).scalar_one_or_none()
        if row is None:
            return SummonSession(user_id=user_id, banner_id=banner_id)
        return _session(row)

    async def save_summon_session(self, session: SummonSession) -> SummonSession:
        if session.id is None:
            session = replace(session, id=new_id())
        await self.db.merge(
            SummonSessionRow(
                id=session.id,
                user_id=session.user_id,
                banner_id=session.banner_id,
                pull_count=session.pull_count,
                last_top_rarity_at=session.last_top_rarity_at,
                has_guarantee=session.has_guarantee,
                last_free_summon_at=session.last_free_summon_at,
            )
        )
        return session

    async def add_summon_results(self, results: Iterable[SummonResult]) -> None:
        for r in results:
            self.db.add(
                SummonResultRow(
                    id=r.id,
                    user_id=r.user_id,
                    banner_id=r.banner_id,
                    result_type=r.result_type.value,
                    result_id=r.result_id,
                    rarity=r.rarity.value,
                    is_featured=r.is_featured,
                    is_pity_break=r.is_pity_break,
                    pull_number=r.pull_number,
                    timestamp=r.timestamp,
                )
            )

    async def list_summon_results(self, user_id: str, banner_id: str | None = None) -> list[SummonResult]:
        q = select(SummonResultRow).where(SummonResultRow.user_id == user_id)
        if banner_id is not None:
            q = q.where(SummonResultRow.banner_id == banner_id)
        rows = (await self.db.execute(q.order_by(SummonResultRow.banner_id, SummonResultRow.pull_number))).scalars().all()
        return [
            SummonResult(
                id=r.id,
                user_id=r.user_id,
                banner_id=r.banner_id,
                result_type=ResultKind(r.result_type),
                result_id=r.result_id,
                rarity=Rarity(r.rarity),
                is_featured=r.is_featured,
                is_pity_break=r.is_pity_break,
                pull_number=r.pull_number,
                timestamp=as_utc(r.timestamp),
            )
            for r in rows
        ]

    # -- collection -------------------------------------------------------

    async def get_hero(self, hero_id: str) -> Hero | None:
        row = await self.db.get(HeroRow, hero_id)
        return _hero(row) if row else None

    async def list_heroes(self, user_id: str) -> list[Hero]:
        q = select(HeroRow).where(HeroRow.user_id == user_id).order_by(HeroRow.created_at, HeroRow.id)
        return [_hero(r) for r in (await self.db.execute(q)).scalars().all()]

    async def save_hero(self, hero: Hero) -> None:
        await self.db.merge(
            HeroRow(
                id=hero.id,
                user_id=hero.user_id,
                hero_type_id=hero.hero_type_id,
                level=hero.level,
                experience=hero.experience,
                created_at=hero.created_at or utc_now(),
            )
        )

    async def list_items(self, user_id: str) -> list[Item]:
        q = select(ItemRow).where(ItemRow.user_id == user_id).order_by(ItemRow.acquired_at, ItemRow.id)
        return [_item(r) for r in (await self.db.execute(q)).scalars().all()]

    async def save_item(self, item: Item) -> None:
        await self.db.merge(
            ItemRow(
                id=item.id,
                user_id=item.user_id,
                item_template_id=item.item_template_id,
                quantity=item.quantity,
                equipped_to_hero_id=item.equipped_to_hero_id,
                acquired_at=item.acquired_at or utc_now(),
            )
        )

    async def get_team(self, team_id: str) -> Team | None:
        row = await self.db.get(TeamRow, team_id)
        return _team(row) if row else None

    async def save_team(self, team: Team) -> None:
        now = utc_now()
        await self.db.merge(
            TeamRow(
                id=team.id,
                user_id=team.user_id,
                slots=list(team.slots),
                created_at=team.created_at or now,
                updated_at=team.updated_at or now,
            )
        )

    # -- battles / missions -----------------------------------------------

    async def add_battle_result(self, result: BattleResult) -> None:
        self.db.add(
            BattleResultRow(
                id=result.id,
                user_id=result.user_id,
                team_id=result.team_id,
                stage_id=result.stage_id,
                result=result.result.value,
                battle_log=battle_log_to_json(result.battle_log),
                rewards_json=result.rewards.to_json(),
                level_ups=[
                    {"hero_id": lu.hero_id, "old_level": lu.old_level, "new_level": lu.new_level}
                    for lu in result.level_ups
                ],
                created_at=result.created_at,
            )
        )

    async def get_battle_result(self, battle_id: str) -> BattleResult | None:
        row = await self.db.get(BattleResultRow, battle_id)
        return _battle_result(row) if row else None

    async def get_mission(self, mission_id: str) -> Mission | None:
        row = await self.db.get(MissionRow, mission_id)
        return _mission(row) if row else None

    async def list_missions(self, user_id: str) -> list[Mission]:
        q = select(MissionRow).where(MissionRow.user_id == user_id).order_by(MissionRow.assigned_at, MissionRow.id)
        return [_mission(r) for r in (await self.db.execute(q)).scalars().all()]

    async def save_mission(self, mission: Mission) -> None:
        await self.db.merge(
            MissionRow(
                id=mission.id,
                user_id=mission.user_id,
                mission_template_id=mission.mission_template_id,
                status=mission.status.value,
                current_value=mission.current_value,
                assigned_at=mission.assigned_at or utc_now(),
                completed_at=mission.completed_at,
                claimed_at=mission.claimed_at,
                expires_at=mission.expires_at,
            )
        )
