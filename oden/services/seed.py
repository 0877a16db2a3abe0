"""
Load the content catalog from YAML and write it into the template tables.

The file is validated as a whole before anything is written: every banner
must resolve to a non-empty pool at each reachable rarity and every stage,
drop and mission reward must point at a known template.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import yaml
from sqlalchemy.ext.asyncio import AsyncSession

from oden.core.clock import as_utc
from oden.domain.entities import (
    Banner,
    BannerType,
    CurrencyKind,
    EnemyType,
    HeroType,
    ItemTemplate,
    ItemType,
    MissionTemplate,
    MissionType,
    Rarity,
    RequirementType,
    ResultKind,
    Stage,
    StageDrop,
    SummonCost,
)
from oden.domain.errors import InvalidCatalog
from oden.domain.rarity import SummonPool
from oden.services.store import GameStore, skill_from_json

logger = logging.getLogger(__name__)

DEFAULT_CATALOG = Path(__file__).resolve().parents[1] / "content" / "catalog.yaml"


@dataclass
class Catalog:
    hero_types: list[HeroType] = field(default_factory=list)
    enemy_types: list[EnemyType] = field(default_factory=list)
    item_templates: list[ItemTemplate] = field(default_factory=list)
    stages: list[Stage] = field(default_factory=list)
    banners: list[Banner] = field(default_factory=list)
    mission_templates: list[MissionTemplate] = field(default_factory=list)

    def templates(self) -> list:
        # referenced tables first so foreign keys hold on insert
        return [
            *self.hero_types,
            *self.enemy_types,
            *self.item_templates,
            *self.stages,
            *self.banners,
            *self.mission_templates,
        ]


def _dt(raw) -> datetime | None:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return as_utc(raw)
    return as_utc(datetime.fromisoformat(str(raw).replace("Z", "+00:00")))


def _skills(raw) -> tuple:
    return tuple(skill_from_json(s) for s in raw or ())


def _hero_type(d: dict) -> HeroType:
    return HeroType(
        id=d["id"],
        name=d["name"],
        rarity=Rarity(d["rarity"]),
        base_hp=int(d["base_hp"]),
        base_atk=int(d["base_atk"]),
        skills=_skills(d.get("skills")),
        description=d.get("description", ""),
        image_url=d.get("image_url", ""),
    )


def _enemy_type(d: dict) -> EnemyType:
    return EnemyType(
        id=d["id"],
        name=d["name"],
        hp=int(d["hp"]),
        atk=int(d["atk"]),
        skills=_skills(d.get("skills")),
        description=d.get("description", ""),
    )


def _item_template(d: dict) -> ItemTemplate:
    return ItemTemplate(
        id=d["id"],
        name=d["name"],
        type=ItemType(d["type"]),
        rarity=Rarity(d["rarity"]),
        description=d.get("description", ""),
        image_url=d.get("image_url", ""),
        slot=d.get("slot"),
        atk_bonus=int(d.get("atk_bonus", 0)),
        hp_bonus=int(d.get("hp_bonus", 0)),
        effect=d.get("effect"),
        effect_value=int(d.get("effect_value", 0)),
    )


def _stage(d: dict) -> Stage:
    return Stage(
        id=d["id"],
        name=d["name"],
        enemy_type_ids=tuple(d["enemy_type_ids"]),
        gold_reward=int(d.get("gold_reward", 0)),
        exp_reward=int(d.get("exp_reward", 0)),
        drops=tuple(StageDrop(x["item_template_id"], float(x["chance"])) for x in d.get("drops") or ()),
        description=d.get("description", ""),
    )


def _banner(d: dict) -> Banner:
    cost = d["cost"]
    pools = {k: tuple(d[k]) if d.get(k) is not None else None for k in ("hero_pool", "item_pool")}
    return Banner(
        id=d["id"],
        name=d["name"],
        type=BannerType(d.get("type", "standard")),
        description=d.get("description", ""),
        image_url=d.get("image_url", ""),
        result_kind=ResultKind(d.get("result_kind", "hero")),
        rates={Rarity(k): float(v) for k, v in (d.get("rates") or {}).items()},
        featured_rate=float(d.get("featured_rate", 0.0)),
        guarantee_threshold=d.get("guarantee_threshold"),
        featured_heroes=frozenset(d.get("featured_heroes") or ()),
        featured_items=frozenset(d.get("featured_items") or ()),
        cost=SummonCost(CurrencyKind(cost["currency"]), int(cost["single"]), cost.get("ten")),
        has_daily_free_summon=bool(d.get("has_daily_free_summon", False)),
        lost_featured_grants_guarantee=bool(d.get("lost_featured_grants_guarantee", True)),
        start_time=_dt(d["start_time"]),
        end_time=_dt(d.get("end_time")),
        **pools,
    )


def _mission_template(d: dict) -> MissionTemplate:
    return MissionTemplate(
        id=d["id"],
        title=d["title"],
        description=d.get("description", ""),
        type=MissionType(d["type"]),
        requirement_type=RequirementType(d["requirement_type"]),
        target_value=int(d["target_value"]),
        target_id=d.get("target_id"),
        gold_reward=int(d.get("gold_reward", 0)),
        gems_reward=int(d.get("gems_reward", 0)),
        experience_reward=int(d.get("experience_reward", 0)),
        item_rewards=tuple(d.get("item_rewards") or ()),
    )


def parse_catalog(data: dict) -> Catalog:
    data = data or {}
    catalog = Catalog(
        hero_types=[_hero_type(d) for d in data.get("hero_types") or ()],
        enemy_types=[_enemy_type(d) for d in data.get("enemy_types") or ()],
        item_templates=[_item_template(d) for d in data.get("item_templates") or ()],
        stages=[_stage(d) for d in data.get("stages") or ()],
        banners=[_banner(d) for d in data.get("banners") or ()],
        mission_templates=[_mission_template(d) for d in data.get("mission_templates") or ()],
    )
    validate_catalog(catalog)
    return catalog


def validate_catalog(catalog: Catalog) -> None:
    enemies = {e.id for e in catalog.enemy_types}
    items = {i.id for i in catalog.item_templates}
    for stage in catalog.stages:
        missing = [e for e in stage.enemy_type_ids if e not in enemies]
        missing += [d.item_template_id for d in stage.drops if d.item_template_id not in items]
        if missing:
            raise InvalidCatalog(f"Stage {stage.id} references unknown templates: {missing}", stage_id=stage.id)
    for tpl in catalog.mission_templates:
        missing = [i for i in tpl.item_rewards if i not in items]
        if missing:
            raise InvalidCatalog(f"Mission {tpl.id} rewards unknown items: {missing}", mission_template_id=tpl.id)
    for banner in catalog.banners:
        SummonPool.build(banner, catalog.hero_types, catalog.item_templates)


def load_catalog(path: str | Path | None = None) -> Catalog:
    path = Path(path) if path else DEFAULT_CATALOG
    with open(path, "r", encoding="utf-8") as f:
        return parse_catalog(yaml.safe_load(f))


async def seed_catalog(db: AsyncSession, catalog: Catalog) -> int:
    """Upsert every template; safe to run on each start."""
    store = GameStore(db)
    templates = catalog.templates()
    for template in templates:
        await store.put_template(template)
    await db.commit()
    logger.info(
        "catalog seeded heroes=%d enemies=%d items=%d stages=%d banners=%d missions=%d",
        len(catalog.hero_types), len(catalog.enemy_types), len(catalog.item_templates),
        len(catalog.stages), len(catalog.banners), len(catalog.mission_templates),
    )
    return len(templates)
