from datetime import datetime
from sqlalchemy import Boolean, DateTime, Float, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from oden.core.db import Base

class HeroTypeRow(Base):
    __tablename__ = "hero_types"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    rarity: Mapped[str] = mapped_column(String(16))
    base_hp: Mapped[int] = mapped_column(Integer)
    base_atk: Mapped[int] = mapped_column(Integer)
    skills_json: Mapped[list] = mapped_column(JSON, default=list)
    description: Mapped[str] = mapped_column(Text, default="")
    image_url: Mapped[str] = mapped_column(String(255), default="")

class EnemyTypeRow(Base):
    __tablename__ = "enemy_types"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    hp: Mapped[int] = mapped_column(Integer)
    atk: Mapped[int] = mapped_column(Integer)
    skills_json: Mapped[list] = mapped_column(JSON, default=list)
    description: Mapped[str] = mapped_column(Text, default="")

class ItemTemplateRow(Base):
    __tablename__ = "item_templates"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    type: Mapped[str] = mapped_column(String(16))  # equipment/consumable/material
    rarity: Mapped[str] = mapped_column(String(16))
    description: Mapped[str] = mapped_column(Text, default="")
    image_url: Mapped[str] = mapped_column(String(255), default="")
    slot: Mapped[str | None] = mapped_column(String(32), nullable=True)
    atk_bonus: Mapped[int] = mapped_column(Integer, default=0)
    hp_bonus: Mapped[int] = mapped_column(Integer, default=0)
    effect: Mapped[str | None] = mapped_column(String(64), nullable=True)
    effect_value: Mapped[int] = mapped_column(Integer, default=0)

class StageRow(Base):
    __tablename__ = "stages"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    enemy_type_ids: Mapped[list] = mapped_column(JSON)  # ordered, 1..5
    gold_reward: Mapped[int] = mapped_column(Integer, default=0)
    exp_reward: Mapped[int] = mapped_column(Integer, default=0)
    drops_json: Mapped[list] = mapped_column(JSON, default=list)  # [{"item_template_id", "chance"}]
    description: Mapped[str] = mapped_column(Text, default="")

class BannerRow(Base):
    __tablename__ = "banners"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    type: Mapped[str] = mapped_column(String(16), default="standard")
    description: Mapped[str] = mapped_column(Text, default="")
    image_url: Mapped[str] = mapped_column(String(255), default="")
    result_kind: Mapped[str] = mapped_column(String(8), default="hero")
    rates_json: Mapped[dict] = mapped_column(JSON)  # {"legendary": 0.04, ...}
    featured_rate: Mapped[float] = mapped_column(Float, default=0.0)
    guarantee_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)
    featured_heroes: Mapped[list] = mapped_column(JSON, default=list)
    featured_items: Mapped[list] = mapped_column(JSON, default=list)
    hero_pool: Mapped[list | None] = mapped_column(JSON, nullable=True)
    item_pool: Mapped[list | None] = mapped_column(JSON, nullable=True)
    cost_currency: Mapped[str] = mapped_column(String(16))
    cost_single: Mapped[int] = mapped_column(Integer)
    cost_ten: Mapped[int | None] = mapped_column(Integer, nullable=True)
    has_daily_free_summon: Mapped[bool] = mapped_column(Boolean, default=False)
    lost_featured_grants_guarantee: Mapped[bool] = mapped_column(Boolean, default=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

class MissionTemplateRow(Base):
    __tablename__ = "mission_templates"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(120))
    description: Mapped[str] = mapped_column(Text, default="")
    type: Mapped[str] = mapped_column(String(16))  # daily/weekly/story/achievement
    requirement_type: Mapped[str] = mapped_column(String(32))
    target_value: Mapped[int] = mapped_column(Integer)
    target_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    gold_reward: Mapped[int] = mapped_column(Integer, default=0)
    gems_reward: Mapped[int] = mapped_column(Integer, default=0)
    experience_reward: Mapped[int] = mapped_column(Integer, default=0)
    item_rewards: Mapped[list] = mapped_column(JSON, default=list)
