from datetime import datetime

from pydantic import BaseModel, ConfigDict

from oden.domain.entities import BannerType, Rarity, ResultKind
from oden.schemas.hero import HeroOut, ItemOut


class SummonIn(BaseModel):
    banner_id: str
    # single | ten | daily_free; checked by the engine so unknown kinds get a typed error
    pull_kind: str = "single"


class BannerOut(BaseModel):
    id: str
    name: str
    type: BannerType
    result_kind: ResultKind
    description: str = ""
    image_url: str = ""
    currency: str
    cost_single: int
    cost_ten: int
    guarantee_threshold: int | None = None
    has_daily_free_summon: bool = False
    start_time: datetime
    end_time: datetime | None = None


class HeroBasicOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    rarity: Rarity
    image_url: str = ""


class RateInfoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    banner_id: str
    legendary_rate: float
    featured_hero_rate: float
    guarantee_threshold: int | None = None
    current_pity: int
    has_guarantee_active: bool
    featured_heroes: list[HeroBasicOut] = []


class SummonResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    banner_id: str
    result_type: ResultKind
    result_id: str
    rarity: Rarity
    is_featured: bool
    is_pity_break: bool
    pull_number: int
    timestamp: datetime


class SummonOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    banner_id: str
    banner_name: str
    results: list[SummonResultOut]
    new_heroes: list[HeroOut] = []
    new_items: list[ItemOut] = []
