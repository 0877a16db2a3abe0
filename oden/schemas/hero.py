from pydantic import BaseModel, ConfigDict

from oden.domain.entities import ItemType, Rarity


class SkillOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    damage_multiplier: float
    cooldown: int
    targets_all: bool = False
    description: str = ""


class HeroOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    hero_type_id: str
    name: str
    rarity: Rarity
    level: int
    experience: int
    hp: int
    atk: int
    skills: list[SkillOut] = []


class ItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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


class ResourcesOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    gold: int
    gems: int
    summon_tickets: int
    special_tickets: int
