from datetime import datetime

from pydantic import BaseModel, ConfigDict

from oden.domain.entities import Outcome


class BattleIn(BaseModel):
    team_id: str
    stage_id: str


class BattleActionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    actor: str
    target: str | None = None
    skill_used: str | None = None
    damage_dealt: int
    target_hp_remaining: int | None = None


class BattleTurnOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    turn: int
    actions: list[BattleActionOut]


class RewardsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    gold: int = 0
    experience: dict[str, int] = {}
    items: list[str] = []


class LevelUpOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hero_id: str
    old_level: int
    new_level: int


class BattleOut(BaseModel):
    battle_id: str
    stage_id: str
    team_id: str
    result: Outcome
    battle_log: list[BattleTurnOut]
    rewards: RewardsOut
    level_ups: list[LevelUpOut] = []
    created_at: datetime

    @classmethod
    def from_result(cls, result) -> "BattleOut":
        return cls(
            battle_id=result.id,
            stage_id=result.stage_id,
            team_id=result.team_id,
            result=result.result,
            battle_log=[BattleTurnOut.model_validate(t) for t in result.battle_log],
            rewards=RewardsOut(
                gold=result.rewards.gold,
                experience=dict(result.rewards.experience),
                items=list(result.rewards.items),
            ),
            level_ups=[LevelUpOut.model_validate(lu) for lu in result.level_ups],
            created_at=result.created_at,
        )
