from pydantic import BaseModel

from oden.schemas.battle import LevelUpOut


class IdleClaimIn(BaseModel):
    team_id: str | None = None


class IdleClaimOut(BaseModel):
    ok: bool = True
    minutes: int
    gold: int
    experience: dict[str, int] = {}
    level_ups: list[LevelUpOut] = []


class IdlePreviewOut(BaseModel):
    minutes: int
    gold: int
    # total for the team, split on claim
    experience: int
