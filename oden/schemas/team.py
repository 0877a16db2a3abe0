from datetime import datetime

from pydantic import BaseModel


class TeamIn(BaseModel):
    # {"1": hero_id, ..., "5": hero_id}; missing or null positions are empty
    positions: dict[str, str | None]


class TeamOut(BaseModel):
    id: str
    positions: dict[int, str | None]
    hero_count: int
    updated_at: datetime | None = None

    @classmethod
    def from_team(cls, team) -> "TeamOut":
        return cls(
            id=team.id,
            positions={idx: hero_id for idx, hero_id in enumerate(team.slots, start=1)},
            hero_count=team.count(),
            updated_at=team.updated_at,
        )
