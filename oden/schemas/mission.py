from datetime import datetime

from pydantic import BaseModel

from oden.domain.entities import MissionStatus, MissionType, RequirementType


class MissionClaimIn(BaseModel):
    mission_id: str


class MissionOut(BaseModel):
    id: str
    template_id: str
    title: str
    description: str = ""
    type: MissionType
    requirement_type: RequirementType
    target_id: str | None = None
    current_value: int
    target_value: int
    status: MissionStatus
    gold_reward: int = 0
    gems_reward: int = 0
    item_rewards: list[str] = []
    expires_at: datetime | None = None

    @classmethod
    def from_view(cls, view) -> "MissionOut":
        m, t = view.mission, view.template
        return cls(
            id=m.id,
            template_id=t.id,
            title=t.title,
            description=t.description,
            type=t.type,
            requirement_type=t.requirement_type,
            target_id=t.target_id,
            current_value=m.current_value,
            target_value=t.target_value,
            status=m.status,
            gold_reward=t.gold_reward,
            gems_reward=t.gems_reward,
            item_rewards=list(t.item_rewards),
            expires_at=m.expires_at,
        )


class MissionClaimOut(BaseModel):
    ok: bool = True
    mission_id: str
    gold: int
    gems: int
    items: list[str] = []
