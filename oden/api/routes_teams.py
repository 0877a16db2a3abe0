from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from oden.api.deps import get_db, get_current_user_id
from oden.schemas.team import TeamIn, TeamOut
from oden.services import team_service

router = APIRouter(prefix="/teams", tags=["teams"])


@router.get("/{team_id}", response_model=TeamOut)
async def team_get(
    team_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    team = await team_service.get_team(db, user_id, team_id)
    return TeamOut.from_team(team)


@router.put("/{team_id}", response_model=TeamOut)
async def team_put(
    team_id: str,
    body: TeamIn,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    team = await team_service.save_team(db, user_id, team_id, body.positions)
    return TeamOut.from_team(team)
