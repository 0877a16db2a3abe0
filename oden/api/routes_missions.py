from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from oden.api.deps import get_db, get_current_user_id
from oden.schemas.mission import MissionClaimIn, MissionClaimOut, MissionOut
from oden.services import mission_service

router = APIRouter(prefix="/missions", tags=["missions"])


@router.get("")
async def missions_list(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    views = await mission_service.list_missions(db, user_id)
    return {"ok": True, "missions": [MissionOut.from_view(v) for v in views]}


@router.post("/claim", response_model=MissionClaimOut)
async def missions_claim(
    body: MissionClaimIn,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    res = await mission_service.claim(db, user_id, body.mission_id)
    return MissionClaimOut(mission_id=res.mission.id, gold=res.gold, gems=res.gems, items=list(res.items))
