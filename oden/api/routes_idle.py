from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from oden.api.deps import get_db, get_current_user_id
from oden.schemas.battle import LevelUpOut
from oden.schemas.idle import IdleClaimIn, IdleClaimOut, IdlePreviewOut
from oden.services import idle_service

router = APIRouter(prefix="/idle", tags=["idle"])


@router.get("", response_model=IdlePreviewOut)
async def idle_preview(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    rewards = await idle_service.preview_idle(db, user_id)
    return IdlePreviewOut(minutes=rewards.minutes, gold=rewards.gold, experience=rewards.experience)


@router.post("/claim", response_model=IdleClaimOut)
async def idle_claim(
    body: IdleClaimIn | None = None,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    res = await idle_service.claim_idle(db, user_id, body.team_id if body else None)
    return IdleClaimOut(
        minutes=res.minutes,
        gold=res.gold,
        experience=res.experience,
        level_ups=[LevelUpOut.model_validate(lu) for lu in res.level_ups],
    )
