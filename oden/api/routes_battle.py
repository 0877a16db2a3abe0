from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from oden.api.deps import get_db, get_current_user_id
from oden.schemas.battle import BattleIn, BattleOut
from oden.services import battle_service

router = APIRouter(prefix="/battles", tags=["battles"])


@router.post("", response_model=BattleOut)
async def battle_start(
    body: BattleIn,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = await battle_service.resolve_stage(db, user_id, body.team_id, body.stage_id)
    return BattleOut.from_result(result)


@router.get("/{battle_id}", response_model=BattleOut)
async def battle_get(
    battle_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = await battle_service.get_battle(db, user_id, battle_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Battle not found")
    return BattleOut.from_result(result)
