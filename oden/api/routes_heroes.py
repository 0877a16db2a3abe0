from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from oden.api.deps import get_db, get_current_user_id
from oden.schemas.hero import HeroOut, ItemOut, ResourcesOut
from oden.services import hero_service

router = APIRouter(tags=["collection"])


@router.get("/heroes")
async def heroes_list(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    heroes = await hero_service.list_heroes(db, user_id)
    return {"ok": True, "heroes": [HeroOut.model_validate(h) for h in heroes]}


@router.get("/items")
async def items_list(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    items = await hero_service.list_items(db, user_id)
    return {"ok": True, "items": [ItemOut.model_validate(i) for i in items]}


@router.get("/resources", response_model=ResourcesOut)
async def resources_get(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return ResourcesOut.model_validate(await hero_service.get_resources(db, user_id))
