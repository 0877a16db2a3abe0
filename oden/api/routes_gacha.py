from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from oden.api.deps import get_db, get_current_user_id
from oden.core.config import settings
from oden.core.redis_client import cache_get, cache_set
from oden.schemas.gacha import BannerOut, RateInfoOut, SummonIn, SummonOut
from oden.services import gacha_service

router = APIRouter(prefix="/gacha", tags=["gacha"])


def _banner_out(b) -> BannerOut:
    return BannerOut(
        id=b.id,
        name=b.name,
        type=b.type,
        result_kind=b.result_kind,
        description=b.description,
        image_url=b.image_url,
        currency=b.cost.currency.value,
        cost_single=b.cost.single,
        cost_ten=b.cost.ten if b.cost.ten is not None else b.cost.single * 10,
        guarantee_threshold=b.guarantee_threshold,
        has_daily_free_summon=b.has_daily_free_summon,
        start_time=b.start_time,
        end_time=b.end_time,
    )


BANNERS_CACHE_KEY = "cache:gacha:banners"


@router.get("/banners")
async def banners_list(db: AsyncSession = Depends(get_db)):
    # shared cache only when a redis deployment is configured
    use_cache = settings.LOCK_BACKEND == "redis" and settings.RATES_CACHE_SEC > 0
    if use_cache:
        cached = await cache_get(BANNERS_CACHE_KEY)
        if cached is not None:
            return {"ok": True, "banners": cached}

    banners = [_banner_out(b).model_dump(mode="json") for b in await gacha_service.list_banners(db)]
    if use_cache:
        await cache_set(BANNERS_CACHE_KEY, banners, expire=settings.RATES_CACHE_SEC)
    return {"ok": True, "banners": banners}


@router.get("/banners/{banner_id}/rates", response_model=RateInfoOut)
async def banner_rates(
    banner_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    info = await gacha_service.get_rate_info(db, user_id, banner_id)
    return RateInfoOut.model_validate(info)


@router.post("/summon", response_model=SummonOut)
async def summon(
    body: SummonIn,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = await gacha_service.summon(db, user_id, body.banner_id, body.pull_kind)
    return SummonOut.model_validate(result)
