import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from oden.core.config import settings
from oden.core.db import engine
from oden.core.init_db import ensure_schema
from oden.core.logging import configure_logging
from oden.core.redis_client import close_redis

from oden.api.errors import register_error_handlers
from oden.api.routes_battle import router as battle_router
from oden.api.routes_gacha import router as gacha_router
from oden.api.routes_heroes import router as heroes_router
from oden.api.routes_idle import router as idle_router
from oden.api.routes_missions import router as missions_router
from oden.api.routes_teams import router as teams_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(",") if o.strip()]

# empty or "*" -> allow any origin
if not origins or origins == ["*"]:
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

register_error_handlers(app)

app.include_router(gacha_router)
app.include_router(battle_router)
app.include_router(teams_router)
app.include_router(heroes_router)
app.include_router(missions_router)
app.include_router(idle_router)


@app.on_event("startup")
async def on_startup():
    await ensure_schema()
    logger.info("%s started (env=%s, locks=%s)", settings.APP_NAME, settings.ENV, settings.LOCK_BACKEND)


@app.on_event("shutdown")
async def on_shutdown():
    if settings.LOCK_BACKEND == "redis":
        await close_redis()
    await engine.dispose()


@app.get("/healthz")
async def healthz():
    db_ok = True
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("healthz: database unreachable", exc_info=True)
        db_ok = False
    return {"ok": True, "dbOk": db_ok}
