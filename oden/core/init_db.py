from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from oden.core.config import settings
from oden.core.db import Base, engine as default_engine, make_sessionmaker
from oden.services.seed import load_catalog, seed_catalog

logger = logging.getLogger(__name__)

# One global lock id for schema bootstrap (any int64 is fine)
BOOTSTRAP_LOCK_ID = 924173


def _register_models() -> None:
    # importing the modules is what puts the tables on Base.metadata
    from oden.models import battle, catalog, collection, gacha, mission, user  # noqa: F401


async def ensure_schema(engine: AsyncEngine | None = None, seed_path: str | None = None) -> None:
    """
    Creates missing tables, then upserts the content catalog.

    On Postgres a transaction-scoped advisory lock keeps several instances
    starting at once from racing each other.
    """
    engine = engine or default_engine
    _register_models()

    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.exec_driver_sql(f"SELECT pg_advisory_xact_lock({BOOTSTRAP_LOCK_ID});")
        await conn.run_sync(Base.metadata.create_all)

    catalog = load_catalog(seed_path or settings.CATALOG_SEED_PATH or None)
    async with make_sessionmaker(engine)() as session:
        await seed_catalog(session, catalog)
    logger.info("schema ready (%s)", engine.dialect.name)
