"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from trippey.config import get_settings
from trippey.database import close_db, init_db, session_scope
from trippey.health.router import router as health_router
from trippey.middleware import setup_middleware
from trippey.quests.router import router as quests_router
from trippey.quests.seed import seed_quests
from trippey.redis_client import close_redis, init_redis
from trippey.rewards.router import router as rewards_router
from trippey.store.router import router as store_router
from trippey.store.seed import seed_store_items
from trippey.verification.router import router as verification_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    await init_db(settings.database_url, pool_size=settings.database_pool_size)
    if settings.redis_url:
        await init_redis(settings.redis_url, settings.redis_max_connections)

    if settings.seed_on_startup:
        try:
            async with session_scope() as db:
                await seed_quests(db)
                await seed_store_items(db)
        except Exception:
            logger.warning("Catalog seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="TrippEy Quest API",
        description="Quest verification, coin rewards and redemption store for TrippEy travellers",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(quests_router)
    app.include_router(verification_router)
    app.include_router(rewards_router)
    app.include_router(store_router)

    return app


app = create_app()
