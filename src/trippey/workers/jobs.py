"""Periodic maintenance jobs for the arq worker.

- reconcile: settle verified submissions whose coins were never credited
- expire: close active attempts on quests past their expiry
- streaks: zero current streaks that fell outside the activity window
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis

from trippey.config import get_settings
from trippey.database import close_db, init_db, session_scope
from trippey.middleware.logging import setup_logging
from trippey.quests.service import expire_attempts
from trippey.rewards.coin_service import reset_stale_streaks
from trippey.verification.pipeline import reconcile_verified_submissions

logger = logging.getLogger(__name__)

# One connection per concurrent job (WorkerSettings.max_jobs) plus a spare
WORKER_DB_POOL_SIZE = 5


async def worker_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url, pool_size=WORKER_DB_POOL_SIZE)
    # Coin update events go to the API's Redis, which may differ from the arq broker
    ctx["redis"] = (
        aioredis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True, max_connections=4)
        if settings.redis_url
        else None
    )
    logger.info("Maintenance worker started")


async def worker_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    redis_client: aioredis.Redis | None = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Maintenance worker shut down")


async def reconcile_awards(ctx: dict) -> int:  # type: ignore[type-arg]
    async with session_scope() as db:
        return await reconcile_verified_submissions(
            db, limit=get_settings().reconcile_batch_size, redis=ctx.get("redis")
        )


async def expire_quest_attempts(ctx: dict) -> int:  # type: ignore[type-arg]
    async with session_scope() as db:
        return await expire_attempts(db)


async def reset_streaks(ctx: dict) -> int:  # type: ignore[type-arg]
    async with session_scope() as db:
        return await reset_stale_streaks(db, window_days=get_settings().streak_window_days)
