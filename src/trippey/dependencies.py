"""Shared FastAPI dependencies for the domain routers."""

from redis.asyncio import Redis

from trippey.redis_client import get_optional_redis


async def get_redis_dep() -> Redis | None:
    """Publisher for coin update events; None runs the API without them."""
    return get_optional_redis()
