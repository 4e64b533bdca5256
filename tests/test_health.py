"""Operational endpoints."""

from __future__ import annotations

import pytest


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_ready_without_redis(client):
    response = await client.get("/ready")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ready"
    assert body["checks"] == {"database": "ok", "redis": "disabled"}


@pytest.mark.asyncio
async def test_version(client):
    response = await client.get("/version")
    assert response.json()["version"] == "0.1.0"


@pytest.mark.asyncio
async def test_ready_degraded_when_redis_unreachable(client):
    from unittest.mock import AsyncMock, MagicMock, patch

    from redis.exceptions import ConnectionError as RedisConnectionError

    broken = MagicMock()
    broken.ping = AsyncMock(side_effect=RedisConnectionError("connection refused"))
    with patch("trippey.redis_client._pool", broken):
        response = await client.get("/ready")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "degraded"
    assert body["checks"]["redis"].startswith("error:")
