"""Quest catalog and attempt endpoints."""

from __future__ import annotations

import uuid

import pytest

from tests.conftest import auth_headers, quest_by_slug


@pytest.mark.asyncio
async def test_requires_bearer_token(client):
    response = await client.get("/api/v1/quests")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_list_quests(client, user_id):
    response = await client.get("/api/v1/quests", headers=auth_headers(user_id))
    assert response.status_code == 200
    quests = response.json()["quests"]
    assert len(quests) == 7
    first = quests[0]
    assert first["slug"] == "street_food_under_budget"
    assert first["requirements"] == {"max_amount": 500}


@pytest.mark.asyncio
async def test_list_by_category(client, user_id):
    response = await client.get("/api/v1/quests", params={"category": "cultural"}, headers=auth_headers(user_id))
    assert [q["slug"] for q in response.json()["quests"]] == ["heritage_site_visit"]


@pytest.mark.asyncio
async def test_quest_detail_and_404(client, seeded_db, user_id):
    quest = await quest_by_slug(seeded_db, "hidden_gem")
    response = await client.get(f"/api/v1/quests/{quest.id}", headers=auth_headers(user_id))
    assert response.status_code == 200
    assert response.json()["title"] == "Hidden Gem"

    missing = await client.get(f"/api/v1/quests/{uuid.uuid4()}", headers=auth_headers(user_id))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_start_then_conflict(client, seeded_db, user_id):
    quest = await quest_by_slug(seeded_db, "hidden_gem")
    headers = auth_headers(user_id)

    started = await client.post(f"/api/v1/quests/{quest.id}/start", headers=headers)
    assert started.status_code == 201
    body = started.json()
    assert body["status"] == "active"
    assert body["quest"]["slug"] == "hidden_gem"

    again = await client.post(f"/api/v1/quests/{quest.id}/start", headers=headers)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_start_unknown_quest(client, user_id):
    response = await client.post(f"/api/v1/quests/{uuid.uuid4()}/start", headers=auth_headers(user_id))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_my_quests_counts(client, seeded_db, user_id):
    headers = auth_headers(user_id)
    for slug in ("hidden_gem", "market_haul"):
        quest = await quest_by_slug(seeded_db, slug)
        await client.post(f"/api/v1/quests/{quest.id}/start", headers=headers)

    response = await client.get("/api/v1/users/me/quests", headers=headers)
    data = response.json()
    assert data["active"] == 2
    assert data["completed"] == 0
    assert len(data["attempts"]) == 2

    other = await client.get("/api/v1/users/me/quests", headers=auth_headers(uuid.uuid4()))
    assert other.json()["attempts"] == []
