"""Quest catalog and attempt endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trippey.auth.dependencies import get_current_user_id
from trippey.database import get_session
from trippey.quests.schemas import AttemptListResponse, AttemptResponse, QuestListResponse, QuestResponse
from trippey.quests.service import (
    AttemptStateError,
    QuestNotFoundError,
    get_quest,
    list_quests,
    list_user_attempts,
    start_quest,
)

router = APIRouter(prefix="/api/v1", tags=["Quests"])


@router.get("/quests", response_model=QuestListResponse)
async def get_quests(
    category: str | None = Query(default=None, max_length=32),
    _user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    quests = await list_quests(db, category=category)
    return QuestListResponse(quests=[QuestResponse.model_validate(q) for q in quests])


@router.get("/quests/{quest_id}", response_model=QuestResponse)
async def get_quest_detail(
    quest_id: uuid.UUID,
    _user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        quest = await get_quest(db, quest_id)
    except QuestNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    if not quest.is_active:
        raise HTTPException(status_code=404, detail="Quest not found")
    return QuestResponse.model_validate(quest)


@router.post("/quests/{quest_id}/start", response_model=AttemptResponse, status_code=201)
async def start(
    quest_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Begin a quest. 409 if the user already has it active or completed."""
    try:
        attempt = await start_quest(db, user_id, quest_id)
    except QuestNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except AttemptStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return AttemptResponse.model_validate(attempt)


@router.get("/users/me/quests", response_model=AttemptListResponse)
async def my_quests(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    attempts = await list_user_attempts(db, user_id)
    return AttemptListResponse(
        attempts=[AttemptResponse.model_validate(a) for a in attempts],
        active=sum(1 for a in attempts if a.status == "active"),
        completed=sum(1 for a in attempts if a.status == "completed"),
    )
