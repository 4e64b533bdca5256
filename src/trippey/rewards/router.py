"""Coin balance, reward history, leaderboard and the internal award endpoint."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from trippey.auth.dependencies import get_current_user_id, require_service_role
from trippey.config import get_settings
from trippey.database import get_session
from trippey.db.models import LeaderboardEntry
from trippey.dependencies import get_redis_dep
from trippey.quests.service import QuestNotFoundError, get_quest
from trippey.rewards.coin_service import (
    award_quest_coins,
    get_ledger,
    get_reward_history,
    publish_coins_update,
)
from trippey.rewards.leaderboard_service import count_participants, get_leaderboard, get_user_standing
from trippey.rewards.schemas import (
    CoinAwardRequest,
    CoinAwardResponse,
    CoinBalanceResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    MyStandingResponse,
    RewardEntry,
    RewardHistoryResponse,
)
from trippey.verification.submission_service import SubmissionNotFoundError, get_submission

router = APIRouter(prefix="/api/v1", tags=["Rewards"])


def _award_failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def _entry_response(rank: int, entry: LeaderboardEntry) -> LeaderboardEntryResponse:
    return LeaderboardEntryResponse(
        rank=rank,
        user_id=entry.user_id,
        total_coins_earned=entry.total_coins_earned,
        total_quests_completed=entry.total_quests_completed,
        current_streak=entry.current_streak,
        longest_streak=entry.longest_streak,
        last_quest_completed=entry.last_quest_completed,
    )


# ── Internal ──


@router.post("/coins/award", dependencies=[Depends(require_service_role)])
async def award_coins(
    payload: dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Credit quest coins once per user and quest, whichever path pays first."""
    try:
        request = CoinAwardRequest.model_validate(payload)
    except ValidationError as e:
        return _award_failure(400, str(e))

    try:
        await get_quest(db, request.quest_id)
    except QuestNotFoundError as e:
        return _award_failure(404, str(e))

    if request.submission_id is not None:
        try:
            submission = await get_submission(db, request.submission_id)
        except SubmissionNotFoundError as e:
            return _award_failure(404, str(e))
        if submission.attempt.user_id != request.user_id or submission.attempt.quest_id != request.quest_id:
            return _award_failure(409, "Submission does not belong to this user and quest")

    try:
        outcome = await award_quest_coins(
            db,
            user_id=request.user_id,
            quest_id=request.quest_id,
            base_coins=request.coins,
            bonus_coins=request.bonus_coins,
            submission_id=request.submission_id,
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        return _award_failure(500, "Failed to award coins")

    if outcome.total_awarded:
        ledger = await get_ledger(db, request.user_id)
        await publish_coins_update(redis, request.user_id, ledger, "quest_award")

    return CoinAwardResponse(
        total_coins_awarded=outcome.total_awarded,
        already_awarded=outcome.duplicate,
    ).model_dump(by_alias=True)


# ── User ──


@router.get("/users/me/coins", response_model=CoinBalanceResponse)
async def my_coins(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    ledger = await get_ledger(db, user_id)
    if ledger is None:
        return CoinBalanceResponse(available_coins=0, lifetime_earned=0, total_coins=0)
    return CoinBalanceResponse(
        available_coins=ledger.available_coins,
        lifetime_earned=ledger.lifetime_earned,
        total_coins=ledger.total_coins,
    )


@router.get("/users/me/rewards", response_model=RewardHistoryResponse)
async def my_rewards(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    rewards = await get_reward_history(db, user_id, limit=limit, offset=offset)
    return RewardHistoryResponse(
        rewards=[RewardEntry.model_validate(r) for r in rewards],
        limit=limit,
        offset=offset,
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    _user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    ranked = await get_leaderboard(db, limit=get_settings().leaderboard_size)
    return LeaderboardResponse(
        entries=[_entry_response(rank, entry) for rank, entry in ranked],
        total_participants=await count_participants(db),
    )


@router.get("/users/me/leaderboard", response_model=MyStandingResponse)
async def my_standing(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    standing = await get_user_standing(db, user_id)
    total = await count_participants(db)
    if standing is None:
        return MyStandingResponse(ranked=False, total_participants=total)
    rank, entry = standing
    return MyStandingResponse(ranked=True, entry=_entry_response(rank, entry), total_participants=total)
