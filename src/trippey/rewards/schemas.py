"""Pydantic models for coin, reward and leaderboard endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CoinAwardRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: uuid.UUID = Field(alias="userId")
    quest_id: uuid.UUID = Field(alias="questId")
    coins: int = Field(ge=0)
    bonus_coins: int = Field(default=0, ge=0, alias="bonusCoins")
    submission_id: uuid.UUID | None = Field(default=None, alias="submissionId")


class CoinAwardResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    total_coins_awarded: int = Field(alias="totalCoinsAwarded")
    already_awarded: bool = Field(default=False, alias="alreadyAwarded")


class CoinBalanceResponse(BaseModel):
    available_coins: int
    lifetime_earned: int
    total_coins: int


class RewardEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quest_id: uuid.UUID | None
    submission_id: uuid.UUID | None
    reward_type: str
    coins_earned: int
    bonus_coins: int
    description: str | None
    created_at: datetime


class RewardHistoryResponse(BaseModel):
    rewards: list[RewardEntry]
    limit: int
    offset: int


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: uuid.UUID
    total_coins_earned: int
    total_quests_completed: int
    current_streak: int
    longest_streak: int
    last_quest_completed: datetime | None


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntryResponse]
    total_participants: int


class MyStandingResponse(BaseModel):
    ranked: bool
    entry: LeaderboardEntryResponse | None = None
    total_participants: int
