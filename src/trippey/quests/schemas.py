"""Pydantic response models for quest endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class QuestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    slug: str
    title: str
    description: str
    category: str
    reward_coins: int
    bonus_coins: int
    requirements: dict[str, Any] = {}
    verification_rules: dict[str, Any] = {}
    difficulty_level: int
    expires_at: datetime | None = None


class QuestListResponse(BaseModel):
    quests: list[QuestResponse]


class AttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    quest_id: uuid.UUID
    status: str
    progress: dict[str, Any] = {}
    started_at: datetime
    completed_at: datetime | None = None
    quest: QuestResponse | None = None


class AttemptListResponse(BaseModel):
    attempts: list[AttemptResponse]
    active: int
    completed: int
