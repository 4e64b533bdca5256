"""Quest catalog and the attempt state machine.

Attempt lifecycle: not_started -> active -> completed | expired | locked.
`completed` is terminal and only reachable through a verified submission.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trippey.db.models import Quest, UserQuestAttempt

logger = logging.getLogger(__name__)


class QuestNotFoundError(LookupError):
    """Quest does not exist or is not available."""


class AttemptNotFoundError(LookupError):
    """Attempt does not exist or belongs to another user."""


class AttemptStateError(ValueError):
    """Requested transition is not allowed from the attempt's current status."""


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


async def list_quests(db: AsyncSession, category: str | None = None) -> list[Quest]:
    """Active quests, newest catalog order first."""
    stmt = select(Quest).where(Quest.is_active.is_(True))
    if category:
        stmt = stmt.where(Quest.category == category)
    result = await db.execute(stmt.order_by(Quest.sort_order, Quest.created_at.desc()))
    return list(result.scalars().all())


async def get_quest(db: AsyncSession, quest_id: uuid.UUID) -> Quest:
    result = await db.execute(select(Quest).where(Quest.id == quest_id))
    quest = result.scalar_one_or_none()
    if quest is None:
        msg = "Quest not found"
        raise QuestNotFoundError(msg)
    return quest


# ---------------------------------------------------------------------------
# Attempts
# ---------------------------------------------------------------------------


async def start_quest(
    db: AsyncSession,
    user_id: uuid.UUID,
    quest_id: uuid.UUID,
    now: datetime | None = None,
) -> UserQuestAttempt:
    """Create an active attempt for the user.

    Raises QuestNotFoundError for unknown, inactive or expired quests and
    AttemptStateError when the user already has an active or completed attempt.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    result = await db.execute(
        select(Quest).where(
            Quest.id == quest_id,
            Quest.is_active.is_(True),
            or_(Quest.expires_at.is_(None), Quest.expires_at > now),
        )
    )
    quest = result.scalar_one_or_none()
    if quest is None:
        msg = "Quest not found or no longer available"
        raise QuestNotFoundError(msg)

    existing = await db.execute(
        select(UserQuestAttempt.status).where(
            UserQuestAttempt.user_id == user_id,
            UserQuestAttempt.quest_id == quest_id,
            UserQuestAttempt.status.in_(("active", "completed")),
        )
    )
    statuses = set(existing.scalars().all())
    if "completed" in statuses:
        msg = "Quest already completed"
        raise AttemptStateError(msg)
    if "active" in statuses:
        msg = "Quest already started"
        raise AttemptStateError(msg)

    attempt = UserQuestAttempt(
        quest_id=quest_id,
        user_id=user_id,
        status="active",
        progress={},
        started_at=now,
        updated_at=now,
    )
    db.add(attempt)
    try:
        await db.commit()
    except IntegrityError as e:
        # Concurrent start hit the one-active-attempt index
        await db.rollback()
        msg = "Quest already started"
        raise AttemptStateError(msg) from e

    logger.info("Quest %s started by user %s (attempt %s)", quest_id, user_id, attempt.id)
    return await get_attempt_for_user(db, user_id, attempt.id)


async def list_user_attempts(db: AsyncSession, user_id: uuid.UUID) -> list[UserQuestAttempt]:
    result = await db.execute(
        select(UserQuestAttempt)
        .where(UserQuestAttempt.user_id == user_id)
        .order_by(UserQuestAttempt.started_at.desc())
    )
    return list(result.scalars().all())


async def get_attempt_for_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    attempt_id: uuid.UUID,
) -> UserQuestAttempt:
    result = await db.execute(
        select(UserQuestAttempt)
        .where(UserQuestAttempt.id == attempt_id, UserQuestAttempt.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    attempt = result.scalar_one_or_none()
    if attempt is None:
        msg = "Quest attempt not found"
        raise AttemptNotFoundError(msg)
    return attempt


async def complete_attempt(
    db: AsyncSession,
    attempt_id: uuid.UUID,
    now: datetime | None = None,
) -> bool:
    """Transition active -> completed. Returns False if the attempt was not active.

    Does not commit; the caller owns the transaction so completion and the coin
    award land together.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(
        update(UserQuestAttempt)
        .where(UserQuestAttempt.id == attempt_id, UserQuestAttempt.status == "active")
        .values(status="completed", completed_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def expire_attempts(db: AsyncSession, now: datetime | None = None) -> int:
    """Mark active attempts of quests past their expiry as expired. Returns count."""
    if now is None:
        now = datetime.now(timezone.utc)
    expired_quests = select(Quest.id).where(Quest.expires_at.is_not(None), Quest.expires_at <= now)
    result = await db.execute(
        update(UserQuestAttempt)
        .where(
            UserQuestAttempt.status == "active",
            UserQuestAttempt.quest_id.in_(expired_quests),
        )
        .values(status="expired", updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    count = result.rowcount or 0
    if count:
        logger.info("Expired %d quest attempts", count)
    return count
