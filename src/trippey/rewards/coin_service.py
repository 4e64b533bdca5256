"""Coin award service with idempotency and atomic ledger/leaderboard updates."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trippey.db.base import dialect_insert
from trippey.db.models import CoinLedger, CoinReward, LeaderboardEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AwardOutcome:
    total_awarded: int
    duplicate: bool = False


def quest_award_key(user_id: uuid.UUID, quest_id: uuid.UUID) -> str:
    """Idempotency key shared by every award path. A quest pays a user at most once."""
    return f"quest-award:user:{user_id}:quest:{quest_id}"


async def award_quest_coins(
    db: AsyncSession,
    user_id: uuid.UUID,
    quest_id: uuid.UUID,
    base_coins: int,
    bonus_coins: int,
    idempotency_key: str | None = None,
    submission_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> AwardOutcome:
    """Credit quest coins. Returns a duplicate outcome if this quest already paid this user.

    The key defaults to `quest_award_key`; the unique (user_id, quest_id) on
    user_rewards holds the same rule for any other key.

    Within the caller's transaction:
    1. Insert the immutable reward row (unique idempotency_key)
    2. Upsert user_coins with server-side increments
    3. Upsert user_leaderboard with server-side increments and streak

    Does not commit. On a duplicate detected at insert time the session is
    rolled back, discarding anything else the caller did in this transaction.
    """
    if base_coins < 0 or bonus_coins < 0:
        msg = "Coin amounts must be non-negative"
        raise ValueError(msg)

    if idempotency_key is None:
        idempotency_key = quest_award_key(user_id, quest_id)

    existing = await db.execute(
        select(CoinReward.id).where(
            or_(
                CoinReward.idempotency_key == idempotency_key,
                and_(CoinReward.user_id == user_id, CoinReward.quest_id == quest_id),
            )
        ).limit(1)
    )
    if existing.first() is not None:
        logger.info("Duplicate award ignored (key=%s)", idempotency_key)
        return AwardOutcome(total_awarded=0, duplicate=True)

    if now is None:
        now = datetime.now(timezone.utc)
    total = base_coins + bonus_coins

    db.add(CoinReward(
        user_id=user_id,
        quest_id=quest_id,
        submission_id=submission_id,
        reward_type="coins",
        coins_earned=base_coins,
        bonus_coins=bonus_coins,
        description=f"Quest completed: {total} TrippEy Coins earned!",
        idempotency_key=idempotency_key,
        created_at=now,
    ))
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent award for the same key or the same user and quest
        await db.rollback()
        logger.info("Duplicate award ignored after conflict (key=%s)", idempotency_key)
        return AwardOutcome(total_awarded=0, duplicate=True)

    await _credit_ledger(db, user_id, total, now)
    await _record_completion(db, user_id, total, now)

    logger.info("Awarded %d coins to user %s for quest %s", total, user_id, quest_id)
    return AwardOutcome(total_awarded=total)


async def _credit_ledger(db: AsyncSession, user_id: uuid.UUID, amount: int, now: datetime) -> None:
    stmt = dialect_insert(db, CoinLedger).values(
        user_id=user_id,
        available_coins=amount,
        lifetime_earned=amount,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id"],
        set_={
            "available_coins": CoinLedger.available_coins + amount,
            "lifetime_earned": CoinLedger.lifetime_earned + amount,
            "updated_at": now,
        },
    )
    await db.execute(stmt)


async def _record_completion(db: AsyncSession, user_id: uuid.UUID, amount: int, now: datetime) -> None:
    next_streak = LeaderboardEntry.current_streak + 1
    stmt = dialect_insert(db, LeaderboardEntry).values(
        user_id=user_id,
        total_quests_completed=1,
        total_coins_earned=amount,
        current_streak=1,
        longest_streak=1,
        last_quest_completed=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id"],
        set_={
            "total_quests_completed": LeaderboardEntry.total_quests_completed + 1,
            "total_coins_earned": LeaderboardEntry.total_coins_earned + amount,
            "current_streak": next_streak,
            "longest_streak": case(
                (LeaderboardEntry.longest_streak > next_streak, LeaderboardEntry.longest_streak),
                else_=next_streak,
            ),
            "last_quest_completed": now,
            "updated_at": now,
        },
    )
    await db.execute(stmt)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_ledger(db: AsyncSession, user_id: uuid.UUID) -> CoinLedger | None:
    result = await db.execute(
        select(CoinLedger)
        .where(CoinLedger.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_reward_history(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> list[CoinReward]:
    result = await db.execute(
        select(CoinReward)
        .where(CoinReward.user_id == user_id)
        .order_by(CoinReward.created_at.desc(), CoinReward.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Streak maintenance
# ---------------------------------------------------------------------------


async def reset_stale_streaks(
    db: AsyncSession,
    window_days: int,
    now: datetime | None = None,
) -> int:
    """Zero current_streak for users idle longer than the window. longest_streak is kept."""
    if now is None:
        now = datetime.now(timezone.utc)
    cutoff = now - timedelta(days=window_days)
    result = await db.execute(
        update(LeaderboardEntry)
        .where(
            LeaderboardEntry.current_streak > 0,
            LeaderboardEntry.last_quest_completed < cutoff,
        )
        .values(current_streak=0, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    count = result.rowcount or 0
    logger.info("Streak reset complete: %d users past %d-day window", count, window_days)
    return count


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


async def publish_coins_update(
    redis: object,
    user_id: uuid.UUID,
    ledger: CoinLedger | None,
    event: str,
) -> None:
    """Best-effort broadcast of a balance change to live clients."""
    if redis is None or ledger is None:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            "pubsub:coins_update",
            json.dumps({
                "user_id": str(user_id),
                "event": event,
                "available_coins": ledger.available_coins,
                "lifetime_earned": ledger.lifetime_earned,
            }),
        )
    except Exception:
        logger.warning("Failed to publish coins_update", exc_info=True)
