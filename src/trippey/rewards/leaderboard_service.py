"""Leaderboard reads over the denormalized user_leaderboard table.

Ranks are computed on read with competition ranking on total_coins_earned
(equal totals share a rank). Listing order within a tie is quests completed,
then who got there first.
"""

from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trippey.db.models import LeaderboardEntry

_RANK_ORDER = (
    LeaderboardEntry.total_coins_earned.desc(),
    LeaderboardEntry.total_quests_completed.desc(),
    LeaderboardEntry.last_quest_completed.asc(),
)


async def get_leaderboard(db: AsyncSession, limit: int = 50) -> list[tuple[int, LeaderboardEntry]]:
    """Top entries as (rank_position, entry) pairs, rank starting at 1."""
    result = await db.execute(
        select(LeaderboardEntry)
        .order_by(*_RANK_ORDER)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    ranked: list[tuple[int, LeaderboardEntry]] = []
    for index, entry in enumerate(result.scalars().all()):
        if ranked and ranked[-1][1].total_coins_earned == entry.total_coins_earned:
            ranked.append((ranked[-1][0], entry))
        else:
            ranked.append((index + 1, entry))
    return ranked


async def get_user_standing(db: AsyncSession, user_id: uuid.UUID) -> tuple[int, LeaderboardEntry] | None:
    """The user's entry and rank, or None if they have not completed a quest."""
    result = await db.execute(
        select(LeaderboardEntry)
        .where(LeaderboardEntry.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        return None

    ahead = await db.execute(
        select(func.count()).select_from(LeaderboardEntry).where(
            LeaderboardEntry.total_coins_earned > entry.total_coins_earned
        )
    )
    return ahead.scalar_one() + 1, entry


async def count_participants(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(LeaderboardEntry))
    return result.scalar_one()
