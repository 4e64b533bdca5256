"""ORM models for quests, submissions, the coin ledger, leaderboard and store.

Users live in the external auth provider; user ids are the provider's UUIDs and
carry no foreign key here.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trippey.db.base import Base, JSONType

QUEST_CATEGORIES = ("budget", "exploration", "transport", "cultural", "social_impact")
ATTEMPT_STATUSES = ("active", "completed", "expired", "locked")
SUBMISSION_TYPES = ("receipt", "photo", "ticket", "video")
SUBMISSION_STATUSES = ("pending", "verified", "rejected", "under_review")
REWARD_TYPES = ("coins", "discount", "experience", "gift_card")


def _in(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------


class Quest(Base):
    """Quest template: shared catalog, seeded on startup."""

    __tablename__ = "quests"
    __table_args__ = (
        CheckConstraint(_in("category", QUEST_CATEGORIES), name="category"),
        CheckConstraint("reward_coins >= 0", name="reward_coins"),
        CheckConstraint("bonus_coins >= 0", name="bonus_coins"),
        CheckConstraint("difficulty_level BETWEEN 1 AND 5", name="difficulty_level"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    reward_coins: Mapped[int] = mapped_column(Integer, nullable=False, server_default="10")
    bonus_coins: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    requirements: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    verification_rules: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    difficulty_level: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class UserQuestAttempt(Base):
    """One user's attempt at a quest. At most one active attempt per (user, quest)."""

    __tablename__ = "user_quests"
    __table_args__ = (
        CheckConstraint(_in("status", ATTEMPT_STATUSES), name="status"),
        Index(
            "uq_user_quests_one_active",
            "user_id",
            "quest_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_user_quests_user", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    quest_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("quests.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="active")
    progress: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    quest: Mapped[Quest] = relationship("Quest", lazy="joined")


class QuestSubmission(Base):
    """Proof upload against an attempt, with the stored verification verdict."""

    __tablename__ = "quest_submissions"
    __table_args__ = (
        CheckConstraint(_in("submission_type", SUBMISSION_TYPES), name="submission_type"),
        CheckConstraint(_in("status", SUBMISSION_STATUSES), name="status"),
        Index("ix_quest_submissions_attempt", "user_quest_id"),
        Index("ix_quest_submissions_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_quest_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user_quests.id", ondelete="CASCADE"), nullable=False
    )
    submission_type: Mapped[str] = mapped_column(String(16), nullable=False)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="pending")
    verification_results: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    reviewer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    attempt: Mapped[UserQuestAttempt] = relationship("UserQuestAttempt", lazy="joined")


# ---------------------------------------------------------------------------
# Coins
# ---------------------------------------------------------------------------


class CoinReward(Base):
    """Immutable reward audit log. One row per (user, quest) and per idempotency key."""

    __tablename__ = "user_rewards"
    __table_args__ = (
        CheckConstraint(_in("reward_type", REWARD_TYPES), name="reward_type"),
        UniqueConstraint("user_id", "quest_id", name="uq_user_rewards_user_quest"),
        Index("ix_user_rewards_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    quest_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("quests.id"), nullable=True)
    submission_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    reward_type: Mapped[str] = mapped_column(String(16), nullable=False, server_default="coins")
    coins_earned: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    bonus_coins: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    description: Mapped[str] = mapped_column(String(256), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CoinLedger(Base):
    """Per-user running coin balances: single row per user, updated in place."""

    __tablename__ = "user_coins"
    __table_args__ = (
        CheckConstraint("available_coins >= 0", name="available_coins"),
        CheckConstraint("lifetime_earned >= 0", name="lifetime_earned"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    available_coins: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    lifetime_earned: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def total_coins(self) -> int:
        return self.lifetime_earned


class LeaderboardEntry(Base):
    """Denormalized ranking aggregate: single row per user, O(1) reads."""

    __tablename__ = "user_leaderboard"
    __table_args__ = (Index("ix_user_leaderboard_coins", "total_coins_earned"),)

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    total_quests_completed: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    total_coins_earned: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    last_quest_completed: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class StoreItem(Base):
    """Redeemable catalog entry priced in coins."""

    __tablename__ = "store_items"
    __table_args__ = (
        CheckConstraint("cost_coins > 0", name="cost_coins"),
        CheckConstraint("stock_quantity IS NULL OR stock_quantity >= 0", name="stock_quantity"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    cost_coins: Mapped[int] = mapped_column(Integer, nullable=False)
    provider: Mapped[str | None] = mapped_column(String(128), nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    stock_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    item_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Purchase(Base):
    """Redemption record: debits available_coins."""

    __tablename__ = "user_purchases"
    __table_args__ = (Index("ix_user_purchases_user", "user_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    store_item_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("store_items.id"), nullable=False)
    coins_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="completed")
    purchase_details: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
