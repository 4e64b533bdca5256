"""Quest, submission, coin ledger, leaderboard and store tables.

Revision ID: 001_quest_tables
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_quest_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Quests ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quests (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            slug VARCHAR(64) UNIQUE NOT NULL,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            category VARCHAR(32) NOT NULL
                CONSTRAINT quests_category_check
                CHECK (category IN ('budget', 'exploration', 'transport', 'cultural', 'social_impact')),
            reward_coins INTEGER NOT NULL DEFAULT 10 CONSTRAINT quests_reward_coins_check CHECK (reward_coins >= 0),
            bonus_coins INTEGER NOT NULL DEFAULT 0 CONSTRAINT quests_bonus_coins_check CHECK (bonus_coins >= 0),
            requirements JSONB NOT NULL DEFAULT '{}',
            verification_rules JSONB NOT NULL DEFAULT '{}',
            difficulty_level INTEGER NOT NULL DEFAULT 1
                CONSTRAINT quests_difficulty_level_check CHECK (difficulty_level BETWEEN 1 AND 5),
            is_active BOOLEAN NOT NULL DEFAULT true,
            sort_order INTEGER NOT NULL DEFAULT 0,
            expires_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Attempts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_quests (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            quest_id UUID NOT NULL REFERENCES quests(id) ON DELETE CASCADE,
            user_id UUID NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'active'
                CONSTRAINT user_quests_status_check
                CHECK (status IN ('active', 'completed', 'expired', 'locked')),
            progress JSONB NOT NULL DEFAULT '{}',
            started_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_quests_user ON user_quests(user_id)")
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_user_quests_one_active
        ON user_quests(user_id, quest_id) WHERE status = 'active'
    """)

    # --- Submissions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quest_submissions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_quest_id UUID NOT NULL REFERENCES user_quests(id) ON DELETE CASCADE,
            submission_type VARCHAR(16) NOT NULL
                CONSTRAINT quest_submissions_submission_type_check
                CHECK (submission_type IN ('receipt', 'photo', 'ticket', 'video')),
            file_url TEXT NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'pending'
                CONSTRAINT quest_submissions_status_check
                CHECK (status IN ('pending', 'verified', 'rejected', 'under_review')),
            verification_results JSONB,
            reviewer_notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_quest_submissions_attempt ON quest_submissions(user_quest_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_quest_submissions_status ON quest_submissions(status)")

    # --- Reward audit log ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_rewards (
            id BIGSERIAL PRIMARY KEY,
            user_id UUID NOT NULL,
            quest_id UUID REFERENCES quests(id),
            submission_id UUID,
            reward_type VARCHAR(16) NOT NULL DEFAULT 'coins'
                CONSTRAINT user_rewards_reward_type_check
                CHECK (reward_type IN ('coins', 'discount', 'experience', 'gift_card')),
            coins_earned INTEGER NOT NULL DEFAULT 0,
            bonus_coins INTEGER NOT NULL DEFAULT 0,
            description VARCHAR(256) NOT NULL,
            idempotency_key VARCHAR(256) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_rewards_user_quest UNIQUE (user_id, quest_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_rewards_user ON user_rewards(user_id)")

    # --- Balances ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_coins (
            user_id UUID PRIMARY KEY,
            available_coins BIGINT NOT NULL DEFAULT 0
                CONSTRAINT user_coins_available_coins_check CHECK (available_coins >= 0),
            lifetime_earned BIGINT NOT NULL DEFAULT 0
                CONSTRAINT user_coins_lifetime_earned_check CHECK (lifetime_earned >= 0),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)

    # --- Leaderboard ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_leaderboard (
            user_id UUID PRIMARY KEY,
            total_quests_completed INTEGER NOT NULL DEFAULT 0,
            total_coins_earned BIGINT NOT NULL DEFAULT 0,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_quest_completed TIMESTAMPTZ,
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_leaderboard_coins ON user_leaderboard(total_coins_earned)")

    # --- Store ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS store_items (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            slug VARCHAR(64) UNIQUE NOT NULL,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            category VARCHAR(32) NOT NULL,
            cost_coins INTEGER NOT NULL CONSTRAINT store_items_cost_coins_check CHECK (cost_coins > 0),
            provider VARCHAR(128),
            image_url TEXT,
            stock_quantity INTEGER
                CONSTRAINT store_items_stock_quantity_check CHECK (stock_quantity IS NULL OR stock_quantity >= 0),
            is_active BOOLEAN NOT NULL DEFAULT true,
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_purchases (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            store_item_id UUID NOT NULL REFERENCES store_items(id),
            coins_spent INTEGER NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'completed',
            purchase_details JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_purchases_user ON user_purchases(user_id)")


def downgrade() -> None:
    for table in (
        "user_purchases",
        "store_items",
        "user_leaderboard",
        "user_coins",
        "user_rewards",
        "quest_submissions",
        "user_quests",
        "quests",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
