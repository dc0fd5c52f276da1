"""Initial schema: ranks, users, managers, campaigns, missions, completions,
achievements, competencies and store items.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Ranks & users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS ranks (
            id UUID PRIMARY KEY,
            title VARCHAR(255) NOT NULL,
            description TEXT,
            image_url TEXT,
            priority INTEGER NOT NULL DEFAULT 0,
            unlock_conditions JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            tg_id BIGINT UNIQUE NOT NULL,
            username VARCHAR(255),
            first_name VARCHAR(255),
            last_name VARCHAR(255),
            avatar_url TEXT,
            experience_points INTEGER NOT NULL DEFAULT 0,
            mana_points INTEGER NOT NULL DEFAULT 0,
            rank_id UUID REFERENCES ranks(id),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS managers (
            id UUID PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            password_hash VARCHAR(256) NOT NULL,
            name VARCHAR(255),
            role VARCHAR(32) NOT NULL DEFAULT 'admin',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ
        )
    """)

    # --- Campaigns & membership ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS campaigns (
            id UUID PRIMARY KEY,
            title VARCHAR(255) NOT NULL,
            description TEXT,
            activation_code VARCHAR(50) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'DRAFT',
            start_date TIMESTAMPTZ,
            end_date TIMESTAMPTZ,
            max_participants INTEGER,
            cover_url TEXT,
            icon_url TEXT,
            created_by UUID REFERENCES managers(id),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_campaigns_activation_code_live
        ON campaigns(activation_code) WHERE deleted_at IS NULL
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_campaigns (
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            campaign_id UUID NOT NULL REFERENCES campaigns(id) ON DELETE CASCADE,
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, campaign_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_user_campaigns_campaign_id
        ON user_campaigns(campaign_id)
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id UUID PRIMARY KEY,
            campaign_id UUID NOT NULL REFERENCES campaigns(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            description TEXT,
            image_url TEXT,
            unlock_conditions JSONB NOT NULL DEFAULT '{}',
            experience_reward INTEGER NOT NULL DEFAULT 0,
            mana_reward INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_achievements_campaign_id
        ON achievements(campaign_id)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id UUID NOT NULL REFERENCES achievements(id) ON DELETE CASCADE,
            awarded_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, achievement_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_user_achievements_achievement_id
        ON user_achievements(achievement_id)
    """)

    # --- Missions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS missions (
            id UUID PRIMARY KEY,
            campaign_id UUID NOT NULL REFERENCES campaigns(id) ON DELETE CASCADE,
            title VARCHAR(255) NOT NULL,
            description TEXT,
            category VARCHAR(64),
            cover_url TEXT,
            type VARCHAR(16) NOT NULL,
            experience_reward INTEGER NOT NULL DEFAULT 0,
            mana_reward INTEGER NOT NULL DEFAULT 0,
            competency_rewards JSONB NOT NULL DEFAULT '[]',
            required_rank_id UUID REFERENCES ranks(id),
            required_achievement_id UUID REFERENCES achievements(id),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_missions_campaign_id
        ON missions(campaign_id)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS mission_manual_details (
            mission_id UUID PRIMARY KEY REFERENCES missions(id) ON DELETE CASCADE,
            submission_prompt TEXT NOT NULL,
            placeholder_text VARCHAR(255)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS mission_quiz_details (
            mission_id UUID PRIMARY KEY REFERENCES missions(id) ON DELETE CASCADE,
            questions JSONB NOT NULL,
            pass_threshold DOUBLE PRECISION NOT NULL DEFAULT 1.0
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS mission_qr_details (
            mission_id UUID PRIMARY KEY REFERENCES missions(id) ON DELETE CASCADE,
            completion_code VARCHAR(64) UNIQUE NOT NULL
        )
    """)

    # --- Completions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS mission_completions (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            mission_id UUID NOT NULL REFERENCES missions(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL,
            result_data JSONB,
            moderator_id UUID REFERENCES managers(id),
            moderator_comment TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_mission_completions_user_mission UNIQUE (user_id, mission_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_mission_completions_user_id
        ON mission_completions(user_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_mission_completions_mission_id
        ON mission_completions(mission_id)
    """)

    # --- Competencies ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS competencies (
            id UUID PRIMARY KEY,
            name VARCHAR(255) NOT NULL,
            description TEXT,
            campaign_id UUID REFERENCES campaigns(id) ON DELETE CASCADE,
            is_global BOOLEAN NOT NULL DEFAULT true,
            deleted_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_competencies (
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            competency_id UUID NOT NULL REFERENCES competencies(id) ON DELETE CASCADE,
            progress_points INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (user_id, competency_id)
        )
    """)

    # --- Store ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS store_items (
            id UUID PRIMARY KEY,
            name VARCHAR(255) NOT NULL,
            description TEXT,
            image_url TEXT,
            cost INTEGER NOT NULL,
            quantity INTEGER,
            campaign_id UUID REFERENCES campaigns(id) ON DELETE CASCADE,
            is_global BOOLEAN NOT NULL DEFAULT false,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_store_items_campaign_id
        ON store_items(campaign_id)
    """)


def downgrade() -> None:
    for table in (
        "store_items",
        "user_competencies",
        "competencies",
        "mission_completions",
        "mission_qr_details",
        "mission_quiz_details",
        "mission_manual_details",
        "missions",
        "user_achievements",
        "achievements",
        "user_campaigns",
        "campaigns",
        "managers",
        "users",
        "ranks",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
