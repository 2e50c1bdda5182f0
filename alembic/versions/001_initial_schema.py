"""Initial schema: users, catalog, progress, achievements, AI usage.

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
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            email VARCHAR(320) UNIQUE,
            full_name VARCHAR(128),
            username VARCHAR(32) UNIQUE,
            avatar_url TEXT,
            role VARCHAR(16) NOT NULL DEFAULT 'user',
            points INTEGER NOT NULL DEFAULT 0,
            total_lessons_completed INTEGER NOT NULL DEFAULT 0,
            total_challenges_solved INTEGER NOT NULL DEFAULT 0,
            streak_count INTEGER NOT NULL DEFAULT 0,
            last_active_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            CONSTRAINT users_points_non_negative CHECK (points >= 0),
            CONSTRAINT users_lessons_non_negative CHECK (total_lessons_completed >= 0),
            CONSTRAINT users_challenges_non_negative CHECK (total_challenges_solved >= 0),
            CONSTRAINT users_streak_non_negative CHECK (streak_count >= 0)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_users_points ON users(points DESC, id)")

    # --- Catalog ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS lessons (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            title VARCHAR(200) NOT NULL,
            language VARCHAR(32) NOT NULL,
            level VARCHAR(16) NOT NULL DEFAULT 'beginner',
            points_reward INTEGER,
            "order" INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenges (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            title VARCHAR(200) NOT NULL,
            language VARCHAR(32) NOT NULL,
            difficulty VARCHAR(16) NOT NULL DEFAULT 'easy',
            points_reward INTEGER,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # --- Progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_lessons (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            lesson_id UUID NOT NULL REFERENCES lessons(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL DEFAULT 'in_progress',
            started_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            time_spent_minutes INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ,
            CONSTRAINT user_lessons_user_lesson_key UNIQUE (user_id, lesson_id)
        )
    """)
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_user_lessons_completed "
        "ON user_lessons(user_id, completed_at) WHERE status = 'completed'"
    )
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_challenges (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            challenge_id UUID NOT NULL REFERENCES challenges(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL DEFAULT 'attempted',
            attempts INTEGER NOT NULL DEFAULT 0,
            solved_at TIMESTAMPTZ,
            best_solution TEXT,
            updated_at TIMESTAMPTZ,
            CONSTRAINT user_challenges_user_challenge_key UNIQUE (user_id, challenge_id)
        )
    """)
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_user_challenges_solved "
        "ON user_challenges(user_id, solved_at) WHERE status = 'solved'"
    )

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id SERIAL PRIMARY KEY,
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            icon VARCHAR(64),
            criteria_type VARCHAR(32) NOT NULL,
            criteria_value INTEGER NOT NULL,
            points_reward INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id SERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id INTEGER NOT NULL REFERENCES achievements(id) ON DELETE CASCADE,
            unlocked_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT user_achievements_user_achievement_key UNIQUE (user_id, achievement_id)
        )
    """)

    # --- AI assistant ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS ai_usage (
            id SERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            message_count INTEGER NOT NULL DEFAULT 1,
            tokens_used INTEGER NOT NULL DEFAULT 0,
            model_used VARCHAR(64) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_ai_usage_user_created ON ai_usage(user_id, created_at)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ai_usage")
    op.execute("DROP TABLE IF EXISTS user_achievements")
    op.execute("DROP TABLE IF EXISTS achievements")
    op.execute("DROP TABLE IF EXISTS user_challenges")
    op.execute("DROP TABLE IF EXISTS user_lessons")
    op.execute("DROP TABLE IF EXISTS challenges")
    op.execute("DROP TABLE IF EXISTS lessons")
    op.execute("DROP TABLE IF EXISTS users")
