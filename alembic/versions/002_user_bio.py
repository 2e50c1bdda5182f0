"""Add users.bio for editable profiles.

Revision ID: 002_user_bio
Revises: 001_initial_schema
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_user_bio"
down_revision: str | None = "001_initial_schema"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("ALTER TABLE users ADD COLUMN IF NOT EXISTS bio VARCHAR(280)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_users_created ON users(created_at DESC, id)")


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_users_created")
    op.execute("ALTER TABLE users DROP COLUMN IF EXISTS bio")
