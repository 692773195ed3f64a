"""Initial Goalify persistence schema."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20250101_01_initial_goalify_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "user_profiles",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("total_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("daily_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_activity", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voice_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("voice_id", sa.String(length=64), nullable=False, server_default="21m00Tcm4TlvDq8ikWAM"),
        sa.Column("memory_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("tone", sa.String(length=16), nullable=False, server_default="casual"),
    )

    op.create_table(
        "user_stats",
        sa.Column("user_id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("total_goals_created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_goals_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_xp_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("highest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_sessions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_goal_completed_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "goals",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("xp_value", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("difficulty", sa.String(length=8), nullable=False, server_default="medium"),
        sa.Column("motivation", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_reasoning", sa.Text(), nullable=True),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_goals_user_created", "goals", ["user_id", "created_at"])

    op.create_table(
        "conversations",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.Text(), nullable=False, server_default="New Conversation"),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("category", sa.String(length=32), nullable=False, server_default="general"),
        sa.Column("ai_label", sa.Text(), nullable=True),
        sa.Column("soft_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_conversations_user_updated", "conversations", ["user_id", "updated_at"])

    op.create_table(
        "messages",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column(
            "conversation_id",
            sa.String(length=64),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_voice", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"])


def downgrade() -> None:
    op.drop_index("ix_messages_conversation_id", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_conversations_user_updated", table_name="conversations")
    op.drop_table("conversations")
    op.drop_index("ix_goals_user_created", table_name="goals")
    op.drop_table("goals")
    op.drop_table("user_stats")
    op.drop_table("user_profiles")
