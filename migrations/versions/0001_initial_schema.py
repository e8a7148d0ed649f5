"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

users          — directory rows (timezone lookup only)
events         — append-only ledger; unique (user_id, client_id) is the
                 idempotency guard for sync re-sends
weekly_scores  — materialized per-(user, week) scores; unique
                 (user_id, week_start) is the upsert target
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # --- events ---
    op.create_table(
        "events",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("client_id", sa.String(36), nullable=False),
        sa.Column("event_type", sa.String(10), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "client_id", name="uq_events_user_client"),
        sa.CheckConstraint("event_type IN ('lock', 'unlock')", name="ck_events_event_type"),
    )
    op.create_index("ix_events_user_timestamp", "events", ["user_id", "timestamp"])

    # --- weekly_scores ---
    op.create_table(
        "weekly_scores",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("total_points", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("streak_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("calculated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "week_start", name="uq_weekly_scores_user_week"),
    )
    op.create_index("ix_weekly_scores_user_id", "weekly_scores", ["user_id"])
    op.create_index("ix_weekly_scores_week_points", "weekly_scores", ["week_start", "total_points"])


def downgrade() -> None:
    op.drop_index("ix_weekly_scores_week_points", table_name="weekly_scores")
    op.drop_index("ix_weekly_scores_user_id", table_name="weekly_scores")
    op.drop_table("weekly_scores")
    op.drop_index("ix_events_user_timestamp", table_name="events")
    op.drop_table("events")
    op.drop_table("users")
