"""
WeeklyScore — materialized per-(user, week) aggregate of scored streaks.

Fully derivable from the events ledger: safe to drop and rebuild. The
materializer overwrites the whole row on every recompute; nothing else
writes here. Leaderboard / profile readers consume these rows directly.

week_start: local Monday date in the user's timezone at recompute time.
"""
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class WeeklyScore(Base):
    __tablename__ = "weekly_scores"
    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_weekly_scores_user_week"),
        Index("ix_weekly_scores_week_points", "week_start", "total_points"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    total_points: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0"),
    )
    streak_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
        comment="Streaks that scored > 0 points",
    )
    longest_streak: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
        comment="Seconds; longest scoring streak of the week",
    )
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
