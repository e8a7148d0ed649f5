"""
Weekly Score Materializer — recompute and upsert one weekly_scores row.

recompute(db, user_id, directory, now)
  1. resolve the user's current week (their timezone, Monday boundary)
  2. extract streaks for that week
  3. score each streak; aggregate
       total_points   = sum of points
       streak_count   = streaks scoring > 0
       longest_streak = longest scoring streak, seconds
  4. upsert (user_id, week_start), overwriting every column

Reads and the upsert run in one transaction and commit once. The result is a
full recompute, never an increment, so two overlapping requests recomputing
the same user just write the same row twice.

recompute_safely() is what the sync path calls: a scoring failure is logged
and swallowed there because the ledger write has already been committed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.base import conflict_insert
from app.models.weekly_score import WeeklyScore
from app.services.clock import as_utc, utc_now
from app.services.scoring import points, quantize_points
from app.services.streaks import extract_streaks
from app.services.user_directory import UserDirectory
from app.services.week import Week, resolve_week

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class WeeklyTotals:
    week: Week
    total_points: Decimal
    streak_count: int
    longest_streak: int   # seconds


# ---------------------------------------------------------------------------
# Calculation (reads only)
# ---------------------------------------------------------------------------

def calculate_week(
    db: Session,
    user_id: str,
    week: Week,
    min_seconds: Optional[int] = None,
) -> WeeklyTotals:
    floor = settings.MIN_STREAK_SECONDS if min_seconds is None else min_seconds
    total = Decimal("0")
    count = 0
    longest = 0.0

    for streak in extract_streaks(db, user_id, week):
        earned = points(streak.lock_at, streak.unlock_at, floor)
        if earned <= 0:
            continue
        total += earned
        count += 1
        longest = max(longest, streak.duration_seconds)

    return WeeklyTotals(
        week=week,
        total_points=quantize_points(total),
        streak_count=count,
        longest_streak=int(round(longest)),
    )


# ---------------------------------------------------------------------------
# Upsert
# ---------------------------------------------------------------------------

def _upsert(db: Session, user_id: str, totals: WeeklyTotals, calculated_at: datetime) -> None:
    values = {
        "user_id": user_id,
        "week_start": totals.week.week_start,
        "total_points": totals.total_points,
        "streak_count": totals.streak_count,
        "longest_streak": totals.longest_streak,
        "calculated_at": calculated_at,
    }

    stmt = conflict_insert(db, WeeklyScore).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "week_start"],
        set_={
            "total_points": stmt.excluded.total_points,
            "streak_count": stmt.excluded.streak_count,
            "longest_streak": stmt.excluded.longest_streak,
            "calculated_at": stmt.excluded.calculated_at,
        },
    )
    db.execute(stmt)


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def get_weekly_score(db: Session, user_id: str, week_start: date) -> Optional[WeeklyScore]:
    return db.scalars(
        select(WeeklyScore).where(
            WeeklyScore.user_id == user_id,
            WeeklyScore.week_start == week_start,
        )
    ).first()


def current_week(directory: UserDirectory, user_id: str, now: datetime) -> Week:
    return resolve_week(now, directory.get_timezone(user_id), settings.DEFAULT_TIMEZONE)


def recompute(
    db: Session,
    user_id: str,
    directory: UserDirectory,
    now: Optional[datetime] = None,
) -> WeeklyScore:
    """Recompute the current week for user_id. Idempotent; commits."""
    now = as_utc(now or utc_now())
    week = current_week(directory, user_id, now)
    totals = calculate_week(db, user_id, week)
    _upsert(db, user_id, totals, calculated_at=now)
    db.commit()

    return get_weekly_score(db, user_id, week.week_start)


def recompute_safely(
    db: Session,
    user_id: str,
    directory: UserDirectory,
    now: Optional[datetime] = None,
) -> Optional[WeeklyScore]:
    """recompute() that never raises; returns None on failure."""
    try:
        return recompute(db, user_id, directory, now)
    except Exception:
        logger.exception("Weekly score recompute failed for user %s", user_id)
        db.rollback()
        return None
