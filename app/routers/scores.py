"""
Scores router.

GET  /scores/week       — the caller's stored score for the current week
POST /scores/recompute  — rebuild it from the ledger now
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_user_id, get_now, get_user_directory
from app.db.base import get_db
from app.models.weekly_score import WeeklyScore
from app.schemas.common import ErrorResponse
from app.schemas.scores import WeeklyScoreResponse
from app.services.clock import to_epoch_ms
from app.services.materializer import current_week, get_weekly_score, recompute
from app.services.user_directory import UserDirectory
from app.services.week import Week

router = APIRouter(
    prefix="/scores",
    tags=["scores"],
    responses={401: {"model": ErrorResponse, "description": "No authenticated user."}},
)


def _score_to_response(week: Week, row: Optional[WeeklyScore]) -> WeeklyScoreResponse:
    if row is None:
        return WeeklyScoreResponse(
            week_start=str(week.week_start),
            total_points=0.0,
            streak_count=0,
            longest_streak=0,
            calculated_at=None,
        )
    return WeeklyScoreResponse(
        week_start=str(row.week_start),
        total_points=float(row.total_points),
        streak_count=row.streak_count,
        longest_streak=row.longest_streak,
        calculated_at=to_epoch_ms(row.calculated_at) if row.calculated_at else None,
    )


@router.get(
    "/week",
    response_model=WeeklyScoreResponse,
    summary="Stored weekly score for the current week",
)
def week_score(
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    directory: UserDirectory = Depends(get_user_directory),
    db: Session = Depends(get_db),
):
    """Read-only: returns zeros when nothing has been materialized yet."""
    week = current_week(directory, user_id, now)
    return _score_to_response(week, get_weekly_score(db, user_id, week.week_start))


@router.post(
    "/recompute",
    response_model=WeeklyScoreResponse,
    summary="Recompute the current week's score from the event ledger",
)
def recompute_score(
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    directory: UserDirectory = Depends(get_user_directory),
    db: Session = Depends(get_db),
):
    """
    Full recompute of the caller's current week. Safe to call any number of
    times; the stored row is overwritten with the same values.
    """
    week = current_week(directory, user_id, now)
    row = recompute(db, user_id, directory, now)
    return _score_to_response(week, row)
