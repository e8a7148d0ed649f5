"""
Weekly score schemas.

GET  /scores/week       → WeeklyScoreResponse
POST /scores/recompute  → WeeklyScoreResponse
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WeeklyScoreResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    week_start: str = Field(description="Local Monday (ISO date) of the scored week.")
    total_points: float
    streak_count: int = Field(description="Streaks that earned points.")
    longest_streak: int = Field(description="Longest scoring streak, seconds.")
    calculated_at: Optional[int] = Field(
        default=None,
        description="Epoch ms of the last recompute; null if never computed.",
    )
