"""
Score Function — maps one offline interval to points.

    duration < min_seconds  → 0
    otherwise               → max(0, ln(duration_minutes) * 10), 2 decimals

Deterministic by construction: scores are recomputed from scratch on every
sync, so the same (lock, unlock) pair must always produce the same value.
"""
from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

MIN_STREAK_SECONDS = 60
POINTS_SCALE = 10

_ZERO = Decimal("0.00")
_CENTS = Decimal("0.01")


def quantize_points(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def points_for_duration(
    duration_seconds: float,
    min_seconds: int = MIN_STREAK_SECONDS,
) -> Decimal:
    if duration_seconds < min_seconds:
        return _ZERO
    raw = math.log(duration_seconds / 60) * POINTS_SCALE
    if raw <= 0:
        return _ZERO
    return quantize_points(Decimal(repr(raw)))


def points(
    lock_ts: datetime,
    unlock_ts: datetime,
    min_seconds: int = MIN_STREAK_SECONDS,
) -> Decimal:
    """Points earned by a streak locked at `lock_ts` and unlocked at `unlock_ts`."""
    return points_for_duration((unlock_ts - lock_ts).total_seconds(), min_seconds)
