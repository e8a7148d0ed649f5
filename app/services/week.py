"""
Week calendar — Monday 00:00 local time is the scoring boundary.

resolve_week(instant, tz_name) -> Week

`start` / `end` are the UTC instants of local Monday 00:00 for this week
and the next one, computed through the zone so DST weeks come out as 167
or 169 hours rather than a fixed 7 * 24.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.services.clock import as_utc

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"


@dataclass(frozen=True)
class Week:
    week_start: date     # local Monday
    start: datetime      # UTC, inclusive
    end: datetime        # UTC, exclusive

    def contains(self, instant: datetime) -> bool:
        return self.start <= as_utc(instant) < self.end


def load_zone(tz_name: str | None, default: str = DEFAULT_TIMEZONE) -> ZoneInfo:
    if tz_name:
        try:
            return ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back to %s", tz_name, default)
    return ZoneInfo(default)


def _local_midnight_utc(day: date, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=zone).astimezone(timezone.utc)


def resolve_week(
    instant: datetime,
    tz_name: str | None,
    default_tz: str = DEFAULT_TIMEZONE,
) -> Week:
    zone = load_zone(tz_name, default_tz)
    local_day = as_utc(instant).astimezone(zone).date()
    monday = local_day - timedelta(days=local_day.weekday())
    return Week(
        week_start=monday,
        start=_local_midnight_utc(monday, zone),
        end=_local_midnight_utc(monday + timedelta(days=7), zone),
    )
