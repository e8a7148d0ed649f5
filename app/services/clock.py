"""
Clock Normalizer — decides what happens to a device-reported timestamp
before it reaches the ledger.

  stale   : older than max_age relative to server now  → rejected
  future  : more than max_drift ahead of server now     → clamped to now
  anything else                                         → accepted unchanged

Pure: no persisted state, no I/O. Logging of the decision is left to the
caller, which knows the user and client ids.

Also home to the epoch-millisecond conversions used at the HTTP edge;
internally every instant is an aware UTC datetime.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


class ClockAction(str, enum.Enum):
    accepted = "accepted"
    clamped = "clamped"
    rejected = "rejected"


@dataclass(frozen=True)
class ClockDecision:
    action: ClockAction
    timestamp: datetime | None   # None when rejected

    @property
    def rejected(self) -> bool:
        return self.action is ClockAction.rejected


def normalize_timestamp(
    timestamp: datetime,
    now: datetime,
    max_age: timedelta,
    max_drift: timedelta,
) -> ClockDecision:
    ts = as_utc(timestamp)
    now = as_utc(now)
    if ts < now - max_age:
        return ClockDecision(ClockAction.rejected, None)
    if ts > now + max_drift:
        return ClockDecision(ClockAction.clamped, now)
    return ClockDecision(ClockAction.accepted, ts)


# ---------------------------------------------------------------------------
# Instant helpers
# ---------------------------------------------------------------------------

def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def from_epoch_ms(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


def to_epoch_ms(value: datetime) -> int:
    """Floors sub-millisecond precision, never rounds up past `value`."""
    delta = as_utc(value) - EPOCH
    return delta.days * 86_400_000 + delta.seconds * 1000 + delta.microseconds // 1000
