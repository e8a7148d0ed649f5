"""
Streak Extractor — pairs each unlock in a week with the lock before it.

For every unlock with timestamp in [week.start, week.end):
  - take the most recent lock strictly earlier than the unlock, looking back
    without any window limit (a streak may start before Monday 00:00);
  - no such lock → the unlock is an orphan and yields nothing.

A streak is therefore credited in full to the week holding its unlock.
Events from several devices interleave in the ledger; the "most recent
preceding lock" rule resolves them without knowing which device sent what.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.models.event import Event, EventType
from app.services import ledger
from app.services.clock import as_utc, utc_now
from app.services.week import Week


@dataclass(frozen=True)
class Streak:
    lock_at: datetime
    unlock_at: datetime

    @property
    def duration_seconds(self) -> float:
        return (self.unlock_at - self.lock_at).total_seconds()


@dataclass(frozen=True)
class CurrentStreak:
    in_streak: bool
    started_at: Optional[datetime]
    seconds: int


def extract_streaks(db: Session, user_id: str, week: Week) -> list[Streak]:
    unlocks = ledger.events_in_window(
        db, user_id, week.start, week.end, event_type=EventType.unlock
    )
    streaks: list[Streak] = []
    for unlock in unlocks:
        lock = ledger.preceding_lock(db, user_id, unlock.timestamp)
        if lock is None:
            continue
        streaks.append(Streak(lock_at=as_utc(lock.timestamp), unlock_at=as_utc(unlock.timestamp)))
    return streaks


def current_streak(db: Session, user_id: str, now: Optional[datetime] = None) -> CurrentStreak:
    """The user is "in a streak" when their latest event is a lock."""
    last: Optional[Event] = ledger.last_event(db, user_id)
    if last is None or last.event_type != EventType.lock.value:
        return CurrentStreak(in_streak=False, started_at=None, seconds=0)

    started_at = as_utc(last.timestamp)
    elapsed = (as_utc(now or utc_now()) - started_at).total_seconds()
    return CurrentStreak(in_streak=True, started_at=started_at, seconds=max(0, int(elapsed)))
