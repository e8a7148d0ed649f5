"""
Event Ledger — append-only store of lock/unlock events per user.

Public API
----------
insert(db, user_id, client_id, event_type, timestamp, source, received_at) -> str | None
events_since(db, user_id, since, exclude_client_ids, limit)               -> list[Event]
last_event(db, user_id)                                                   -> Event | None
events_in_window(db, user_id, start, end, event_type)                     -> list[Event]
preceding_lock(db, user_id, before)                                       -> Event | None
purge_events_before(db, cutoff)                                           -> int
erase_user(db, user_id)                                                   -> int

Concurrency
-----------
`insert` is a single INSERT ... ON CONFLICT (user_id, client_id) DO NOTHING,
never read-then-write, so two devices syncing the same user at once cannot
both store a row for one client_id. Backends without ON CONFLICT are not
supported.

None of these functions commit except where noted; the caller owns the
transaction.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.db.base import conflict_insert
from app.models.event import Event, EventType
from app.models.weekly_score import WeeklyScore
from app.services.clock import as_utc

DEFAULT_PAGE_SIZE = 100


def _ev(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def insert(
    db: Session,
    user_id: str,
    client_id: str,
    event_type: EventType | str,
    timestamp: datetime,
    source: str,
    received_at: datetime,
) -> Optional[str]:
    """
    Store an event unless (user_id, client_id) is already present.
    Returns the new server id, or None when the event already existed.
    """
    values = {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "client_id": client_id,
        "event_type": _ev(event_type),
        "timestamp": as_utc(timestamp),
        "source": source,
        "created_at": as_utc(received_at),
    }

    stmt = (
        conflict_insert(db, Event)
        .values(**values)
        .on_conflict_do_nothing(index_elements=["user_id", "client_id"])
        .returning(Event.id)
    )
    return db.execute(stmt).scalar_one_or_none()


def purge_events_before(db: Session, cutoff: datetime) -> int:
    """Delete events whose timestamp is older than cutoff. Commits."""
    result = db.execute(
        delete(Event).where(Event.timestamp < as_utc(cutoff))
    )
    db.commit()
    return result.rowcount or 0


def erase_user(db: Session, user_id: str) -> int:
    """Full-account erasure: ledger rows and weekly scores. Commits."""
    result = db.execute(delete(Event).where(Event.user_id == user_id))
    db.execute(delete(WeeklyScore).where(WeeklyScore.user_id == user_id))
    db.commit()
    return result.rowcount or 0


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def events_since(
    db: Session,
    user_id: str,
    since: datetime,
    exclude_client_ids: Iterable[str] = (),
    limit: int = DEFAULT_PAGE_SIZE,
) -> list[Event]:
    """
    Events received (server receipt time) strictly after `since`, minus the
    client ids the caller already holds, oldest event timestamp first.
    """
    stmt = select(Event).where(
        Event.user_id == user_id,
        Event.created_at > as_utc(since),
    )
    excluded = list(exclude_client_ids)
    if excluded:
        stmt = stmt.where(Event.client_id.notin_(excluded))
    stmt = stmt.order_by(Event.timestamp.asc(), Event.id.asc()).limit(limit)
    return list(db.scalars(stmt))


def last_event(db: Session, user_id: str) -> Optional[Event]:
    stmt = (
        select(Event)
        .where(Event.user_id == user_id)
        .order_by(Event.timestamp.desc(), Event.created_at.desc())
        .limit(1)
    )
    return db.scalars(stmt).first()


def events_in_window(
    db: Session,
    user_id: str,
    start: datetime,
    end: datetime,
    event_type: EventType | str | None = None,
) -> list[Event]:
    """All events with start <= timestamp < end, oldest first."""
    stmt = select(Event).where(
        Event.user_id == user_id,
        Event.timestamp >= as_utc(start),
        Event.timestamp < as_utc(end),
    )
    if event_type is not None:
        stmt = stmt.where(Event.event_type == _ev(event_type))
    stmt = stmt.order_by(Event.timestamp.asc(), Event.id.asc())
    return list(db.scalars(stmt))


def preceding_lock(db: Session, user_id: str, before: datetime) -> Optional[Event]:
    """Most recent lock strictly before `before`, with no lower bound."""
    stmt = (
        select(Event)
        .where(
            Event.user_id == user_id,
            Event.event_type == EventType.lock.value,
            Event.timestamp < as_utc(before),
        )
        .order_by(Event.timestamp.desc())
        .limit(1)
    )
    return db.scalars(stmt).first()
