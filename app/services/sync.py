"""
Sync Reconciler — merges a device's event batch into the ledger and hands
back what the device has not seen yet.

Per event, strictly in the order received:
  1. clock normalization (stale → skip, future → clamp)
  2. ledger insert-if-absent (duplicate client_id → skip, not an error)
  3. new row → {client_id, server_id} appended to `confirmed`

Each newly stored event is committed on its own, so a storage failure on one
event leaves the earlier confirmations durable; the device simply re-sends
whatever is missing from `confirmed` next time.

Multi-device convergence: the response carries every event received by the
server after the device's `last_sync` cursor, except the ones this request
carried. The cursor handed back is the request's `now`, floored to the
millisecond on the wire. Receipt time is read from `received_clock` at insert
and is never earlier than `now`, so rows written by an overlapping request land
after the cursor. Delivery is at-least-once: a device can see an event on two
syncs, never on none. Events are immutable, so overlapping sequences from two
devices are both stored and ordered by timestamp when read.

Score recompute runs after the ledger writes when something new was
confirmed, and cannot fail the sync.

Public API
----------
sync_events(db, user_id, events, last_sync, directory, now, received_clock) -> SyncResult
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.event import Event
from app.services import ledger
from app.services.clock import ClockAction, as_utc, normalize_timestamp, utc_now
from app.services.materializer import recompute_safely
from app.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DTOs (schema-agnostic)
# ---------------------------------------------------------------------------

@dataclass
class SyncEvent:
    client_id: str
    event_type: str
    timestamp: datetime
    source: str


@dataclass
class Confirmation:
    client_id: str
    server_id: str


@dataclass
class SyncResult:
    confirmed: list[Confirmation] = field(default_factory=list)
    new_events: list[Event] = field(default_factory=list)
    server_time: Optional[datetime] = None
    rejected: list[str] = field(default_factory=list)     # stale client ids
    duplicates: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)       # storage errors
    score_updated: bool = False


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------

def _store_one(
    db: Session,
    user_id: str,
    item: SyncEvent,
    now: datetime,
    received_clock: Callable[[], datetime],
    result: SyncResult,
) -> None:
    decision = normalize_timestamp(
        item.timestamp,
        now,
        max_age=timedelta(days=settings.EVENT_MAX_AGE_DAYS),
        max_drift=timedelta(seconds=settings.EVENT_MAX_FUTURE_DRIFT_SECONDS),
    )
    if decision.rejected:
        logger.info("Rejecting stale event from user %s: %s", user_id, item.client_id)
        result.rejected.append(item.client_id)
        return
    if decision.action is ClockAction.clamped:
        logger.info("Normalizing future timestamp from user %s: %s", user_id, item.client_id)

    try:
        server_id = ledger.insert(
            db,
            user_id=user_id,
            client_id=item.client_id,
            event_type=item.event_type,
            timestamp=decision.timestamp,
            source=item.source,
            received_at=max(now, as_utc(received_clock())),
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error inserting event %s for user %s", item.client_id, user_id)
        result.failed.append(item.client_id)
        return

    if server_id is None:
        result.duplicates.append(item.client_id)
        return
    result.confirmed.append(Confirmation(client_id=item.client_id, server_id=server_id))


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def sync_events(
    db: Session,
    user_id: str,
    events: list[SyncEvent],
    last_sync: datetime,
    directory: UserDirectory,
    now: Optional[datetime] = None,
    received_clock: Callable[[], datetime] = utc_now,
) -> SyncResult:
    now = as_utc(now or utc_now())
    result = SyncResult(server_time=now)

    for item in events:
        _store_one(db, user_id, item, now, received_clock, result)

    result.new_events = ledger.events_since(
        db,
        user_id,
        since=last_sync,
        exclude_client_ids=[e.client_id for e in events],
        limit=settings.SYNC_PAGE_SIZE,
    )
    # Detached so the recompute commit below does not expire them.
    for ev in result.new_events:
        db.expunge(ev)

    if result.confirmed:
        result.score_updated = recompute_safely(db, user_id, directory, now) is not None

    logger.debug(
        "Sync for user %s: received=%d confirmed=%d duplicates=%d rejected=%d failed=%d new=%d",
        user_id, len(events), len(result.confirmed), len(result.duplicates),
        len(result.rejected), len(result.failed), len(result.new_events),
    )
    return result
