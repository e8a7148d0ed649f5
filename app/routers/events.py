"""
Events router.

POST /events/sync     — push a device's events, pull other devices' events
GET  /events/current  — is the user currently in a streak?
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_clock, get_current_user_id, get_now, get_user_directory
from app.core.errors import SyncBatchTooLargeError
from app.db.base import get_db
from app.models.event import Event
from app.schemas.common import ErrorResponse
from app.schemas.events import (
    ConfirmationOut,
    CurrentStreakResponse,
    ServerEventOut,
    SyncRequest,
    SyncResponse,
)
from app.services.clock import from_epoch_ms, to_epoch_ms
from app.services.streaks import current_streak
from app.services.sync import SyncEvent, SyncResult, sync_events
from app.services.user_directory import UserDirectory

router = APIRouter(prefix="/events", tags=["events"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _event_to_response(ev: Event) -> ServerEventOut:
    return ServerEventOut(
        id=ev.id,
        event_type=ev.event_type,
        timestamp=to_epoch_ms(ev.timestamp),
        source=ev.source,
    )


def _result_to_response(result: SyncResult) -> SyncResponse:
    return SyncResponse(
        confirmed=[
            ConfirmationOut(client_id=c.client_id, server_id=c.server_id)
            for c in result.confirmed
        ],
        new_events=[_event_to_response(ev) for ev in result.new_events],
        server_time=to_epoch_ms(result.server_time),
    )


# ---------------------------------------------------------------------------
# POST /events/sync
# ---------------------------------------------------------------------------

@router.post(
    "/sync",
    response_model=SyncResponse,
    summary="Sync lock/unlock events from a device",
    responses={
        401: {"model": ErrorResponse, "description": "No authenticated user."},
        422: {"model": ErrorResponse, "description": "Malformed batch; nothing was processed."},
    },
)
def sync(
    payload: SyncRequest,
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    clock: Callable[[], datetime] = Depends(get_clock),
    directory: UserDirectory = Depends(get_user_directory),
    db: Session = Depends(get_db),
):
    """
    Store the device's events and return the ones it is missing.

    - Events older than 7 days are dropped; events more than 60 s in the
      future are stored at server time.
    - Re-sending an event (same `id`) is a no-op and is not re-confirmed.
    - `confirmed` lists only events stored by *this* request. Anything the
      device sent that is not confirmed should be retried later.
    - `newEvents` holds events received from the user's other devices since
      `lastSync`, oldest first, at most 100.
      An event can show up on two consecutive syncs; deduplicate by `id`.
    - Use `serverTime` as the next `lastSync`.
    """
    if len(payload.events) > settings.SYNC_MAX_EVENTS:
        raise SyncBatchTooLargeError(
            max_events=settings.SYNC_MAX_EVENTS, received=len(payload.events)
        )

    events = [
        SyncEvent(
            client_id=str(e.id),
            event_type=e.event_type,
            timestamp=from_epoch_ms(e.timestamp),
            source=e.source,
        )
        for e in payload.events
    ]
    result = sync_events(
        db,
        user_id=user_id,
        events=events,
        last_sync=from_epoch_ms(payload.last_sync),
        directory=directory,
        now=now,
        received_clock=clock,
    )
    return _result_to_response(result)


# ---------------------------------------------------------------------------
# GET /events/current
# ---------------------------------------------------------------------------

@router.get(
    "/current",
    response_model=CurrentStreakResponse,
    summary="Current streak state",
)
def current(
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    """In a streak when the most recent event (by timestamp) is a lock."""
    state = current_streak(db, user_id, now)
    return CurrentStreakResponse(
        in_streak=state.in_streak,
        streak_started_at=to_epoch_ms(state.started_at) if state.started_at else None,
        current_streak_seconds=state.seconds,
    )
