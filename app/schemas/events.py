"""
Event sync request / response schemas.

POST /events/sync     → SyncRequest → SyncResponse
GET  /events/current  → CurrentStreakResponse

Wire names are camelCase (mobile clients); Python attributes stay snake_case.
Instants on the wire are epoch milliseconds.
"""
from __future__ import annotations

import math
from typing import Annotated, Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

EventTypeName = Literal["lock", "unlock"]

# 9999-12-31T23:59:59.999Z; anything later cannot be a datetime.
MAX_EPOCH_MS = 253_402_300_799_999


def _floor_ms(value: Any) -> Any:
    if isinstance(value, float) and math.isfinite(value):
        return math.floor(value)
    return value


# Any JSON number; fractional milliseconds are floored.
EpochMs = Annotated[int, BeforeValidator(_floor_ms), Field(ge=0, le=MAX_EPOCH_MS)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class SyncEventIn(_CamelModel):
    """One event recorded on the device."""
    id: UUID = Field(description="Client-generated idempotency key.")
    event_type: EventTypeName = Field(examples=["lock"])
    timestamp: Annotated[EpochMs, Field(description="Device time, epoch ms.")]
    source: Annotated[str, Field(
        min_length=1,
        max_length=20,
        description="Provenance tag: automatic, manual, shortcut, install, verification.",
        examples=["automatic"],
    )]


class SyncRequest(_CamelModel):
    """A device's unsynced events plus its delta cursor.

    - Events are processed in list order.
    - An empty list is valid: the device is only pulling other devices' events.
    """
    events: list[SyncEventIn] = Field(default_factory=list)
    last_sync: Annotated[EpochMs, Field(description="serverTime of the previous sync, epoch ms.")]
    client_time: Annotated[EpochMs, Field(description="Device clock at send time, epoch ms.")]


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------

class ConfirmationOut(_CamelModel):
    client_id: str
    server_id: str


class ServerEventOut(_CamelModel):
    id: str = Field(description="Server id of the event.")
    event_type: EventTypeName
    timestamp: int = Field(description="Event time, epoch ms.")
    source: str


class SyncResponse(_CamelModel):
    confirmed: list[ConfirmationOut] = Field(
        description="Events newly stored by this request; absent ids must be re-sent.",
    )
    new_events: list[ServerEventOut] = Field(
        description="Events from the user's other devices received after lastSync.",
    )
    server_time: int = Field(description="Use as lastSync on the next call, epoch ms.")


class CurrentStreakResponse(_CamelModel):
    in_streak: bool
    streak_started_at: Optional[int] = Field(default=None, description="Epoch ms of the open lock.")
    current_streak_seconds: int
