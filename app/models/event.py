"""
Event — one lock/unlock transition reported by a device.

Append-only ledger. Rows are never updated; they disappear only through the
age-based retention purge or full-account erasure.

Identity is (user_id, client_id): client_id is the idempotency key generated
on the device, so a re-sent event hits the unique constraint and is a no-op.

`timestamp`  — when the transition happened (device clock, normalized).
`created_at` — when the server received it; the multi-device delta cursor.
"""
import enum
import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class EventType(str, enum.Enum):
    lock = "lock"
    unlock = "unlock"


def _new_id() -> str:
    return str(uuid.uuid4())


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        UniqueConstraint("user_id", "client_id", name="uq_events_user_client"),
        CheckConstraint("event_type IN ('lock', 'unlock')", name="ck_events_event_type"),
        Index("ix_events_user_timestamp", "user_id", "timestamp"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    client_id: Mapped[str] = mapped_column(String(36), nullable=False)
    event_type: Mapped[str] = mapped_column(String(10), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source: Mapped[str] = mapped_column(
        String(20), nullable=False,
        comment="automatic | manual | shortcut | install | verification (free-form)",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
