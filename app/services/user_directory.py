"""
User directory — the one thing scoring needs from the account subsystem:
which IANA timezone a user's week boundaries live in.
"""
from __future__ import annotations

from typing import Mapping, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.user import User
from app.services.week import DEFAULT_TIMEZONE


class UserDirectory(Protocol):
    def get_timezone(self, user_id: str) -> str: ...


class SqlUserDirectory:
    """Reads `users.timezone`; users without a row get the default zone."""

    def __init__(self, db: Session, default_timezone: str = DEFAULT_TIMEZONE):
        self.db = db
        self.default_timezone = default_timezone

    def get_timezone(self, user_id: str) -> str:
        tz = self.db.scalar(select(User.timezone).where(User.id == user_id))
        return tz or self.default_timezone


class StaticUserDirectory:
    def __init__(
        self,
        timezones: Mapping[str, str] | None = None,
        default_timezone: str = DEFAULT_TIMEZONE,
    ):
        self.timezones = dict(timezones or {})
        self.default_timezone = default_timezone

    def get_timezone(self, user_id: str) -> str:
        return self.timezones.get(user_id, self.default_timezone)
