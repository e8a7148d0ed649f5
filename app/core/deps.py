"""
Request-scoped dependencies at the seams with external collaborators.

- user identity comes from the auth middleware (request.state.user_id)
- "now" is read once per request so every step agrees on it
- the receipt clock stamps each stored event at insert time
- the user directory answers timezone lookups
"""
from datetime import datetime
from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AuthenticationRequiredError
from app.db.base import get_db
from app.services.clock import utc_now
from app.services.user_directory import SqlUserDirectory, UserDirectory


def get_current_user_id(request: Request) -> str:
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise AuthenticationRequiredError()
    return str(user_id)


def get_now() -> datetime:
    return utc_now()


def get_clock() -> Callable[[], datetime]:
    return utc_now


def get_user_directory(db: Session = Depends(get_db)) -> UserDirectory:
    return SqlUserDirectory(db, default_timezone=settings.DEFAULT_TIMEZONE)
