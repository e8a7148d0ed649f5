"""
Engine, session factory and declarative base.

Services never open sessions themselves: they receive one from `get_db`
(HTTP requests) or from whoever drives them (startup hooks, scripts).
"""
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.core.config import settings


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Dialects with INSERT ... ON CONFLICT; every atomic write in the services
# goes through one of these.
_CONFLICT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def conflict_insert(db: Session, table):
    """INSERT construct supporting ON CONFLICT for the session's backend."""
    name = db.get_bind().dialect.name
    try:
        make_insert = _CONFLICT_INSERTS[name]
    except KeyError:
        raise NotImplementedError(f"Unsupported database dialect: {name}") from None
    return make_insert(table)
