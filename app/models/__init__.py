from .event import Event, EventType
from .user import User
from .weekly_score import WeeklyScore

__all__ = [
    "Event",
    "EventType",
    "User",
    "WeeklyScore",
]
