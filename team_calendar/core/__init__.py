"""Core components for the team calendar"""

from .database import Database, get_db
from .exceptions import (
    SchedulerError,
    NotFound,
    Forbidden,
    StorageFailure,
    BookingConflict,
)
from .models import (
    Role,
    Actor,
    BookingEvent,
    ItemCalendarEvent,
    TeamCalendarEvent,
)

__all__ = [
    "Database",
    "get_db",
    "SchedulerError",
    "NotFound",
    "Forbidden",
    "StorageFailure",
    "BookingConflict",
    "Role",
    "Actor",
    "BookingEvent",
    "ItemCalendarEvent",
    "TeamCalendarEvent",
]
