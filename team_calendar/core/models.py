"""
Pydantic Models

Type-safe data models for API requests/responses and internal operations.
"""

from datetime import datetime, timezone
from enum import IntEnum
from typing import Optional, Any

from pydantic import BaseModel, Field, field_validator, model_validator


# =============================================================================
# Enums
# =============================================================================

class Role(IntEnum):
    """Role rank, lower is more privileged"""
    SYSADMIN = 1
    ADMIN = 2
    USER = 4


# Ranks at or below this value may manage bookings of their team
ADMIN_ROLE_RANK = Role.ADMIN


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 date-time, raising ValueError when malformed"""
    try:
        # fromisoformat only accepts the Z suffix from Python 3.11
        if value.endswith(("Z", "z")):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except (AttributeError, TypeError, ValueError):
        raise ValueError(f"'{value}' is not an ISO 8601 date-time")


def to_instant(value: str) -> datetime:
    """
    Parse a timestamp into a naive UTC datetime for ordering.

    Offsets are applied, naive values are taken as UTC. Only used to
    compare bookings, stored values keep the caller's original text.
    """
    parsed = parse_timestamp(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def check_range(start: str, end: str) -> None:
    start_dt = parse_timestamp(start)
    end_dt = parse_timestamp(end)
    if (start_dt.tzinfo is None) != (end_dt.tzinfo is None):
        raise ValueError("start and end must both carry a timezone or both omit it")
    if start_dt >= end_dt:
        raise ValueError("end must be after start")


# =============================================================================
# Actor Context
# =============================================================================

class Actor(BaseModel):
    """The authenticated user an operation runs as"""
    user_id: int = Field(..., ge=1, description="Acting user ID")
    team_id: int = Field(..., ge=1, description="Acting user's team ID")
    role_rank: int = Field(default=Role.USER, ge=1, description="Role rank (1=sysadmin, 2=admin)")

    @property
    def is_admin(self) -> bool:
        return self.role_rank <= ADMIN_ROLE_RANK


# =============================================================================
# Booking Models
# =============================================================================

class BookingEventCreate(BaseModel):
    """Create a booking for an item"""
    start: str = Field(..., description="Start, e.g. 2016-07-22T13:37:00")
    end: str = Field(..., description="End, e.g. 2016-07-22T19:42:00")
    title: str = Field(default="", max_length=255, description="Comment entered by the booker")

    @model_validator(mode="after")
    def validate_range(self) -> "BookingEventCreate":
        check_range(self.start, self.end)
        return self


class BookingTimesUpdate(BaseModel):
    """Move a booking (drag and drop)"""
    start: str
    end: str

    @model_validator(mode="after")
    def validate_range(self) -> "BookingTimesUpdate":
        check_range(self.start, self.end)
        return self


class BookingEndUpdate(BaseModel):
    """Resize a booking"""
    end: str

    @field_validator("end")
    @classmethod
    def validate_end(cls, v: str) -> str:
        parse_timestamp(v)
        return v


class BookingBind(BaseModel):
    """Bind an experiment to a booking"""
    experiment_id: int = Field(..., ge=1, description="Experiment ID")


class BookingEvent(BaseModel):
    """Full booking model"""
    id: int
    team: int
    item: int
    experiment: Optional[int] = None
    start: str
    end: str
    userid: int
    title: str

    class Config:
        from_attributes = True


class ItemCalendarEvent(BookingEvent):
    """Booking of one item, title composed as 'title (First Last) experiment'"""
    pass


class TeamCalendarEvent(BaseModel):
    """Booking in the team calendar, title composed as '[item] title (First Last)'"""
    id: int
    start: str
    end: str
    userid: int
    title: str
    item_title: Optional[str] = None

    class Config:
        from_attributes = True


# =============================================================================
# API Response Models
# =============================================================================

class APIResponse(BaseModel):
    """Standard API response wrapper"""
    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None
