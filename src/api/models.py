"""
Pydantic request and response models for the Family Portal calendar API.

Wire keys are camelCase; request bodies also accept the snake_case field names.
Domain rules (field limits, colour format, recurrence combinations) are checked
by the service layer and reported as validation errors (400); these models
only enforce JSON types.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.constants import RsvpStatus


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Request Models
# =============================================================================


class CreateEventRequest(CamelModel):
    """Request to create an event."""

    title: str = Field(
        ...,
        description="Event title (1-100 characters)",
        examples=["Grandma's birthday"],
    )
    description: Optional[str] = Field(None, description="Up to 500 characters")
    location: Optional[str] = Field(None, description="Up to 200 characters")
    category: Optional[str] = Field(
        None,
        description="BIRTHDAY, REUNION, VACATION, HOLIDAY or OTHER (default)",
    )
    color: Optional[str] = Field(None, description="Display colour (#RRGGBB)", examples=["#FF8800"])
    image_url: Optional[str] = Field(None, description="Event image (admins only)")
    start_date: datetime = Field(..., description="Start (ISO 8601, UTC if no offset)")
    end_date: Optional[datetime] = Field(None, description="End, not before start")
    all_day: bool = Field(False, description="All-day event (compared by calendar date)")
    recurrence: Optional[dict[str, Any]] = Field(
        None,
        description="Recurrence rule: frequency, interval, until, count, byDay, byMonth, byMonthDay",
        examples=[{"frequency": "WEEKLY", "interval": 2, "byDay": ["MO"]}],
    )
    hidden_from_user_ids: Optional[list[UUID]] = Field(
        None,
        description="Members the event is hidden from (surprise events)",
    )


class UpdateEventRequest(CamelModel):
    """
    Partial update of an event.

    Only the keys present in the body are applied; an explicit null clears an
    optional field. hiddenFromUserIds replaces the whole list.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    category: Optional[str] = None
    color: Optional[str] = None
    image_url: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    all_day: Optional[bool] = None
    recurrence: Optional[dict[str, Any]] = None
    hidden_from_user_ids: Optional[list[UUID]] = None


class RsvpRequest(CamelModel):
    """Attendance response (applies to every occurrence of a series)."""

    status: RsvpStatus = Field(..., examples=["ATTENDING"])


# =============================================================================
# Response Models
# =============================================================================


class HealthResponse(CamelModel):
    """Health check response."""

    status: str = Field(..., description="healthy or unhealthy")
    version: str
    database_connected: bool


class EventListResponse(CamelModel):
    """Occurrences in a date window, sorted by start."""

    events: list[dict[str, Any]]
    total: int


class EventResponse(CamelModel):
    """A single event view."""

    event: dict[str, Any]


class RsvpResponse(CamelModel):
    """A stored RSVP."""

    rsvp: dict[str, Any]


class ErrorResponse(BaseModel):
    """Error response format."""

    error_type: str = Field(
        ...,
        description="validation_error, unauthenticated, forbidden, not_found, internal_error",
    )
    message: str
    retryable: bool = False
