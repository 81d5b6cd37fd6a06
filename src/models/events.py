"""
Event, EventRsvp and EventHiddenFrom models.

Entities:
- Event: A calendar event; recurring events are stored once as the series anchor
- EventRsvp: A member's attendance response, one per (event, member)
- EventHiddenFrom: A member excluded from seeing a "surprise" event
"""

import uuid
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import String, Text, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.constants import EventCategory, RsvpStatus
from src.models.base import BaseModel, get_json_type

# Avoid circular imports for type hints
if TYPE_CHECKING:
    from src.models.family import FamilyMember


class Event(BaseModel):
    """
    Represents a calendar event.

    Events can be:
    - One-time, or recurring via a stored recurrence rule (the row is the
      series anchor; occurrences are expanded on every query, never stored)
    - Hidden from selected members (surprise events)
    - Answered by members through series-wide RSVPs
    """

    __tablename__ = "events"

    title: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Event title"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Event description"
    )

    location: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        doc="Event location"
    )

    category: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EventCategory.OTHER.value,
        doc="Category: 'BIRTHDAY', 'REUNION', 'VACATION', 'HOLIDAY', 'OTHER'"
    )

    color: Mapped[Optional[str]] = mapped_column(
        String(7),
        nullable=True,
        doc="Display colour override (#RRGGBB)"
    )

    image_url: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        doc="Event image (admin-moderated)"
    )

    # Timing
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        doc="Start of the event, or of the first occurrence for a series (UTC)"
    )

    end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="End of the event; defines the duration of every occurrence (UTC)"
    )

    all_day: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Whether this is an all-day event"
    )

    recurrence: Mapped[Optional[dict]] = mapped_column(
        get_json_type(none_as_null=True),
        nullable=True,
        doc="Recurrence rule in wire form (frequency, interval, until, count, byDay, byMonth, byMonthDay)"
    )

    created_by_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("family_members.id"),
        nullable=False,
        doc="Family member who created this event"
    )

    # Relationships
    creator: Mapped["FamilyMember"] = relationship(
        "FamilyMember",
        back_populates="created_events",
        doc="Family member who created this event"
    )

    rsvps: Mapped[list["EventRsvp"]] = relationship(
        "EventRsvp",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        doc="Attendance responses (shared by every occurrence of a series)"
    )

    hidden_from: Mapped[list["EventHiddenFrom"]] = relationship(
        "EventHiddenFrom",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        doc="Members this event is hidden from"
    )

    __table_args__ = (
        Index("idx_event_start_date", "start_date"),
        Index("idx_event_category", "category"),
        Index("idx_event_created_by", "created_by_id"),
    )

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    def __repr__(self) -> str:
        """String representation showing title and start."""
        return f"<Event(title='{self.title}', start='{self.start_date}', recurring={self.is_recurring})>"


class EventRsvp(BaseModel):
    """
    A member's attendance response to an event.

    RSVPs belong to the anchor event, so one response covers every occurrence
    of a recurring series. Removing a response deletes the row.
    """

    __tablename__ = "event_rsvps"

    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        doc="Event ID"
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("family_members.id", ondelete="CASCADE"),
        nullable=False,
        doc="Responding family member ID"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RsvpStatus.ATTENDING.value,
        doc="Status: 'ATTENDING', 'MAYBE', 'NOT_ATTENDING'"
    )

    event: Mapped["Event"] = relationship(
        "Event",
        back_populates="rsvps",
        doc="Event this response is for"
    )

    user: Mapped["FamilyMember"] = relationship(
        "FamilyMember",
        back_populates="rsvps",
        doc="Member who responded"
    )

    __table_args__ = (
        # One response per event-member pair (upsert target)
        UniqueConstraint("event_id", "user_id", name="uq_event_rsvp"),
        Index("idx_rsvp_event", "event_id"),
        Index("idx_rsvp_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<EventRsvp(event_id={self.event_id}, user_id={self.user_id}, status='{self.status}')>"


class EventHiddenFrom(BaseModel):
    """
    A member an event is hidden from.

    The whole set for an event is replaced at once (delete-all-then-insert in
    one transaction), never edited entry by entry.
    """

    __tablename__ = "event_hidden_from"

    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        doc="Event ID"
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("family_members.id", ondelete="CASCADE"),
        nullable=False,
        doc="Hidden family member ID"
    )

    event: Mapped["Event"] = relationship(
        "Event",
        back_populates="hidden_from",
        doc="Hidden event"
    )

    user: Mapped["FamilyMember"] = relationship(
        "FamilyMember",
        doc="Member the event is hidden from"
    )

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_hidden_from"),
        Index("idx_hidden_from_event", "event_id"),
        Index("idx_hidden_from_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<EventHiddenFrom(event_id={self.event_id}, user_id={self.user_id})>"
