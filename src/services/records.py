"""
Plain records the calendar engine works on.

The engine never touches ORM rows: the storage layer hands it EventRecord
snapshots, and expansion produces Occurrence instances that live only for the
duration of one query.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, TYPE_CHECKING

from src.constants import EventCategory, MemberRole, RsvpStatus
from src.services.dates import ensure_utc, format_recurrence_id, optional_utc

if TYPE_CHECKING:
    from src.models.events import Event
    from src.models.family import FamilyMember
    from src.services.recurrence import RecurrenceRule


@dataclass(frozen=True)
class Viewer:
    """The member a request is evaluated for."""

    user_id: uuid.UUID
    role: MemberRole

    @property
    def is_admin(self) -> bool:
        return self.role == MemberRole.ADMIN

    @property
    def is_child(self) -> bool:
        return self.role == MemberRole.CHILD

    @classmethod
    def from_member(cls, member: "FamilyMember") -> "Viewer":
        return cls(user_id=member.id, role=MemberRole(member.role))


@dataclass(frozen=True)
class MemberSummary:
    """Public identity of a member as shown next to events and RSVPs."""

    id: uuid.UUID
    first_name: str
    last_name: str
    email: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_member(cls, member: "FamilyMember") -> "MemberSummary":
        return cls(
            id=member.id,
            first_name=member.first_name,
            last_name=member.last_name,
            email=member.email,
        )


@dataclass(frozen=True)
class RsvpRecord:
    """One member's series-wide response to an anchor event."""

    event_id: uuid.UUID
    user_id: uuid.UUID
    status: RsvpStatus
    user: Optional[MemberSummary] = None


@dataclass(frozen=True)
class EventRecord:
    """
    Snapshot of a stored event (the anchor of a series).

    hidden_from lists the members the event is hidden from; rsvps holds the
    series-wide responses when the storage layer loaded them.
    """

    id: uuid.UUID
    title: str
    start_date: datetime
    created_by_id: uuid.UUID
    end_date: Optional[datetime] = None
    all_day: bool = False
    description: Optional[str] = None
    location: Optional[str] = None
    category: EventCategory = EventCategory.OTHER
    color: Optional[str] = None
    image_url: Optional[str] = None
    recurrence: Optional["RecurrenceRule"] = None
    creator: Optional[MemberSummary] = None
    hidden_from: tuple[MemberSummary, ...] = ()
    rsvps: tuple[RsvpRecord, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def hidden_from_ids(self) -> frozenset[uuid.UUID]:
        return frozenset(member.id for member in self.hidden_from)

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    @property
    def duration(self) -> Optional[timedelta]:
        """Fixed length of every occurrence, or None when the event has no end."""
        if self.end_date is None:
            return None
        return self.end_date - self.start_date

    @classmethod
    def from_model(
        cls,
        event: "Event",
        recurrence: Optional["RecurrenceRule"] = None,
    ) -> "EventRecord":
        """
        Build a record from an ORM row.

        The stored recurrence JSON is parsed by the caller so a malformed rule
        can be handled per event; pass the parsed rule in.
        """
        return cls(
            id=event.id,
            title=event.title,
            start_date=ensure_utc(event.start_date),
            end_date=optional_utc(event.end_date),
            all_day=event.all_day,
            description=event.description,
            location=event.location,
            category=EventCategory(event.category),
            color=event.color,
            image_url=event.image_url,
            recurrence=recurrence,
            created_by_id=event.created_by_id,
            creator=MemberSummary.from_member(event.creator) if event.creator else None,
            hidden_from=tuple(
                MemberSummary.from_member(entry.user) for entry in event.hidden_from
            ),
            rsvps=tuple(
                RsvpRecord(
                    event_id=rsvp.event_id,
                    user_id=rsvp.user_id,
                    status=RsvpStatus(rsvp.status),
                    user=MemberSummary.from_member(rsvp.user) if rsvp.user else None,
                )
                for rsvp in event.rsvps
            ),
            created_at=optional_utc(event.created_at),
            updated_at=optional_utc(event.updated_at),
        )


@dataclass(frozen=True)
class Occurrence:
    """
    One concrete instance of an event inside a query window.

    For a one-off event the single occurrence carries the anchor's own dates.
    """

    event: EventRecord
    start_date: datetime
    end_date: Optional[datetime]
    is_recurring: bool
    rsvps: tuple[RsvpRecord, ...] = field(default=())

    @property
    def event_id(self) -> uuid.UUID:
        return self.event.id

    @property
    def original_date(self) -> datetime:
        return self.event.start_date

    @property
    def occurrence_id(self) -> str:
        """Stable identity: same anchor and same instance start give the same id."""
        return f"{self.event.id}:{format_recurrence_id(self.start_date)}"
