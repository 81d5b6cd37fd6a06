"""
Query service for events, members and RSVPs.

Provides common query patterns with:
- Eager loading to avoid N+1 queries
- Candidate selection for recurrence expansion
- Replace-all semantics for hidden-from lists
"""

from datetime import datetime
from typing import Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, delete, and_, or_
from sqlalchemy.orm import Session, selectinload, joinedload

from src.constants import EventCategory
from src.models.events import Event, EventHiddenFrom, EventRsvp
from src.models.family import FamilyMember
from src.services.dates import end_of_day


def _event_load_options():
    return (
        joinedload(Event.creator),
        selectinload(Event.hidden_from).joinedload(EventHiddenFrom.user),
        selectinload(Event.rsvps).joinedload(EventRsvp.user),
    )


# =============================================================================
# Event Queries
# =============================================================================


def get_candidate_events(
    session: Session,
    range_end: datetime,
    category: Optional[EventCategory] = None,
) -> Sequence[Event]:
    """
    Get every event that could have an occurrence up to range_end.

    One-off events qualify when they start on or before the last day of the
    range; every recurring anchor qualifies, because a series that started
    long ago can still produce occurrences inside the window. Expansion
    decides the final set.

    Args:
        session: Database session
        range_end: Window end
        category: Optional category filter

    Returns:
        Events with creator, hidden-from members and RSVPs eagerly loaded
    """
    conditions = [
        or_(
            and_(Event.recurrence.is_(None), Event.start_date <= end_of_day(range_end)),
            Event.recurrence.is_not(None),
        )
    ]
    if category is not None:
        conditions.append(Event.category == category.value)

    stmt = (
        select(Event)
        .where(and_(*conditions))
        .options(*_event_load_options())
        .order_by(Event.start_date)
    )

    return session.scalars(stmt).unique().all()


def get_event_by_id(session: Session, event_id: UUID) -> Optional[Event]:
    """
    Get a single event by ID with all relationships loaded.

    Returns:
        Event or None
    """
    stmt = (
        select(Event)
        .where(Event.id == event_id)
        .options(*_event_load_options())
        .execution_options(populate_existing=True)
    )
    return session.scalars(stmt).unique().one_or_none()


def get_all_events(
    session: Session,
    category: Optional[EventCategory] = None,
) -> Sequence[Event]:
    """Get every event (used for full-calendar export)."""
    stmt = select(Event).options(*_event_load_options()).order_by(Event.start_date)
    if category is not None:
        stmt = stmt.where(Event.category == category.value)
    return session.scalars(stmt).unique().all()


def replace_hidden_from(
    session: Session,
    event_id: UUID,
    user_ids: Iterable[UUID],
) -> None:
    """
    Replace an event's hidden-from list.

    Deletes every existing entry, then inserts the new set, inside the
    caller's transaction so readers never observe a partial list.

    Args:
        session: Database session
        event_id: Event ID
        user_ids: New hidden-from member IDs (duplicates ignored)
    """
    session.execute(delete(EventHiddenFrom).where(EventHiddenFrom.event_id == event_id))
    for user_id in dict.fromkeys(user_ids):
        session.add(EventHiddenFrom(event_id=event_id, user_id=user_id))
    session.flush()


# =============================================================================
# Member Queries
# =============================================================================


def get_member_by_id(session: Session, member_id: UUID) -> Optional[FamilyMember]:
    return session.get(FamilyMember, member_id)


def get_members_by_ids(
    session: Session,
    member_ids: Iterable[UUID],
) -> Sequence[FamilyMember]:
    """
    Get members by ID.

    Returns:
        The members that exist; unknown IDs are simply absent
    """
    ids = list(dict.fromkeys(member_ids))
    if not ids:
        return []
    stmt = select(FamilyMember).where(FamilyMember.id.in_(ids))
    return session.scalars(stmt).all()


# =============================================================================
# RSVP Queries
# =============================================================================


def get_rsvp(session: Session, event_id: UUID, user_id: UUID) -> Optional[EventRsvp]:
    """Get one member's response; refreshes any copy already in the session."""
    stmt = (
        select(EventRsvp)
        .where(and_(EventRsvp.event_id == event_id, EventRsvp.user_id == user_id))
        .options(joinedload(EventRsvp.user))
        .execution_options(populate_existing=True)
    )
    return session.scalars(stmt).one_or_none()

