"""
RSVP storage and attachment.

RSVPs are keyed by (event, member) on the anchor event, so a single response
applies to every occurrence of a recurring series. Writes are upserts on that
key; there is never more than one response per member per event.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import replace
from typing import Iterable

from sqlalchemy import and_, delete, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from src.constants import RsvpStatus
from src.models.events import EventRsvp
from src.services.queries import get_rsvp
from src.services.records import MemberSummary, Occurrence, RsvpRecord

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def attach_rsvps(
    occurrences: Iterable[Occurrence],
    rsvps: Iterable[RsvpRecord],
) -> list[Occurrence]:
    """
    Attach RSVPs to occurrences by anchor event.

    Every occurrence of an event receives that event's full RSVP set; events
    with no responses get an empty set.

    Returns:
        New occurrences in the input order
    """
    by_event: dict[uuid.UUID, list[RsvpRecord]] = defaultdict(list)
    for rsvp in rsvps:
        by_event[rsvp.event_id].append(rsvp)

    return [
        replace(occurrence, rsvps=tuple(by_event.get(occurrence.event_id, ())))
        for occurrence in occurrences
    ]


def to_record(rsvp: EventRsvp) -> RsvpRecord:
    return RsvpRecord(
        event_id=rsvp.event_id,
        user_id=rsvp.user_id,
        status=RsvpStatus(rsvp.status),
        user=MemberSummary.from_member(rsvp.user) if rsvp.user else None,
    )


def upsert_rsvp(
    session: Session,
    event_id: uuid.UUID,
    user_id: uuid.UUID,
    status: RsvpStatus,
) -> RsvpRecord:
    """
    Create or update a member's response to an event.

    Uses INSERT ... ON CONFLICT (event_id, user_id) DO UPDATE where the
    database supports it, so concurrent submissions cannot create duplicates.

    Returns:
        The stored response
    """
    status = RsvpStatus(status)
    insert = _UPSERT_INSERTS.get(session.get_bind().dialect.name)

    if insert is not None:
        stmt = insert(EventRsvp).values(
            id=uuid.uuid4(),
            event_id=event_id,
            user_id=user_id,
            status=status.value,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[EventRsvp.event_id, EventRsvp.user_id],
            set_={"status": stmt.excluded.status, "updated_at": func.now()},
        )
        session.execute(stmt)
    else:
        existing = get_rsvp(session, event_id, user_id)
        if existing is None:
            session.add(EventRsvp(event_id=event_id, user_id=user_id, status=status.value))
        else:
            existing.status = status.value

    session.flush()
    rsvp = get_rsvp(session, event_id, user_id)
    logger.info(f"RSVP {status.value} recorded for event {event_id} by {user_id}")
    return to_record(rsvp)


def remove_rsvp(session: Session, event_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    """
    Delete a member's response to an event.

    Returns:
        True if a response was deleted, False if there was none
    """
    result = session.execute(
        delete(EventRsvp).where(
            and_(EventRsvp.event_id == event_id, EventRsvp.user_id == user_id)
        )
    )
    removed = result.rowcount > 0
    if removed:
        logger.info(f"RSVP removed for event {event_id} by {user_id}")
    return removed

