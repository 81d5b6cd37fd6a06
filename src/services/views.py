"""
JSON-ready views of events, occurrences and RSVPs.

Keys are camelCase, matching the wire format clients consume. Instants are
ISO-8601 strings in UTC.
"""

from datetime import datetime
from typing import Any, Optional

from src.services.records import EventRecord, MemberSummary, Occurrence, RsvpRecord
from src.services.recurrence import describe_recurrence


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def serialize_member(member: Optional[MemberSummary]) -> Optional[dict[str, Any]]:
    if member is None:
        return None
    return {
        "id": str(member.id),
        "firstName": member.first_name,
        "lastName": member.last_name,
    }


def serialize_rsvp(rsvp: RsvpRecord) -> dict[str, Any]:
    return {
        "eventId": str(rsvp.event_id),
        "userId": str(rsvp.user_id),
        "status": rsvp.status.value,
        "user": serialize_member(rsvp.user),
    }


def serialize_event(event: EventRecord) -> dict[str, Any]:
    """
    Serialize an anchor event with its stored dates.

    Includes the full hiddenFrom list; callers strip it for viewers without
    rights to see it.
    """
    return {
        "id": str(event.id),
        "title": event.title,
        "description": event.description,
        "location": event.location,
        "category": event.category.value,
        "categoryLabel": event.category.label,
        "color": event.color,
        "imageUrl": event.image_url,
        "startDate": _iso(event.start_date),
        "endDate": _iso(event.end_date),
        "allDay": event.all_day,
        "recurrence": event.recurrence.to_dict() if event.recurrence else None,
        "recurrenceDescription": describe_recurrence(event.recurrence),
        "isRecurring": event.is_recurring,
        "createdById": str(event.created_by_id),
        "createdBy": serialize_member(event.creator),
        "createdAt": _iso(event.created_at),
        "updatedAt": _iso(event.updated_at),
        "hiddenFrom": [serialize_member(member) for member in event.hidden_from],
        "rsvps": [serialize_rsvp(rsvp) for rsvp in event.rsvps],
    }


def serialize_occurrence(occurrence: Occurrence) -> dict[str, Any]:
    """Serialize one occurrence: anchor fields with the instance dates and identity."""
    view = serialize_event(occurrence.event)
    view.update(
        {
            "occurrenceId": occurrence.occurrence_id,
            "startDate": _iso(occurrence.start_date),
            "endDate": _iso(occurrence.end_date),
            "originalDate": _iso(occurrence.original_date),
            "isRecurring": occurrence.is_recurring,
            "rsvps": [serialize_rsvp(rsvp) for rsvp in occurrence.rsvps],
        }
    )
    return view
