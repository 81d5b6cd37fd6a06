"""
Service layer for the Family Portal calendar.

Provides business logic and data access patterns for:
- Recurrence rules and occurrence expansion
- Per-viewer visibility and role permissions
- Series-wide RSVPs
- Calendar listing, event mutations and iCalendar export (CalendarService)
"""

from src.services.records import (
    Viewer,
    MemberSummary,
    RsvpRecord,
    EventRecord,
    Occurrence,
)

from src.services.recurrence import (
    RecurrenceRule,
    parse_recurrence,
    describe_recurrence,
    expand_event,
    expand_events,
)

from src.services.dates import (
    format_recurrence_id,
)

from src.services.visibility import (
    is_visible,
    can_view_hidden_from,
    filter_visible,
    redact,
)

from src.services.permissions import (
    can_create,
    can_edit,
    can_delete,
    can_set_image,
    can_rsvp,
    ensure_can_create,
    ensure_can_edit,
    ensure_can_set_image,
    ensure_can_rsvp,
)

from src.services.rsvp import (
    attach_rsvps,
    upsert_rsvp,
    remove_rsvp,
)

from src.services.calendar_service import (
    CalendarService,
    CalendarExport,
)

__all__ = [
    # Records
    "Viewer",
    "MemberSummary",
    "RsvpRecord",
    "EventRecord",
    "Occurrence",
    # Recurrence
    "RecurrenceRule",
    "parse_recurrence",
    "describe_recurrence",
    "expand_event",
    "expand_events",
    "format_recurrence_id",
    # Visibility
    "is_visible",
    "can_view_hidden_from",
    "filter_visible",
    "redact",
    # Permissions
    "can_create",
    "can_edit",
    "can_delete",
    "can_set_image",
    "can_rsvp",
    "ensure_can_create",
    "ensure_can_edit",
    "ensure_can_set_image",
    "ensure_can_rsvp",
    # RSVPs
    "attach_rsvps",
    "upsert_rsvp",
    "remove_rsvp",
    # Calendar service
    "CalendarService",
    "CalendarExport",
]
