"""
Exceptions for the family calendar.

Every error raised by the calendar engine or the service layer derives from
CalendarError and carries the HTTP status and error type the API renders.
"""


class CalendarError(Exception):
    """Base exception for calendar operations."""

    status_code: int = 500
    error_type: str = "internal_error"
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CalendarError):
    """
    Invalid input rejected before any work is done.

    Causes:
    - Malformed date window (start after end, unparseable instants)
    - Unknown category or invalid colour
    - Field length limits exceeded
    """

    status_code = 400
    error_type = "validation_error"


class RecurrenceRuleError(ValidationError):
    """
    Invalid recurrence rule.

    Causes:
    - interval or count below 1
    - Unknown frequency, weekday code, or month number
    - Modifier not allowed for the rule's frequency
    """


class InvalidDateRangeError(ValidationError):
    """Query window whose start falls after its end."""


class AuthenticationError(CalendarError):
    """Request carries no resolvable viewer."""

    status_code = 401
    error_type = "unauthenticated"


class PermissionDeniedError(CalendarError):
    """
    Viewer is not allowed to perform the operation.

    Causes:
    - CHILD creating an event or submitting an RSVP
    - Non-owner, non-admin editing or deleting an event
    - Non-admin setting an event image
    """

    status_code = 403
    error_type = "forbidden"


class NotFoundError(CalendarError):
    """Requested record does not exist (or is hidden from the viewer)."""

    status_code = 404
    error_type = "not_found"


class EventNotFoundError(NotFoundError):
    """
    Event not found.

    Also raised when the event is hidden from the viewer, so a surprise event
    cannot be told apart from a missing one.
    """

    def __init__(self, event_id):
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class RsvpNotFoundError(NotFoundError):
    """The viewer has no RSVP on the event."""
