"""
Calendar service - request-level operations on the family calendar.

Listing pipeline:
    stored anchors -> expansion over the window -> series-wide RSVPs attached
    -> hidden events dropped and hidden-from lists redacted per viewer
    -> sorted by occurrence start

Mutations (create, update, delete, RSVP) check permissions on every call and
run inside the caller's session; the request dependency commits once on
success and rolls back on error.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Union

from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.constants import (
    COLOR_PATTERN,
    DESCRIPTION_MAX_LENGTH,
    LOCATION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    EventCategory,
    RsvpStatus,
)
from src.exceptions import (
    EventNotFoundError,
    InvalidDateRangeError,
    RecurrenceRuleError,
    RsvpNotFoundError,
    ValidationError,
)
from src.models.events import Event
from src.services import queries
from src.services import rsvp as rsvp_store
from src.services.dates import parse_instant
from src.services.ical_export import calendar_filename, event_filename, export_events
from src.services.permissions import (
    can_edit,
    can_rsvp,
    ensure_can_create,
    ensure_can_edit,
    ensure_can_rsvp,
    ensure_can_set_image,
)
from src.services.records import EventRecord, Viewer
from src.services.recurrence import expand_event, parse_recurrence
from src.services.views import serialize_rsvp
from src.services.visibility import filter_visible, is_visible, redact

logger = logging.getLogger(__name__)

# Fields a client may set on an event
EVENT_FIELDS = frozenset(
    {
        "title",
        "description",
        "location",
        "category",
        "color",
        "image_url",
        "start_date",
        "end_date",
        "all_day",
        "recurrence",
        "hidden_from_user_ids",
    }
)

DateInput = Union[str, datetime]


@dataclass(frozen=True)
class CalendarExport:
    """Rendered .ics content and its suggested download filename."""

    content: bytes
    filename: str


def parse_category(value: Union[str, EventCategory, None]) -> Optional[EventCategory]:
    """
    Parse an optional category filter.

    Raises:
        ValidationError: If the value is not a known category
    """
    if value is None or value == "":
        return None
    try:
        return EventCategory(value)
    except ValueError:
        raise ValidationError(
            f"Unknown category '{value}'. "
            f"Use one of {', '.join(c.value for c in EventCategory)}"
        ) from None


def parse_window(range_start: DateInput, range_end: DateInput) -> tuple[datetime, datetime]:
    """
    Parse an inclusive query window.

    Raises:
        ValidationError: If either bound is not ISO-8601
        InvalidDateRangeError: If start is after end
    """
    start = parse_instant(range_start, "start")
    end = parse_instant(range_end, "end")
    if start > end:
        raise InvalidDateRangeError(
            f"Range start {start.isoformat()} is after range end {end.isoformat()}"
        )
    return start, end


class CalendarService:
    """
    Family calendar operations for one request.

    Args:
        session: Request-scoped database session
        settings: Settings override (defaults to get_settings())
    """

    def __init__(self, session: Session, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_events(
        self,
        viewer: Viewer,
        range_start: DateInput,
        range_end: DateInput,
        category: Union[str, EventCategory, None] = None,
    ) -> list[dict[str, Any]]:
        """
        List every occurrence the viewer may see inside a window.

        Args:
            viewer: Member the listing is for
            range_start: Window start (inclusive, ISO-8601 or datetime)
            range_end: Window end (inclusive)
            category: Optional category filter

        Returns:
            Occurrence views sorted by start, ties broken by event id
        """
        start, end = parse_window(range_start, range_end)
        category = parse_category(category)

        rows = queries.get_candidate_events(self.session, end, category)

        occurrences = []
        rsvps = []
        for row in rows:
            try:
                record = self._to_record(row)
                occurrences.extend(expand_event(record, start, end))
            except RecurrenceRuleError as e:
                logger.error(f"Skipping event {row.id} with malformed recurrence: {e}")
                continue
            rsvps.extend(record.rsvps)

        occurrences = rsvp_store.attach_rsvps(occurrences, rsvps)
        visible = filter_visible(occurrences, viewer)
        visible.sort(key=lambda occurrence: (occurrence.start_date, str(occurrence.event_id)))

        logger.debug(
            f"Listed {len(visible)} of {len(occurrences)} occurrences from "
            f"{len(rows)} events for {viewer.user_id}"
        )
        return [redact(occurrence, viewer) for occurrence in visible]

    def get_event(self, viewer: Viewer, event_id: uuid.UUID) -> dict[str, Any]:
        """
        Get one event's detail view.

        A malformed stored recurrence is reported as no recurrence (and
        logged) so the event itself stays reachable.

        Raises:
            EventNotFoundError: If the event does not exist or is hidden from the viewer
        """
        _, record = self._load_visible(viewer, event_id)
        view = redact(record, viewer)
        view["canEdit"] = can_edit(viewer, record)
        view["canRsvp"] = can_rsvp(viewer)
        return view

    # -------------------------------------------------------------------------
    # Event mutations
    # -------------------------------------------------------------------------

    def create_event(self, viewer: Viewer, data: Mapping[str, Any]) -> dict[str, Any]:
        """
        Create an event owned by the viewer.

        Args:
            viewer: Creating member (MEMBER or ADMIN)
            data: Event fields (snake_case); title and start_date are required

        Returns:
            Detail view of the new event

        Raises:
            PermissionDeniedError: If the viewer may not create events or set the image
            ValidationError: If any field is invalid
        """
        ensure_can_create(viewer)

        values = self._clean(data)
        missing = [name for name in ("title", "start_date") if not values.get(name)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if values.get("image_url"):
            ensure_can_set_image(viewer)
        self._check_dates(values["start_date"], values.get("end_date"))

        hidden_from = values.pop("hidden_from_user_ids", [])
        event = Event(created_by_id=viewer.user_id, **values)
        self.session.add(event)
        self.session.flush()

        if hidden_from:
            queries.replace_hidden_from(
                self.session, event.id, self._hidden_from_ids(hidden_from, viewer.user_id)
            )

        logger.info(f"Event {event.id} '{event.title}' created by {viewer.user_id}")
        return self.get_event(viewer, event.id)

    def update_event(
        self,
        viewer: Viewer,
        event_id: uuid.UUID,
        changes: Mapping[str, Any],
    ) -> dict[str, Any]:
        """
        Apply a partial update to an event.

        Only the keys present in changes are touched. A hidden_from_user_ids
        entry replaces the whole list.

        Raises:
            EventNotFoundError: If the event does not exist or is hidden from the viewer
            PermissionDeniedError: If the viewer is not the creator or an admin,
                or changes the image without being an admin
            ValidationError: If any field is invalid
        """
        row, record = self._load_visible(viewer, event_id)
        ensure_can_edit(viewer, record)

        values = self._clean(changes)
        if "title" in values and not values["title"]:
            raise ValidationError("Title is required")
        if "start_date" in values and values["start_date"] is None:
            raise ValidationError("Start date is required")
        if "image_url" in values and values["image_url"] != row.image_url:
            ensure_can_set_image(viewer)
        self._check_dates(
            values.get("start_date", record.start_date),
            values["end_date"] if "end_date" in values else record.end_date,
        )

        hidden_from = values.pop("hidden_from_user_ids", None)
        for name, value in values.items():
            setattr(row, name, value)
        self.session.flush()

        if hidden_from is not None:
            queries.replace_hidden_from(
                self.session, row.id, self._hidden_from_ids(hidden_from, row.created_by_id)
            )

        logger.info(
            f"Event {row.id} updated by {viewer.user_id}: "
            f"{', '.join(sorted(changes)) or 'no changes'}"
        )
        return self.get_event(viewer, row.id)

    def delete_event(self, viewer: Viewer, event_id: uuid.UUID) -> None:
        """
        Delete an event with its RSVPs and hidden-from entries.

        Raises:
            EventNotFoundError: If the event does not exist or is hidden from the viewer
            PermissionDeniedError: If the viewer is not the creator or an admin
        """
        row, record = self._load_visible(viewer, event_id)
        ensure_can_edit(viewer, record)

        self.session.delete(row)
        self.session.flush()
        logger.info(f"Event {event_id} deleted by {viewer.user_id}")

    # -------------------------------------------------------------------------
    # RSVPs
    # -------------------------------------------------------------------------

    def set_rsvp(
        self,
        viewer: Viewer,
        event_id: uuid.UUID,
        status: Union[str, RsvpStatus],
    ) -> dict[str, Any]:
        """
        Record the viewer's response to an event (whole series when recurring).

        Raises:
            EventNotFoundError: If the event does not exist or is hidden from the viewer
            PermissionDeniedError: If the viewer is a child
            ValidationError: If the status is unknown
        """
        self._load_visible(viewer, event_id)
        ensure_can_rsvp(viewer)

        try:
            status = RsvpStatus(status)
        except ValueError:
            raise ValidationError(
                f"Unknown RSVP status '{status}'. "
                f"Use one of {', '.join(s.value for s in RsvpStatus)}"
            ) from None

        record = rsvp_store.upsert_rsvp(self.session, event_id, viewer.user_id, status)
        return serialize_rsvp(record)

    def remove_rsvp(self, viewer: Viewer, event_id: uuid.UUID) -> None:
        """
        Withdraw the viewer's response to an event.

        Raises:
            EventNotFoundError: If the event does not exist or is hidden from the viewer
            PermissionDeniedError: If the viewer is a child
            RsvpNotFoundError: If the viewer has not responded
        """
        self._load_visible(viewer, event_id)
        ensure_can_rsvp(viewer)

        if not rsvp_store.remove_rsvp(self.session, event_id, viewer.user_id):
            raise RsvpNotFoundError(f"No RSVP from {viewer.user_id} on event {event_id}")

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export_event(self, viewer: Viewer, event_id: uuid.UUID) -> CalendarExport:
        """
        Export one event as an .ics file.

        Raises:
            EventNotFoundError: If the event does not exist or is hidden from the viewer
        """
        _, record = self._load_visible(viewer, event_id)
        return CalendarExport(
            content=export_events([record], self.settings),
            filename=event_filename(record),
        )

    def export_calendar(
        self,
        viewer: Viewer,
        range_start: Optional[DateInput] = None,
        range_end: Optional[DateInput] = None,
        category: Union[str, EventCategory, None] = None,
    ) -> CalendarExport:
        """
        Export the viewer's calendar as an .ics file.

        With a window, only events with at least one occurrence inside it are
        exported; without one, every visible event is. Events are exported as
        anchors (recurring ones with their RRULE), never as expanded
        occurrences.

        Raises:
            ValidationError: If only one window bound is given, or either is invalid
        """
        if (range_start is None) != (range_end is None):
            raise ValidationError("Both start and end are required to export a date range")

        category = parse_category(category)
        window = None
        if range_start is not None:
            window = parse_window(range_start, range_end)
            rows = queries.get_candidate_events(self.session, window[1], category)
        else:
            rows = queries.get_all_events(self.session, category)

        records = []
        for row in rows:
            try:
                record = self._to_record(row)
                if not is_visible(record, viewer):
                    continue
                if window is not None and not expand_event(record, *window):
                    continue
            except RecurrenceRuleError as e:
                logger.error(f"Skipping event {row.id} with malformed recurrence in export: {e}")
                continue
            records.append(record)

        logger.info(f"Exporting {len(records)} events for {viewer.user_id}")
        return CalendarExport(
            content=export_events(records, self.settings),
            filename=calendar_filename(window[0] if window else None),
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _to_record(self, row: Event, strict: bool = True) -> EventRecord:
        """
        Convert a row to a record, parsing its stored recurrence.

        With strict=False a malformed rule is logged and dropped instead of
        raising RecurrenceRuleError.
        """
        try:
            recurrence = parse_recurrence(row.recurrence)
        except RecurrenceRuleError as e:
            if strict:
                raise
            logger.error(f"Event {row.id} has a malformed recurrence, ignoring it: {e}")
            recurrence = None
        return EventRecord.from_model(row, recurrence)

    def _load_visible(self, viewer: Viewer, event_id: uuid.UUID) -> tuple[Event, EventRecord]:
        """Load an event the viewer may see; hidden events look missing."""
        row = queries.get_event_by_id(self.session, event_id)
        if row is None:
            raise EventNotFoundError(event_id)
        record = self._to_record(row, strict=False)
        if not is_visible(record, viewer):
            raise EventNotFoundError(event_id)
        return row, record

    def _hidden_from_ids(
        self,
        user_ids: Iterable[uuid.UUID],
        creator_id: uuid.UUID,
    ) -> list[uuid.UUID]:
        """Validate hidden-from member IDs, dropping the creator."""
        ids = [user_id for user_id in dict.fromkeys(user_ids) if user_id != creator_id]
        known = {member.id for member in queries.get_members_by_ids(self.session, ids)}
        unknown = [str(user_id) for user_id in ids if user_id not in known]
        if unknown:
            raise ValidationError(f"Unknown family members in hidden-from list: {', '.join(unknown)}")
        return ids

    @staticmethod
    def _check_dates(start: datetime, end: Optional[datetime]) -> None:
        if end is not None and end < start:
            raise ValidationError("End date must not be before start date")

    @staticmethod
    def _clean(data: Mapping[str, Any]) -> dict[str, Any]:
        """
        Validate and normalize the event fields present in data.

        Returns:
            Column values ready to set on an Event (plus hidden_from_user_ids)
        """
        unknown = set(data) - EVENT_FIELDS
        if unknown:
            raise ValidationError(f"Unknown event fields: {', '.join(sorted(unknown))}")

        values: dict[str, Any] = {}

        if "title" in data:
            title = _text(data, "title")
            if len(title) > TITLE_MAX_LENGTH:
                raise ValidationError(f"Title cannot exceed {TITLE_MAX_LENGTH} characters")
            values["title"] = title

        for name, limit in (("description", DESCRIPTION_MAX_LENGTH), ("location", LOCATION_MAX_LENGTH)):
            if name in data:
                text = _text(data, name) or None
                if text is not None and len(text) > limit:
                    raise ValidationError(f"{name.capitalize()} cannot exceed {limit} characters")
                values[name] = text

        if "category" in data:
            values["category"] = (parse_category(data["category"]) or EventCategory.OTHER).value

        if "color" in data:
            color = _text(data, "color") or None
            if color is not None and not re.match(COLOR_PATTERN, color):
                raise ValidationError(f"Invalid color '{color}' (use #RRGGBB)")
            values["color"] = color

        if "image_url" in data:
            values["image_url"] = _text(data, "image_url") or None

        if "start_date" in data:
            value = data["start_date"]
            values["start_date"] = parse_instant(value, "startDate") if value is not None else None

        if "end_date" in data:
            value = data["end_date"]
            values["end_date"] = parse_instant(value, "endDate") if value else None

        if "all_day" in data:
            values["all_day"] = bool(data["all_day"])

        if "recurrence" in data:
            rule = parse_recurrence(data["recurrence"])
            values["recurrence"] = rule.to_dict() if rule is not None else None

        if "hidden_from_user_ids" in data:
            values["hidden_from_user_ids"] = [
                _as_uuid(value) for value in (data["hidden_from_user_ids"] or [])
            ]

        return values


def _as_uuid(value: Union[str, uuid.UUID]) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(f"Invalid member id '{value}'") from None


def _text(data: Mapping[str, Any], name: str) -> str:
    """Stripped string value of a text field; None reads as empty."""
    value = data[name]
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string, got {type(value).__name__}")
    return value.strip()
