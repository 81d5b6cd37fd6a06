"""
Unit tests for CalendarService.

Tests the listing pipeline (expansion, RSVPs, visibility, ordering) and the
event and RSVP mutations with their permission checks.
"""

import logging
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.constants import RsvpStatus
from src.exceptions import (
    EventNotFoundError,
    InvalidDateRangeError,
    PermissionDeniedError,
    RecurrenceRuleError,
    RsvpNotFoundError,
    ValidationError,
)
from src.models.events import Event, EventHiddenFrom, EventRsvp
from src.services.calendar_service import CalendarService


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def count(session: Session, model) -> int:
    return session.scalar(select(func.count()).select_from(model))


@pytest.fixture
def service(db_session: Session) -> CalendarService:
    return CalendarService(db_session)


class TestListEvents:
    """Test CalendarService.list_events."""

    def test_expands_recurring_and_sorts(self, service, make_event, member, viewer_for):
        """Test occurrences of all events come back sorted by start."""
        make_event(
            title="Piano",
            start_date=utc(2026, 1, 5, 17),
            end_date=utc(2026, 1, 5, 18),
            recurrence={"frequency": "WEEKLY", "interval": 2, "byDay": ["MO"]},
        )
        make_event(title="Dentist", start_date=utc(2026, 1, 19, 9), end_date=None)

        events = service.list_events(viewer_for(member), "2026-01-01", "2026-02-28T23:59:59Z")

        assert [(e["title"], e["startDate"]) for e in events] == [
            ("Piano", "2026-01-05T17:00:00+00:00"),
            ("Dentist", "2026-01-19T09:00:00+00:00"),
            ("Piano", "2026-01-19T17:00:00+00:00"),
            ("Piano", "2026-02-02T17:00:00+00:00"),
            ("Piano", "2026-02-16T17:00:00+00:00"),
        ]

    def test_occurrence_fields(self, service, make_event, member, viewer_for):
        event = make_event(recurrence={"frequency": "WEEKLY"})

        first = service.list_events(viewer_for(member), "2026-01-10", "2026-01-16")[0]

        assert first["id"] == str(event.id)
        assert first["occurrenceId"] == f"{event.id}:20260112T100000"
        assert first["originalDate"] == "2026-01-05T10:00:00+00:00"
        assert first["endDate"] == "2026-01-12T11:00:00+00:00"
        assert first["isRecurring"] is True
        assert first["recurrence"]["frequency"] == "WEEKLY"
        assert first["createdBy"]["firstName"] == "Bob"

    def test_ties_broken_by_event_id(self, service, make_event, member, viewer_for):
        a = make_event(title="A")
        b = make_event(title="B")

        events = service.list_events(viewer_for(member), "2026-01-01", "2026-01-31")

        assert [e["id"] for e in events] == sorted([str(a.id), str(b.id)])

    def test_hidden_events_absent_for_hidden_member(
        self, service, make_event, member, other_member, admin_member, viewer_for
    ):
        """Test a surprise never reaches the member it is hidden from."""
        make_event(title="Surprise", hidden_from=[other_member], recurrence={"frequency": "WEEKLY"})
        make_event(title="Visible")

        hidden_view = service.list_events(viewer_for(other_member), "2026-01-01", "2026-01-31")
        creator_view = service.list_events(viewer_for(member), "2026-01-01", "2026-01-31")
        admin_view = service.list_events(viewer_for(admin_member), "2026-01-01", "2026-01-31")

        assert {e["title"] for e in hidden_view} == {"Visible"}
        assert sum(1 for e in creator_view if e["title"] == "Surprise") == 4
        assert sum(1 for e in admin_view if e["title"] == "Surprise") == 4

    def test_hidden_from_redacted_for_others(
        self, service, make_event, other_member, child_member, admin_member, viewer_for
    ):
        make_event(hidden_from=[other_member])

        child_view = service.list_events(viewer_for(child_member), "2026-01-01", "2026-01-31")[0]
        admin_view = service.list_events(viewer_for(admin_member), "2026-01-01", "2026-01-31")[0]

        assert "hiddenFrom" not in child_view
        assert [m["id"] for m in admin_view["hiddenFrom"]] == [str(other_member.id)]

    def test_series_rsvps_on_every_occurrence(
        self, service, make_event, member, other_member, viewer_for
    ):
        event = make_event(recurrence={"frequency": "WEEKLY"})
        service.set_rsvp(viewer_for(other_member), event.id, "ATTENDING")

        events = service.list_events(viewer_for(member), "2026-01-01", "2026-01-31")

        assert len(events) == 4
        for view in events:
            assert [(r["userId"], r["status"]) for r in view["rsvps"]] == [
                (str(other_member.id), "ATTENDING")
            ]

    def test_category_filter(self, service, make_event, member, viewer_for):
        make_event(title="Birthday", category="BIRTHDAY")
        make_event(title="Other")

        events = service.list_events(viewer_for(member), "2026-01-01", "2026-01-31", "BIRTHDAY")

        assert [e["title"] for e in events] == ["Birthday"]
        assert events[0]["categoryLabel"] == "Birthday"

    def test_unknown_category_rejected(self, service, member, viewer_for):
        with pytest.raises(ValidationError, match="category"):
            service.list_events(viewer_for(member), "2026-01-01", "2026-01-31", "PARTY")

    def test_inverted_range_rejected(self, service, member, viewer_for):
        with pytest.raises(InvalidDateRangeError):
            service.list_events(viewer_for(member), "2026-02-01", "2026-01-01")

    def test_malformed_date_rejected(self, service, member, viewer_for):
        with pytest.raises(ValidationError):
            service.list_events(viewer_for(member), "January", "2026-01-31")

    def test_malformed_stored_rule_skipped(
        self, service, make_event, member, viewer_for, caplog
    ):
        """Test one corrupt rule does not break the rest of the window."""
        broken = make_event(title="Broken", recurrence={"frequency": "DAILY", "byMonthDay": [1]})
        make_event(title="Fine")

        with caplog.at_level(logging.ERROR, logger="src.services.calendar_service"):
            events = service.list_events(viewer_for(member), "2026-01-01", "2026-01-31")

        assert [e["title"] for e in events] == ["Fine"]
        assert str(broken.id) in caplog.text

    def test_long_window_lists_every_occurrence(self, service, make_event, member, viewer_for):
        """Test a daily series over several years comes back complete."""
        make_event(recurrence={"frequency": "DAILY"})

        events = service.list_events(viewer_for(member), "2026-01-01", "2029-12-31T23:59:59Z")

        assert len(events) == 1457
        assert events[-1]["startDate"] == "2029-12-31T10:00:00+00:00"


class TestGetEvent:
    """Test CalendarService.get_event."""

    def test_detail_flags(self, service, make_event, member, other_member, child_member, viewer_for):
        event = make_event()

        own = service.get_event(viewer_for(member), event.id)
        other = service.get_event(viewer_for(other_member), event.id)
        child = service.get_event(viewer_for(child_member), event.id)

        assert (own["canEdit"], own["canRsvp"]) == (True, True)
        assert (other["canEdit"], other["canRsvp"]) == (False, True)
        assert (child["canEdit"], child["canRsvp"]) == (False, False)

    def test_missing_event(self, service, member, viewer_for):
        with pytest.raises(EventNotFoundError):
            service.get_event(viewer_for(member), uuid.uuid4())

    def test_hidden_event_looks_missing(self, service, make_event, other_member, viewer_for):
        """Test a hidden event is reported as not found, never forbidden."""
        event = make_event(hidden_from=[other_member])

        with pytest.raises(EventNotFoundError):
            service.get_event(viewer_for(other_member), event.id)

    def test_malformed_rule_degrades(self, service, make_event, member, viewer_for):
        event = make_event(recurrence={"frequency": "SOMETIMES"})

        view = service.get_event(viewer_for(member), event.id)

        assert view["recurrence"] is None
        assert view["title"] == "Family dinner"


class TestCreateEvent:
    """Test CalendarService.create_event."""

    def test_create_minimal(self, service, db_session, member, viewer_for):
        view = service.create_event(
            viewer_for(member),
            {"title": "  Movie night ", "start_date": "2026-02-06T19:00:00Z"},
        )

        assert view["title"] == "Movie night"
        assert view["category"] == "OTHER"
        assert view["createdById"] == str(member.id)
        assert view["recurrence"] is None
        assert view["hiddenFrom"] == []
        assert view["canEdit"] is True
        assert count(db_session, Event) == 1

    def test_create_recurring_stores_normalized_rule(self, service, db_session, member, viewer_for):
        view = service.create_event(
            viewer_for(member),
            {
                "title": "Swimming",
                "start_date": utc(2026, 1, 7, 16),
                "recurrence": {"frequency": "WEEKLY", "byDay": ["WE", "WE"]},
            },
        )

        stored = db_session.get(Event, uuid.UUID(view["id"]))
        assert stored.recurrence["byDay"] == ["WE"]
        assert stored.recurrence["interval"] == 1
        assert view["isRecurring"] is True

    def test_child_cannot_create(self, service, db_session, child_member, viewer_for):
        with pytest.raises(PermissionDeniedError):
            service.create_event(
                viewer_for(child_member),
                {"title": "Sleepover", "start_date": "2026-02-06T19:00:00Z"},
            )

        assert count(db_session, Event) == 0

    def test_member_cannot_set_image(self, service, member, viewer_for):
        with pytest.raises(PermissionDeniedError):
            service.create_event(
                viewer_for(member),
                {"title": "Trip", "start_date": "2026-07-01", "image_url": "https://img/x.png"},
            )

    def test_admin_can_set_image(self, service, admin_member, viewer_for):
        view = service.create_event(
            viewer_for(admin_member),
            {"title": "Trip", "start_date": "2026-07-01", "image_url": "https://img/x.png"},
        )

        assert view["imageUrl"] == "https://img/x.png"

    def test_creator_removed_from_hidden_list(
        self, service, member, other_member, viewer_for
    ):
        view = service.create_event(
            viewer_for(member),
            {
                "title": "Surprise",
                "start_date": "2026-05-02T18:00:00Z",
                "hidden_from_user_ids": [member.id, other_member.id],
            },
        )

        assert [m["id"] for m in view["hiddenFrom"]] == [str(other_member.id)]

    @pytest.mark.parametrize("data,message", [
        ({"title": "", "start_date": "2026-01-01"}, "title"),
        ({"title": "x" * 101, "start_date": "2026-01-01"}, "100"),
        ({"title": "Ok"}, "start_date"),
        ({"title": "Ok", "start_date": "2026-01-02", "end_date": "2026-01-01"}, "End date"),
        ({"title": "Ok", "start_date": "2026-01-01", "color": "red"}, "color"),
        ({"title": "Ok", "start_date": "2026-01-01", "category": "PARTY"}, "category"),
        ({"title": "Ok", "start_date": "2026-01-01", "description": "d" * 501}, "500"),
        ({"title": "Ok", "start_date": "2026-01-01", "location": "l" * 201}, "200"),
        ({"title": "Ok", "start_date": "2026-01-01", "recurrence": {"frequency": "DAILY", "interval": 0}}, "interval"),
        ({"title": "Ok", "start_date": "2026-01-01", "hidden_from_user_ids": [uuid.uuid4()]}, "Unknown family members"),
        ({"title": "Ok", "start_date": "2026-01-01", "priority": "high"}, "priority"),
        ({"title": 123, "start_date": "2026-01-01"}, "title must be a string"),
        ({"title": "Ok", "start_date": "2026-01-01", "description": ["a"]}, "description must be a string"),
        ({"title": "Ok", "start_date": "2026-01-01", "location": {"room": 1}}, "location must be a string"),
        ({"title": "Ok", "start_date": "2026-01-01", "color": 16711680}, "color must be a string"),
    ])
    def test_validation(self, service, db_session, member, viewer_for, data, message):
        with pytest.raises(ValidationError, match=message):
            service.create_event(viewer_for(member), data)

    def test_invalid_rule_is_rule_error(self, service, member, viewer_for):
        with pytest.raises(RecurrenceRuleError):
            service.create_event(
                viewer_for(member),
                {"title": "Ok", "start_date": "2026-01-01", "recurrence": {"frequency": "WEEKLY", "byMonthDay": [1]}},
            )


class TestUpdateEvent:
    """Test CalendarService.update_event."""

    def test_partial_update(self, service, make_event, member, viewer_for):
        event = make_event(location="Home")

        view = service.update_event(viewer_for(member), event.id, {"title": "Family brunch"})

        assert view["title"] == "Family brunch"
        assert view["location"] == "Home"

    def test_non_string_title_rejected(self, service, db_session, make_event, member, viewer_for):
        event = make_event()

        with pytest.raises(ValidationError, match="title must be a string"):
            service.update_event(viewer_for(member), event.id, {"title": 42})

        db_session.expire_all()
        assert db_session.get(Event, event.id).title == "Family dinner"

    def test_clear_recurrence(self, service, db_session, make_event, member, viewer_for):
        event = make_event(recurrence={"frequency": "DAILY"})

        view = service.update_event(viewer_for(member), event.id, {"recurrence": None})

        assert view["recurrence"] is None
        db_session.expire_all()
        assert db_session.get(Event, event.id).recurrence is None

    def test_other_member_forbidden(self, service, make_event, other_member, viewer_for):
        event = make_event()

        with pytest.raises(PermissionDeniedError):
            service.update_event(viewer_for(other_member), event.id, {"title": "Mine now"})

    def test_admin_may_edit(self, service, make_event, admin_member, viewer_for):
        event = make_event()

        view = service.update_event(viewer_for(admin_member), event.id, {"title": "Edited"})

        assert view["title"] == "Edited"

    def test_hidden_event_not_found_before_permission(
        self, service, make_event, other_member, viewer_for
    ):
        event = make_event(hidden_from=[other_member])

        with pytest.raises(EventNotFoundError):
            service.update_event(viewer_for(other_member), event.id, {"title": "Peek"})

    def test_member_cannot_change_image(self, service, make_event, member, viewer_for):
        event = make_event()

        with pytest.raises(PermissionDeniedError):
            service.update_event(viewer_for(member), event.id, {"image_url": "https://img/y.png"})

    def test_unchanged_image_allowed(self, service, make_event, member, viewer_for):
        event = make_event(image_url="https://img/a.png")

        view = service.update_event(
            viewer_for(member), event.id, {"image_url": "https://img/a.png", "title": "Same image"}
        )

        assert view["imageUrl"] == "https://img/a.png"

    def test_end_before_existing_start_rejected(self, service, make_event, member, viewer_for):
        event = make_event()

        with pytest.raises(ValidationError, match="End date"):
            service.update_event(viewer_for(member), event.id, {"end_date": "2026-01-04T00:00:00Z"})

    def test_replace_hidden_list(
        self, service, db_session, make_event, member, other_member, child_member, viewer_for
    ):
        event = make_event(hidden_from=[other_member])

        view = service.update_event(
            viewer_for(member),
            event.id,
            {"hidden_from_user_ids": [child_member.id, member.id]},
        )

        assert [m["id"] for m in view["hiddenFrom"]] == [str(child_member.id)]
        assert count(db_session, EventHiddenFrom) == 1


class TestDeleteEvent:
    """Test CalendarService.delete_event."""

    def test_creator_deletes_with_rsvps(
        self, service, db_session, make_event, member, other_member, viewer_for
    ):
        event = make_event(hidden_from=[other_member])
        service.set_rsvp(viewer_for(member), event.id, RsvpStatus.ATTENDING)

        service.delete_event(viewer_for(member), event.id)

        assert count(db_session, Event) == 0
        assert count(db_session, EventRsvp) == 0
        assert count(db_session, EventHiddenFrom) == 0

    def test_other_member_forbidden(self, service, make_event, other_member, viewer_for):
        event = make_event()

        with pytest.raises(PermissionDeniedError):
            service.delete_event(viewer_for(other_member), event.id)

    def test_missing(self, service, member, viewer_for):
        with pytest.raises(EventNotFoundError):
            service.delete_event(viewer_for(member), uuid.uuid4())


class TestRsvps:
    """Test CalendarService.set_rsvp / remove_rsvp."""

    def test_set_and_change(self, service, db_session, make_event, other_member, viewer_for):
        event = make_event()
        viewer = viewer_for(other_member)

        service.set_rsvp(viewer, event.id, "ATTENDING")
        rsvp = service.set_rsvp(viewer, event.id, "MAYBE")

        assert rsvp["status"] == "MAYBE"
        assert rsvp["user"]["firstName"] == "Carol"
        assert count(db_session, EventRsvp) == 1

    def test_child_cannot_rsvp(self, service, make_event, child_member, viewer_for):
        event = make_event()

        with pytest.raises(PermissionDeniedError):
            service.set_rsvp(viewer_for(child_member), event.id, "ATTENDING")

    def test_child_sees_rsvps(self, service, make_event, member, child_member, viewer_for):
        event = make_event()
        service.set_rsvp(viewer_for(member), event.id, "ATTENDING")

        view = service.get_event(viewer_for(child_member), event.id)

        assert [r["status"] for r in view["rsvps"]] == ["ATTENDING"]

    def test_unknown_status(self, service, make_event, member, viewer_for):
        event = make_event()

        with pytest.raises(ValidationError, match="RSVP status"):
            service.set_rsvp(viewer_for(member), event.id, "PERHAPS")

    def test_hidden_event_not_found(self, service, make_event, other_member, viewer_for):
        event = make_event(hidden_from=[other_member])

        with pytest.raises(EventNotFoundError):
            service.set_rsvp(viewer_for(other_member), event.id, "ATTENDING")

    def test_remove(self, service, db_session, make_event, member, viewer_for):
        event = make_event()
        service.set_rsvp(viewer_for(member), event.id, "ATTENDING")

        service.remove_rsvp(viewer_for(member), event.id)

        assert count(db_session, EventRsvp) == 0

    def test_remove_without_rsvp(self, service, make_event, member, viewer_for):
        event = make_event()

        with pytest.raises(RsvpNotFoundError):
            service.remove_rsvp(viewer_for(member), event.id)


class TestExport:
    """Test CalendarService.export_event / export_calendar."""

    def test_export_event(self, service, make_event, member, viewer_for):
        event = make_event(title="Grandma's Birthday!")

        export = service.export_event(viewer_for(member), event.id)

        assert export.filename == "event-grandma-s-birthday-2026-01-05.ics"
        assert b"SUMMARY:Grandma's Birthday!" in export.content

    def test_export_organizer_is_creator_email(self, service, make_event, other_member, viewer_for):
        event = make_event()

        export = service.export_event(viewer_for(other_member), event.id)

        assert b"mailto:bob@example.com" in export.content

    def test_export_hidden_event_not_found(self, service, make_event, other_member, viewer_for):
        event = make_event(hidden_from=[other_member])

        with pytest.raises(EventNotFoundError):
            service.export_event(viewer_for(other_member), event.id)

    def test_export_calendar_skips_hidden(
        self, service, make_event, other_member, viewer_for
    ):
        make_event(title="Secret", hidden_from=[other_member])
        make_event(title="Public")

        export = service.export_calendar(viewer_for(other_member))

        assert export.filename == "family-calendar.ics"
        assert b"SUMMARY:Public" in export.content
        assert b"Secret" not in export.content

    def test_export_window_keeps_events_with_occurrences(
        self, service, make_event, member, viewer_for
    ):
        make_event(title="Weekly", recurrence={"frequency": "WEEKLY"})
        make_event(title="January only")
        make_event(title="Ended", start_date=utc(2025, 1, 1), recurrence={"frequency": "DAILY", "count": 3})

        export = service.export_calendar(viewer_for(member), "2026-03-01", "2026-03-31")

        assert export.filename == "family-calendar-2026-03-01.ics"
        assert b"SUMMARY:Weekly" in export.content
        assert b"RRULE:FREQ=WEEKLY" in export.content
        assert b"January only" not in export.content
        assert b"Ended" not in export.content

    def test_export_half_window_rejected(self, service, member, viewer_for):
        with pytest.raises(ValidationError):
            service.export_calendar(viewer_for(member), "2026-03-01", None)
