"""
iCalendar (.ics) export of family events.

One VCALENDAR holds one VEVENT per anchor event. Recurring events are exported
once, with an RRULE, so calendar clients expand the series themselves.
Output never depends on the current time: DTSTAMP is the event's last
modification.
"""

import re
from datetime import datetime, timedelta
from typing import Iterable, Optional

from icalendar import Calendar, Event, vCalAddress, vRecur, vText

from src.config import Settings, get_settings
from src.exceptions import RecurrenceRuleError
from src.services.dates import ensure_utc
from src.services.records import EventRecord
from src.services.recurrence import RecurrenceRule


def _utc_seconds(dt: datetime) -> datetime:
    return dt.replace(microsecond=0)


def _slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "event"


def event_filename(event: EventRecord) -> str:
    """e.g. event-grandmas-birthday-2026-03-14.ics"""
    return f"event-{_slugify(event.title)}-{event.start_date.date().isoformat()}.ics"


def calendar_filename(range_start: Optional[datetime] = None) -> str:
    """Filename for a calendar export, dated by the window start when there is one."""
    if range_start is not None:
        return f"family-calendar-{range_start.date().isoformat()}.ics"
    return "family-calendar.ics"


def _until_value(rule: RecurrenceRule, all_day: bool):
    if all_day and not isinstance(rule.until, datetime):
        return rule.until
    if all_day:
        return rule.until.date()
    return _utc_seconds(rule.until_bound())


def _count_ends_series(rule: RecurrenceRule, dtstart: datetime, all_day: bool) -> bool:
    """True when the series runs out of count before reaching until."""
    try:
        starts = rule.to_rrule(dtstart).between(
            ensure_utc(dtstart), rule.until_bound(all_day), inc=True
        )
    except (ValueError, OverflowError) as e:
        raise RecurrenceRuleError(f"Cannot resolve recurrence bound: {e}") from e
    return len(starts) >= rule.count


def build_rrule(rule: RecurrenceRule, dtstart: datetime, all_day: bool = False) -> vRecur:
    """
    Build an RRULE value from a recurrence rule anchored at dtstart.

    RRULE allows only one of COUNT and UNTIL. A rule carrying both is exported
    with whichever one ends the series first.
    """
    recur = {"freq": rule.frequency.value, "interval": rule.interval}
    if rule.count is not None and rule.until is not None:
        if _count_ends_series(rule, dtstart, all_day):
            recur["count"] = rule.count
        else:
            recur["until"] = _until_value(rule, all_day)
    elif rule.count is not None:
        recur["count"] = rule.count
    elif rule.until is not None:
        recur["until"] = _until_value(rule, all_day)
    if rule.by_day:
        recur["byday"] = [day.value for day in sorted(rule.by_day, key=lambda d: d.index)]
    if rule.by_month:
        recur["bymonth"] = sorted(rule.by_month)
    if rule.by_month_day:
        recur["bymonthday"] = sorted(rule.by_month_day)
    return vRecur(recur)


def build_vevent(event: EventRecord, settings: Optional[Settings] = None) -> Event:
    """
    Build the VEVENT for one anchor event.

    All-day events use DATE values with an exclusive DTEND (end date + 1 day).
    """
    settings = settings or get_settings()
    vevent = Event()

    vevent.add("uid", f"{event.id}@{settings.ical_uid_domain}")
    created = _utc_seconds(event.created_at or event.start_date)
    modified = _utc_seconds(event.updated_at or created)
    vevent.add("dtstamp", modified)
    vevent.add("created", created)
    vevent.add("last-modified", modified)

    if event.all_day:
        vevent.add("dtstart", event.start_date.date())
        if event.end_date is not None:
            vevent.add("dtend", event.end_date.date() + timedelta(days=1))
    else:
        vevent.add("dtstart", _utc_seconds(event.start_date))
        if event.end_date is not None:
            vevent.add("dtend", _utc_seconds(event.end_date))

    vevent.add("summary", event.title)
    if event.description:
        vevent.add("description", event.description)
    if event.location:
        vevent.add("location", event.location)
    vevent.add("categories", [event.category.label])

    if event.creator is not None and event.creator.email:
        organizer = vCalAddress(f"mailto:{event.creator.email}")
        organizer.params["cn"] = vText(event.creator.full_name)
        vevent.add("organizer", organizer)

    if event.recurrence is not None:
        vevent.add("rrule", build_rrule(event.recurrence, event.start_date, all_day=event.all_day))

    return vevent


def build_calendar(
    events: Iterable[EventRecord],
    settings: Optional[Settings] = None,
) -> Calendar:
    """Wrap VEVENTs for the given events in a publishable VCALENDAR."""
    settings = settings or get_settings()

    calendar = Calendar()
    calendar.add("prodid", settings.ical_prod_id)
    calendar.add("version", "2.0")
    calendar.add("calscale", "GREGORIAN")
    calendar.add("method", "PUBLISH")
    calendar.add("x-wr-calname", settings.calendar_name)

    for event in events:
        calendar.add_component(build_vevent(event, settings))

    return calendar


def export_events(events: Iterable[EventRecord], settings: Optional[Settings] = None) -> bytes:
    """Render events as .ics content."""
    return build_calendar(events, settings).to_ical()
