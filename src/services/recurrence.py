"""
Recurrence rules and occurrence expansion.

Recurring events are stored once, as the series anchor, with a small
recurrence rule:
- frequency (DAILY, WEEKLY, MONTHLY, YEARLY) and interval
- optional bound: until (inclusive) and/or count (from the anchor start)
- optional filters: byDay, byMonth, byMonthDay

Occurrences are expanded on demand for each query window and never stored.
Uses python-dateutil's rrule for the expansion itself; its COUNT is counted
from DTSTART, so a capped series never yields more than `count` occurrences no
matter how the windows are sliced.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from dateutil.rrule import rrule, DAILY, WEEKLY, MONTHLY, YEARLY
from dateutil.parser import isoparse

from src.constants import Frequency, Weekday
from src.exceptions import InvalidDateRangeError, RecurrenceRuleError
from src.services.dates import end_of_day, ensure_utc, start_of_day
from src.services.records import EventRecord, Occurrence

WIRE_KEYS = ("frequency", "interval", "until", "count", "byDay", "byMonth", "byMonthDay")

_DATEUTIL_FREQUENCIES = {
    Frequency.DAILY: DAILY,
    Frequency.WEEKLY: WEEKLY,
    Frequency.MONTHLY: MONTHLY,
    Frequency.YEARLY: YEARLY,
}

# Which filters each frequency accepts; anything else is rejected at construction
_ALLOWED_FILTERS = {
    Frequency.DAILY: frozenset({"byDay", "byMonth"}),
    Frequency.WEEKLY: frozenset({"byDay", "byMonth"}),
    Frequency.MONTHLY: frozenset({"byDay", "byMonth", "byMonthDay"}),
    Frequency.YEARLY: frozenset({"byDay", "byMonth", "byMonthDay"}),
}

_UNITS = {
    Frequency.DAILY: ("day", "days"),
    Frequency.WEEKLY: ("week", "weeks"),
    Frequency.MONTHLY: ("month", "months"),
    Frequency.YEARLY: ("year", "years"),
}


@dataclass(frozen=True)
class RecurrenceRule:
    """
    Immutable recurrence rule attached to an anchor event.

    until is either a date (inclusive through the end of that day) or an aware
    UTC datetime (inclusive instant). Filters are sets; empty means "absent".
    Every invariant is checked on construction and violations raise
    RecurrenceRuleError.
    """

    frequency: Frequency
    interval: int = 1
    until: Optional[Union[date, datetime]] = None
    count: Optional[int] = None
    by_day: frozenset[Weekday] = field(default_factory=frozenset)
    by_month: frozenset[int] = field(default_factory=frozenset)
    by_month_day: frozenset[int] = field(default_factory=frozenset)

    def __post_init__(self):
        try:
            frequency = Frequency(self.frequency)
        except ValueError:
            raise RecurrenceRuleError(
                f"Unknown frequency '{self.frequency}'. "
                f"Use one of {', '.join(f.value for f in Frequency)}"
            ) from None
        object.__setattr__(self, "frequency", frequency)

        if not _is_int(self.interval) or self.interval < 1:
            raise RecurrenceRuleError(f"interval must be a positive integer, got {self.interval!r}")

        if self.count is not None and (not _is_int(self.count) or self.count < 1):
            raise RecurrenceRuleError(f"count must be a positive integer, got {self.count!r}")

        if self.until is not None:
            if isinstance(self.until, datetime):
                object.__setattr__(self, "until", ensure_utc(self.until))
            elif not isinstance(self.until, date):
                raise RecurrenceRuleError(f"until must be a date or datetime, got {self.until!r}")

        object.__setattr__(self, "by_day", _weekdays(self.by_day))
        object.__setattr__(self, "by_month", _int_set(self.by_month, "byMonth", range(1, 13)))
        object.__setattr__(
            self,
            "by_month_day",
            _int_set(self.by_month_day, "byMonthDay", [*range(-31, 0), *range(1, 32)]),
        )

        used = {
            name
            for name, values in (
                ("byDay", self.by_day),
                ("byMonth", self.by_month),
                ("byMonthDay", self.by_month_day),
            )
            if values
        }
        rejected = used - _ALLOWED_FILTERS[frequency]
        if rejected:
            raise RecurrenceRuleError(
                f"{', '.join(sorted(rejected))} cannot be used with {frequency.value} recurrence"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RecurrenceRule":
        """
        Build a rule from its wire form.

        Args:
            data: Mapping with keys frequency, interval, until, count,
                byDay, byMonth, byMonthDay (only frequency is required)

        Raises:
            RecurrenceRuleError: If the mapping is not a valid rule
        """
        if not isinstance(data, Mapping):
            raise RecurrenceRuleError("Recurrence must be an object or null")

        unknown = set(data) - set(WIRE_KEYS)
        if unknown:
            raise RecurrenceRuleError(f"Unknown recurrence keys: {', '.join(sorted(unknown))}")

        if not data.get("frequency"):
            raise RecurrenceRuleError("Recurrence requires a frequency")

        interval = data.get("interval")
        return cls(
            frequency=data["frequency"],
            interval=1 if interval is None else interval,
            until=_parse_until(data.get("until")),
            count=data.get("count"),
            by_day=_as_iterable(data.get("byDay"), "byDay"),
            by_month=_as_iterable(data.get("byMonth"), "byMonth"),
            by_month_day=_as_iterable(data.get("byMonthDay"), "byMonthDay"),
        )

    def to_dict(self) -> dict:
        """Serialize to the wire form (sorted lists, ISO until, None for absent)."""
        return {
            "frequency": self.frequency.value,
            "interval": self.interval,
            "until": self.until.isoformat() if self.until is not None else None,
            "count": self.count,
            "byDay": [day.value for day in Weekday if day in self.by_day] or None,
            "byMonth": sorted(self.by_month) or None,
            "byMonthDay": sorted(self.by_month_day) or None,
        }

    def until_bound(self, all_day: bool = False) -> Optional[datetime]:
        """
        Latest instant an occurrence may start at.

        Date-only bounds, and any bound on an all-day event, cover the whole
        calendar day.
        """
        if self.until is None:
            return None
        if not isinstance(self.until, datetime):
            return datetime.combine(self.until, time.max, tzinfo=timezone.utc)
        if all_day:
            return end_of_day(self.until)
        return self.until

    def to_rrule(self, dtstart: datetime) -> rrule:
        """
        Build the dateutil rule for a series anchored at dtstart.

        until is applied by the caller as an upper window bound; passing it to
        dateutil alongside count is deprecated there.
        """
        return rrule(
            _DATEUTIL_FREQUENCIES[self.frequency],
            dtstart=ensure_utc(dtstart),
            interval=self.interval,
            count=self.count,
            byweekday=sorted(day.index for day in self.by_day) or None,
            bymonth=sorted(self.by_month) or None,
            bymonthday=sorted(self.by_month_day) or None,
        )


def parse_recurrence(data: Optional[Mapping[str, Any]]) -> Optional[RecurrenceRule]:
    """
    Parse a stored or submitted recurrence value.

    Args:
        data: Wire-form mapping, or None for a one-off event

    Returns:
        RecurrenceRule, or None when data is None

    Raises:
        RecurrenceRuleError: If data is present but invalid
    """
    if data is None:
        return None
    return RecurrenceRule.from_dict(data)


def describe_recurrence(rule: Optional[RecurrenceRule]) -> str:
    """Human-readable summary, e.g. 'Every 2 weeks'."""
    if rule is None:
        return "Does not repeat"

    singular, plural = _UNITS[rule.frequency]
    if rule.interval == 1:
        text = f"Every {singular}"
    else:
        text = f"Every {rule.interval} {plural}"

    if rule.by_day:
        text += " on " + ", ".join(day.value for day in Weekday if day in rule.by_day)
    if rule.count is not None:
        text += f", {rule.count} times"
    if rule.until is not None:
        until = rule.until.date() if isinstance(rule.until, datetime) else rule.until
        text += f", until {until.isoformat()}"
    return text


def expand_event(
    event: EventRecord,
    range_start: datetime,
    range_end: datetime,
) -> list[Occurrence]:
    """
    Expand one event into the occurrences that start inside a window.

    The result depends only on the event and the window, never on the current
    time, so repeated queries yield identical occurrences.

    Args:
        event: Anchor event (recurring or one-off)
        range_start: Window start (inclusive)
        range_end: Window end (inclusive)

    Returns:
        Occurrences in ascending start order

    Raises:
        InvalidDateRangeError: If range_start is after range_end
        RecurrenceRuleError: If the rule cannot be expanded
    """
    window_start, window_end = _window_for(event, range_start, range_end)

    if event.recurrence is None:
        if window_start <= event.start_date <= window_end:
            return [
                Occurrence(
                    event=event,
                    start_date=event.start_date,
                    end_date=event.end_date,
                    is_recurring=False,
                )
            ]
        return []

    until = event.recurrence.until_bound(all_day=event.all_day)
    if until is not None:
        if until < window_start:
            return []
        window_end = min(window_end, until)

    try:
        starts = event.recurrence.to_rrule(event.start_date).between(
            window_start, window_end, inc=True
        )
    except (ValueError, OverflowError) as e:
        raise RecurrenceRuleError(f"Cannot expand recurrence of event {event.id}: {e}") from e

    duration = event.duration
    return [
        Occurrence(
            event=event,
            start_date=start,
            end_date=start + duration if duration is not None else None,
            is_recurring=True,
        )
        for start in starts
    ]


def expand_events(
    events: Iterable[EventRecord],
    range_start: datetime,
    range_end: datetime,
) -> list[Occurrence]:
    """Expand many events into one flat (unsorted) occurrence list."""
    occurrences = []
    for event in events:
        occurrences.extend(expand_event(event, range_start, range_end))
    return occurrences


def _window_for(
    event: EventRecord,
    range_start: datetime,
    range_end: datetime,
) -> tuple[datetime, datetime]:
    """Normalize the window to UTC; all-day events compare by calendar date."""
    range_start = ensure_utc(range_start)
    range_end = ensure_utc(range_end)
    if range_start > range_end:
        raise InvalidDateRangeError(
            f"Range start {range_start.isoformat()} is after range end {range_end.isoformat()}"
        )
    if event.all_day:
        return start_of_day(range_start), end_of_day(range_end)
    return range_start, range_end


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _as_iterable(value: Any, name: str) -> Sequence:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise RecurrenceRuleError(f"{name} must be a list")
    return list(value)


def _weekdays(values: Iterable) -> frozenset[Weekday]:
    days = set()
    for value in values:
        try:
            days.add(Weekday(value))
        except ValueError:
            raise RecurrenceRuleError(
                f"Unknown weekday code '{value}'. Use MO, TU, WE, TH, FR, SA or SU"
            ) from None
    return frozenset(days)


def _int_set(values: Iterable, name: str, allowed: Iterable[int]) -> frozenset[int]:
    allowed = set(allowed)
    result = set()
    for value in values:
        if not _is_int(value) or value not in allowed:
            raise RecurrenceRuleError(f"Invalid {name} value {value!r}")
        result.add(value)
    return frozenset(result)


def _parse_until(value: Any) -> Optional[Union[date, datetime]]:
    if value is None or isinstance(value, (date, datetime)):
        return value
    if not isinstance(value, str):
        raise RecurrenceRuleError(f"until must be an ISO-8601 date, got {value!r}")
    text = value.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return ensure_utc(isoparse(text))
    except (ValueError, OverflowError) as e:
        raise RecurrenceRuleError(f"Invalid until '{value}': {e}") from e
