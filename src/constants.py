"""
Closed enumerations shared by the models, the calendar engine and the API.

Values are stored as plain strings in the database, so each enum subclasses
``str`` and compares equal to its stored value.
"""

from enum import Enum


class MemberRole(str, Enum):
    """Role of a family member in the portal."""

    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    CHILD = "CHILD"


class EventCategory(str, Enum):
    """Calendar event categories."""

    BIRTHDAY = "BIRTHDAY"
    REUNION = "REUNION"
    VACATION = "VACATION"
    HOLIDAY = "HOLIDAY"
    OTHER = "OTHER"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS = {
    EventCategory.BIRTHDAY: "Birthday",
    EventCategory.REUNION: "Family reunion",
    EventCategory.VACATION: "Vacation",
    EventCategory.HOLIDAY: "Holiday",
    EventCategory.OTHER: "Other",
}


class RsvpStatus(str, Enum):
    """Attendance response for an event (series-wide for recurring events)."""

    ATTENDING = "ATTENDING"
    MAYBE = "MAYBE"
    NOT_ATTENDING = "NOT_ATTENDING"


class Frequency(str, Enum):
    """Supported recurrence frequencies."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class Weekday(str, Enum):
    """Two-letter weekday codes, Monday first (matches datetime.weekday())."""

    MO = "MO"
    TU = "TU"
    WE = "WE"
    TH = "TH"
    FR = "FR"
    SA = "SA"
    SU = "SU"

    @property
    def index(self) -> int:
        return list(Weekday).index(self)


# Event field limits
TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
LOCATION_MAX_LENGTH = 200
COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"
