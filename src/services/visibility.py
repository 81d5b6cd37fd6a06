"""
Per-viewer visibility of events ("surprise" events).

An event can be hidden from selected members. Admins and the event's creator
always see the event; everyone else on its hidden-from list does not. Only
admins and the creator may see who an event is hidden from.
"""

from typing import Any, Iterable, Union

from src.services.records import EventRecord, Occurrence, Viewer
from src.services.views import serialize_event, serialize_occurrence

HIDDEN_FROM_KEY = "hiddenFrom"


def _anchor(item: Union[EventRecord, Occurrence]) -> EventRecord:
    return item.event if isinstance(item, Occurrence) else item


def is_visible(item: Union[EventRecord, Occurrence], viewer: Viewer) -> bool:
    """
    Whether the viewer may see the event (or an occurrence of it).

    Occurrences share their anchor's visibility.
    """
    event = _anchor(item)
    if viewer.is_admin or event.created_by_id == viewer.user_id:
        return True
    return viewer.user_id not in event.hidden_from_ids


def can_view_hidden_from(item: Union[EventRecord, Occurrence], viewer: Viewer) -> bool:
    """Whether the viewer may see the event's hidden-from list."""
    event = _anchor(item)
    return viewer.is_admin or event.created_by_id == viewer.user_id


def filter_visible(items: Iterable, viewer: Viewer) -> list:
    """Keep only the events or occurrences the viewer may see, order preserved."""
    return [item for item in items if is_visible(item, viewer)]


def redact(item: Union[EventRecord, Occurrence], viewer: Viewer) -> dict[str, Any]:
    """
    Serialize an event or occurrence for a viewer.

    The hidden-from list is removed rather than emptied for viewers without
    rights, so "hidden from nobody" and "you may not know" stay
    distinguishable.
    """
    if isinstance(item, Occurrence):
        view = serialize_occurrence(item)
    else:
        view = serialize_event(item)
    if not can_view_hidden_from(item, viewer):
        view.pop(HIDDEN_FROM_KEY, None)
    return view
