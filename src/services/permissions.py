"""
Role-based permission checks for calendar actions.

Roles:
- ADMIN: full control over every event, sole moderator of event images
- MEMBER: creates events and edits their own
- CHILD: read-only; may see events but not create them or respond
"""

from typing import Optional

from src.constants import MemberRole
from src.exceptions import PermissionDeniedError
from src.services.records import EventRecord, Viewer


def can_create(viewer: Viewer) -> bool:
    return viewer.role in (MemberRole.ADMIN, MemberRole.MEMBER)


def can_edit(viewer: Viewer, event: EventRecord) -> bool:
    """Creator or admin may edit and delete an event."""
    return viewer.is_admin or event.created_by_id == viewer.user_id


def can_delete(viewer: Viewer, event: EventRecord) -> bool:
    return can_edit(viewer, event)


def can_set_image(viewer: Viewer) -> bool:
    return viewer.is_admin


def can_rsvp(viewer: Optional[Viewer]) -> bool:
    return viewer is not None and not viewer.is_child


def ensure_can_create(viewer: Viewer) -> None:
    if not can_create(viewer):
        raise PermissionDeniedError("Only members and admins can create events")


def ensure_can_edit(viewer: Viewer, event: EventRecord) -> None:
    if not can_edit(viewer, event):
        raise PermissionDeniedError("Only the creator or an admin can modify this event")


def ensure_can_set_image(viewer: Viewer) -> None:
    if not can_set_image(viewer):
        raise PermissionDeniedError("Only admins can set event images")


def ensure_can_rsvp(viewer: Viewer) -> None:
    if not can_rsvp(viewer):
        raise PermissionDeniedError("Children cannot RSVP to events")
