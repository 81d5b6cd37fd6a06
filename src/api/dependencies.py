"""
FastAPI dependency injection providers.

Provides database sessions, the requesting viewer, and the calendar service.
"""

from typing import Optional
import logging
import uuid

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from src.database import get_db
from src.exceptions import AuthenticationError
from src.services.calendar_service import CalendarService
from src.services.queries import get_member_by_id
from src.services.records import Viewer

logger = logging.getLogger(__name__)


def get_db_session():
    """
    Dependency injection for database session.

    One transaction per request: committed on success, rolled back on error.
    """
    yield from get_db()


def get_viewer(
    x_user_id: Optional[str] = Header(None, description="Family member ID of the caller"),
    db: Session = Depends(get_db_session),
) -> Viewer:
    """
    Resolve the requesting family member from the X-User-ID header.

    Raises:
        AuthenticationError: If the header is missing, malformed, or names no member
    """
    if not x_user_id:
        raise AuthenticationError("Missing X-User-ID header")

    try:
        member_id = uuid.UUID(x_user_id)
    except ValueError:
        raise AuthenticationError("Invalid X-User-ID header") from None

    member = get_member_by_id(db, member_id)
    if member is None:
        logger.warning(f"Rejected request from unknown member {member_id}")
        raise AuthenticationError("Unknown family member")

    return Viewer.from_member(member)


def get_calendar_service(db: Session = Depends(get_db_session)) -> CalendarService:
    """Dependency injection for the request-scoped calendar service."""
    return CalendarService(db)
