"""
Pytest configuration and fixtures for Family Portal calendar tests.

Provides database session fixtures and sample family members and events.
"""

from datetime import datetime, timezone
from typing import Callable, Generator

import pytest
import sqlalchemy as sa
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.constants import MemberRole
from src.models.base import Base
from src.models.family import FamilyMember
from src.models.events import Event, EventHiddenFrom
from src.services.records import Viewer


# Configure SQLite to enforce foreign key constraints in tests
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite connections."""
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """
    Create a clean database session for each test.

    Uses an in-memory SQLite database that is torn down after each test.
    StaticPool keeps a single connection so the API test client (running in
    another thread) sees the same database.

    Yields:
        Session: SQLAlchemy session for database operations
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()
        # Disable foreign key constraints for drop operations
        with engine.begin() as connection:
            connection.execute(sa.text("PRAGMA foreign_keys=OFF"))
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def _member(session: Session, first_name: str, role: MemberRole) -> FamilyMember:
    member = FamilyMember(
        first_name=first_name,
        last_name="Martin",
        email=f"{first_name.lower()}@example.com",
        role=role.value,
    )
    session.add(member)
    session.commit()
    session.refresh(member)
    return member


@pytest.fixture
def admin_member(db_session: Session) -> FamilyMember:
    """Family admin (sees and edits everything)."""
    return _member(db_session, "Alice", MemberRole.ADMIN)


@pytest.fixture
def member(db_session: Session) -> FamilyMember:
    """Regular member who creates events in most tests."""
    return _member(db_session, "Bob", MemberRole.MEMBER)


@pytest.fixture
def other_member(db_session: Session) -> FamilyMember:
    """A second regular member, typically the one a surprise is hidden from."""
    return _member(db_session, "Carol", MemberRole.MEMBER)


@pytest.fixture
def child_member(db_session: Session) -> FamilyMember:
    """Read-only child account."""
    return _member(db_session, "Dylan", MemberRole.CHILD)


@pytest.fixture
def viewer_for() -> Callable[[FamilyMember], Viewer]:
    """Build a Viewer from a persisted member."""
    return Viewer.from_member


@pytest.fixture
def make_event(db_session: Session, member: FamilyMember) -> Callable[..., Event]:
    """
    Factory persisting an Event row.

    Defaults: created by `member`, starting 2026-01-05 10:00 UTC for one hour.
    Pass hidden_from=[members] to hide it.
    """

    def _make_event(hidden_from=(), **overrides) -> Event:
        values = {
            "title": "Family dinner",
            "start_date": datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc),
            "end_date": datetime(2026, 1, 5, 11, 0, tzinfo=timezone.utc),
            "created_by_id": member.id,
        }
        values.update(overrides)
        event_row = Event(**values)
        db_session.add(event_row)
        db_session.flush()
        for hidden in hidden_from:
            db_session.add(EventHiddenFrom(event_id=event_row.id, user_id=hidden.id))
        db_session.commit()
        db_session.refresh(event_row)
        return event_row

    return _make_event
