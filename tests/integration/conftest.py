"""
Integration test fixtures for the Family Portal calendar.

Runs the full HTTP stack (middleware, dependencies, service, SQLAlchemy)
against an in-memory database populated with one family.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import get_db_session
from src.api.main import app


# =============================================================================
# Pytest Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


# =============================================================================
# API Client
# =============================================================================


@pytest.fixture
def integration_api_client(db_session, admin_member, member, other_member, child_member):
    """
    Test client plus per-member request headers.

    Each request commits like a real request session does, so later requests
    only see what earlier ones committed.

    Returns:
        dict with "client" and "headers" (keyed admin, member, other, child)
    """

    def override_db_session():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db_session] = override_db_session
    headers = {
        name: {"X-User-ID": str(person.id)}
        for name, person in (
            ("admin", admin_member),
            ("member", member),
            ("other", other_member),
            ("child", child_member),
        )
    }
    with patch("src.api.main.configure_logging"):
        with TestClient(app) as client:
            yield {"client": client, "headers": headers}
    app.dependency_overrides.clear()
