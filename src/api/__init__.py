"""
Family Portal calendar API module.

Provides the FastAPI HTTP endpoints for the family calendar.
"""

from src.api.main import app, run_server

__all__ = ["app", "run_server"]
