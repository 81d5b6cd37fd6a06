"""
ASGI entry point for the Family Portal calendar API.

Re-exports the FastAPI app from src/api/main.py, e.g. `uvicorn src.app:app`.
"""

from src.api.main import app

__all__ = ["app"]
