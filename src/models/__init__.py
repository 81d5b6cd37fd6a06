"""
SQLAlchemy models for the Family Portal calendar.

This module exports all database models for easy importing and
ensures Alembic can discover them for migrations.
"""

# Import base classes
from src.models.base import Base, BaseModel, GUID, get_json_type

# Import all models (must be imported for Alembic autogenerate)
from src.models.family import FamilyMember
from src.models.events import Event, EventRsvp, EventHiddenFrom

# Export all for easy importing
__all__ = [
    # Base classes
    "Base",
    "BaseModel",
    "GUID",
    "get_json_type",
    # Family models
    "FamilyMember",
    # Event models
    "Event",
    "EventRsvp",
    "EventHiddenFrom",
]
