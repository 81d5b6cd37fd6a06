"""
Family member model.

Entities:
- FamilyMember: A person with a portal account who views and manages events

Authentication lives outside this service; the member table is only read to
resolve the viewer's role for each request.
"""

from typing import TYPE_CHECKING

from sqlalchemy import String, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.constants import MemberRole
from src.models.base import BaseModel

# Avoid circular imports for type hints
if TYPE_CHECKING:
    from src.models.events import Event, EventRsvp


class FamilyMember(BaseModel):
    """
    Represents a person in the family.

    Each family member has:
    - Personal information (first name, last name, email)
    - A role controlling what they may do on the calendar:
      ADMIN (full oversight), MEMBER (create and manage own events),
      CHILD (read-only, cannot RSVP)
    """

    __tablename__ = "family_members"

    first_name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        doc="First name"
    )

    last_name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        doc="Last name"
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        doc="Login email address"
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=MemberRole.MEMBER.value,
        doc="Portal role: 'ADMIN', 'MEMBER', 'CHILD'"
    )

    # Relationships
    created_events: Mapped[list["Event"]] = relationship(
        "Event",
        back_populates="creator",
        doc="Events created by this member"
    )

    rsvps: Mapped[list["EventRsvp"]] = relationship(
        "EventRsvp",
        back_populates="user",
        cascade="all, delete-orphan",
        doc="Attendance responses given by this member"
    )

    __table_args__ = (
        Index("idx_family_member_role", "role"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        """String representation showing name and role."""
        return f"<FamilyMember(name='{self.full_name}', role='{self.role}')>"
