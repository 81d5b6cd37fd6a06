"""Create family calendar tables

Revision ID: 3f7a9c1e2b40
Revises:
Create Date: 2026-10-17

Creates the four calendar tables:
- family_members: portal members and their roles
- events: event definitions (recurring events stored once, rule as JSON)
- event_rsvps: one response per (event, member)
- event_hidden_from: members a surprise event is hidden from
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from src.models.base import GUID


# revision identifiers, used by Alembic.
revision: str = '3f7a9c1e2b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table('family_members',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='MEMBER'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    with op.batch_alter_table('family_members', schema=None) as batch_op:
        batch_op.create_index('idx_family_member_role', ['role'], unique=False)

    op.create_table('events',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location', sa.String(length=200), nullable=True),
        sa.Column('category', sa.String(length=20), nullable=False, server_default='OTHER'),
        sa.Column('color', sa.String(length=7), nullable=True),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('all_day', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('recurrence',
                  sa.JSON(none_as_null=True).with_variant(postgresql.JSONB(none_as_null=True), 'postgresql'),
                  nullable=True),
        sa.Column('created_by_id', GUID(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['created_by_id'], ['family_members.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('events', schema=None) as batch_op:
        batch_op.create_index('idx_event_start_date', ['start_date'], unique=False)
        batch_op.create_index('idx_event_category', ['category'], unique=False)
        batch_op.create_index('idx_event_created_by', ['created_by_id'], unique=False)

    op.create_table('event_rsvps',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('event_id', GUID(), nullable=False),
        sa.Column('user_id', GUID(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='ATTENDING'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['family_members.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_rsvp'),
    )
    with op.batch_alter_table('event_rsvps', schema=None) as batch_op:
        batch_op.create_index('idx_rsvp_event', ['event_id'], unique=False)
        batch_op.create_index('idx_rsvp_user', ['user_id'], unique=False)

    op.create_table('event_hidden_from',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('event_id', GUID(), nullable=False),
        sa.Column('user_id', GUID(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['family_members.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_hidden_from'),
    )
    with op.batch_alter_table('event_hidden_from', schema=None) as batch_op:
        batch_op.create_index('idx_hidden_from_event', ['event_id'], unique=False)
        batch_op.create_index('idx_hidden_from_user', ['user_id'], unique=False)


def downgrade() -> None:
    with op.batch_alter_table('event_hidden_from', schema=None) as batch_op:
        batch_op.drop_index('idx_hidden_from_user')
        batch_op.drop_index('idx_hidden_from_event')
    op.drop_table('event_hidden_from')

    with op.batch_alter_table('event_rsvps', schema=None) as batch_op:
        batch_op.drop_index('idx_rsvp_user')
        batch_op.drop_index('idx_rsvp_event')
    op.drop_table('event_rsvps')

    with op.batch_alter_table('events', schema=None) as batch_op:
        batch_op.drop_index('idx_event_created_by')
        batch_op.drop_index('idx_event_category')
        batch_op.drop_index('idx_event_start_date')
    op.drop_table('events')

    with op.batch_alter_table('family_members', schema=None) as batch_op:
        batch_op.drop_index('idx_family_member_role')
    op.drop_table('family_members')
