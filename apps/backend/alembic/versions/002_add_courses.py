"""002_add_courses

Revision ID: 002
Revises: 001
Create Date: 2026-10-17 15:00:00.000000

Add courses: the course each league plays per week (week 12 is the
championship).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the courses table."""
    op.create_table(
        'courses',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('league_id', sa.Integer(), sa.ForeignKey('leagues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('week', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('league_id', 'week', name='uq_courses_league_week'),
        sa.CheckConstraint('week >= 1 AND week <= 12', name='ck_courses_week_range'),
    )


def downgrade() -> None:
    """Drop the courses table."""
    op.drop_table('courses')
