"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:00:00.000000

Initial golf league schema:
- leagues, players, weeks
- scores (hole-by-hole cards), handicaps (raw/applied per player and week)
- teams, matches (best-ball match play)
- recalculation_jobs (background recompute queue)
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        'leagues',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(), nullable=False, unique=True),
        *_timestamps(),
    )

    op.create_table(
        'players',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('league_id', sa.Integer(), sa.ForeignKey('leagues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('winnings_eligible', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('idx_players_league', 'players', ['league_id'])
    op.create_index('idx_players_name', 'players', ['first_name', 'last_name'])

    # No unique constraint on (league_id, week_number, is_championship):
    # legacy data holds duplicates, merged by the admin maintenance endpoint
    op.create_table(
        'weeks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('league_id', sa.Integer(), sa.ForeignKey('leagues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('is_championship', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('idx_weeks_league_number', 'weeks', ['league_id', 'week_number', 'is_championship'])

    hole_columns = [sa.Column(f'hole{i}', sa.Integer(), nullable=True) for i in range(1, 19)]
    op.create_table(
        'scores',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('players.id', ondelete='CASCADE'), nullable=False),
        sa.Column('week_id', sa.Integer(), sa.ForeignKey('weeks.id', ondelete='CASCADE'), nullable=False),
        *hole_columns,
        sa.Column('front9', sa.Integer(), nullable=True),
        sa.Column('back9', sa.Integer(), nullable=True),
        sa.Column('total', sa.Integer(), nullable=True),
        sa.Column('weighted_score', sa.Integer(), nullable=True),
        sa.Column('scorecard_image', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_scores_player_week', 'scores', ['player_id', 'week_id'])
    op.create_index('idx_scores_week', 'scores', ['week_id'])

    op.create_table(
        'handicaps',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('players.id', ondelete='CASCADE'), nullable=False),
        sa.Column('week_id', sa.Integer(), sa.ForeignKey('weeks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('raw_handicap', sa.Integer(), nullable=True),
        sa.Column('applied_handicap', sa.Integer(), nullable=True),
        sa.Column('handicap', sa.Integer(), nullable=True),
        sa.Column('is_baseline', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint('player_id', 'week_id', name='uq_handicaps_player_week'),
        sa.CheckConstraint(
            'raw_handicap IS NULL OR (raw_handicap >= 0 AND raw_handicap <= 25)',
            name='ck_handicaps_raw_range',
        ),
    )
    op.create_index('idx_handicaps_week', 'handicaps', ['week_id'])

    op.create_table(
        'teams',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('league_id', sa.Integer(), sa.ForeignKey('leagues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team_number', sa.Integer(), nullable=False),
        sa.Column('player1_id', sa.Integer(), sa.ForeignKey('players.id', ondelete='CASCADE'), nullable=False),
        sa.Column('player2_id', sa.Integer(), sa.ForeignKey('players.id', ondelete='CASCADE'), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('league_id', 'team_number', name='uq_teams_league_number'),
        sa.CheckConstraint('player1_id != player2_id', name='ck_teams_distinct_players'),
    )
    op.create_index('idx_teams_league', 'teams', ['league_id'])

    op.create_table(
        'matches',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('week_id', sa.Integer(), sa.ForeignKey('weeks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team1_id', sa.Integer(), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team2_id', sa.Integer(), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=True),
        sa.Column('team1_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('team2_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('winner_id', sa.Integer(), sa.ForeignKey('teams.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_manual', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.CheckConstraint(
            'team1_points >= 0 AND team2_points >= 0 AND team1_points + team2_points <= 18',
            name='ck_matches_points',
        ),
    )
    op.create_index('idx_matches_week', 'matches', ['week_id'])

    op.create_table(
        'recalculation_jobs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('calc_type', sa.String(), nullable=False),
        sa.Column('league_id', sa.Integer(), sa.ForeignKey('leagues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'RUNNING', 'COMPLETED', 'FAILED', name='recalculationjobstatus'),
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
    )
    op.create_index('idx_recalculation_jobs_status', 'recalculation_jobs', ['status'])
    op.create_index(
        'idx_recalculation_jobs_type_league', 'recalculation_jobs', ['calc_type', 'league_id', 'week_number']
    )
    op.create_index('idx_recalculation_jobs_created_at', 'recalculation_jobs', ['created_at'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('recalculation_jobs')
    op.drop_table('matches')
    op.drop_table('teams')
    op.drop_table('handicaps')
    op.drop_table('scores')
    op.drop_table('weeks')
    op.drop_table('players')
    op.drop_table('leagues')
    sa.Enum(name='recalculationjobstatus').drop(op.get_bind(), checkfirst=True)
