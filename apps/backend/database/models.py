"""
SQLAlchemy ORM models for the golf league scoring system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.database.db import Base
from backend.utils.constants import HOLES_PER_ROUND, MAX_WEEK_NUMBER


class RecalculationJobStatus(str, enum.Enum):
    """Recalculation job status enum."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class League(Base):
    """League groups."""

    __tablename__ = "leagues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    players = relationship("Player", back_populates="league", cascade="all, delete-orphan")
    weeks = relationship("Week", back_populates="league", cascade="all, delete-orphan")
    teams = relationship("Team", back_populates="league", cascade="all, delete-orphan")
    courses = relationship("Course", back_populates="league", cascade="all, delete-orphan")


class Player(Base):
    """League players."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    winnings_eligible = Column(Boolean, default=True, nullable=False, server_default="1")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    league = relationship("League", back_populates="players")
    scores = relationship("Score", back_populates="player", cascade="all, delete-orphan")
    handicaps = relationship("Handicap", back_populates="player", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_players_league", "league_id"),
        Index("idx_players_name", "first_name", "last_name"),
    )

    @property
    def full_name(self) -> str:
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name


class Week(Base):
    """
    A competition week within a league.

    Legacy data may hold several rows for the same (league_id, week_number,
    is_championship); readers aggregate by week number instead of trusting
    the row id.
    """

    __tablename__ = "weeks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    week_number = Column(Integer, nullable=False)
    is_championship = Column(Boolean, default=False, nullable=False, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    league = relationship("League", back_populates="weeks")
    scores = relationship("Score", back_populates="week", cascade="all, delete-orphan")
    handicaps = relationship("Handicap", back_populates="week", cascade="all, delete-orphan")
    matches = relationship("Match", back_populates="week", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_weeks_league_number", "league_id", "week_number", "is_championship"),
    )


class Score(Base):
    """One player's round for one week."""

    __tablename__ = "scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    week_id = Column(Integer, ForeignKey("weeks.id", ondelete="CASCADE"), nullable=False)
    hole1 = Column(Integer, nullable=True)
    hole2 = Column(Integer, nullable=True)
    hole3 = Column(Integer, nullable=True)
    hole4 = Column(Integer, nullable=True)
    hole5 = Column(Integer, nullable=True)
    hole6 = Column(Integer, nullable=True)
    hole7 = Column(Integer, nullable=True)
    hole8 = Column(Integer, nullable=True)
    hole9 = Column(Integer, nullable=True)
    hole10 = Column(Integer, nullable=True)
    hole11 = Column(Integer, nullable=True)
    hole12 = Column(Integer, nullable=True)
    hole13 = Column(Integer, nullable=True)
    hole14 = Column(Integer, nullable=True)
    hole15 = Column(Integer, nullable=True)
    hole16 = Column(Integer, nullable=True)
    hole17 = Column(Integer, nullable=True)
    hole18 = Column(Integer, nullable=True)
    front9 = Column(Integer, nullable=True)
    back9 = Column(Integer, nullable=True)
    total = Column(Integer, nullable=True)
    weighted_score = Column(Integer, nullable=True)  # total - applied handicap
    scorecard_image = Column(String, nullable=True)  # Opaque reference to an uploaded image
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    player = relationship("Player", back_populates="scores")
    week = relationship("Week", back_populates="scores")

    __table_args__ = (
        Index("idx_scores_player_week", "player_id", "week_id"),
        Index("idx_scores_week", "week_id"),
    )

    @property
    def holes(self) -> list:
        """Hole strokes in order; None where the hole was not recorded."""
        return [getattr(self, f"hole{i}") for i in range(1, HOLES_PER_ROUND + 1)]

    def set_holes(self, holes) -> None:
        for i, strokes in enumerate(holes, start=1):
            setattr(self, f"hole{i}", strokes)


class Course(Base):
    """The course a league plays in a given week (week 12 is the championship)."""

    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    week = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    league = relationship("League", back_populates="courses")

    __table_args__ = (
        UniqueConstraint("league_id", "week", name="uq_courses_league_week"),
        CheckConstraint(f"week >= 1 AND week <= {MAX_WEEK_NUMBER}", name="ck_courses_week_range"),
    )


class Handicap(Base):
    """Raw and applied handicap for one player in one week row."""

    __tablename__ = "handicaps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    week_id = Column(Integer, ForeignKey("weeks.id", ondelete="CASCADE"), nullable=False)
    raw_handicap = Column(Integer, nullable=True)  # Strokes behind the round low, 0-25
    applied_handicap = Column(Integer, nullable=True)  # Subtracted from the week's total
    handicap = Column(Integer, nullable=True)  # Mirrors applied_handicap unless set manually
    is_baseline = Column(Boolean, default=False, nullable=False, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    player = relationship("Player", back_populates="handicaps")
    week = relationship("Week", back_populates="handicaps")

    __table_args__ = (
        UniqueConstraint("player_id", "week_id", name="uq_handicaps_player_week"),
        CheckConstraint(
            "raw_handicap IS NULL OR (raw_handicap >= 0 AND raw_handicap <= 25)",
            name="ck_handicaps_raw_range",
        ),
        Index("idx_handicaps_week", "week_id"),
    )


class Team(Base):
    """Two-player team used for best-ball match play."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    team_number = Column(Integer, nullable=False)
    player1_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    player2_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    league = relationship("League", back_populates="teams")
    player1 = relationship("Player", foreign_keys=[player1_id])
    player2 = relationship("Player", foreign_keys=[player2_id])

    __table_args__ = (
        UniqueConstraint("league_id", "team_number", name="uq_teams_league_number"),
        CheckConstraint("player1_id != player2_id", name="ck_teams_distinct_players"),
        Index("idx_teams_league", "league_id"),
    )

    @property
    def player_ids(self) -> list:
        return [self.player1_id, self.player2_id]


class Match(Base):
    """A weekly pairing of two teams; team2 is null for a bye."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    week_id = Column(Integer, ForeignKey("weeks.id", ondelete="CASCADE"), nullable=False)
    team1_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    team2_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=True)
    team1_points = Column(Integer, default=0, nullable=False, server_default="0")
    team2_points = Column(Integer, default=0, nullable=False, server_default="0")
    winner_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    is_manual = Column(Boolean, default=False, nullable=False, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    week = relationship("Week", back_populates="matches")
    team1 = relationship("Team", foreign_keys=[team1_id])
    team2 = relationship("Team", foreign_keys=[team2_id])
    winner = relationship("Team", foreign_keys=[winner_id])

    __table_args__ = (
        CheckConstraint(
            "team1_points >= 0 AND team2_points >= 0 AND team1_points + team2_points <= 18",
            name="ck_matches_points",
        ),
        Index("idx_matches_week", "week_id"),
    )


class RecalculationJob(Base):
    """Queue for handicap/match recalculation jobs."""

    __tablename__ = "recalculation_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    calc_type = Column(String, nullable=False)  # 'league' or 'week'
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    week_number = Column(Integer, nullable=True)  # Only for 'week' jobs
    status = Column(
        Enum(RecalculationJobStatus), default=RecalculationJobStatus.PENDING, nullable=False
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)

    # Relationships
    league = relationship("League", foreign_keys=[league_id])

    __table_args__ = (
        Index("idx_recalculation_jobs_status", "status"),
        Index("idx_recalculation_jobs_type_league", "calc_type", "league_id", "week_number"),
        Index("idx_recalculation_jobs_created_at", "created_at"),
    )
