"""
Pydantic models for API request/response validation.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator


# League schemas


class CreateLeagueRequest(BaseModel):
    """Request to create a league."""

    name: str = Field(min_length=1, max_length=100)


class LeagueResponse(BaseModel):
    """League data."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# Player schemas


class CreatePlayerRequest(BaseModel):
    """Request to add a player to a league."""

    league_id: int
    first_name: str = Field(min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = None
    email: Optional[str] = None
    winnings_eligible: bool = True


class UpdatePlayerRequest(BaseModel):
    """Partial player update; only fields that are sent are changed."""

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = None
    email: Optional[str] = None
    winnings_eligible: Optional[bool] = None


class PlayerResponse(BaseModel):
    """Player data."""

    id: int
    league_id: int
    first_name: str
    last_name: Optional[str] = None
    full_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    winnings_eligible: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# Week schemas


class CreateWeekRequest(BaseModel):
    """Request to get or create a week."""

    league_id: int
    week_number: int = Field(ge=1, le=12)
    is_championship: bool = False


class WeekResponse(BaseModel):
    """Week data."""

    id: int
    league_id: int
    week_number: int
    is_championship: bool
    created_at: Optional[str] = None


# Course schemas


class CreateCourseRequest(BaseModel):
    """Request to set the course a league plays in a week."""

    league_id: int
    week: int = Field(ge=1, le=12)
    name: str = Field(min_length=1, max_length=200)


class UpdateCourseRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class CourseResponse(BaseModel):
    """Course data."""

    id: int
    league_id: int
    week: int
    name: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# Team schemas


class CreateTeamRequest(BaseModel):
    """Request to create a two-player team."""

    league_id: int
    player1_id: int
    player2_id: int

    @model_validator(mode="after")
    def validate_distinct_players(self):
        """A team needs two different players."""
        if self.player1_id == self.player2_id:
            raise ValueError("player1_id and player2_id must be different")
        return self


class TeamResponse(BaseModel):
    """Team data."""

    id: int
    league_id: int
    team_number: int
    player1_id: int
    player2_id: int


# Match schemas


class CreateMatchRequest(BaseModel):
    """
    Request to schedule a match.

    team2_id omitted means a bye. Points record a manual result.
    """

    week_id: int
    team1_id: int
    team2_id: Optional[int] = None
    team1_points: Optional[int] = Field(default=None, ge=0, le=18)
    team2_points: Optional[int] = Field(default=None, ge=0, le=18)


class CalculateWeekMatchesRequest(BaseModel):
    """Request to recalculate every match of a week row."""

    week_id: int


class LeagueRequest(BaseModel):
    """Request that targets a whole league."""

    league_id: int


class MatchResponse(BaseModel):
    """Match data."""

    id: int
    week_id: int
    team1_id: int
    team2_id: Optional[int] = None
    team1_points: int
    team2_points: int
    winner_id: Optional[int] = None
    is_manual: bool
    week_number: Optional[int] = None
    is_championship: Optional[bool] = None
    updated_at: Optional[str] = None


# Score schemas


class SubmitScoreRequest(BaseModel):
    """
    Submit an 18-hole scorecard.

    Holes not played may be null (or 0, treated the same way).
    """

    player_id: int
    week_id: int
    holes: List[Optional[int]] = Field(min_length=18, max_length=18)
    scorecard_image: Optional[str] = None

    @model_validator(mode="after")
    def validate_holes(self):
        """Hole scores cannot be negative."""
        if any(h is not None and h < 0 for h in self.holes):
            raise ValueError("Hole scores cannot be negative")
        return self


class UpdateScoreRequest(BaseModel):
    """
    Edit a stored score.

    holes maps hole number (1-18) to strokes; only listed holes change.
    total may only be set on a score without hole data.
    """

    holes: Optional[Dict[int, Optional[int]]] = None
    total: Optional[int] = Field(default=None, ge=0)
    scorecard_image: Optional[str] = None


class ScoreResponse(BaseModel):
    """Score data."""

    id: int
    player_id: int
    week_id: int
    holes: List[Optional[int]]
    front9: Optional[int] = None
    back9: Optional[int] = None
    total: Optional[int] = None
    weighted_score: Optional[int] = None
    scorecard_image: Optional[str] = None
    week_number: Optional[int] = None
    is_championship: Optional[bool] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ScoreSubmissionResponse(BaseModel):
    """Stored score plus the recalculation job it queued."""

    score: ScoreResponse
    job_id: Optional[int] = None
    created: Optional[bool] = None


# Handicap schemas


class SetHandicapRequest(BaseModel):
    """Manual handicap override for a player in a week."""

    player_id: int
    week_id: int
    handicap: int = Field(ge=0, le=54)


class RecalculateHandicapsRequest(BaseModel):
    """Request to recompute a league's handicaps."""

    league_id: int
    from_week: int = Field(default=1, ge=1)


class HandicapResponse(BaseModel):
    """Handicap row data."""

    id: int
    player_id: int
    week_id: int
    week_number: int
    is_championship: bool
    raw_handicap: Optional[int] = None
    applied_handicap: Optional[int] = None
    handicap: Optional[int] = None
    is_baseline: bool
