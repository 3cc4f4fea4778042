"""Match list, create and recalculation route handlers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service, match_service
from backend.models.schemas import (
    CreateMatchRequest,
    CalculateWeekMatchesRequest,
    LeagueRequest,
    MatchResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches", response_model=List[MatchResponse])
async def list_matches(
    league_id: Optional[int] = None,
    week_id: Optional[int] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """List matches, optionally filtered by league or week."""
    try:
        return await data_service.list_matches(session, league_id=league_id, week_id=week_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing matches: {str(e)}")


@router.post("/api/matches", response_model=MatchResponse, status_code=201)
async def create_match(
    payload: CreateMatchRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Schedule a match. Omitting team2_id makes a bye; sending points records
    a manual result.
    """
    try:
        return await data_service.create_match(
            session,
            week_id=payload.week_id,
            team1_id=payload.team1_id,
            team2_id=payload.team2_id,
            team1_points=payload.team1_points,
            team2_points=payload.team2_points,
        )
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating match: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating match: {str(e)}")


@router.post("/api/matches/calculate")
async def calculate_week_matches(
    payload: CalculateWeekMatchesRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Recalculate every match of a week from the players' hole scores."""
    try:
        return await match_service.calculate_matches_for_week(session, payload.week_id)
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error calculating matches for week {payload.week_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error calculating matches: {str(e)}")


@router.post("/api/matches/calculate-all")
async def calculate_all_matches(
    payload: LeagueRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Recalculate every match in a league."""
    try:
        return await match_service.calculate_all_matches(session, payload.league_id)
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error calculating matches for league {payload.league_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error calculating matches: {str(e)}")


@router.get("/api/matches/{match_id}")
async def get_match(match_id: int, session: AsyncSession = Depends(get_db_session)):
    """Get a match with both teams."""
    try:
        match = await data_service.get_match(session, match_id)
        if not match:
            raise HTTPException(status_code=404, detail=f"Match {match_id} not found")
        return match
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting match: {str(e)}")


@router.post("/api/matches/{match_id}/recalculate")
async def recalculate_match(match_id: int, session: AsyncSession = Depends(get_db_session)):
    """
    Recalculate one match, replacing a manual result.

    A match that cannot be scored yet (bye, or a team without hole scores)
    is left unchanged and reported as skipped.
    """
    try:
        match = await match_service.recalculate_match(session, match_id)
        if match is None:
            return {"status": "skipped", "message": "Match cannot be scored yet", "match_id": match_id}
        return {"status": "success", "match": match}
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error recalculating match {match_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error recalculating match: {str(e)}")
