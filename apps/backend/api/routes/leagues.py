"""League list, create, and leaderboard route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service, leaderboard_service
from backend.models.schemas import CreateLeagueRequest, LeagueResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/leagues", response_model=List[LeagueResponse])
async def list_leagues(session: AsyncSession = Depends(get_db_session)):
    """
    List all leagues.

    Returns:
        List of leagues ordered by name
    """
    try:
        return await data_service.list_leagues(session)
    except Exception as e:
        logger.error(f"Error listing leagues: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing leagues: {str(e)}")


@router.post("/api/leagues", response_model=LeagueResponse, status_code=201)
async def create_league(
    payload: CreateLeagueRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Create a league. Names are unique."""
    try:
        return await data_service.create_league(session, payload.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating league: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating league: {str(e)}")


@router.get("/api/leaderboard/{league_id}")
async def get_leaderboard(league_id: int, session: AsyncSession = Depends(get_db_session)):
    """
    Get the league leaderboard: per-week gross and weighted scores, season
    totals, week winners and team standings.
    """
    try:
        return await leaderboard_service.get_leaderboard(session, league_id)
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error building leaderboard for league {league_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error building leaderboard: {str(e)}")
