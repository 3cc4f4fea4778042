"""Handicap list, manual override and recalculation route handlers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service, handicap_service
from backend.models.schemas import HandicapResponse, RecalculateHandicapsRequest, SetHandicapRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/handicaps", response_model=List[HandicapResponse])
async def list_handicaps(
    league_id: Optional[int] = None,
    player_id: Optional[int] = None,
    week_id: Optional[int] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """List handicap rows, optionally filtered by league, player or week."""
    try:
        return await handicap_service.list_handicaps(
            session, league_id=league_id, player_id=player_id, week_id=week_id
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing handicaps: {str(e)}")


@router.post("/api/handicaps")
async def set_handicap(
    payload: SetHandicapRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Manually set a player's handicap for a week.

    The player's weighted score for that week is refreshed with the value.
    A later recalculation restores the computed handicap.
    """
    try:
        return await handicap_service.set_manual_handicap(
            session, payload.player_id, payload.week_id, payload.handicap
        )
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error setting handicap: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error setting handicap: {str(e)}")


@router.post("/api/handicaps/recalculate")
async def recalculate_handicaps(
    payload: RecalculateHandicapsRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Recompute raw handicaps, applied handicaps and weighted scores for a
    league from the given week forward (default: the whole season).
    """
    try:
        return await handicap_service.recalculate_league_handicaps(
            session, payload.league_id, from_week=payload.from_week
        )
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error recalculating handicaps for league {payload.league_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error recalculating handicaps: {str(e)}")
