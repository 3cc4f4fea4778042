"""Maintenance route handlers for reconciling duplicate weeks and scores."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service, score_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/admin/leagues/{league_id}/merge-duplicate-weeks")
async def merge_duplicate_weeks(league_id: int, session: AsyncSession = Depends(get_db_session)):
    """
    Fold duplicate week rows into one row per week number and queue a full
    league recalculation.
    """
    try:
        result = await data_service.merge_duplicate_weeks(session, league_id)
        result["job_id"] = await score_service.enqueue_league_recalculation(session, league_id)
        return result
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error merging duplicate weeks for league {league_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error merging duplicate weeks: {str(e)}")


@router.post("/api/admin/leagues/{league_id}/cleanup-duplicate-scores")
async def cleanup_duplicate_scores(league_id: int, session: AsyncSession = Depends(get_db_session)):
    """
    Delete all but the most recent score per player and week number, then
    queue a full league recalculation.
    """
    try:
        result = await data_service.cleanup_duplicate_scores(session, league_id)
        result["job_id"] = await score_service.enqueue_league_recalculation(session, league_id)
        return result
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error cleaning up duplicate scores for league {league_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error cleaning up duplicate scores: {str(e)}")
