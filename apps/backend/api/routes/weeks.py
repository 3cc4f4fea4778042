"""Week list and get-or-create route handlers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service
from backend.models.schemas import CreateWeekRequest, WeekResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/weeks", response_model=List[WeekResponse])
async def list_weeks(
    league_id: Optional[int] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """List weeks, optionally for one league."""
    try:
        return await data_service.list_weeks(session, league_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing weeks: {str(e)}")


@router.post("/api/weeks", response_model=WeekResponse)
async def get_or_create_week(
    payload: CreateWeekRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Get the week for (league, week number, championship), creating it if needed.

    Returns 201 when the week was created, 200 when it already existed.
    """
    try:
        week, created = await data_service.get_or_create_week(
            session, payload.league_id, payload.week_number, payload.is_championship
        )
        return JSONResponse(status_code=201 if created else 200, content=week)
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating week: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating week: {str(e)}")
