"""Score submission, edit, list and weighted-score refresh route handlers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.routes import limiter
from backend.database.db import get_db_session
from backend.services import data_service, handicap_service, score_service
from backend.models.schemas import (
    LeagueRequest,
    ScoreResponse,
    ScoreSubmissionResponse,
    SubmitScoreRequest,
    UpdateScoreRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/scores", response_model=List[ScoreResponse])
async def list_scores(
    league_id: Optional[int] = None,
    week_id: Optional[int] = None,
    player_id: Optional[int] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """List scores, optionally filtered by league, week or player."""
    try:
        return await data_service.list_scores(
            session, league_id=league_id, week_id=week_id, player_id=player_id
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing scores: {str(e)}")


@router.post("/api/scores", response_model=ScoreSubmissionResponse)
@limiter.limit("30/minute")
async def submit_score(
    request: Request,
    payload: SubmitScoreRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Submit an 18-hole scorecard for a player and week.

    Replaces the player's existing score for that week number. Handicaps,
    weighted scores and match results are recalculated in the background;
    the returned job_id can be polled at /api/recalculate/status/{job_id}.
    """
    try:
        result = await score_service.submit_score(
            session,
            player_id=payload.player_id,
            week_id=payload.week_id,
            holes=payload.holes,
            scorecard_image=payload.scorecard_image,
        )
        return JSONResponse(status_code=201 if result["created"] else 200, content=result)
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error submitting score: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error submitting score: {str(e)}")


@router.post("/api/scores/recalculate")
async def recalculate_weighted_scores(
    payload: LeagueRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Refresh every weighted score in a league from the stored handicaps."""
    try:
        return await handicap_service.ensure_all_weighted_scores(session, payload.league_id)
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error recalculating weighted scores: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error recalculating weighted scores: {str(e)}")


@router.get("/api/scores/{score_id}", response_model=ScoreResponse)
async def get_score(score_id: int, session: AsyncSession = Depends(get_db_session)):
    """Get a score by ID."""
    try:
        score = await data_service.get_score(session, score_id)
        if not score:
            raise HTTPException(status_code=404, detail=f"Score {score_id} not found")
        return score
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting score: {str(e)}")


@router.patch("/api/scores/{score_id}", response_model=ScoreSubmissionResponse)
async def update_score(
    score_id: int,
    payload: UpdateScoreRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Edit individual holes, the total of a card without holes, or the scorecard image."""
    try:
        return await score_service.update_score(
            session,
            score_id,
            holes=payload.holes,
            total=payload.total,
            scorecard_image=payload.scorecard_image,
        )
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating score {score_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating score: {str(e)}")
