"""Team list, create and delete route handlers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service
from backend.models.schemas import CreateTeamRequest, TeamResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/teams", response_model=List[TeamResponse])
async def list_teams(
    league_id: Optional[int] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """List teams, optionally for one league."""
    try:
        return await data_service.list_teams(session, league_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing teams: {str(e)}")


@router.post("/api/teams", response_model=TeamResponse, status_code=201)
async def create_team(
    payload: CreateTeamRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Create a team; team numbers are assigned sequentially per league."""
    try:
        return await data_service.create_team(
            session, payload.league_id, payload.player1_id, payload.player2_id
        )
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except data_service.DuplicateTeamError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating team: {str(e)}")


@router.delete("/api/teams/{team_id}")
async def delete_team(team_id: int, session: AsyncSession = Depends(get_db_session)):
    """Delete a team and its matches."""
    try:
        deleted = await data_service.delete_team(session, team_id)
        if not deleted:
            raise HTTPException(status_code=404, detail=f"Team {team_id} not found")
        return {"success": True, "message": "Team deleted"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting team: {str(e)}")
