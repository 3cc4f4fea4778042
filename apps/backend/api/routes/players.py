"""Player list, create, update and delete route handlers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service, score_service
from backend.models.schemas import CreatePlayerRequest, PlayerResponse, UpdatePlayerRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/players", response_model=List[PlayerResponse])
async def list_players(
    league_id: Optional[int] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """List players, optionally for one league."""
    try:
        return await data_service.list_players(session, league_id)
    except Exception as e:
        logger.error(f"Error listing players: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing players: {str(e)}")


@router.post("/api/players", response_model=PlayerResponse, status_code=201)
async def create_player(
    payload: CreatePlayerRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Add a player to a league."""
    try:
        return await data_service.create_player(
            session,
            league_id=payload.league_id,
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone=payload.phone,
            email=payload.email,
            winnings_eligible=payload.winnings_eligible,
        )
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating player: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating player: {str(e)}")


@router.get("/api/players/{player_id}", response_model=PlayerResponse)
async def get_player(player_id: int, session: AsyncSession = Depends(get_db_session)):
    """Get a player by ID."""
    try:
        player = await data_service.get_player(session, player_id)
        if not player:
            raise HTTPException(status_code=404, detail=f"Player {player_id} not found")
        return player
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting player: {str(e)}")


@router.patch("/api/players/{player_id}", response_model=PlayerResponse)
async def update_player(
    player_id: int,
    payload: UpdatePlayerRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Update a player's name, contact details or winnings eligibility."""
    try:
        fields = payload.model_dump(exclude_unset=True)
        return await data_service.update_player(session, player_id, fields)
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating player: {str(e)}")


@router.delete("/api/players/{player_id}")
async def delete_player(player_id: int, session: AsyncSession = Depends(get_db_session)):
    """
    Delete a player with their scores, handicaps and teams.

    The league's player count drives week completion, so a full league
    recalculation is queued afterwards.
    """
    try:
        player = await data_service.get_player(session, player_id)
        if not player or not await data_service.delete_player(session, player_id):
            raise HTTPException(status_code=404, detail=f"Player {player_id} not found")
        job_id = await score_service.enqueue_league_recalculation(session, player["league_id"])
        return {"success": True, "message": "Player deleted", "job_id": job_id}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error deleting player: {str(e)}")
