"""Recalculation queue status and health check route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services.recalc_queue import get_recalc_queue

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/recalculate/status")
async def get_calculation_status(session: AsyncSession = Depends(get_db_session)):
    """
    Get current queue status and recent jobs.

    Returns:
        dict: Queue status with running, pending, and recent jobs
    """
    try:
        queue = get_recalc_queue()
        return await queue.get_queue_status(session)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting queue status: {str(e)}")


@router.get("/api/recalculate/status/{job_id}")
async def get_job_status(job_id: int, session: AsyncSession = Depends(get_db_session)):
    """
    Get status of a specific recalculation job.

    Args:
        job_id: Job ID

    Returns:
        dict: Job status
    """
    try:
        queue = get_recalc_queue()
        job_status = await queue.get_job_status(session, job_id)

        if not job_status:
            raise HTTPException(status_code=404, detail=f"Job {job_id} not found")

        return job_status
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting job status: {str(e)}")


@router.get("/api/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Service status
    """
    return {"status": "healthy", "message": "API is running"}
