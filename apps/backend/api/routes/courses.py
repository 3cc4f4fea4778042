"""Course list, create, rename and delete route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service
from backend.models.schemas import CourseResponse, CreateCourseRequest, UpdateCourseRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/courses", response_model=List[CourseResponse])
async def list_courses(league_id: int, session: AsyncSession = Depends(get_db_session)):
    """List a league's courses in week order."""
    try:
        return await data_service.list_courses(session, league_id)
    except Exception as e:
        logger.error(f"Error listing courses: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing courses: {str(e)}")


@router.post("/api/courses", response_model=CourseResponse, status_code=201)
async def create_course(
    payload: CreateCourseRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Set the course for a league week. Week 12 is the championship round."""
    try:
        return await data_service.create_course(session, payload.league_id, payload.week, payload.name)
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating course: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating course: {str(e)}")


@router.patch("/api/courses/{course_id}", response_model=CourseResponse)
async def update_course(
    course_id: int,
    payload: UpdateCourseRequest,
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.update_course(session, course_id, payload.name)
    except data_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating course {course_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating course: {str(e)}")


@router.delete("/api/courses/{course_id}")
async def delete_course(course_id: int, session: AsyncSession = Depends(get_db_session)):
    try:
        deleted = await data_service.delete_course(session, course_id)
        if not deleted:
            raise HTTPException(status_code=404, detail=f"Course {course_id} not found")
        return {"success": True, "message": "Course deleted"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting course: {str(e)}")
