"""
Recalculation queue with deduplication.

Runs the handicap/match recompute cascade as background work with a
database-backed queue that:
- Deduplicates identical requests (same league and week number)
- Persists across server restarts
- Tracks job status and failures
"""

import asyncio
import logging
import os
from typing import Optional, Dict, Callable, Awaitable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_
from backend.database.models import RecalculationJob, RecalculationJobStatus
from backend.database import db
from backend.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

CALC_TYPES = ("league", "week")


def _poll_seconds() -> float:
    return float(os.getenv("RECALC_WORKER_POLL_SECONDS", "1"))


class RecalculationQueue:
    """Database-backed queue for recalculation jobs."""

    def __init__(self):
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._league_calc_callback: Optional[Callable[[AsyncSession, int], Awaitable[Dict]]] = None
        self._week_calc_callback: Optional[Callable[[AsyncSession, int, int], Awaitable[Dict]]] = None

    async def enqueue_calculation(
        self,
        session: AsyncSession,
        calc_type: str,
        league_id: int,
        week_number: Optional[int] = None,
    ) -> int:
        """
        Enqueue a recalculation job.

        Deduplication logic:
        - If the same (calc_type, league_id, week_number) is already pending,
          return that job's id
        - If a job is running, queue this one as pending
        - Otherwise, start immediately

        A running job with the same key does not absorb the request: it may
        already have read the data this request changed.

        Args:
            session: Database session
            calc_type: 'league' or 'week'
            league_id: League ID
            week_number: Week number, required for 'week' jobs

        Returns:
            Job ID
        """
        if calc_type not in CALC_TYPES:
            raise ValueError(f"Unknown calc_type: {calc_type}")
        if calc_type == "week" and week_number is None:
            raise ValueError("week_number required for week calculation")
        if calc_type == "league":
            week_number = None

        queued = await self._find_queued_job(session, calc_type, league_id, week_number)
        if queued:
            return queued.id

        running_job = await self._get_running_job(session)
        if running_job:
            return await self._create_job(session, calc_type, league_id, week_number, RecalculationJobStatus.PENDING)

        job_id = await self._create_job(session, calc_type, league_id, week_number, RecalculationJobStatus.RUNNING)
        asyncio.create_task(self._run_calculation_logged(job_id))
        return job_id

    async def _create_job(
        self,
        session: AsyncSession,
        calc_type: str,
        league_id: int,
        week_number: Optional[int],
        status: RecalculationJobStatus,
    ) -> int:
        """Create a job and return its ID."""
        job = RecalculationJob(
            calc_type=calc_type,
            league_id=league_id,
            week_number=week_number,
            status=status,
            started_at=utcnow() if status == RecalculationJobStatus.RUNNING else None,
        )
        session.add(job)
        await session.commit()
        await session.refresh(job)
        return job.id

    async def _get_running_job(self, session: AsyncSession) -> Optional[RecalculationJob]:
        """Get currently running job if any."""
        result = await session.execute(
            select(RecalculationJob)
            .where(RecalculationJob.status == RecalculationJobStatus.RUNNING)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _find_queued_job(
        self,
        session: AsyncSession,
        calc_type: str,
        league_id: int,
        week_number: Optional[int],
    ) -> Optional[RecalculationJob]:
        """Find a pending job with the same calc_type, league and week number."""
        conditions = [
            RecalculationJob.status == RecalculationJobStatus.PENDING,
            RecalculationJob.calc_type == calc_type,
            RecalculationJob.league_id == league_id,
        ]
        if week_number is None:
            conditions.append(RecalculationJob.week_number.is_(None))
        else:
            conditions.append(RecalculationJob.week_number == week_number)

        result = await session.execute(
            select(RecalculationJob)
            .where(and_(*conditions))
            .order_by(RecalculationJob.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _get_first_queued_job(self, session: AsyncSession) -> Optional[RecalculationJob]:
        """Get first pending job."""
        result = await session.execute(
            select(RecalculationJob)
            .where(RecalculationJob.status == RecalculationJobStatus.PENDING)
            .order_by(RecalculationJob.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    def register_calculation_callbacks(
        self,
        league_calc_callback: Callable[[AsyncSession, int], Awaitable[Dict]],
        week_calc_callback: Callable[[AsyncSession, int, int], Awaitable[Dict]],
    ) -> None:
        """
        Register callbacks for recalculation functions.

        This method must be called before any calculations can be executed.
        Typically called during application startup.

        Args:
            league_calc_callback: Async function taking a session and league_id
            week_calc_callback: Async function taking a session, league_id and week_number

        Raises:
            TypeError: If callbacks are not callable
        """
        if not callable(league_calc_callback):
            raise TypeError("league_calc_callback must be callable")
        if not callable(week_calc_callback):
            raise TypeError("week_calc_callback must be callable")

        if self._league_calc_callback is not None or self._week_calc_callback is not None:
            logger.warning("Re-registering calculation callbacks (previous callbacks will be replaced)")

        self._league_calc_callback = league_calc_callback
        self._week_calc_callback = week_calc_callback
        logger.info("Recalculation callbacks registered successfully")

    async def _run_calculation(self, job_id: int) -> None:
        """Run a calculation job, recording the outcome on the job row."""
        session = db.AsyncSessionLocal()
        try:
            result = await session.execute(
                select(RecalculationJob).where(RecalculationJob.id == job_id)
            )
            job = result.scalar_one_or_none()
            if not job:
                return
            calc_type, league_id, week_number = job.calc_type, job.league_id, job.week_number

            try:
                if self._league_calc_callback is None or self._week_calc_callback is None:
                    raise RuntimeError(
                        "Calculation callbacks not registered. "
                        "Call register_calculation_callbacks() before starting the queue worker."
                    )

                if calc_type == "league":
                    await self._league_calc_callback(session, league_id)
                elif calc_type == "week":
                    if week_number is None:
                        raise ValueError("week_number required for week calculation")
                    await self._week_calc_callback(session, league_id, week_number)
                else:
                    raise ValueError(f"Unknown calc_type: {calc_type}")

                await session.execute(
                    update(RecalculationJob)
                    .where(RecalculationJob.id == job_id)
                    .values(status=RecalculationJobStatus.COMPLETED, completed_at=utcnow())
                )
                await session.commit()
                logger.info("Recalculation job %s (%s, league %s) completed", job_id, calc_type, league_id)

            except Exception as e:
                await session.rollback()
                await session.execute(
                    update(RecalculationJob)
                    .where(RecalculationJob.id == job_id)
                    .values(
                        status=RecalculationJobStatus.FAILED,
                        completed_at=utcnow(),
                        error_message=str(e),
                    )
                )
                await session.commit()
                raise
        finally:
            await session.close()

    async def _run_calculation_logged(self, job_id: int) -> None:
        """Run a job started outside the worker; failures are logged, never raised."""
        try:
            await self._run_calculation(job_id)
        except Exception:
            logger.exception("Recalculation job %s failed", job_id)

    async def _process_queue_worker(self) -> None:
        """Background worker that processes pending jobs."""
        while not self._stop_event.is_set():
            session = db.AsyncSessionLocal()
            try:
                job = await self._get_first_queued_job(session)
                if job:
                    await session.execute(
                        update(RecalculationJob)
                        .where(RecalculationJob.id == job.id)
                        .values(status=RecalculationJobStatus.RUNNING, started_at=utcnow())
                    )
                    await session.commit()
                    await session.close()

                    # Run calculation (it will create its own session)
                    await self._run_calculation_logged(job.id)
                else:
                    await session.close()
                    await asyncio.sleep(_poll_seconds())
            except asyncio.CancelledError:
                await session.close()
                raise
            except Exception:
                logger.exception("Error in recalculation queue worker")
                await session.rollback()
                await session.close()
                await asyncio.sleep(5)

    async def get_queue_status(self, session: AsyncSession) -> Dict:
        """Get current queue status."""
        running = await self._get_running_job(session)

        result = await session.execute(
            select(RecalculationJob)
            .where(RecalculationJob.status == RecalculationJobStatus.PENDING)
            .order_by(RecalculationJob.id.asc())
        )
        pending = result.scalars().all()

        result = await session.execute(
            select(RecalculationJob)
            .where(RecalculationJob.status == RecalculationJobStatus.COMPLETED)
            .order_by(RecalculationJob.completed_at.desc())
            .limit(10)
        )
        recent_completed = result.scalars().all()

        result = await session.execute(
            select(RecalculationJob)
            .where(RecalculationJob.status == RecalculationJobStatus.FAILED)
            .order_by(RecalculationJob.completed_at.desc())
            .limit(10)
        )
        recent_failed = result.scalars().all()

        return {
            "running": {
                **self._job_key(running),
                "started_at": running.started_at.isoformat() if running.started_at else None,
            } if running else None,
            "pending": [
                {**self._job_key(j), "created_at": j.created_at.isoformat() if j.created_at else None}
                for j in pending
            ],
            "recent_completed": [
                {**self._job_key(j), "completed_at": j.completed_at.isoformat() if j.completed_at else None}
                for j in recent_completed
            ],
            "recent_failed": [
                {
                    **self._job_key(j),
                    "error_message": j.error_message,
                    "completed_at": j.completed_at.isoformat() if j.completed_at else None,
                }
                for j in recent_failed
            ],
        }

    @staticmethod
    def _job_key(job: RecalculationJob) -> Dict:
        return {
            "id": job.id,
            "calc_type": job.calc_type,
            "league_id": job.league_id,
            "week_number": job.week_number,
        }

    async def get_job_status(self, session: AsyncSession, job_id: int) -> Optional[Dict]:
        """Get status of a specific job."""
        result = await session.execute(
            select(RecalculationJob).where(RecalculationJob.id == job_id)
        )
        job = result.scalar_one_or_none()
        if not job:
            return None

        return {
            **self._job_key(job),
            "status": job.status.value,
            "created_at": job.created_at.isoformat() if job.created_at else None,
            "started_at": job.started_at.isoformat() if job.started_at else None,
            "completed_at": job.completed_at.isoformat() if job.completed_at else None,
            "error_message": job.error_message,
        }

    def start_background_worker(self) -> None:
        """Start the background worker."""
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._process_queue_worker())

    def stop_background_worker(self) -> None:
        """Stop the background worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()


# Global queue instance
_recalc_queue = RecalculationQueue()


def get_recalc_queue() -> RecalculationQueue:
    """Get the global recalculation queue instance."""
    return _recalc_queue
