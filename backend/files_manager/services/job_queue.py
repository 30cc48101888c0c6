"""Durable named job queues backed by the jobs table.

Delivery is at-least-once: a job is committed before `add` returns, claimed
with a conditional update, and jobs stranded in 'running' by a crash are put
back in the queue on startup (`requeue_stale`).
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from files_manager.models.job import Job

logger = logging.getLogger(__name__)

QUEUED = "queued"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"


class JobQueue:
    """One named queue. Several JobQueue instances share the jobs table."""

    def __init__(self, name: str, session_factory: async_sessionmaker[AsyncSession]):
        self.name = name
        self._session_factory = session_factory

    async def add(self, payload: dict) -> uuid.UUID:
        """Enqueue a job and return its id."""
        async with self._session_factory() as db:
            job = Job(queue_name=self.name, status=QUEUED, payload=payload)
            db.add(job)
            await db.commit()
            logger.info(f"Queued job {job.id} on {self.name}: {payload}")
            return job.id

    async def claim(self) -> Optional[Job]:
        """Take the oldest queued job and mark it running. None when idle."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(Job.id)
                .where(Job.queue_name == self.name, Job.status == QUEUED)
                .order_by(Job.created_at, Job.id)
                .limit(1)
            )
            job_id = result.scalar_one_or_none()
            if job_id is None:
                return None

            # Conditional update so two consumers never run the same job
            claimed = await db.execute(
                update(Job)
                .where(Job.id == job_id, Job.status == QUEUED)
                .values(
                    status=RUNNING,
                    started_at=datetime.now(timezone.utc),
                    attempts=Job.attempts + 1,
                )
            )
            await db.commit()
            if claimed.rowcount == 0:
                return None
            return await db.get(Job, job_id, populate_existing=True)

    async def complete(self, job_id: uuid.UUID) -> None:
        await self._finish(job_id, COMPLETED, None)

    async def fail(self, job_id: uuid.UUID, message: str) -> None:
        await self._finish(job_id, FAILED, message[:2000])

    async def _finish(self, job_id: uuid.UUID, status: str, error_message: Optional[str]) -> None:
        async with self._session_factory() as db:
            await db.execute(
                update(Job)
                .where(Job.id == job_id)
                .values(
                    status=status,
                    error_message=error_message,
                    completed_at=datetime.now(timezone.utc),
                )
            )
            await db.commit()

    async def get(self, job_id: uuid.UUID) -> Optional[Job]:
        async with self._session_factory() as db:
            return await db.get(Job, job_id)

    async def pending_count(self) -> int:
        async with self._session_factory() as db:
            result = await db.execute(
                select(func.count())
                .select_from(Job)
                .where(Job.queue_name == self.name, Job.status == QUEUED)
            )
            return result.scalar_one()

    async def requeue_stale(self, stale_minutes: int = 15) -> int:
        """Put jobs stuck in 'running' for longer than `stale_minutes` back in the queue.

        Call on startup to recover from process crashes that left jobs stranded.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=stale_minutes)
        async with self._session_factory() as db:
            result = await db.execute(
                update(Job)
                .where(
                    and_(
                        Job.queue_name == self.name,
                        Job.status == RUNNING,
                        Job.started_at < cutoff,
                    )
                )
                .values(status=QUEUED, started_at=None)
            )
            await db.commit()
        if result.rowcount:
            logger.warning(f"Requeued {result.rowcount} stale job(s) on {self.name}")
        return result.rowcount
