"""Background job worker.

Each QueueWorker polls one JobQueue and runs the handler registered for it.
Runs as an asyncio task inside the FastAPI process; started and stopped by
the application lifespan.

A failing job is marked 'failed' and logged. It never stops the loop.
"""
import asyncio
import logging
import traceback
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from files_manager.models.file_record import FileRecord, IMAGE
from files_manager.services.file_storage import FileStorageService
from files_manager.services.job_queue import JobQueue
from files_manager.services.thumbnails import THUMBNAIL_WIDTHS, make_thumbnail
from files_manager.services.users import UserDirectory

logger = logging.getLogger(__name__)


class JobError(Exception):
    """Terminal job failure. The message is stored on the job row."""
    pass


class JobPayloadError(JobError):
    pass


class FileNotFoundForJob(JobError):
    def __init__(self):
        super().__init__("File not found")


class NotAnImageError(JobError):
    def __init__(self):
        super().__init__("File is not an image")


class ThumbnailError(JobError):
    pass


class UserNotFoundForJob(JobError):
    def __init__(self):
        super().__init__("User not found")


def safe_error_message(e: Exception, fallback: str = "Job failed") -> str:
    """Extract a meaningful error message from an exception.

    Some exceptions produce an empty str(e). This helper falls back to the
    exception class name.
    """
    msg = str(e).strip()
    if not msg:
        msg = f"{type(e).__name__}: {fallback}"
    return msg


@dataclass
class JobContext:
    """Collaborators the job handlers need."""
    session_factory: async_sessionmaker[AsyncSession]
    storage: FileStorageService
    users: UserDirectory


JobHandler = Callable[[JobContext, dict], Awaitable[None]]

# Job handler registry - add new job kinds here
JOB_HANDLERS: dict[str, JobHandler] = {}

THUMBNAIL_JOB = "thumbnails"
WELCOME_JOB = "welcome"


def register_job_handler(job_kind: str):
    """Decorator to register a job handler function."""
    def decorator(func):
        JOB_HANDLERS[job_kind] = func
        return func
    return decorator


class QueueWorker:
    """Single logical consumer of one queue, with an explicit start/stop lifecycle."""

    def __init__(
        self,
        queue: JobQueue,
        handler: JobHandler,
        context: JobContext,
        poll_interval: float = 1.0,
    ):
        self.queue = queue
        self.handler = handler
        self.context = context
        self.poll_interval = poll_interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"worker-{self.queue.name}")

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Worker for {self.queue.name} stopped")

    async def _loop(self) -> None:
        logger.info(f"Worker for {self.queue.name} started")
        while True:
            try:
                processed = await self.run_once()
            except Exception as e:
                # Queue/DB trouble: back off, keep the worker alive
                logger.error(f"Worker loop error on {self.queue.name}: {e}")
                processed = False
            if not processed:
                await asyncio.sleep(self.poll_interval)

    async def run_once(self) -> bool:
        """Claim and process at most one job. Returns False when the queue was empty."""
        job = await self.queue.claim()
        if job is None:
            return False

        logger.info(f"Processing job {job.id} on {self.queue.name} (attempt {job.attempts})")
        try:
            await self.handler(self.context, job.payload or {})
        except Exception as e:
            logger.error(f"Job {job.id} failed: {e}")
            logger.error(traceback.format_exc())
            await self.queue.fail(job.id, safe_error_message(e))
        else:
            await self.queue.complete(job.id)
            logger.info(f"Job {job.id} completed")
        return True

    async def drain(self) -> int:
        """Process jobs until the queue is empty. Returns how many were processed."""
        count = 0
        while await self.run_once():
            count += 1
        return count


# ── Job Handlers ─────────────────────────────────────────────────

@register_job_handler(THUMBNAIL_JOB)
async def handle_thumbnails(ctx: JobContext, payload: dict) -> None:
    """Write the 500/250/100 px wide variants of an uploaded image."""
    file_id = payload.get("fileId")
    user_id = payload.get("userId")
    if not file_id:
        raise JobPayloadError("Missing fileId")
    if not user_id:
        raise JobPayloadError("Missing userId")

    async with ctx.session_factory() as db:
        result = await db.execute(
            select(FileRecord).where(FileRecord.id == str(file_id), FileRecord.user_id == str(user_id))
        )
        file = result.scalar_one_or_none()
    if not file:
        raise FileNotFoundForJob()
    if file.type != IMAGE:
        raise NotAnImageError()

    try:
        original = await ctx.storage.read(file.local_path)
    except Exception as e:
        raise ThumbnailError(f"Error generating thumbnail: {safe_error_message(e)}") from e

    # No compensation: widths written before a failure stay on disk
    for width in THUMBNAIL_WIDTHS:
        try:
            thumbnail = await asyncio.to_thread(make_thumbnail, original, width)
            await ctx.storage.save_variant(file.local_path, width, thumbnail)
        except Exception as e:
            raise ThumbnailError(f"Error generating thumbnail: {safe_error_message(e)}") from e
        logger.debug(f"Wrote {width}px variant of file {file.id}")


@register_job_handler(WELCOME_JOB)
async def handle_welcome(ctx: JobContext, payload: dict) -> None:
    """Greet a newly registered user."""
    user_id = payload.get("userId")
    if not user_id:
        raise JobPayloadError("Missing userId")

    user = await ctx.users.get_user(str(user_id))
    if not user:
        raise UserNotFoundForJob()

    logger.info(f"Welcome {user.email}!")
