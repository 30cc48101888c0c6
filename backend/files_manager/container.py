"""Explicit wiring of services, queues and workers.

Built once in the app lifespan (or by tests) and attached to `app.state`;
nothing here is created at import time.
"""
import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from files_manager.config import Settings
from files_manager.services.auth import AuthService
from files_manager.services.file_service import FileService
from files_manager.services.file_storage import FileStorageService
from files_manager.services.job_queue import JobQueue
from files_manager.services.job_worker import (
    JOB_HANDLERS,
    THUMBNAIL_JOB,
    WELCOME_JOB,
    JobContext,
    QueueWorker,
)
from files_manager.services.token_store import TokenStore
from files_manager.services.users import DBUserDirectory, UserDirectory

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    token_store: TokenStore
    storage: FileStorageService
    auth: AuthService
    users: UserDirectory
    file_queue: JobQueue
    user_queue: JobQueue
    file_service: FileService
    workers: list[QueueWorker] = field(default_factory=list)

    async def start(self) -> None:
        """Recover jobs stranded by a previous crash, then start consuming."""
        for worker in self.workers:
            await worker.queue.requeue_stale(self.settings.STALE_JOB_MINUTES)
            worker.start()
        logger.info(f"Started {len(self.workers)} queue worker(s)")

    async def stop(self) -> None:
        for worker in self.workers:
            await worker.stop()


def build_container(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    token_store: TokenStore,
    users: UserDirectory | None = None,
) -> Container:
    storage = FileStorageService(settings.FOLDER_PATH)
    auth = AuthService(token_store, key_prefix=settings.TOKEN_KEY_PREFIX)
    users = users or DBUserDirectory(session_factory)
    file_queue = JobQueue(settings.FILE_QUEUE_NAME, session_factory)
    user_queue = JobQueue(settings.USER_QUEUE_NAME, session_factory)
    file_service = FileService(
        session_factory,
        storage,
        auth,
        file_queue=file_queue,
        user_queue=user_queue,
    )

    context = JobContext(session_factory=session_factory, storage=storage, users=users)
    workers = [
        QueueWorker(file_queue, JOB_HANDLERS[THUMBNAIL_JOB], context, settings.JOB_POLL_INTERVAL),
        QueueWorker(user_queue, JOB_HANDLERS[WELCOME_JOB], context, settings.JOB_POLL_INTERVAL),
    ]

    return Container(
        settings=settings,
        session_factory=session_factory,
        token_store=token_store,
        storage=storage,
        auth=auth,
        users=users,
        file_queue=file_queue,
        user_queue=user_queue,
        file_service=file_service,
        workers=workers,
    )
