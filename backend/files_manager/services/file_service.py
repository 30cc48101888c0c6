"""Upload and query operations on files and folders.

Every owner-scoped operation takes an already-resolved user id; content
retrieval resolves the token itself because anonymous reads of public files
are allowed.
"""
import base64
import binascii
import logging
import mimetypes
import re
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from files_manager.errors import (
    FolderHasNoContent,
    InternalError,
    InvalidField,
    InvalidSize,
    MissingField,
    NotFound,
    ParentNotFolder,
    ParentNotFound,
)
from files_manager.models.file_record import FileRecord, FILE_TYPES, FOLDER, IMAGE, ROOT_PARENT_ID
from files_manager.services.auth import AuthService, can_read_content
from files_manager.services.file_storage import FileStorageService
from files_manager.services.job_queue import JobQueue
from files_manager.services.thumbnails import THUMBNAIL_WIDTHS

logger = logging.getLogger(__name__)

PAGE_SIZE = 20

# Leading integer of a query value: "500px" and "500.0" both mean 500
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass
class FileContent:
    """Streamable body of a file plus its content type."""
    chunks: AsyncIterator[bytes]
    content_type: str


def normalize_parent_id(parent_id: Any) -> str:
    """Map every spelling of "no parent" to the root sentinel."""
    if parent_id in (None, 0, "0", "", False):
        return ROOT_PARENT_ID
    return str(parent_id)


class FileService:
    """Synchronous request path for the files API."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: FileStorageService,
        auth: AuthService,
        file_queue: JobQueue,
        user_queue: Optional[JobQueue] = None,
    ):
        self._session_factory = session_factory
        self.storage = storage
        self.auth = auth
        self.file_queue = file_queue
        self.user_queue = user_queue

    async def create(
        self,
        user_id: str,
        name: Any,
        type: Any,
        parent_id: Any = None,
        is_public: Any = False,
        data: Any = None,
    ) -> FileRecord:
        """Validate, store the blob (non-folders), insert the record, queue thumbnails (images)."""
        if not name:
            raise MissingField("name")
        if not isinstance(name, str):
            raise InvalidField("name")
        if not type or type not in FILE_TYPES:
            raise InvalidField("type")
        if type != FOLDER and not data:
            raise MissingField("data")

        parent_id = normalize_parent_id(parent_id)
        if parent_id != ROOT_PARENT_ID:
            async with self._session_factory() as db:
                parent = await db.get(FileRecord, parent_id)
            if not parent:
                raise ParentNotFound()
            if not parent.is_folder:
                raise ParentNotFolder()

        local_path = None
        if type != FOLDER:
            if not isinstance(data, str):
                raise InvalidField("data")
            try:
                content = base64.b64decode(data)
            except (binascii.Error, ValueError):
                raise InvalidField("data")
            local_path = await self.storage.save(content)

        async with self._session_factory() as db:
            file = FileRecord(
                user_id=user_id,
                name=name,
                type=type,
                is_public=bool(is_public),
                parent_id=parent_id,
                local_path=local_path,
            )
            db.add(file)
            await db.commit()
            await db.refresh(file)
        logger.info(f"User {user_id} created {type} {file.id} ({name})")

        if type == IMAGE:
            await self._enqueue_thumbnails(file)
        return file

    async def _enqueue_thumbnails(self, file: FileRecord) -> None:
        # The upload already succeeded; a lost thumbnail job must not fail it
        try:
            await self.file_queue.add({"fileId": file.id, "userId": file.user_id})
        except Exception:
            logger.exception(f"Failed to queue thumbnail job for file {file.id}")

    async def get_by_id(self, user_id: str, file_id: str) -> FileRecord:
        """Owner-only lookup."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(FileRecord).where(FileRecord.id == file_id, FileRecord.user_id == user_id)
            )
            file = result.scalar_one_or_none()
        if not file:
            raise NotFound()
        return file

    async def list_files(self, user_id: str, parent_id: Any = None, page: int = 0) -> list[FileRecord]:
        """One page of the user's files in creation order.

        Without `parent_id` the user's whole tree is paged; with it, only
        that folder's direct children.
        """
        page = max(page, 0)
        query = select(FileRecord).where(FileRecord.user_id == user_id)
        if parent_id is not None:
            query = query.where(FileRecord.parent_id == normalize_parent_id(parent_id))
        query = query.order_by(FileRecord.id).offset(page * PAGE_SIZE).limit(PAGE_SIZE)

        async with self._session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def set_public(self, user_id: str, file_id: str, value: bool) -> FileRecord:
        """Publish or unpublish with a single conditional update."""
        async with self._session_factory() as db:
            result = await db.execute(
                update(FileRecord)
                .where(FileRecord.id == file_id, FileRecord.user_id == user_id)
                .values(is_public=value)
            )
            await db.commit()
            if result.rowcount == 0:
                raise NotFound()

            file = await db.get(FileRecord, file_id, populate_existing=True)
        if not file:
            raise InternalError("Failed to update the file")
        logger.info(f"User {user_id} set file {file_id} public={value}")
        return file

    async def get_content(
        self,
        file_id: str,
        token: Optional[str] = None,
        size: Any = None,
    ) -> FileContent:
        """Resolve the blob to serve for `file_id`, optionally a thumbnail width."""
        async with self._session_factory() as db:
            file = await db.get(FileRecord, file_id)
        if not file:
            raise NotFound()

        if not file.is_public:
            requester_id = await self.auth.resolve_optional_user(token)
            # Same answer as a missing file, by policy
            if not can_read_content(file, requester_id):
                raise NotFound()

        if file.is_folder:
            raise FolderHasNoContent()

        path = file.local_path
        if size is not None and size != "":
            path = self.storage.variant_path(file.local_path, parse_size(size))

        if not path or not await self.storage.exists(path):
            raise NotFound()

        content_type, _ = mimetypes.guess_type(file.name)
        if not content_type:
            raise InternalError("Unable to determine MIME type")

        return FileContent(chunks=self.storage.stream(path), content_type=content_type)

    async def enqueue_welcome(self, user_id: str) -> None:
        """Hook for the registration path: queue the welcome job for a new user."""
        if self.user_queue is None:
            raise InternalError("User queue is not configured")
        await self.user_queue.add({"userId": user_id})

    async def count(self) -> int:
        async with self._session_factory() as db:
            result = await db.execute(select(func.count()).select_from(FileRecord))
            return result.scalar_one()


def parse_size(size: Any) -> int:
    """Thumbnail width from a query value. Only the generated widths are valid."""
    match = _LEADING_INT.match(str(size))
    if not match:
        raise InvalidSize()
    width = int(match.group(1))
    if width not in THUMBNAIL_WIDTHS:
        raise InvalidSize()
    return width
