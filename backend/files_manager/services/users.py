"""Read-only access to the credential store's user records."""
from typing import Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from files_manager.models.user import UserRecord


class UserDirectory(Protocol):
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    async def count(self) -> int:
        ...


class DBUserDirectory:
    """UserDirectory reading the `users` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        async with self._session_factory() as db:
            return await db.get(UserRecord, user_id)

    async def count(self) -> int:
        async with self._session_factory() as db:
            result = await db.execute(select(func.count()).select_from(UserRecord))
            return result.scalar_one()
