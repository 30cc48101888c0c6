"""Authorization layer: token resolution and the ownership/visibility rules."""
from typing import Optional

from files_manager.errors import Unauthorized
from files_manager.models.file_record import FileRecord
from files_manager.services.token_store import TokenStore


class AuthService:
    """Resolves an `x-token` value to a user id. Stateless: every call re-resolves."""

    def __init__(self, token_store: TokenStore, key_prefix: str = "auth_"):
        self.token_store = token_store
        self.key_prefix = key_prefix

    async def resolve_user(self, token: Optional[str]) -> str:
        """Return the user id behind `token` or raise Unauthorized."""
        user_id = await self.resolve_optional_user(token)
        if not user_id:
            raise Unauthorized()
        return user_id

    async def resolve_optional_user(self, token: Optional[str]) -> Optional[str]:
        """Like resolve_user, but returns None for a missing or unknown token."""
        if not token:
            return None
        user_id = await self.token_store.get(f"{self.key_prefix}{token}")
        return user_id or None


def is_owner(file: FileRecord, user_id: Optional[str]) -> bool:
    return user_id is not None and file.user_id == user_id


def can_read_content(file: FileRecord, user_id: Optional[str]) -> bool:
    """Public files are readable by anyone, private ones only by their owner."""
    return file.is_public or is_owner(file, user_id)
