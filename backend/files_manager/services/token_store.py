"""Token store client. Sessions are issued by another service; we only read them."""
import logging
from typing import Optional, Protocol

from redis.asyncio import Redis

from files_manager.config import Settings

logger = logging.getLogger(__name__)


class TokenStore(Protocol):
    """Key/value store holding `auth_<token> -> user id` with issuer-managed TTL."""

    async def get(self, key: str) -> Optional[str]:
        ...


class RedisTokenStore:
    """Redis-backed token store with an explicit init/shutdown lifecycle."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._client: Redis | None = None

    async def init(self) -> None:
        if self._client:
            logger.warning("Redis client already initialised, skipping")
            return
        self._client = Redis(
            host=self._settings.REDIS_HOST,
            port=self._settings.REDIS_PORT,
            db=self._settings.REDIS_DB,
            password=self._settings.REDIS_PASSWORD or None,
            decode_responses=True,
        )
        logger.info(f"Redis token store at {self._settings.REDIS_HOST}:{self._settings.REDIS_PORT}")

    async def shutdown(self) -> None:
        if self._client:
            await self._client.aclose()
            logger.info("Redis client closed")
        self._client = None

    @property
    def client(self) -> Redis:
        if not self._client:
            raise RuntimeError("Redis client is not initialised, call init() first")
        return self._client

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def is_alive(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            return False
