"""Blob storage on the local filesystem. One object per upload, named by a random UUID."""
import os
import uuid
from pathlib import Path
from typing import AsyncIterator

import aiofiles
import aiofiles.os

_CHUNK_SIZE = 64 * 1024


class FileStorageService:
    """Handles blob read/write under a single root directory."""

    def __init__(self, base_path: str | os.PathLike):
        self.base_path = Path(base_path)

    async def save(self, file_bytes: bytes) -> str:
        """Write bytes to a new object. Returns its path (the File's localPath)."""
        # Root is created lazily so a fresh deployment needs no setup step
        await aiofiles.os.makedirs(self.base_path, exist_ok=True)
        file_path = self.base_path / str(uuid.uuid4())
        async with aiofiles.open(file_path, "wb") as f:
            await f.write(file_bytes)
        return str(file_path)

    @staticmethod
    def variant_path(local_path: str, width: int) -> str:
        """Path of the resized companion of `local_path` at `width` pixels."""
        return f"{local_path}_{width}"

    async def save_variant(self, local_path: str, width: int, file_bytes: bytes) -> str:
        path = self.variant_path(local_path, width)
        async with aiofiles.open(path, "wb") as f:
            await f.write(file_bytes)
        return path

    async def exists(self, storage_path: str) -> bool:
        return await aiofiles.os.path.isfile(storage_path)

    async def read(self, storage_path: str) -> bytes:
        """Read the whole object. Only for bounded-size work such as resizing."""
        async with aiofiles.open(storage_path, "rb") as f:
            return await f.read()

    async def stream(self, storage_path: str, chunk_size: int = _CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield the object in chunks without holding it in memory."""
        async with aiofiles.open(storage_path, "rb") as f:
            while True:
                chunk = await f.read(chunk_size)
                if not chunk:
                    break
                yield chunk
