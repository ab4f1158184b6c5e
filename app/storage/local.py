"""Local filesystem image store."""

import asyncio
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict
from uuid import uuid4

import aiofiles
import aiofiles.os

from app.core.errors import InvalidKey
from app.core.logging_config import get_logger
from app.storage.temp import remove_quietly


logger = get_logger(__name__)

KEY_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]*")
IMAGE_SUFFIX = ".jpg"
PARTIAL_SUFFIX = ".part"


def validate_key(key: str, max_length: int = 64) -> str:
    """Check that a caller-supplied key is safe to use as a file name stem.

    Allowed: ASCII letters, digits, '-' and '_', starting with a letter or
    digit. Dots and path separators are rejected, so '..' can never appear.

    Raises:
        InvalidKey: If the key is empty, too long or has other characters
    """
    if not key:
        raise InvalidKey("Image type key is required")
    if len(key) > max_length:
        raise InvalidKey(
            f"Image type key too long (max {max_length} characters)",
            details={"max_length": max_length, "length": len(key)},
        )
    if not KEY_PATTERN.fullmatch(key):
        raise InvalidKey(
            "Image type key may only contain letters, digits, '-' and '_'",
            details={"pattern": KEY_PATTERN.pattern},
        )
    return key


class KeyedLock:
    """Registry of asyncio locks, one per key.

    Entries exist only while a task holds or waits for the key's lock.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, key: str) -> bool:
        return key in self._locks


class LocalImageStore:
    """Stores one JPEG per key as ``<base_path>/<key>.jpg``.

    Writes go to a hidden partial file in the same directory and are moved
    into place with ``os.replace``, so readers see either the old image or
    the new one and never a missing or truncated file. Writers to the same
    key are serialized by a per-key lock.
    """

    def __init__(
        self,
        base_path: str,
        service_name: str,
        url_prefix: str = "/images",
        key_max_length: int = 64,
    ):
        """Initialize local image store.

        Args:
            base_path: Storage root directory (created if absent)
            service_name: Service label for cleanup failure metrics
            url_prefix: Path the storage root is served under
            key_max_length: Longest accepted key
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.service_name = service_name
        self.url_prefix = url_prefix.rstrip("/")
        self.key_max_length = key_max_length
        self.locks = KeyedLock()

    def validate_key(self, key: str) -> str:
        return validate_key(key, self.key_max_length)

    def path_for(self, key: str) -> Path:
        return self.base_path / f"{self.validate_key(key)}{IMAGE_SUFFIX}"

    def url_for(self, key: str) -> str:
        return f"{self.url_prefix}/{self.validate_key(key)}{IMAGE_SUFFIX}"

    async def replace(self, key: str, content: bytes) -> Path:
        """Atomically store content as the image for key.

        Args:
            key: Image key
            content: JPEG bytes

        Returns:
            Path: Final image path
        """
        final_path = self.path_for(key)
        partial_path = self.base_path / f".{key}.{uuid4().hex}{PARTIAL_SUFFIX}"

        logger.debug(
            "local_store_replace_started",
            key=key,
            path=str(final_path),
            size_bytes=len(content),
        )

        async with self.locks.hold(key):
            try:
                async with aiofiles.open(partial_path, "wb") as f:
                    await f.write(content)
                replaced = await aiofiles.os.path.exists(final_path)
                await aiofiles.os.replace(partial_path, final_path)
            except Exception as exc:
                logger.error(
                    "local_store_replace_failed",
                    key=key,
                    path=str(final_path),
                    error_type=type(exc).__name__,
                    error=str(exc),
                    exc_info=True,
                )
                await remove_quietly(partial_path, self.service_name, reason="partial_write")
                raise

        logger.info(
            "local_store_replace_success",
            key=key,
            path=str(final_path),
            bytes_written=len(content),
            replaced_existing=replaced,
        )
        return final_path

    async def load(self, key: str) -> bytes:
        path = self.path_for(key)
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    def count(self) -> int:
        """Number of stored images."""
        return sum(1 for _ in self.base_path.glob(f"*{IMAGE_SUFFIX}"))

    def is_writable(self) -> bool:
        """Probe the storage root with a throwaway file."""
        probe = self.base_path / f".probe.{uuid4().hex}{PARTIAL_SUFFIX}"
        try:
            probe.write_bytes(b"")
            probe.unlink()
        except OSError as exc:
            logger.error(
                "local_store_not_writable",
                path=str(self.base_path),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return False
        return True

    def partial_files(self):
        """Leftover partial writes (from a crash mid-replace)."""
        return list(self.base_path.glob(f".*{PARTIAL_SUFFIX}"))
