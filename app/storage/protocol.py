"""Image store protocol definition."""

from pathlib import Path
from typing import Protocol


class ImageStore(Protocol):
    """Interface for keyed image storage.

    One stored image per key; writes replace whatever the key held before.
    """

    def validate_key(self, key: str) -> str:
        """Return key unchanged if usable, else raise InvalidKey."""
        ...

    def url_for(self, key: str) -> str:
        """Public retrieval path for a key (e.g. "/images/avatar.jpg")."""
        ...

    def path_for(self, key: str) -> Path:
        """Filesystem location of a key's image."""
        ...

    async def replace(self, key: str, content: bytes) -> Path:
        """Store content under key, replacing any previous image.

        Args:
            key: Validated image key
            content: Encoded image bytes

        Returns:
            Path: Final location of the stored image
        """
        ...

    async def load(self, key: str) -> bytes:
        """Read a stored image.

        Raises:
            FileNotFoundError: If nothing is stored under key
        """
        ...
