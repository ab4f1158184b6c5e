"""Keyed image storage on the local filesystem."""

from app.core.config import Settings
from .protocol import ImageStore
from .local import LocalImageStore, KeyedLock, validate_key
from .temp import stage_upload, remove_quietly, sweep_directory


def build_store(config: Settings) -> LocalImageStore:
    """Create the image store described by the settings."""
    return LocalImageStore(
        config.STORAGE_PATH,
        config.SERVICE_NAME,
        url_prefix=config.IMAGE_URL_PREFIX,
        key_max_length=config.KEY_MAX_LENGTH,
    )


__all__ = [
    "build_store",
    "ImageStore",
    "LocalImageStore",
    "KeyedLock",
    "validate_key",
    "stage_upload",
    "remove_quietly",
    "sweep_directory",
]
