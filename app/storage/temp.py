"""Temporary upload area: staging uploads to disk and best-effort cleanup."""

from pathlib import Path
from typing import Iterable, Union
from uuid import uuid4

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from app.core.errors import PayloadTooLarge
from app.core.logging_config import get_logger


logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024
UPLOAD_SUFFIX = ".upload"


def _count_cleanup_failure(service: str, reason: str) -> None:
    from app.api.v1.metrics import cleanup_failures_total

    cleanup_failures_total.labels(service=service, reason=reason).inc()


async def remove_quietly(path: Union[str, Path], service: str, reason: str = "temp_upload") -> bool:
    """Delete a file, never raising.

    A missing file counts as removed. Any other failure is logged and
    counted in the cleanup_failures_total metric under ``service``.

    Returns:
        bool: False if the file could not be removed
    """
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        return True
    except OSError as exc:
        logger.error(
            "temp_upload_cleanup_failed",
            path=str(path),
            reason=reason,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        _count_cleanup_failure(service, reason)
        return False

    logger.debug("temp_file_removed", path=str(path), reason=reason)
    return True


async def stage_upload(
    upload: UploadFile,
    directory: Union[str, Path],
    max_bytes: int,
    service: str,
) -> Path:
    """Stream an uploaded file into a new temp file inside ``directory``.

    The size limit is enforced while streaming, so an oversized upload is
    never fully written.

    Args:
        upload: Multipart file part
        directory: Temp upload directory
        max_bytes: Largest accepted payload
        service: Service name for the cleanup failure metric

    Returns:
        Path: Temp file holding the payload

    Raises:
        PayloadTooLarge: If the payload exceeds max_bytes (temp file removed)
    """
    temp_path = Path(directory) / f"{uuid4().hex}{UPLOAD_SUFFIX}"
    bytes_written = 0

    try:
        async with aiofiles.open(temp_path, "wb") as f:
            while chunk := await upload.read(CHUNK_SIZE):
                bytes_written += len(chunk)
                if bytes_written > max_bytes:
                    raise PayloadTooLarge(
                        f"File too large. Maximum allowed: {max_bytes // (1024 * 1024)}MB",
                        details={"max_bytes": max_bytes},
                    )
                await f.write(chunk)
    except BaseException:
        await remove_quietly(temp_path, service)
        raise

    logger.debug(
        "upload_staged",
        path=str(temp_path),
        filename=upload.filename,
        bytes_written=bytes_written,
    )
    return temp_path


def sweep_directory(paths: Iterable[Path], service: str, reason: str) -> int:
    """Remove leftover files from an earlier run. Returns how many were removed."""
    removed = 0
    for path in paths:
        try:
            path.unlink()
            removed += 1
        except FileNotFoundError:
            continue
        except OSError as exc:
            logger.error(
                "stale_file_cleanup_failed",
                path=str(path),
                reason=reason,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            _count_cleanup_failure(service, reason)
    return removed
