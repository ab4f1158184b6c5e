"""FastAPI dependencies for upload validation and service lookup."""

from typing import Optional

from fastapi import Header, Request

from app.core.config import Settings
from app.core.errors import PayloadTooLarge
from app.core.logging_config import get_logger
from app.services.image_service import ImageService
from app.storage import LocalImageStore


logger = get_logger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_image_service(request: Request) -> ImageService:
    return request.app.state.image_service


def get_store(request: Request) -> LocalImageStore:
    return request.app.state.store


async def verify_content_length(
    request: Request,
    content_length: Optional[int] = Header(None),
) -> Optional[int]:
    """Reject requests whose declared Content-Length exceeds the allowance.

    FastAPI parses (and spools) the multipart body before it resolves route
    dependencies, so this runs after the upload has been received. It stops an
    oversized request out of staging and decoding, not out of the parser.
    The limit is the payload limit plus an allowance for multipart framing;
    the exact payload size is enforced again while staging.

    Raises:
        PayloadTooLarge: 400 if the request body exceeds the allowance

    Returns:
        int: Content length if valid
    """
    config = get_settings(request)
    max_size = config.max_upload_size_bytes + config.MULTIPART_OVERHEAD_BYTES

    if content_length and content_length > max_size:
        logger.warning(
            "upload_content_length_rejected",
            content_length=content_length,
            max_size=max_size,
        )
        raise PayloadTooLarge(
            f"File too large. Maximum allowed: {config.MAX_UPLOAD_SIZE_MB}MB",
            details={"max_bytes": config.max_upload_size_bytes, "content_length": content_length},
        )
    return content_length
