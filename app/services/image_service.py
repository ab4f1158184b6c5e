"""
Image Service Layer - the upload → normalize → replace flow.

The router only deals with HTTP; everything between "a multipart file and a
key arrived" and "the image is stored" happens here.
"""
import time
from pathlib import Path
from typing import Optional

import aiofiles
from fastapi import UploadFile
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from app.api.v1.metrics import (
    image_processing_duration_seconds,
    image_upload_bytes,
    image_uploads_total,
)
from app.core.config import Settings
from app.core.errors import (
    MissingFile,
    PayloadTooLarge,
    ProcessingFailed,
    ServiceError,
    UnsupportedMediaType,
)
from app.core.logging_config import get_logger
from app.services.transform import normalize_image
from app.storage import ImageStore, remove_quietly, stage_upload

logger = get_logger(__name__)


class UploadResult(BaseModel):
    """Outcome of a successful upload."""
    key: str
    image_url: str
    width: int
    height: int
    size_bytes: int


class ImageService:
    """
    Orchestrates a single upload.

    Flow:
    1. Reject a request without a file (no filesystem access)
    2. Validate the key and the declared content type
    3. Stage the payload into the temp directory, enforcing the size limit
    4. Normalize the image in a worker thread
    5. Atomically replace the stored image for the key
    6. Remove the staged payload, whatever the outcome

    Does NOT know about request/response formats; failures are raised as
    ServiceError subclasses.
    """

    def __init__(self, store: ImageStore, config: Settings):
        self.store = store
        self.config = config

    def _record(self, status: str) -> None:
        image_uploads_total.labels(service=self.config.SERVICE_NAME, status=status).inc()

    def check_request(self, key: str, upload: Optional[UploadFile]) -> str:
        """Run all validation that happens before any bytes hit the disk.

        Returns:
            str: The validated key
        """
        if upload is None:
            raise MissingFile()

        key = self.store.validate_key(key)

        content_type = upload.content_type or ""
        if not content_type.startswith(self.config.ALLOWED_MIME_PREFIX):
            raise UnsupportedMediaType(
                details={"content_type": content_type or None},
            )

        if upload.size is not None and upload.size > self.config.max_upload_size_bytes:
            raise PayloadTooLarge(
                f"File too large. Maximum allowed: {self.config.MAX_UPLOAD_SIZE_MB}MB",
                details={"max_bytes": self.config.max_upload_size_bytes, "size": upload.size},
            )
        return key

    async def handle_upload(self, key: str, upload: Optional[UploadFile]) -> UploadResult:
        """
        Validate, normalize and store one uploaded image under ``key``.

        Args:
            key: Caller-supplied image slot ("type" form field)
            upload: The "image" file part, or None if absent

        Returns:
            UploadResult with the retrieval URL and output dimensions

        Raises:
            MissingFile, InvalidKey, UnsupportedMediaType, PayloadTooLarge:
                before any destination write
            ProcessingFailed: on any decode, transform or I/O failure
        """
        try:
            key = self.check_request(key, upload)
        except ServiceError as exc:
            self._record("rejected")
            logger.warning(
                "upload_rejected",
                key=key,
                error_code=exc.code.value,
                reason=exc.user_message,
            )
            raise

        logger.info(
            "upload_started",
            key=key,
            filename=upload.filename,
            content_type=upload.content_type,
        )

        try:
            temp_path = await stage_upload(
                upload,
                self.config.UPLOAD_TMP_PATH,
                self.config.max_upload_size_bytes,
                self.config.SERVICE_NAME,
            )
        except PayloadTooLarge as exc:
            self._record("rejected")
            logger.warning("upload_rejected", key=key, error_code=exc.code.value, reason=exc.user_message)
            raise
        except Exception as exc:
            self._record("failed")
            logger.error(
                "upload_staging_failed",
                key=key,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            raise ProcessingFailed() from exc

        try:
            return await self._process(key, temp_path)
        except Exception as exc:
            self._record("failed")
            logger.error(
                "upload_processing_failed",
                key=key,
                temp_path=str(temp_path),
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            raise ProcessingFailed() from exc
        finally:
            await remove_quietly(temp_path, self.config.SERVICE_NAME)

    async def _process(self, key: str, temp_path: Path) -> UploadResult:
        async with aiofiles.open(temp_path, "rb") as f:
            payload = await f.read()

        image_upload_bytes.labels(service=self.config.SERVICE_NAME).observe(len(payload))

        start_time = time.time()
        result = await run_in_threadpool(
            normalize_image,
            payload,
            max_width=self.config.MAX_WIDTH,
            max_height=self.config.MAX_HEIGHT,
            quality=self.config.JPEG_QUALITY,
            background=self.config.JPEG_BACKGROUND,
        )
        duration = time.time() - start_time
        image_processing_duration_seconds.labels(service=self.config.SERVICE_NAME).observe(duration)

        logger.debug(
            "image_normalized",
            key=key,
            original_width=result.original_width,
            original_height=result.original_height,
            width=result.width,
            height=result.height,
            duration_ms=round(duration * 1000, 2),
        )

        await self.store.replace(key, result.content)

        self._record("stored")
        logger.info(
            "upload_completed",
            key=key,
            width=result.width,
            height=result.height,
            input_bytes=len(payload),
            size_bytes=result.size_bytes,
        )

        return UploadResult(
            key=key,
            image_url=self.store.url_for(key),
            width=result.width,
            height=result.height,
            size_bytes=result.size_bytes,
        )
