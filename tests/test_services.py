"""
Service layer tests for the upload flow.

Drives ImageService directly with UploadFile objects, without HTTP.
"""

import io
from unittest.mock import AsyncMock, MagicMock

import aiofiles.os
import pytest
from PIL import Image
from prometheus_client import REGISTRY

from app.core.errors import (
    ErrorCode,
    InvalidKey,
    MissingFile,
    PayloadTooLarge,
    ProcessingFailed,
    UnsupportedMediaType,
)
from app.services.image_service import ImageService
from app.services.transform import ImageTransformError


@pytest.mark.unit
@pytest.mark.asyncio
async def test_handle_upload_success(image_service, image_factory, upload_factory, storage_dir, tmp_upload_dir, files_in):
    upload = upload_factory(image_factory(size=(3000, 2000)))

    result = await image_service.handle_upload("banner", upload)

    assert result.key == "banner"
    assert result.image_url == "/images/banner.jpg"
    assert (result.width, result.height) == (1620, 1080)

    stored = Image.open(storage_dir / "banner.jpg")
    assert stored.format == "JPEG"
    assert stored.size == (1620, 1080)
    assert result.size_bytes == (storage_dir / "banner.jpg").stat().st_size
    assert files_in(tmp_upload_dir) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_file_touches_nothing(image_service, storage_dir, tmp_upload_dir, files_in):
    with pytest.raises(MissingFile) as exc_info:
        await image_service.handle_upload("avatar", None)

    assert exc_info.value.status_code == 400
    assert exc_info.value.code == ErrorCode.UPLOAD_MISSING_FILE
    assert files_in(storage_dir) == []
    assert files_in(tmp_upload_dir) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_non_image_content_type_rejected(image_service, upload_factory, storage_dir, tmp_upload_dir, files_in):
    upload = upload_factory(b"hello", content_type="text/plain", filename="notes.txt")

    with pytest.raises(UnsupportedMediaType) as exc_info:
        await image_service.handle_upload("avatar", upload)

    assert exc_info.value.status_code == 400
    assert files_in(storage_dir) == []
    assert files_in(tmp_upload_dir) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_key_rejected_before_staging(image_service, image_factory, upload_factory, tmp_upload_dir, files_in):
    with pytest.raises(InvalidKey):
        await image_service.handle_upload("../outside", upload_factory(image_factory()))

    assert files_in(tmp_upload_dir) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_oversized_payload_rejected(test_settings, test_store, tmp_upload_dir, upload_factory, storage_dir, files_in):
    tmp_upload_dir.mkdir(parents=True, exist_ok=True)
    test_settings.MAX_UPLOAD_SIZE_MB = 1
    service = ImageService(store=test_store, config=test_settings)
    upload = upload_factory(b"\xff" * (1024 * 1024 + 1), content_type="image/jpeg")

    with pytest.raises(PayloadTooLarge) as exc_info:
        await service.handle_upload("avatar", upload)

    assert exc_info.value.status_code == 400
    assert files_in(storage_dir) == []
    assert files_in(tmp_upload_dir) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_corrupt_image_fails_and_cleans_up(image_service, upload_factory, storage_dir, tmp_upload_dir, files_in):
    upload = upload_factory(b"\x89PNG garbage", content_type="image/png")

    with pytest.raises(ProcessingFailed) as exc_info:
        await image_service.handle_upload("avatar", upload)

    error = exc_info.value
    assert error.status_code == 500
    assert error.user_message == "Upload failed"
    assert isinstance(error.__cause__, ImageTransformError)
    assert files_in(storage_dir) == []
    assert files_in(tmp_upload_dir) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_upload_keeps_previous_image(image_service, image_factory, upload_factory, storage_dir):
    await image_service.handle_upload("avatar", upload_factory(image_factory(size=(40, 30))))
    before = (storage_dir / "avatar.jpg").read_bytes()

    with pytest.raises(ProcessingFailed):
        await image_service.handle_upload("avatar", upload_factory(b"broken", content_type="image/png"))

    assert (storage_dir / "avatar.jpg").read_bytes() == before


@pytest.mark.unit
@pytest.mark.asyncio
async def test_store_failure_becomes_processing_failed(test_settings, tmp_upload_dir, image_factory, upload_factory, files_in):
    tmp_upload_dir.mkdir(parents=True, exist_ok=True)
    store = MagicMock()
    store.validate_key.side_effect = lambda key: key
    store.replace = AsyncMock(side_effect=OSError("No space left on device"))
    service = ImageService(store=store, config=test_settings)

    with pytest.raises(ProcessingFailed) as exc_info:
        await service.handle_upload("avatar", upload_factory(image_factory()))

    assert "No space left" not in exc_info.value.user_message
    store.replace.assert_awaited_once()
    assert files_in(tmp_upload_dir) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_temp_cleanup_failure_does_not_fail_request(
    test_settings, image_service, image_factory, upload_factory, tmp_upload_dir, monkeypatch
):
    test_settings.SERVICE_NAME = "intake-cleanup-check"

    async def denied(path):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(aiofiles.os, "remove", denied)

    result = await image_service.handle_upload("avatar", upload_factory(image_factory()))

    assert result.image_url == "/images/avatar.jpg"
    # The staged upload is left behind; the startup sweep removes it later
    assert len(list(tmp_upload_dir.iterdir())) == 1
    assert REGISTRY.get_sample_value(
        "cleanup_failures_total",
        {"service": "intake-cleanup-check", "reason": "temp_upload"},
    ) == 1.0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_exif_rotated_upload_is_stored_upright(image_service, image_factory, upload_factory, storage_dir):
    data = image_factory(size=(300, 100), fmt="JPEG", orientation=6)

    result = await image_service.handle_upload("portrait", upload_factory(data, content_type="image/jpeg"))

    assert (result.width, result.height) == (100, 300)
    assert Image.open(io.BytesIO((storage_dir / "portrait.jpg").read_bytes())).size == (100, 300)


@pytest.mark.unit
def test_size_limit_boundary_in_check_request(test_settings, test_store, upload_factory):
    test_settings.MAX_UPLOAD_SIZE_MB = 1
    service = ImageService(store=test_store, config=test_settings)
    limit = 1024 * 1024

    at_limit = upload_factory(b"\xff" * limit, content_type="image/jpeg", size=limit)
    assert service.check_request("avatar", at_limit) == "avatar"

    over_limit = upload_factory(b"\xff" * (limit + 1), content_type="image/jpeg", size=limit + 1)
    with pytest.raises(PayloadTooLarge) as exc_info:
        service.check_request("avatar", over_limit)

    assert exc_info.value.status_code == 400
    assert exc_info.value.code == ErrorCode.UPLOAD_FILE_TOO_LARGE
