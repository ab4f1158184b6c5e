"""
Pytest configuration and shared fixtures for image-intake tests.

This module provides:
- Isolated settings pointing at temporary directories
- Application, sync and async client fixtures
- Image and UploadFile factories
"""

import io
from pathlib import Path
from typing import AsyncGenerator, Callable, Optional, Tuple

import pytest
from fastapi import UploadFile
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from PIL import Image
from starlette.datastructures import Headers

from app.core.config import Settings
from app.main import create_app
from app.services.image_service import ImageService
from app.storage import LocalImageStore


# ============================================================================
# Test environment fixtures
# ============================================================================

@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings with storage and temp directories under tmp_path."""
    return Settings(
        STORAGE_PATH=str(tmp_path / "images"),
        UPLOAD_TMP_PATH=str(tmp_path / "tmp"),
    )


@pytest.fixture
def storage_dir(test_settings: Settings) -> Path:
    return Path(test_settings.STORAGE_PATH)


@pytest.fixture
def tmp_upload_dir(test_settings: Settings) -> Path:
    return Path(test_settings.UPLOAD_TMP_PATH)


@pytest.fixture
def test_store(test_settings: Settings) -> LocalImageStore:
    return LocalImageStore(
        test_settings.STORAGE_PATH,
        test_settings.SERVICE_NAME,
        url_prefix=test_settings.IMAGE_URL_PREFIX,
        key_max_length=test_settings.KEY_MAX_LENGTH,
    )


@pytest.fixture
def image_service(test_settings: Settings, test_store: LocalImageStore, tmp_upload_dir: Path) -> ImageService:
    tmp_upload_dir.mkdir(parents=True, exist_ok=True)
    return ImageService(store=test_store, config=test_settings)


# ============================================================================
# API Client fixtures
# ============================================================================

@pytest.fixture
def test_app(test_settings: Settings):
    return create_app(test_settings)


@pytest.fixture
def client(test_app) -> TestClient:
    """Synchronous test client (runs the lifespan)."""
    with TestClient(test_app) as c:
        yield c


@pytest.fixture
async def async_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Asynchronous test client for concurrent requests."""
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as ac:
        yield ac


# ============================================================================
# Test data fixtures
# ============================================================================

def make_image_bytes(
    size: Tuple[int, int] = (100, 100),
    fmt: str = "PNG",
    color=(200, 30, 30),
    mode: str = "RGB",
    orientation: Optional[int] = None,
) -> bytes:
    """Encode a solid-colour image, optionally tagged with an EXIF orientation."""
    image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    if orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = orientation
        image.save(buffer, format=fmt, exif=exif)
    else:
        image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def image_factory() -> Callable[..., bytes]:
    return make_image_bytes


@pytest.fixture
def upload_factory() -> Callable[..., UploadFile]:
    """Build starlette UploadFile objects around in-memory bytes."""
    def _make(
        data: bytes,
        content_type: str = "image/png",
        filename: str = "upload.png",
        size: Optional[int] = None,
    ) -> UploadFile:
        return UploadFile(
            file=io.BytesIO(data),
            size=size,
            filename=filename,
            headers=Headers({"content-type": content_type}),
        )
    return _make


@pytest.fixture
def files_in() -> Callable[[Path], list]:
    """List every entry of a directory, hidden files included."""
    def _list(directory: Path) -> list:
        if not directory.exists():
            return []
        return sorted(p.name for p in directory.iterdir())
    return _list
