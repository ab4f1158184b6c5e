"""
Configuration tests for image-intake.

Tests the Pydantic settings defaults, environment overrides and validators.
"""

import pytest
from pydantic import ValidationError

from app.core.config import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("PORT", "MAX_UPLOAD_SIZE_MB", "JPEG_QUALITY", "IMAGE_URL_PREFIX"):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.unit
def test_defaults():
    config = Settings()

    assert config.PORT == 4000
    assert config.MAX_UPLOAD_SIZE_MB == 5
    assert config.max_upload_size_bytes == 5 * 1024 * 1024
    assert (config.MAX_WIDTH, config.MAX_HEIGHT) == (1920, 1080)
    assert config.JPEG_QUALITY == 85
    assert config.IMAGE_URL_PREFIX == "/images"
    assert config.STORAGE_PATH.endswith("images")


@pytest.mark.unit
def test_port_from_environment(monkeypatch):
    monkeypatch.setenv("PORT", "8080")

    assert Settings().PORT == 8080


@pytest.mark.unit
def test_upload_limit_from_environment(monkeypatch):
    monkeypatch.setenv("MAX_UPLOAD_SIZE_MB", "2")

    assert Settings().max_upload_size_bytes == 2 * 1024 * 1024


@pytest.mark.unit
@pytest.mark.parametrize("quality", [0, 96, -5])
def test_quality_out_of_range(quality):
    with pytest.raises(ValidationError) as exc_info:
        Settings(JPEG_QUALITY=quality)

    assert "between 1 and 95" in str(exc_info.value)


@pytest.mark.unit
@pytest.mark.parametrize("field, value, message", [
    ("MAX_WIDTH", 0, "positive"),
    ("MAX_HEIGHT", -1, "positive"),
    ("MAX_WIDTH", 20000, "too large"),
    ("MAX_UPLOAD_SIZE_MB", 0, "positive"),
    ("KEY_MAX_LENGTH", 0, "positive"),
    ("PORT", 70000, "between 1 and 65535"),
])
def test_invalid_values(field, value, message):
    with pytest.raises(ValidationError) as exc_info:
        Settings(**{field: value})

    assert message in str(exc_info.value)


@pytest.mark.unit
def test_url_prefix_normalized():
    assert Settings(IMAGE_URL_PREFIX="/photos/").IMAGE_URL_PREFIX == "/photos"


@pytest.mark.unit
@pytest.mark.parametrize("prefix", ["images", "/"])
def test_url_prefix_rejected(prefix):
    with pytest.raises(ValidationError):
        Settings(IMAGE_URL_PREFIX=prefix)


@pytest.mark.unit
def test_json_logs_forced_in_production():
    assert Settings(ENVIRONMENT="production", DEBUG=True, LOG_JSON=False).use_json_logs is True
    assert Settings(DEBUG=True, LOG_JSON=False).use_json_logs is False
