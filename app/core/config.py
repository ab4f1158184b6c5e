"""Application configuration using Pydantic Settings."""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import List
import os


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Service Identity
    SERVICE_NAME: str = "image-intake"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging Configuration
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True    # JSON logs (prod) vs pretty console (dev)
    DEBUG: bool = False      # Enable debug mode features

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 4000
    CORS_ALLOW_ORIGINS: List[str] = ["*"]
    SLOW_REQUEST_THRESHOLD_MS: float = 1000.0

    # Storage
    STORAGE_PATH: str = os.path.join(os.getcwd(), "assets", "images")
    UPLOAD_TMP_PATH: str = os.path.join(os.getcwd(), "assets", "tmp")
    IMAGE_URL_PREFIX: str = "/images"

    # Upload Constraints
    MAX_UPLOAD_SIZE_MB: int = 5
    ALLOWED_MIME_PREFIX: str = "image/"
    KEY_MAX_LENGTH: int = 64
    # Multipart framing allowance for the Content-Length pre-check
    MULTIPART_OVERHEAD_BYTES: int = 64 * 1024

    # Image Processing
    MAX_WIDTH: int = 1920
    MAX_HEIGHT: int = 1080
    JPEG_QUALITY: int = 85
    JPEG_BACKGROUND: str = "#000000"

    @field_validator('MAX_WIDTH', 'MAX_HEIGHT')
    @classmethod
    def validate_dimension(cls, v: int) -> int:
        """Ensure bounding box dimensions are positive and reasonable."""
        if v <= 0:
            raise ValueError(f"Image dimension must be positive, got {v}")
        if v > 16384:
            raise ValueError(f"Image dimension too large (max 16384), got {v}")
        return v

    @field_validator('JPEG_QUALITY')
    @classmethod
    def validate_quality(cls, v: int) -> int:
        # Pillow: values above 95 should be avoided
        if not 1 <= v <= 95:
            raise ValueError(f"JPEG quality must be between 1 and 95, got {v}")
        return v

    @field_validator('MAX_UPLOAD_SIZE_MB', 'KEY_MAX_LENGTH')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Value must be positive, got {v}")
        return v

    @field_validator('PORT')
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError(f"PORT must be between 1 and 65535, got {v}")
        return v

    @field_validator('IMAGE_URL_PREFIX')
    @classmethod
    def validate_url_prefix(cls, v: str) -> str:
        """Normalize the static prefix to '/name' without a trailing slash."""
        if not v.startswith("/") or v == "/":
            raise ValueError(
                f"IMAGE_URL_PREFIX must start with '/' and name a path, got '{v}'"
            )
        return v.rstrip("/")

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def is_debug_mode(self) -> bool:
        """Check if application is in debug mode."""
        return self.DEBUG or self.LOG_LEVEL.upper() == "DEBUG"

    @property
    def use_json_logs(self) -> bool:
        """Determine if JSON logging should be used.

        In production, always use JSON logs.
        In development, allow override via LOG_JSON setting.
        """
        if self.ENVIRONMENT == "production":
            return True
        if self.DEBUG:
            return self.LOG_JSON
        return True

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
