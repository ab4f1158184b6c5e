"""Service layer."""

from app.services.image_service import ImageService, UploadResult
from app.services.transform import ImageTransformError, TransformResult, normalize_image

__all__ = ["ImageService", "UploadResult", "ImageTransformError", "TransformResult", "normalize_image"]
