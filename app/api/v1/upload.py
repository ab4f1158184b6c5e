"""
Upload API endpoint.

- Router handles HTTP concerns (form fields, status codes, response envelope)
- ImageService handles validation, normalization and storage
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import JSONResponse

from app.api.dependencies import get_image_service, verify_content_length
from app.core.logging_config import get_logger
from app.services.image_service import ImageService


logger = get_logger(__name__)
router = APIRouter(tags=["upload"])


@router.post("/upload")
async def upload_image(
    image_type: str = Form(..., alias="type"),
    image: Optional[UploadFile] = File(None),
    content_length: Optional[int] = Depends(verify_content_length),
    service: ImageService = Depends(get_image_service),
):
    """Upload an image into the slot named by ``type``.

    The image is auto-rotated, shrunk to fit 1920x1080 and stored as
    ``<type>.jpg``, replacing any earlier image with the same key.

    Args:
        image_type: Image key, the "type" form field
        image: Image file part, the "image" form field
        content_length: Pre-validated request size (via dependency)
        service: Image service (via dependency injection)

    Returns:
        JSONResponse: 200 with imageUrl

    Raises:
        MissingFile: 400 if no image part was sent
        InvalidKey: 400 if type is not a safe file name stem
        PayloadTooLarge: 400 if the image exceeds the size limit
        UnsupportedMediaType: 400 if the declared type is not image/*
        ProcessingFailed: 500 on decode or storage failure
    """
    logger.info(
        "upload_request_received",
        key=image_type,
        filename=image.filename if image else None,
        content_type=image.content_type if image else None,
        content_length=content_length,
    )

    result = await service.handle_upload(image_type, image)

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "code": 0,
            "success": True,
            "message": "Upload successful",
            "imageUrl": result.image_url,
        },
    )
