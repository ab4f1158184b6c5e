"""
Error Handling System

Standardized error codes and the exception taxonomy of the upload flow.
Every error carries a stable code so clients can branch on it, and a
user-facing message that never exposes internal detail.
"""
from enum import Enum
from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    """Standardized error codes for the entire application."""

    # Upload errors (UPLOAD_xxx)
    UPLOAD_FILE_TOO_LARGE = "UPLOAD_001"
    UPLOAD_INVALID_TYPE = "UPLOAD_002"
    UPLOAD_MISSING_FILE = "UPLOAD_003"

    # Validation errors (VAL_xxx)
    VAL_INVALID_KEY = "VAL_001"

    # Processing errors (PROC_xxx)
    PROCESSING_FAILED = "PROC_001"


class ServiceError(HTTPException):
    """
    Base class for business logic errors.

    Converted by the exception handlers into the response envelope:

    {
        "success": false,
        "message": "File too large. Maximum allowed: 5MB",
        "error_code": "UPLOAD_001"
    }
    """

    status_code_default: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code_default: ErrorCode = ErrorCode.PROCESSING_FAILED
    message_default: str = "Upload failed"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        *,
        status_code: Optional[int] = None,
        code: Optional[ErrorCode] = None,
    ):
        code = code or self.code_default
        message = message or self.message_default
        super().__init__(
            status_code=status_code or self.status_code_default,
            detail={
                "code": code,
                "message": message,
                "details": details or {}
            }
        )
        self.code = code
        self.user_message = message
        self.error_details = details or {}


class MissingFile(ServiceError):
    """No file part was present in the request."""
    status_code_default = status.HTTP_400_BAD_REQUEST
    code_default = ErrorCode.UPLOAD_MISSING_FILE
    message_default = "No file uploaded"


class InvalidKey(ServiceError):
    """The image key cannot be used as a storage file name."""
    status_code_default = status.HTTP_400_BAD_REQUEST
    code_default = ErrorCode.VAL_INVALID_KEY
    message_default = "Invalid image type key"


class PayloadTooLarge(ServiceError):
    status_code_default = status.HTTP_400_BAD_REQUEST
    code_default = ErrorCode.UPLOAD_FILE_TOO_LARGE
    message_default = "File too large"


class UnsupportedMediaType(ServiceError):
    status_code_default = status.HTTP_400_BAD_REQUEST
    code_default = ErrorCode.UPLOAD_INVALID_TYPE
    message_default = "Only image files are allowed"


class ProcessingFailed(ServiceError):
    """Catch-all for decode, transform and write failures.

    The message is always generic; the cause is logged, not returned.
    """
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    code_default = ErrorCode.PROCESSING_FAILED
    message_default = "Upload failed"
