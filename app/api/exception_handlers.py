"""
FastAPI exception handlers.

Every failure leaves the service as ``{"success": false, "message": ...}``
and is logged with request context.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import ServiceError
from app.core.logging_config import get_logger


logger = get_logger(__name__)


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle upload-flow errors raised by the service layer."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "service_error",
        method=request.method,
        path=str(request.url.path),
        status_code=exc.status_code,
        error_code=exc.code.value,
        message=exc.user_message,
        details=exc.error_details,
        client_host=_client_host(request),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.user_message,
            "error_code": exc.code.value,
        },
        headers=getattr(exc, "headers", None),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle framework HTTP exceptions (404 from static files, 405, ...)."""
    logger.warning(
        "http_exception",
        method=request.method,
        path=str(request.url.path),
        status_code=exc.status_code,
        detail=exc.detail,
        client_host=_client_host(request),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": str(exc.detail),
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle malformed form data (e.g. missing "type") as a 400."""
    # "input" may hold an UploadFile, so only the descriptive parts are kept
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]

    logger.warning(
        "validation_error",
        method=request.method,
        path=str(request.url.path),
        error_count=len(errors),
        errors=errors,
        client_host=_client_host(request),
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Validation error",
            "details": errors,
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions; detail goes to the log only."""
    logger.error(
        "unhandled_exception",
        method=request.method,
        path=str(request.url.path),
        error_type=type(exc).__name__,
        error_message=str(exc),
        client_host=_client_host(request),
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "Internal server error",
        },
    )
