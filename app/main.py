"""Main FastAPI application for the Image Intake Service."""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import Settings, settings
from app.core.errors import ServiceError
from app.core.logging_config import setup_logging, get_logger
from app.api.v1 import upload, health, metrics
from app.api.middleware import RequestLoggingMiddleware, PerformanceLoggingMiddleware, PrometheusMiddleware
from app.api.exception_handlers import (
    service_error_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)
from app.services.image_service import ImageService
from app.storage import build_store, sweep_directory
from app.storage.temp import UPLOAD_SUFFIX


# Initialize logging system (MUST be done before any logging calls)
setup_logging(debug=settings.is_debug_mode, json_logs=settings.use_json_logs)
logger = get_logger(__name__)


def sweep_stale_files(app: FastAPI) -> None:
    """Remove temp uploads and partial writes left behind by a previous run."""
    config: Settings = app.state.settings
    store = app.state.store

    stale_uploads = sweep_directory(
        Path(config.UPLOAD_TMP_PATH).glob(f"*{UPLOAD_SUFFIX}"),
        config.SERVICE_NAME,
        reason="stale_sweep",
    )
    stale_partials = sweep_directory(
        store.partial_files(),
        config.SERVICE_NAME,
        reason="stale_sweep",
    )

    if stale_uploads or stale_partials:
        logger.warning(
            "stale_files_removed",
            temp_uploads=stale_uploads,
            partial_writes=stale_partials,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events (startup and shutdown)."""
    config: Settings = app.state.settings
    logger.info(
        "application_startup",
        service=config.SERVICE_NAME,
        version=config.VERSION,
        environment=config.ENVIRONMENT,
        debug_mode=config.is_debug_mode,
        log_level=config.LOG_LEVEL,
        storage_path=config.STORAGE_PATH,
        upload_tmp_path=config.UPLOAD_TMP_PATH,
    )

    sweep_stale_files(app)

    yield

    logger.info("application_shutdown", graceful=True)


def create_app(config: Settings = settings) -> FastAPI:
    """Build the application for the given settings.

    Creates the storage root and temp directory, wires the image service
    and mounts the storage root for static retrieval.
    """
    app = FastAPI(
        title=config.SERVICE_NAME,
        description="Image upload service with orientation fix, bounded resize and JPEG re-encoding",
        version=config.VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    Path(config.UPLOAD_TMP_PATH).mkdir(parents=True, exist_ok=True)
    store = build_store(config)

    app.state.settings = config
    app.state.store = store
    app.state.image_service = ImageService(store=store, config=config)

    # Most specific first: ServiceError is an HTTPException subclass
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Middleware stack (order matters - first added is executed last!)
    app.add_middleware(
        PrometheusMiddleware,
        service_name=config.SERVICE_NAME,
        image_url_prefix=config.IMAGE_URL_PREFIX,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        PerformanceLoggingMiddleware,
        slow_request_threshold_ms=config.SLOW_REQUEST_THRESHOLD_MS,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOW_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(upload.router)
    app.include_router(health.router)
    app.include_router(metrics.router)

    @app.get("/")
    async def root():
        """Service metadata and useful links."""
        return {
            "service": config.SERVICE_NAME,
            "version": config.VERSION,
            "description": "Image upload and normalization service",
            "upload": "/upload",
            "images": f"{config.IMAGE_URL_PREFIX}/{{type}}.jpg",
            "documentation": "/docs",
            "health_check": "/api/v1/health",
        }

    @app.get("/info")
    async def service_info():
        """Current service configuration (non-sensitive data)."""
        return {
            "service": {
                "name": config.SERVICE_NAME,
                "version": config.VERSION,
            },
            "processing": {
                "max_width": config.MAX_WIDTH,
                "max_height": config.MAX_HEIGHT,
                "jpeg_quality": config.JPEG_QUALITY,
                "output_format": "jpeg",
            },
            "limits": {
                "max_upload_size_mb": config.MAX_UPLOAD_SIZE_MB,
                "allowed_mime_prefix": config.ALLOWED_MIME_PREFIX,
                "key_max_length": config.KEY_MAX_LENGTH,
            },
        }

    app.mount(
        config.IMAGE_URL_PREFIX,
        StaticFiles(directory=config.STORAGE_PATH),
        name="images",
    )
    logger.info(
        "static_files_mounted",
        mount_path=config.IMAGE_URL_PREFIX,
        directory=config.STORAGE_PATH,
    )

    return app


app = create_app()
