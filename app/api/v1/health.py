"""Health API endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.api.dependencies import get_settings, get_store
from app.core.config import Settings
from app.core.logging_config import get_logger
from app.storage import LocalImageStore


logger = get_logger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("")
async def health_check(
    config: Settings = Depends(get_settings),
    store: LocalImageStore = Depends(get_store),
):
    """Liveness plus a storage-root write probe.

    Use for load balancer health checks.

    Returns:
        JSONResponse: 200 when healthy, 503 when the storage root is not writable
    """
    writable = await run_in_threadpool(store.is_writable)
    images = await run_in_threadpool(store.count)
    healthy = writable

    if not healthy:
        logger.warning("health_check_degraded", storage_path=str(store.base_path))

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "service": config.SERVICE_NAME,
            "version": config.VERSION,
            "storage": {
                "writable": writable,
                "images": images,
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
