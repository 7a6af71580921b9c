"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from legislation_search.config import get_settings
from legislation_search.utils.logging import get_logger

logger = get_logger("health")
settings = get_settings()

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """
    Health check endpoint.

    Returns basic service health status. This endpoint does not check
    external dependencies and will always return healthy if the service is running.
    """
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
    }


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Checks:
    - pipeline: retrieval pipeline created at startup
    - qdrant: collection reachable (point count)
    - encoder: model already loaded (informational; loads lazily on first use)

    Returns 503 if the pipeline or Qdrant is unavailable.
    """
    logger.debug("Readiness check requested")

    checks = {"pipeline": False, "qdrant": False, "encoder": False}
    points = None

    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is not None:
        checks["pipeline"] = True
        checks["encoder"] = pipeline.embedding_service.is_encoder_loaded
        try:
            points = await pipeline.qdrant_service.count()
            checks["qdrant"] = True
        except Exception as e:
            logger.warning(f"Qdrant readiness check failed: {e}")

    body = {
        "status": "ready" if checks["pipeline"] and checks["qdrant"] else "not_ready",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
        "checks": checks,
        "points": points,
    }
    if body["status"] != "ready":
        logger.warning(f"Readiness check failed: {checks}")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body
