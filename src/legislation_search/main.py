"""FastAPI application entry point.

This module creates and configures the FastAPI application instance with:
- Middleware (CORS, RequestID, Timing)
- Exception handlers
- API routers (v1)
- Health check endpoints (/health, /ready)
- Startup/shutdown lifecycle management (retrieval pipeline, Qdrant check)
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from legislation_search.api.v1.router import router as v1_router
from legislation_search.config import get_settings
from legislation_search.middleware import setup_middleware
from legislation_search.services.retrieval_pipeline import build_pipeline
from legislation_search.utils.errors import SearchServiceException
from legislation_search.utils.logging import get_logger, log_error, setup_logging

setup_logging()
logger = get_logger("main")

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Startup builds the retrieval pipeline and checks that Qdrant answers. The
    encoder is not loaded here; the first ingest or search loads it.
    """
    logger.info("Starting Legislation Search service...")
    pipeline = build_pipeline(settings)
    app.state.pipeline = pipeline

    max_retries = 10 if settings.is_development else 3
    retry_delay = 3  # seconds
    for attempt in range(max_retries):
        try:
            await pipeline.qdrant_service.ping()
            logger.info(f"Qdrant connection successful on attempt {attempt + 1}")
            break
        except SearchServiceException as e:
            if attempt < max_retries - 1:
                logger.warning(
                    f"Qdrant check {attempt + 1}/{max_retries} failed: {e.message}. "
                    f"Retrying in {retry_delay} seconds..."
                )
                await asyncio.sleep(retry_delay)
            elif settings.is_production:
                raise
            else:
                logger.warning(
                    "Qdrant is not reachable in development mode. "
                    "Service will start but searches will fail until it is available."
                )

    if settings.initialize_collection_on_startup:
        await pipeline.initialize()
        logger.info(f"Collection initialized: {pipeline.qdrant_service.collection_name}")

    logger.info("Legislation Search service started successfully")
    try:
        yield
    finally:
        logger.info("Legislation Search service shut down")


app = FastAPI(
    title="Legislation Search Service",
    description="Semantic search over legislative documents",
    version="0.1.0",
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
    lifespan=lifespan,
)

setup_middleware(app)


@app.exception_handler(SearchServiceException)
async def search_service_exception_handler(request: Request, exc: SearchServiceException):
    """Handle SearchServiceException."""
    log_error(exc, context={"path": request.url.path, "method": request.method})
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "code": "HTTP_ERROR",
                "status_code": exc.status_code,
            }
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "message": "Validation error",
                "code": "VALIDATION_ERROR",
                "status_code": 422,
                "details": [{"loc": list(e.get("loc", [])), "msg": e.get("msg")} for e in exc.errors()],
            }
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions."""
    log_error(exc, context={"path": request.url.path, "method": request.method})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": "Internal server error",
                "code": "INTERNAL_ERROR",
                "status_code": 500,
            }
        },
    )


app.include_router(v1_router)


# Root-level probes for Kubernetes/Docker; also served under /api/v1
@app.get("/health", tags=["health"], include_in_schema=False)
async def root_health_check():
    """Root-level health check endpoint."""
    from legislation_search.api.v1.health import health_check

    return await health_check()


@app.get("/ready", tags=["health"], include_in_schema=False)
async def root_readiness_check(request: Request):
    """Root-level readiness check endpoint."""
    from legislation_search.api.v1.health import readiness_check

    return await readiness_check(request)


@app.get("/", tags=["root"])
async def root():
    """Root endpoint."""
    return {
        "service": "legislation-search",
        "version": "0.1.0",
        "status": "running",
        "environment": settings.environment.value,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "legislation_search.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.reload and settings.is_development,
        log_level=settings.log_level.lower(),
    )
