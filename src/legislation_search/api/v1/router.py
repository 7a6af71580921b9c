"""API v1 router aggregation."""

from fastapi import APIRouter

from legislation_search.api.v1 import admin, documents, health, search

router = APIRouter(
    prefix="/api/v1",
    tags=["v1"],
    responses={
        404: {"description": "Not found"},
        422: {"description": "Validation error"},
        500: {"description": "Internal server error"},
    },
)

router.include_router(health.router)
router.include_router(documents.router)
router.include_router(search.router)
router.include_router(admin.router)


@router.get(
    "/",
    summary="API Information",
    description="Get API version and status information",
    tags=["v1"],
)
async def api_info():
    """Get API v1 information."""
    return {
        "version": "v1",
        "status": "active",
        "service": "legislation-search",
        "endpoints": {
            "health": "/api/v1/health",
            "ready": "/api/v1/ready",
            "documents": "/api/v1/documents",
            "search": "/api/v1/search",
            "admin": {
                "collection": "/api/v1/admin/collection",
            },
        },
    }
