"""Admin endpoints for collection management."""

from fastapi import APIRouter, Depends, status

from legislation_search.dependencies import get_pipeline
from legislation_search.services.retrieval_pipeline import RetrievalPipeline
from legislation_search.utils.logging import get_logger

logger = get_logger("admin")

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/collection", status_code=status.HTTP_201_CREATED)
async def recreate_collection(pipeline: RetrievalPipeline = Depends(get_pipeline)):
    """
    Drop and recreate the vector collection.

    Every indexed document is removed; documents must be ingested again.
    """
    logger.warning("Collection recreation requested")
    await pipeline.initialize()
    return {
        "status": "created",
        "collection": pipeline.qdrant_service.collection_name,
        "dimension": pipeline.embedding_service.dimension,
    }
