"""Semantic search endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from legislation_search.config import get_settings
from legislation_search.dependencies import get_pipeline
from legislation_search.models.search import SearchResponse
from legislation_search.services.retrieval_pipeline import RetrievalPipeline

settings = get_settings()

router = APIRouter(tags=["search"])


@router.get("/search", response_model=SearchResponse)
async def search(
    q: str = Query(..., min_length=1, description="Question or search text"),
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of results"),
    pipeline: RetrievalPipeline = Depends(get_pipeline),
) -> SearchResponse:
    """Return the chunks closest in meaning to the query."""
    limit = min(limit or settings.search.default_limit, settings.search.max_limit)
    hits = await pipeline.query(q, limit)
    return SearchResponse(query=q, results=hits)
