"""FastAPI dependencies."""

from fastapi import Request

from legislation_search.services.retrieval_pipeline import RetrievalPipeline
from legislation_search.utils.errors import SearchServiceException


def get_pipeline(request: Request) -> RetrievalPipeline:
    """Return the pipeline created at startup."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise SearchServiceException(
            "Retrieval pipeline is not initialized",
            status_code=503,
            code="PIPELINE_NOT_READY",
        )
    return pipeline
