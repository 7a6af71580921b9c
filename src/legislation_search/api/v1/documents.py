"""Document ingestion endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from legislation_search.dependencies import get_pipeline
from legislation_search.models.search import IngestionResult
from legislation_search.services.retrieval_pipeline import RetrievalPipeline

router = APIRouter(prefix="/documents", tags=["documents"])


class IngestDocumentRequest(BaseModel):
    """Request body for indexing one document."""

    document_id: Optional[uuid.UUID] = Field(None, description="Identifier; generated when omitted")
    title: str = Field(..., min_length=1, description="Document title")
    reference: str = Field(..., min_length=1, description="Reference number (e.g. bill number)")
    year: Optional[int] = Field(None, description="Year of introduction")
    text: str = Field(..., description="Extracted document text")


@router.post("", response_model=IngestionResult, status_code=status.HTTP_201_CREATED)
async def ingest_document(
    body: IngestDocumentRequest,
    pipeline: RetrievalPipeline = Depends(get_pipeline),
) -> IngestionResult:
    """Segment, embed and index a document."""
    return await pipeline.ingest(
        document_id=body.document_id,
        document_title=body.title,
        document_reference=body.reference,
        raw_text=body.text,
        year=body.year,
    )
