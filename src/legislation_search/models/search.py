"""Search and ingestion result models."""

import uuid
from typing import List, Optional

from pydantic import BaseModel, Field

from legislation_search.models.chunk import ChunkKind


class SearchHit(BaseModel):
    """One retrieval result."""

    document_id: Optional[str] = Field(None, description="Source document id")
    document_title: str = Field(..., description="Source document title")
    document_reference: str = Field(..., description="Source document reference number")
    chunk_index: Optional[int] = Field(None, description="Chunk ordinal within the document")
    chunk_kind: Optional[ChunkKind] = Field(None, description="Chunk kind")
    chunk_label: str = Field(..., description="Chunk label")
    text: str = Field(..., description="Chunk body text")
    score: float = Field(..., description="Cosine similarity to the query")


class UpsertBatchResult(BaseModel):
    """Outcome of one committed upsert batch."""

    batch_index: int = Field(..., ge=0, description="0-based batch number")
    point_ids: List[str] = Field(default_factory=list, description="Point ids written by this batch")


class IngestionResult(BaseModel):
    """Summary of one document ingestion."""

    document_id: uuid.UUID
    document_reference: str
    chunk_count: int = Field(..., ge=0)
    point_ids: List[str] = Field(default_factory=list)
    batches: List[UpsertBatchResult] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """HTTP response body for a search."""

    query: str
    results: List[SearchHit]
