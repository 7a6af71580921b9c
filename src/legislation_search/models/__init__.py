"""Domain models."""

from legislation_search.models.chunk import Chunk, ChunkKind, EmbeddedChunk, Section
from legislation_search.models.document import Document
from legislation_search.models.search import (
    IngestionResult,
    SearchHit,
    SearchResponse,
    UpsertBatchResult,
)

__all__ = [
    "Chunk",
    "ChunkKind",
    "Document",
    "EmbeddedChunk",
    "IngestionResult",
    "SearchHit",
    "SearchResponse",
    "Section",
    "UpsertBatchResult",
]
