"""Ingest and query orchestration over segmenter, encoder and vector index."""

import uuid
from typing import List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from legislation_search.config import Settings, get_settings
from legislation_search.models.document import Document
from legislation_search.models.search import IngestionResult, SearchHit
from legislation_search.services.embedding_service import EmbeddingService
from legislation_search.services.encoder_cache import EncoderCache
from legislation_search.services.qdrant_service import QdrantService
from legislation_search.services.segmenter_service import SegmenterService
from legislation_search.utils.errors import ValidationError
from legislation_search.utils.logging import get_logger, log_context

logger = get_logger("retrieval_pipeline")


class RetrievalPipeline:
    """
    Entry points used by the API and CLI.

    Ingest path: segment -> embed chunks -> upsert.
    Query path: embed question -> nearest-neighbour search.
    """

    def __init__(
        self,
        segmenter: SegmenterService,
        embedding_service: EmbeddingService,
        qdrant_service: QdrantService,
    ) -> None:
        self.segmenter = segmenter
        self.embedding_service = embedding_service
        self.qdrant_service = qdrant_service

    async def initialize(self) -> None:
        """(Re)create the vector collection sized to the embedding dimension."""
        await self.qdrant_service.ensure_collection(dimension=self.embedding_service.dimension)

    async def ingest(
        self,
        document_id: Optional[Union[uuid.UUID, str]],
        document_title: str,
        document_reference: str,
        raw_text: str,
        year: Optional[int] = None,
    ) -> IngestionResult:
        """
        Index one document.

        Raises:
            EncoderLoadError, EncodingError: If embedding fails
            UpsertBatchError: If a batch cannot be written
        """
        try:
            document = Document(
                id=document_id or uuid.uuid4(),
                title=document_title,
                reference=document_reference,
                year=year,
                text=raw_text,
            )
        except PydanticValidationError as e:
            raise ValidationError("Invalid document", errors={"document": str(e)}) from e
        with log_context(document_id=str(document.id), document_reference=document.reference):
            logger.info(f"Ingesting document: title={document.title!r}, text_length={len(raw_text)}")

            chunks = self.segmenter.segment_document(document)
            if not chunks:
                logger.info("Nothing to index")
                return IngestionResult(
                    document_id=document.id, document_reference=document.reference, chunk_count=0
                )
            logger.info(f"Document segmented: chunks={len(chunks)}")

            embedded = await self.embedding_service.embed_chunks(chunks)
            batches = await self.qdrant_service.upsert(document, embedded)

        point_ids = [pid for batch in batches for pid in batch.point_ids]
        logger.info(
            f"Document indexed: reference={document.reference}, chunks={len(chunks)}, "
            f"points={len(point_ids)}, batches={len(batches)}"
        )
        return IngestionResult(
            document_id=document.id,
            document_reference=document.reference,
            chunk_count=len(chunks),
            point_ids=point_ids,
            batches=batches,
        )

    async def query(self, question_text: str, limit: int) -> List[SearchHit]:
        """Return up to ``limit`` chunks most similar to the question."""
        if not question_text or not question_text.strip():
            raise ValidationError("Query text must not be empty")
        if limit <= 0:
            raise ValidationError("limit must be > 0", errors={"limit": limit})

        logger.info(f"Searching: query={question_text!r}, limit={limit}")
        vector = await self.embedding_service.encode_one(question_text.strip())
        hits = await self.qdrant_service.query(vector, top_k=limit)
        logger.debug(f"Search returned {len(hits)} hits")
        return hits


def build_pipeline(settings: Optional[Settings] = None, encoder_cache: Optional[EncoderCache] = None) -> RetrievalPipeline:
    """Wire the default components from settings."""
    settings = settings or get_settings()
    cache = encoder_cache or EncoderCache()
    return RetrievalPipeline(
        segmenter=SegmenterService(
            min_section_chars=settings.segmenter.min_section_chars,
            min_paragraph_chars=settings.segmenter.min_paragraph_chars,
            max_chunk_words=settings.segmenter.max_chunk_words,
        ),
        embedding_service=EmbeddingService(
            cache,
            batch_size=settings.encoder.batch_size,
            dimension=settings.encoder.dimension,
        ),
        qdrant_service=QdrantService(
            collection_name=settings.qdrant.collection_name,
            dimension=settings.encoder.dimension,
            upsert_batch_size=settings.qdrant.upsert_batch_size,
            max_retries=settings.retry.max_retries,
        ),
    )
