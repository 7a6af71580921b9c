"""Qdrant integration service for storing and searching chunk embeddings."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence

from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException
from qdrant_client.models import Distance, PointStruct, ScoredPoint, VectorParams
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from legislation_search.config import get_settings
from legislation_search.models.chunk import ChunkKind, EmbeddedChunk
from legislation_search.models.document import Document
from legislation_search.models.search import SearchHit, UpsertBatchResult
from legislation_search.utils.errors import QdrantError, UpsertBatchError, ValidationError
from legislation_search.utils.logging import get_logger

logger = get_logger("qdrant_service")
settings = get_settings()

_REQUIRED_PAYLOAD_KEYS = ("document_title", "document_reference", "chunk_label", "text")


class QdrantService:
    """
    Store and search chunk embeddings in Qdrant.

    Strategy:
    - One collection (``QDRANT_COLLECTION_NAME``) holds every document's chunks
    - ``ensure_collection`` drops and recreates it (full re-index)
    - Each point carries a denormalized payload, so a search hit needs no
      second lookup
    - Upserts go out in fixed-size batches, in order, one result per batch
    """

    def __init__(
        self,
        client: Optional[QdrantClient] = None,
        collection_name: Optional[str] = None,
        dimension: Optional[int] = None,
        upsert_batch_size: Optional[int] = None,
        max_retries: Optional[int] = None,
    ) -> None:
        self._client = client
        self.collection_name = collection_name or settings.qdrant.collection_name
        self.dimension = dimension or settings.encoder.dimension
        self.upsert_batch_size = max(1, upsert_batch_size or settings.qdrant.upsert_batch_size)
        self._max_retries = max(1, max_retries or settings.retry.max_retries)

    def _get_client(self) -> QdrantClient:
        if self._client is not None:
            return self._client

        if settings.qdrant.location:
            self._client = QdrantClient(location=settings.qdrant.location)
        else:
            self._client = QdrantClient(
                url=settings.qdrant.url,
                api_key=settings.qdrant.api_key,
                timeout=settings.qdrant.timeout,
            )
        return self._client

    async def _call(self, func: Callable[..., Any], **kwargs: Any) -> Any:
        """Run a blocking client call on a worker thread, retrying transport failures."""
        async for attempt in AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(
                multiplier=1, min=1, max=settings.retry.max_delay, exp_base=settings.retry.backoff_factor
            ),
            retry=retry_if_exception_type(ResponseHandlingException),
        ):
            with attempt:
                return await asyncio.to_thread(func, **kwargs)
        raise QdrantError("Qdrant retries exhausted")

    async def ensure_collection(
        self,
        name: Optional[str] = None,
        dimension: Optional[int] = None,
        distance: Distance = Distance.COSINE,
    ) -> None:
        """Drop the collection if it exists and create it empty."""
        name = name or self.collection_name
        dimension = dimension or self.dimension

        def _recreate() -> None:
            client = self._get_client()
            if client.collection_exists(collection_name=name):
                logger.info(f"Collection '{name}' already exists, deleting it")
                client.delete_collection(collection_name=name)
            client.create_collection(
                collection_name=name,
                vectors_config=VectorParams(size=dimension, distance=distance),
            )

        try:
            await asyncio.to_thread(_recreate)
        except Exception as e:
            raise QdrantError(
                "Failed to recreate Qdrant collection",
                details={"collection": name, "error": str(e)},
            ) from e
        logger.info(f"Qdrant collection created: {name} (vector_size={dimension}, distance={distance.value})")

    def _build_points(self, document: Document, embedded_chunks: Sequence[EmbeddedChunk]) -> List[PointStruct]:
        points: List[PointStruct] = []
        for embedded in embedded_chunks:
            if len(embedded.vector) != self.dimension:
                raise QdrantError(
                    "Embedding vector size does not match the collection",
                    details={
                        "chunk_index": embedded.chunk.index,
                        "expected": self.dimension,
                        "actual": len(embedded.vector),
                    },
                )
            chunk = embedded.chunk
            payload: Dict[str, Any] = {
                "document_id": str(document.id),
                "document_title": document.title,
                "document_reference": document.reference,
                "document_year": document.year,
                "chunk_index": chunk.index,
                "chunk_kind": chunk.kind.value,
                "chunk_label": chunk.label,
                "text": chunk.text,
            }
            points.append(PointStruct(id=str(uuid.uuid4()), vector=embedded.vector, payload=payload))
        return points

    async def upsert(
        self,
        document: Document,
        embedded_chunks: Sequence[EmbeddedChunk],
        collection_name: Optional[str] = None,
    ) -> List[UpsertBatchResult]:
        """
        Write embedded chunks in batches and return one result per batch.

        Raises:
            UpsertBatchError: When a batch fails; earlier batches stay
                committed and no later batch is sent
        """
        name = collection_name or self.collection_name
        points = self._build_points(document, embedded_chunks)
        results: List[UpsertBatchResult] = []

        for batch_index, start in enumerate(range(0, len(points), self.upsert_batch_size)):
            batch = points[start : start + self.upsert_batch_size]
            try:
                await self._call(
                    self._get_client().upsert,
                    collection_name=name,
                    points=batch,
                    wait=True,
                )
            except asyncio.CancelledError:
                logger.warning(
                    f"Upsert cancelled: collection={name}, document={document.reference}, "
                    f"committed_batches={len(results)}"
                )
                raise
            except Exception as e:
                logger.error(
                    f"Upsert batch failed: collection={name}, document={document.reference}, "
                    f"batch={batch_index}, committed_batches={len(results)} - {e}"
                )
                raise UpsertBatchError(
                    batch_index=batch_index,
                    committed_batches=results,
                    message=f"Failed to upsert batch {batch_index} into Qdrant: {e}",
                    details={"collection": name, "batch_size": len(batch), "error": str(e)},
                ) from e
            results.append(UpsertBatchResult(batch_index=batch_index, point_ids=[str(p.id) for p in batch]))

        logger.info(
            f"Qdrant upsert complete: collection={name}, document={document.reference}, "
            f"points={len(points)}, batches={len(results)}"
        )
        return results

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        collection_name: Optional[str] = None,
    ) -> List[SearchHit]:
        """Return up to ``top_k`` hits by descending cosine similarity."""
        if top_k <= 0:
            raise ValidationError("top_k must be > 0", errors={"top_k": top_k})

        name = collection_name or self.collection_name
        try:
            response = await self._call(
                self._get_client().query_points,
                collection_name=name,
                query=list(vector),
                limit=top_k,
                with_payload=True,
            )
        except Exception as e:
            raise QdrantError(
                "Failed to search Qdrant",
                details={"collection": name, "error": str(e)},
            ) from e

        hits: List[SearchHit] = []
        for point in response.points:
            hit = self._to_hit(point)
            if hit is not None:
                hits.append(hit)
        return hits

    async def ping(self) -> None:
        """Check connectivity by listing collections."""
        try:
            await asyncio.to_thread(self._get_client().get_collections)
        except Exception as e:
            raise QdrantError("Qdrant is not reachable", details={"error": str(e)}) from e

    async def count(self, collection_name: Optional[str] = None) -> int:
        """Number of points stored in the collection."""
        name = collection_name or self.collection_name
        try:
            result = await self._call(self._get_client().count, collection_name=name, exact=True)
        except Exception as e:
            raise QdrantError(
                "Failed to count Qdrant points",
                details={"collection": name, "error": str(e)},
            ) from e
        return int(result.count)

    def _to_hit(self, point: ScoredPoint) -> Optional[SearchHit]:
        payload = point.payload or {}
        missing = [key for key in _REQUIRED_PAYLOAD_KEYS if payload.get(key) is None]
        if missing:
            logger.warning(f"Skipping point with incomplete payload: id={point.id}, missing={missing}")
            return None

        kind = payload.get("chunk_kind")
        return SearchHit(
            document_id=payload.get("document_id"),
            document_title=payload["document_title"],
            document_reference=payload["document_reference"],
            chunk_index=payload.get("chunk_index"),
            chunk_kind=ChunkKind(kind) if kind in ChunkKind._value2member_map_ else None,
            chunk_label=payload["chunk_label"],
            text=payload["text"],
            score=float(point.score),
        )
