"""Batch embedding of text with attention-masked mean pooling."""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence, Tuple

import torch

from legislation_search.config import get_settings
from legislation_search.models.chunk import Chunk, EmbeddedChunk
from legislation_search.services.encoder import Encoder
from legislation_search.services.encoder_cache import EncoderCache
from legislation_search.utils.errors import EncodingError
from legislation_search.utils.logging import get_logger

logger = get_logger("embedding_service")
settings = get_settings()


def pad_batch(
    token_ids: Sequence[Sequence[int]],
    attention_masks: Sequence[Sequence[int]],
    pad_token_id: int,
) -> Tuple[torch.Tensor, torch.Tensor]:
    """Right-pad sequences to the longest one with ``pad_token_id`` and mask 0."""
    max_len = max([len(ids) for ids in token_ids] + [1])
    padded_ids = [list(ids) + [pad_token_id] * (max_len - len(ids)) for ids in token_ids]
    padded_masks = [list(mask) + [0] * (max_len - len(mask)) for mask in attention_masks]
    return (
        torch.tensor(padded_ids, dtype=torch.long),
        torch.tensor(padded_masks, dtype=torch.long),
    )


def mean_pool(hidden_states: torch.Tensor, attention_mask: torch.Tensor) -> torch.Tensor:
    """Average hidden states over unmasked positions: (batch, seq, dim) -> (batch, dim)."""
    mask = attention_mask.unsqueeze(-1).to(hidden_states.dtype)
    summed = (hidden_states * mask).sum(dim=1)
    # a fully masked row sums to zero and stays a zero vector
    counts = mask.sum(dim=1).clamp(min=1.0)
    return summed / counts


def l2_normalize(vectors: torch.Tensor) -> torch.Tensor:
    """Scale rows to unit length; zero rows are returned unchanged."""
    norms = vectors.norm(p=2, dim=1, keepdim=True)
    safe_norms = torch.where(norms > 0, norms, torch.ones_like(norms))
    return vectors / safe_norms


class EmbeddingService:
    """
    Turn texts into fixed-length unit vectors using the cached encoder.

    Texts are processed in sub-batches of ``batch_size`` one after another on a
    worker thread; output ``i`` always belongs to input ``i``.
    """

    def __init__(
        self,
        encoder_cache: EncoderCache,
        batch_size: Optional[int] = None,
        dimension: Optional[int] = None,
    ) -> None:
        self._cache = encoder_cache
        self.batch_size = max(1, batch_size or settings.encoder.batch_size)
        self.dimension = dimension or settings.encoder.dimension

    @property
    def is_encoder_loaded(self) -> bool:
        return self._cache.is_loaded

    async def encode_one(self, text: str) -> List[float]:
        """Embed a single text (query path)."""
        vectors = await self.encode_many([text])
        return vectors[0]

    async def encode_many(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed texts in input order.

        Raises:
            EncoderLoadError: If the encoder cannot be constructed
            EncodingError: If any input cannot be tokenized or encoded; no
                partial result is returned
        """
        if not texts:
            return []

        for index, text in enumerate(texts):
            if not isinstance(text, str):
                raise EncodingError(
                    f"Input {index} is not a string (got {type(text).__name__})",
                    input_index=index,
                )

        encoder = await self._cache.acquire_encoder()
        if encoder.dimension != self.dimension:
            raise EncodingError(
                "Encoder dimension does not match the configured embedding dimension",
                model=encoder.model_name,
                details={"expected_dimension": self.dimension, "actual_dimension": encoder.dimension},
            )

        logger.info(
            f"Generating embeddings: model={encoder.model_name}, "
            f"texts={len(texts)}, batch_size={self.batch_size}"
        )

        out: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = list(texts[start : start + self.batch_size])
            out.extend(await asyncio.to_thread(self._encode_batch, encoder, batch, start))

        logger.debug(f"Embeddings generated: count={len(out)}, dimension={self.dimension}")
        return out

    async def embed_chunks(self, chunks: Sequence[Chunk]) -> List[EmbeddedChunk]:
        """Embed chunks (label and body) and pair each vector with its chunk."""
        vectors = await self.encode_many([chunk.embedding_text for chunk in chunks])
        return [
            EmbeddedChunk.model_validate(
                {"chunk": chunk, "vector": vector}, context={"dimension": self.dimension}
            )
            for chunk, vector in zip(chunks, vectors)
        ]

    def _encode_batch(self, encoder: Encoder, texts: List[str], offset: int) -> List[List[float]]:
        token_ids: List[List[int]] = []
        attention_masks: List[List[int]] = []
        for position, text in enumerate(texts):
            try:
                ids, mask = encoder.tokenize(text)
            except Exception as e:
                raise EncodingError(
                    f"Tokenization failed for input {offset + position}: {e}",
                    model=encoder.model_name,
                    input_index=offset + position,
                ) from e
            if len(ids) != len(mask):
                raise EncodingError(
                    "Token ids and attention mask lengths differ",
                    model=encoder.model_name,
                    input_index=offset + position,
                )
            token_ids.append(ids)
            attention_masks.append(mask)

        input_ids, attention_mask = pad_batch(token_ids, attention_masks, encoder.pad_token_id)

        try:
            hidden_states = encoder.forward(input_ids, attention_mask)
        except Exception as e:
            raise EncodingError(
                f"Encoder forward pass failed: {e}",
                model=encoder.model_name,
                details={"batch_start": offset, "batch_size": len(texts)},
            ) from e

        expected_shape = (len(texts), input_ids.shape[1], self.dimension)
        if tuple(hidden_states.shape) != expected_shape:
            raise EncodingError(
                "Unexpected hidden state shape",
                model=encoder.model_name,
                details={"expected": list(expected_shape), "actual": list(hidden_states.shape)},
            )

        pooled = mean_pool(hidden_states.to(torch.float32), attention_mask)
        return l2_normalize(pooled).tolist()
