"""Unit tests for the batch embedding service."""

import math

import pytest
import torch
from pydantic import ValidationError

from legislation_search.models.chunk import Chunk, ChunkKind, EmbeddedChunk
from legislation_search.services.embedding_service import (
    EmbeddingService,
    l2_normalize,
    mean_pool,
    pad_batch,
)
from legislation_search.utils.errors import EncodingError

from tests.conftest import DIMENSION, MALFORMED_MARKER


def _norm(vector):
    return math.sqrt(sum(v * v for v in vector))


def _cosine(a, b):
    return sum(x * y for x, y in zip(a, b))


def test_pad_batch_right_pads_with_pad_id():
    ids, masks = pad_batch([[5, 6, 7], [8]], [[1, 1, 1], [1]], pad_token_id=0)

    assert ids.tolist() == [[5, 6, 7], [8, 0, 0]]
    assert masks.tolist() == [[1, 1, 1], [1, 0, 0]]


def test_pad_batch_empty_sequence_gets_one_masked_slot():
    ids, masks = pad_batch([[]], [[]], pad_token_id=3)

    assert ids.tolist() == [[3]]
    assert masks.tolist() == [[0]]


def test_mean_pool_ignores_masked_positions():
    hidden = torch.tensor([[[1.0, 2.0], [3.0, 4.0], [100.0, 100.0]]])
    mask = torch.tensor([[1, 1, 0]])

    assert mean_pool(hidden, mask).tolist() == [[2.0, 3.0]]


def test_mean_pool_fully_masked_row_is_zero():
    hidden = torch.tensor([[[7.0, 7.0]]])
    mask = torch.tensor([[0]])

    assert mean_pool(hidden, mask).tolist() == [[0.0, 0.0]]


def test_l2_normalize_leaves_zero_rows():
    result = l2_normalize(torch.tensor([[3.0, 4.0], [0.0, 0.0]]))

    assert result[0].tolist() == pytest.approx([0.6, 0.8])
    assert result[1].tolist() == [0.0, 0.0]


@pytest.mark.asyncio
async def test_encode_one_returns_unit_vector(embedding_service):
    """Embeddings have the configured dimension and unit length."""
    vector = await embedding_service.encode_one("the right to privacy")

    assert len(vector) == DIMENSION
    assert _norm(vector) == pytest.approx(1.0, abs=1e-5)


@pytest.mark.asyncio
async def test_empty_text_embeds_to_zero_vector(embedding_service):
    """Text without tokens has no unmasked positions and pools to zero."""
    vector = await embedding_service.encode_one("")

    assert len(vector) == DIMENSION
    assert all(v == 0.0 for v in vector)


@pytest.mark.asyncio
async def test_encoding_is_deterministic(embedding_service):
    first = await embedding_service.encode_one("data protection board")
    second = await embedding_service.encode_one("data protection board")

    assert first == pytest.approx(second, abs=1e-6)


@pytest.mark.asyncio
async def test_encode_many_preserves_order_across_sub_batches(encoder_cache, fake_encoder):
    """Ten inputs in sub-batches of three come back in input order."""
    service = EmbeddingService(encoder_cache, batch_size=3, dimension=DIMENSION)
    texts = [f"clause number {i} concerns topic{i} exclusively" for i in range(10)]

    vectors = await service.encode_many(texts)

    assert len(vectors) == len(texts)
    assert fake_encoder.forward_calls == 4
    for i, vector in enumerate(vectors):
        single = await service.encode_one(texts[i])
        assert vector == pytest.approx(single, abs=1e-5)
        # every vector is closest to itself among the outputs
        best = max(range(len(vectors)), key=lambda j: _cosine(vector, vectors[j]))
        assert best == i


@pytest.mark.asyncio
async def test_padding_does_not_change_embeddings(embedding_service):
    """A short text batched with a long one embeds exactly as on its own."""
    short = "privacy"
    long = "licensed operators of telecommunication infrastructure shall maintain registers"

    batched = await embedding_service.encode_many([short, long])
    alone = await embedding_service.encode_one(short)

    assert batched[0] == pytest.approx(alone, abs=1e-5)


@pytest.mark.asyncio
async def test_empty_input_list(embedding_service, fake_encoder):
    assert await embedding_service.encode_many([]) == []
    assert fake_encoder.forward_calls == 0


@pytest.mark.asyncio
async def test_malformed_input_reports_its_index(encoder_cache):
    """Tokenization failure raises EncodingError naming the offending input."""
    service = EmbeddingService(encoder_cache, batch_size=3, dimension=DIMENSION)
    texts = ["one", "two", "three", "four", f"bad {MALFORMED_MARKER} text", "six"]

    with pytest.raises(EncodingError) as exc_info:
        await service.encode_many(texts)

    assert exc_info.value.input_index == 4
    assert exc_info.value.status_code == 422
    assert exc_info.value.details["input_index"] == 4


@pytest.mark.asyncio
async def test_non_string_input_is_rejected(embedding_service, fake_encoder):
    with pytest.raises(EncodingError) as exc_info:
        await embedding_service.encode_many(["fine", None])

    assert exc_info.value.input_index == 1
    assert fake_encoder.forward_calls == 0


@pytest.mark.asyncio
async def test_dimension_mismatch_is_an_error(encoder_cache):
    service = EmbeddingService(encoder_cache, dimension=128)

    with pytest.raises(EncodingError) as exc_info:
        await service.encode_one("text")

    assert exc_info.value.details["expected_dimension"] == 128
    assert exc_info.value.details["actual_dimension"] == DIMENSION


@pytest.mark.asyncio
async def test_forward_failure_is_wrapped(embedding_service, fake_encoder, monkeypatch):
    def broken_forward(input_ids, attention_mask):
        raise RuntimeError("out of memory")

    monkeypatch.setattr(fake_encoder, "forward", broken_forward)

    with pytest.raises(EncodingError, match="out of memory") as exc_info:
        await embedding_service.encode_many(["a", "b"])

    assert exc_info.value.input_index is None
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_related_texts_score_higher(embedding_service):
    """Texts sharing words with the query are more similar than unrelated ones."""
    query, related, unrelated = await embedding_service.encode_many(
        [
            "privacy rights",
            "rights of the data principal to privacy",
            "telecommunication spectrum network equipment",
        ]
    )

    assert _cosine(query, related) > _cosine(query, unrelated)


@pytest.mark.asyncio
async def test_embed_chunks_pairs_vectors_with_chunks(embedding_service, segmenter, sample_bill):
    chunks = segmenter.segment(sample_bill)

    embedded = await embedding_service.embed_chunks(chunks)

    assert [e.chunk for e in embedded] == chunks
    assert all(len(e.vector) == DIMENSION for e in embedded)
    assert embedding_service.is_encoder_loaded


def _chunk() -> Chunk:
    return Chunk(
        index=0,
        kind=ChunkKind.CLAUSE,
        label="Clause 1",
        text="Short title and commencement",
        start_offset=0,
        end_offset=28,
    )


def test_embedded_chunk_rejects_unnormalized_vector():
    with pytest.raises(ValidationError, match="not L2-normalized"):
        EmbeddedChunk(chunk=_chunk(), vector=[3.0, 4.0])


def test_embedded_chunk_rejects_empty_vector():
    with pytest.raises(ValidationError, match="must not be empty"):
        EmbeddedChunk(chunk=_chunk(), vector=[])


def test_embedded_chunk_accepts_unit_and_zero_vectors():
    assert EmbeddedChunk(chunk=_chunk(), vector=[0.6, 0.8]).vector == [0.6, 0.8]
    assert EmbeddedChunk(chunk=_chunk(), vector=[0.0, 0.0]).vector == [0.0, 0.0]


def test_embedded_chunk_checks_dimension_from_context():
    with pytest.raises(ValidationError, match="expected 384"):
        EmbeddedChunk.model_validate(
            {"chunk": _chunk(), "vector": [1.0, 0.0]}, context={"dimension": DIMENSION}
        )
