"""End-to-end tests for RetrievalPipeline with a fake encoder and in-memory Qdrant."""

import uuid
from unittest.mock import AsyncMock

import pytest

from legislation_search.config import get_settings
from legislation_search.services.retrieval_pipeline import RetrievalPipeline, build_pipeline
from legislation_search.utils.errors import ValidationError


async def _ingest_sample(pipeline: RetrievalPipeline, text: str):
    await pipeline.initialize()
    return await pipeline.ingest(
        document_id=None,
        document_title="The Digital Personal Data Protection Bill, 2023",
        document_reference="113 of 2023",
        raw_text=text,
        year=2023,
    )


@pytest.mark.asyncio
async def test_ingest_indexes_every_chunk(pipeline, sample_bill):
    result = await _ingest_sample(pipeline, sample_bill)

    assert result.chunk_count == 6
    assert len(result.point_ids) == 6
    assert [b.batch_index for b in result.batches] == [0]
    assert result.document_reference == "113 of 2023"
    assert await pipeline.qdrant_service.count() == 6


@pytest.mark.asyncio
async def test_verbatim_chunk_text_is_the_top_hit(pipeline, sample_bill):
    """Querying with a chunk's own text finds that chunk first."""
    await _ingest_sample(pipeline, sample_bill)
    target = pipeline.segmenter.segment(sample_bill)[3]

    hits = await pipeline.query(target.text, limit=3)

    assert len(hits) == 3
    assert hits[0].chunk_label == target.label
    assert hits[0].text == target.text
    assert hits[0].document_title == "The Digital Personal Data Protection Bill, 2023"
    assert [h.score for h in hits] == sorted((h.score for h in hits), reverse=True)


@pytest.mark.asyncio
async def test_query_ranks_related_clause_above_unrelated(pipeline, sample_bill):
    await _ingest_sample(pipeline, sample_bill)

    hits = await pipeline.query("privacy rights of the data principal", limit=6)
    labels = [h.chunk_label for h in hits]

    assert labels[0] == "Clause 3"
    assert labels.index("Clause 3") < labels.index("Clause 4")


@pytest.mark.asyncio
async def test_query_limit_caps_results(pipeline, sample_bill):
    await _ingest_sample(pipeline, sample_bill)

    hits = await pipeline.query("data", limit=2)

    assert len(hits) == 2


@pytest.mark.asyncio
async def test_ingest_uses_given_document_id(pipeline, sample_bill):
    document_id = uuid.uuid4()
    await pipeline.initialize()

    result = await pipeline.ingest(
        document_id=str(document_id),
        document_title="Bill",
        document_reference="1 of 2024",
        raw_text=sample_bill,
    )
    hits = await pipeline.query("telecommunication networks", limit=1)

    assert result.document_id == document_id
    assert hits[0].document_id == str(document_id)


@pytest.mark.asyncio
async def test_ingest_without_chunks_skips_upsert(segmenter, embedding_service, fake_encoder):
    """Text that yields no chunks writes nothing and does not load the encoder."""
    qdrant_service = AsyncMock()
    pipeline = RetrievalPipeline(
        segmenter=segmenter,
        embedding_service=embedding_service,
        qdrant_service=qdrant_service,
    )

    result = await pipeline.ingest(
        document_id=None,
        document_title="Empty",
        document_reference="0 of 2024",
        raw_text="   \n\n  ",
    )

    assert result.chunk_count == 0
    assert result.point_ids == []
    assert result.batches == []
    qdrant_service.upsert.assert_not_called()
    assert fake_encoder.forward_calls == 0


@pytest.mark.asyncio
async def test_ingest_rejects_malformed_document_id(pipeline):
    with pytest.raises(ValidationError) as exc_info:
        await pipeline.ingest(
            document_id="not-a-uuid",
            document_title="Bill",
            document_reference="1 of 2024",
            raw_text="text",
        )

    assert "document" in exc_info.value.details["validation_errors"]


@pytest.mark.asyncio
@pytest.mark.parametrize("question", ["", "   "])
async def test_blank_query_is_rejected(pipeline, question):
    with pytest.raises(ValidationError):
        await pipeline.query(question, limit=3)


@pytest.mark.asyncio
async def test_non_positive_limit_is_rejected(pipeline):
    with pytest.raises(ValidationError):
        await pipeline.query("privacy", limit=0)


def test_build_pipeline_wires_settings():
    settings = get_settings()

    pipeline = build_pipeline(settings)

    assert pipeline.qdrant_service.collection_name == settings.qdrant.collection_name
    assert pipeline.qdrant_service.upsert_batch_size == settings.qdrant.upsert_batch_size
    assert pipeline.embedding_service.batch_size == settings.encoder.batch_size
    assert pipeline.embedding_service.dimension == settings.encoder.dimension
    assert pipeline.segmenter.min_section_chars == settings.segmenter.min_section_chars
    assert not pipeline.embedding_service.is_encoder_loaded
