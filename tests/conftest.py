"""Pytest configuration and fixtures for legislation-search tests."""

import os
import re
import zlib
from typing import Dict, List, Tuple

# Set environment variables before any imports that read settings
os.environ["ENVIRONMENT"] = "development"
os.environ["QDRANT_LOCATION"] = ":memory:"
os.environ.pop("ENCODER_DIMENSION", None)
os.environ.pop("ENCODER_BATCH_SIZE", None)

import pytest
import torch
from qdrant_client import QdrantClient

from legislation_search.services.embedding_service import EmbeddingService
from legislation_search.services.encoder import Encoder
from legislation_search.services.encoder_cache import EncoderCache
from legislation_search.services.qdrant_service import QdrantService
from legislation_search.services.retrieval_pipeline import RetrievalPipeline
from legislation_search.services.segmenter_service import SegmenterService

DIMENSION = 384
MALFORMED_MARKER = "�"

_WORD = re.compile(r"\w+")


class FakeEncoder(Encoder):
    """
    Deterministic bag-of-words encoder.

    Each lowercase word maps to a stable token id (crc32) and each token id to a
    fixed random vector, so texts sharing words point in similar directions.
    The pad token has a non-zero vector too, which makes masking observable.
    """

    model_name = "fake-bag-of-words"
    pad_token_id = 0

    def __init__(self, dimension: int = DIMENSION):
        self.dimension = dimension
        self._vectors: Dict[int, torch.Tensor] = {}
        self.forward_calls = 0

    def tokenize(self, text: str) -> Tuple[List[int], List[int]]:
        if MALFORMED_MARKER in text:
            raise ValueError("invalid byte sequence")
        ids = [zlib.crc32(word.encode("utf-8")) % 2_000_000_000 + 1 for word in _WORD.findall(text.lower())]
        return ids, [1] * len(ids)

    def _vector(self, token_id: int) -> torch.Tensor:
        if token_id not in self._vectors:
            generator = torch.Generator().manual_seed(token_id)
            self._vectors[token_id] = torch.randn(self.dimension, generator=generator)
        return self._vectors[token_id]

    def forward(self, input_ids: torch.Tensor, attention_mask: torch.Tensor) -> torch.Tensor:
        self.forward_calls += 1
        batch, seq = input_ids.shape
        hidden = torch.zeros(batch, seq, self.dimension)
        for row in range(batch):
            for col in range(seq):
                hidden[row, col] = self._vector(int(input_ids[row, col]))
        return hidden


@pytest.fixture
def fake_encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def encoder_cache(fake_encoder) -> EncoderCache:
    return EncoderCache(factory=lambda: fake_encoder, model_name=fake_encoder.model_name)


@pytest.fixture
def embedding_service(encoder_cache) -> EmbeddingService:
    return EmbeddingService(encoder_cache, batch_size=8, dimension=DIMENSION)


@pytest.fixture
def qdrant_client() -> QdrantClient:
    return QdrantClient(location=":memory:")


@pytest.fixture
def qdrant_service(qdrant_client) -> QdrantService:
    return QdrantService(
        client=qdrant_client,
        collection_name="test_legislation_chunks",
        dimension=DIMENSION,
        upsert_batch_size=100,
        max_retries=1,
    )


@pytest.fixture
def segmenter() -> SegmenterService:
    return SegmenterService(min_section_chars=50, min_paragraph_chars=100, max_chunk_words=500)


@pytest.fixture
def pipeline(segmenter, embedding_service, qdrant_service) -> RetrievalPipeline:
    return RetrievalPipeline(
        segmenter=segmenter,
        embedding_service=embedding_service,
        qdrant_service=qdrant_service,
    )


SAMPLE_BILL = """THE DIGITAL PERSONAL DATA PROTECTION BILL, 2023
A BILL to provide for the processing of digital personal data.

BE IT ENACTED by Parliament in the Seventy-fourth Year of the Republic of India as follows:

CHAPTER I
PRELIMINARY

1. Short title and commencement. This Act may be called the Digital Personal Data Protection Act, 2023 and shall come into force on notified dates.

2. Definitions. In this Act, unless the context otherwise requires, the Board means the Data Protection Board of India established by the Central Government.

3. Rights of the data principal. Every data principal shall have the right to obtain a summary of personal data and privacy processing activities undertaken by a data fiduciary.

4. Telecommunication networks. Licensed operators of telecommunication infrastructure shall maintain network equipment and spectrum registers as specified in the Schedule.

SCHEDULE
Penalties for breach of obligations under this Act extend to two hundred and fifty crore rupees.
"""


@pytest.fixture
def sample_bill() -> str:
    return SAMPLE_BILL
