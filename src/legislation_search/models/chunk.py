"""Chunk models produced by the segmenter and the batch encoder."""

import math
import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class ChunkKind(str, Enum):
    """Structural kind of a legislative chunk."""

    PREAMBLE = "preamble"
    CLAUSE = "clause"
    SECTION = "section"
    SCHEDULE = "schedule"
    OTHER = "other"


class Section(BaseModel):
    """Raw span of source text between two boundary markers."""

    start: int = Field(..., ge=0, description="Start offset in the source text")
    end: int = Field(..., ge=0, description="End offset (exclusive) in the source text")
    text: str = Field(..., description="Untrimmed source text of the span")


class Chunk(BaseModel):
    """One semantic unit of a document."""

    model_config = ConfigDict(frozen=True)

    document_id: Optional[uuid.UUID] = Field(None, description="Owning document id")
    document_reference: str = Field(default="", description="Owning document reference number")
    index: int = Field(..., ge=0, description="0-based ordinal within the document")
    kind: ChunkKind = Field(..., description="Structural kind")
    label: str = Field(..., description="Short human-readable label (e.g. 'Clause 3')")
    text: str = Field(..., min_length=1, description="Trimmed body text")
    start_offset: int = Field(..., ge=0, description="Start offset of the source span")
    end_offset: int = Field(..., ge=0, description="End offset (exclusive) of the source span")

    @property
    def embedding_text(self) -> str:
        """Text handed to the encoder: label and body."""
        return f"{self.label}\n{self.text}"


class EmbeddedChunk(BaseModel):
    """A chunk paired with its embedding vector."""

    chunk: Chunk
    vector: List[float] = Field(..., description="L2-normalized embedding vector")

    @field_validator("vector")
    @classmethod
    def validate_vector(cls, v: List[float], info: ValidationInfo) -> List[float]:
        """Require a unit-length (or all-zero) vector of the expected dimension.

        The dimension is checked when passed as ``context={"dimension": D}``.
        """
        if not v:
            raise ValueError("vector must not be empty")
        dimension = (info.context or {}).get("dimension")
        if dimension is not None and len(v) != dimension:
            raise ValueError(f"vector has dimension {len(v)}, expected {dimension}")
        norm = math.sqrt(sum(x * x for x in v))
        # all-zero vectors come from inputs with no unmasked tokens
        if norm != 0.0 and abs(norm - 1.0) > 1e-3:
            raise ValueError(f"vector is not L2-normalized (norm={norm:.4f})")
        return v
