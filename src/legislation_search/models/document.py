"""Document models for ingested legislation."""

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    """One ingested legislative text (a bill or act)."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, description="Identifier assigned at ingestion")
    title: str = Field(..., description="Document title")
    reference: str = Field(..., description="External reference number (e.g. bill number)")
    year: Optional[int] = Field(None, description="Year of introduction")
    text: str = Field(..., description="Raw extracted text")
