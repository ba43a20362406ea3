"""Document and chunk models for the reference-data knowledge base.

A :class:`Document` is what a loader hands to the ingestion pipeline.  The
pipeline derives :class:`DocumentMetadata` from its text, splits the text
into :class:`TextChunk` segments, embeds each one and persists it as a
:class:`DocumentChunk`.  At query time the vector store returns
:class:`RetrievedChunk` wrappers carrying the similarity score.

All models are frozen; build modified copies with ``model_copy(update=...)``.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DocumentType(str, Enum):
    """Broad category of a banking reference document."""

    POLICY = "Policy"
    PROCEDURE = "Procedure"
    REFERENCE_DATA = "ReferenceData"


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class Document(BaseModel):
    """A unit of source content produced by a document loader."""

    model_config = ConfigDict(frozen=True)

    # Stable within its source: a relative file path, a Jira key, a page id.
    id: str = Field(description="Identifier of the document within its source.")
    content: str = Field(default="", description="Raw text content.")
    source_path: str = Field(description="Where the document came from (path or URI).")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Loader-provided attributes such as file name or Jira project.",
    )


class DocumentMetadata(BaseModel):
    """Typed metadata derived from a document's text.

    Attributes the extractor recognises live in typed fields; anything a
    loader supplied on top goes into ``extensions`` unchanged.
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(default="Untitled Document")
    department: str = Field(default="General")
    document_type: DocumentType = Field(default=DocumentType.REFERENCE_DATA)
    effective_date: date | None = Field(default=None)
    version: str = Field(default="1.0")
    extensions: dict[str, Any] = Field(
        default_factory=dict,
        description="Unrecognised, loader-specific keys.",
    )


class TextChunk(BaseModel):
    """An ephemeral segment produced by the chunker.

    Offsets are advisory: they locate the first and last sentence of the
    chunk in the text that was chunked, but the chunk content itself is the
    stripped sentences joined by single spaces.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)


class DocumentChunk(BaseModel):
    """The persisted unit of the knowledge base: text, vector and metadata."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Globally unique chunk identifier (UUID).")
    source_id: str = Field(description="Identifier of the parent Document.")
    content: str
    embedding: list[float] = Field(default_factory=list)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    created_at: datetime = Field(default_factory=_utc_now)


class RetrievedChunk(BaseModel):
    """A stored chunk returned by similarity search, with its score."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk
    similarity_score: float = Field(ge=0.0, le=1.0)
