"""Pydantic request/response schemas for the refdata-rag API.

Defines the public contract for every REST endpoint: ingestion control,
job status polling, chat, and health checks.

Request bodies accept the camelCase names existing clients send
(``forceReprocess``, ``userId``) as well as the snake_case field names.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from refdata_rag.models.chat import ChatExchange
from refdata_rag.models.jobs import IngestionJob, IngestionStatus

# Characters of chunk content echoed back per chat source.
_EXCERPT_LENGTH = 200


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class StartIngestionRequest(BaseModel):
    """Optional body for ``POST /ingestion/start``."""

    model_config = ConfigDict(populate_by_name=True)

    source: str | None = Field(default=None, description="Label recorded on the job")
    force_reprocess: bool = Field(default=False, alias="forceReprocess")


class IngestionStatusResponse(BaseModel):
    """Snapshot of one ingestion job."""

    job_id: str
    source: str
    status: IngestionStatus
    started_at: datetime
    completed_at: datetime | None = None
    documents_processed: int = 0
    error_message: str | None = None
    force_reprocess: bool = False
    progress_percentage: int | None = Field(
        default=None,
        description="100 for completed runs, 0 for failed or cancelled runs, absent while running",
    )

    @classmethod
    def from_job(cls, job: IngestionJob) -> IngestionStatusResponse:
        if job.status in (IngestionStatus.COMPLETED, IngestionStatus.COMPLETED_WITH_ERRORS):
            progress: int | None = 100
        elif job.status in (IngestionStatus.FAILED, IngestionStatus.CANCELLED):
            progress = 0
        else:
            progress = None
        return cls(
            job_id=job.id,
            source=job.source,
            status=job.status,
            started_at=job.started_at,
            completed_at=job.completed_at,
            documents_processed=job.documents_processed,
            error_message=job.error_message,
            force_reprocess=job.force_reprocess,
            progress_percentage=progress,
        )


class IngestionJobListResponse(BaseModel):
    """All known jobs, newest first."""

    jobs: list[IngestionStatusResponse] = Field(default_factory=list)
    total: int = 0


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatRequest(BaseModel):
    """A question for the reference-data assistant."""

    model_config = ConfigDict(populate_by_name=True)

    query: str = ""
    user_id: str | None = Field(default=None, alias="userId")


class SourceDocument(BaseModel):
    """A retrieved chunk that backed a chat answer."""

    title: str
    department: str
    document_type: str
    source_id: str
    similarity_score: float = Field(ge=0.0, le=1.0)
    excerpt: str


class ChatResponse(BaseModel):
    """The generated answer together with its supporting sources."""

    id: str
    query: str
    response: str
    sources: list[SourceDocument] = Field(default_factory=list)
    timestamp: datetime

    @classmethod
    def from_exchange(cls, exchange: ChatExchange) -> ChatResponse:
        sources = []
        for retrieved in exchange.relevant_chunks:
            chunk = retrieved.chunk
            excerpt = chunk.content
            if len(excerpt) > _EXCERPT_LENGTH:
                excerpt = excerpt[:_EXCERPT_LENGTH] + "..."
            sources.append(
                SourceDocument(
                    title=chunk.metadata.title,
                    department=chunk.metadata.department,
                    document_type=chunk.metadata.document_type.value,
                    source_id=chunk.source_id,
                    similarity_score=retrieved.similarity_score,
                    excerpt=excerpt,
                )
            )
        return cls(
            id=exchange.id,
            query=exchange.query,
            response=exchange.response,
            sources=sources,
            timestamp=exchange.timestamp,
        )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Basic liveness/health payload."""

    status: str
    timestamp: datetime
    version: str


class ComponentHealth(BaseModel):
    """Health of one backing component."""

    name: str
    provider: str
    healthy: bool


class DetailedHealthResponse(BaseModel):
    """Per-component health; ``status`` is ``unhealthy`` if any component is down."""

    status: str
    timestamp: datetime
    version: str
    components: list[ComponentHealth] = Field(default_factory=list)
    indexed_chunks: int | None = None


class ErrorResponse(BaseModel):
    """Standard error body returned by the middleware."""

    error: str
    detail: str
