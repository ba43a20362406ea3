"""Ingestion job lifecycle models.

A job moves ``Pending -> InProgress -> <terminal>`` where the terminal
states are Completed, CompletedWithErrors, Failed and Cancelled.  Jobs are
frozen; every transition produces a new snapshot that is published to the
:class:`~refdata_rag.pipeline.job_registry.JobRegistry` under the same id.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class IngestionStatus(str, Enum):
    """Lifecycle state of an ingestion job."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    COMPLETED_WITH_ERRORS = "CompletedWithErrors"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in (IngestionStatus.PENDING, IngestionStatus.IN_PROGRESS)


_TERMINAL_STATUSES = frozenset(
    {
        IngestionStatus.COMPLETED,
        IngestionStatus.COMPLETED_WITH_ERRORS,
        IngestionStatus.FAILED,
        IngestionStatus.CANCELLED,
    }
)


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class IngestionJob(BaseModel):
    """Snapshot of one ingestion run."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source: str = Field(default="All Sources", description="Label of what triggered the run.")
    status: IngestionStatus = Field(default=IngestionStatus.PENDING)
    started_at: datetime = Field(default_factory=_utc_now)
    completed_at: datetime | None = None
    documents_processed: int = Field(default=0, ge=0)
    error_message: str | None = None
    # Accepted from callers and recorded; the pipeline always reprocesses.
    force_reprocess: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_active(self) -> bool:
        return self.status.is_active
