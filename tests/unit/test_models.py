"""Unit tests for domain models and the error hierarchy."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from refdata_rag.models.documents import DocumentChunk, DocumentMetadata, DocumentType, RetrievedChunk
from refdata_rag.models.jobs import IngestionJob, IngestionStatus
from refdata_rag.utils.errors import (
    InvalidArgumentError,
    JobConflictError,
    RefDataError,
    TransientUpstreamError,
)


class TestErrors:
    def test_str_prefixes_provider(self) -> None:
        assert str(TransientUpstreamError("timed out", provider_name="ollama")) == "[ollama] timed out"

    def test_str_without_provider(self) -> None:
        assert str(InvalidArgumentError("Query cannot be empty")) == "Query cannot be empty"

    def test_hierarchy(self) -> None:
        assert issubclass(JobConflictError, RefDataError)
        assert RefDataError().message == "An unexpected error occurred"

    def test_conflict_carries_active_job(self) -> None:
        job = IngestionJob(status=IngestionStatus.IN_PROGRESS)
        error = JobConflictError(active_job=job)

        assert error.active_job is job
        assert error.provider_name is None


class TestIngestionStatus:
    @pytest.mark.parametrize(
        ("status", "terminal"),
        [
            (IngestionStatus.PENDING, False),
            (IngestionStatus.IN_PROGRESS, False),
            (IngestionStatus.COMPLETED, True),
            (IngestionStatus.COMPLETED_WITH_ERRORS, True),
            (IngestionStatus.FAILED, True),
            (IngestionStatus.CANCELLED, True),
        ],
    )
    def test_terminal_states(self, status: IngestionStatus, terminal: bool) -> None:
        assert status.is_terminal is terminal
        assert status.is_active is not terminal

    def test_wire_values(self) -> None:
        assert IngestionStatus.COMPLETED_WITH_ERRORS.value == "CompletedWithErrors"
        assert IngestionStatus.IN_PROGRESS.value == "InProgress"


class TestIngestionJob:
    def test_defaults(self) -> None:
        job = IngestionJob()

        assert job.status == IngestionStatus.PENDING
        assert job.source == "All Sources"
        assert job.documents_processed == 0
        assert job.completed_at is None
        assert job.is_active

    def test_jobs_are_frozen(self) -> None:
        job = IngestionJob()
        with pytest.raises(ValidationError):
            job.status = IngestionStatus.FAILED  # type: ignore[misc]

    def test_model_copy_keeps_id(self) -> None:
        job = IngestionJob()
        updated = job.model_copy(update={"status": IngestionStatus.COMPLETED})

        assert updated.id == job.id
        assert updated.is_terminal
        assert job.status == IngestionStatus.PENDING


class TestDocumentModels:
    def test_metadata_defaults(self) -> None:
        metadata = DocumentMetadata()

        assert metadata.title == "Untitled Document"
        assert metadata.department == "General"
        assert metadata.document_type == DocumentType.REFERENCE_DATA
        assert metadata.version == "1.0"

    def test_similarity_must_be_in_unit_range(self) -> None:
        chunk = DocumentChunk(id="c1", source_id="d1", content="text")
        with pytest.raises(ValidationError):
            RetrievedChunk(chunk=chunk, similarity_score=1.5)
