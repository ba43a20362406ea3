"""Integration tests for IngestionRunner and IngestionScheduler."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from refdata_rag.interfaces.document_loader import IDocumentLoader
from refdata_rag.models.documents import Document
from refdata_rag.models.jobs import IngestionJob, IngestionStatus
from refdata_rag.pipeline.ingestion_runner import IngestionRunner
from refdata_rag.pipeline.job_registry import JobRegistry
from refdata_rag.pipeline.scheduler import IngestionScheduler
from refdata_rag.services.ingestion.chunker import TextChunker
from refdata_rag.services.ingestion.ingestion_service import IngestionService
from refdata_rag.services.ingestion.metadata_extractor import BankingMetadataExtractor
from refdata_rag.utils.errors import JobConflictError, JobNotFoundError, UpstreamFailureError
from tests.conftest import MockEmbeddingProvider, MockVectorStore, StaticDocumentLoader, make_document

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _GatedLoader(IDocumentLoader):
    """Blocks in load_documents() until the test opens the gate."""

    def __init__(self, documents: list[Document]) -> None:
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()
        self._documents = documents

    async def load_documents(self) -> list[Document]:
        self.entered.set()
        await self.gate.wait()
        return list(self._documents)

    def get_loader_name(self) -> str:
        return "GatedLoader"


def _make_runner(loader: IDocumentLoader | None = None) -> tuple[IngestionRunner, JobRegistry]:
    service = IngestionService(
        loaders=[loader or StaticDocumentLoader([make_document("doc-1", "USD maps to US Dollar.")])],
        chunker=TextChunker(),
        metadata_extractor=BankingMetadataExtractor(),
        embedding_provider=MockEmbeddingProvider(),
        vector_store=MockVectorStore(),
    )
    registry = JobRegistry()
    return IngestionRunner(service, registry, default_source="All Sources"), registry


def _gated_loader() -> _GatedLoader:
    return _GatedLoader([make_document("doc-1", "One."), make_document("doc-2", "Two.")])


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class TestIngestionRunner:
    @pytest.mark.asyncio()
    async def test_start_returns_pending_job(self) -> None:
        runner, registry = _make_runner()

        job = await runner.start()

        assert job.status == IngestionStatus.PENDING
        assert job.source == "All Sources"
        final = await runner.wait(job.id)
        assert final.status == IngestionStatus.COMPLETED
        assert final.documents_processed == 1
        assert registry.get(job.id) == final
        assert runner.is_running() is False

    @pytest.mark.asyncio()
    async def test_source_and_force_flag_are_recorded(self) -> None:
        runner, _ = _make_runner()

        job = await runner.start(source="Manual", force_reprocess=True)
        final = await runner.wait(job.id)

        assert final.source == "Manual"
        assert final.force_reprocess is True

    @pytest.mark.asyncio()
    async def test_second_start_conflicts(self) -> None:
        loader = _gated_loader()
        runner, registry = _make_runner(loader)

        first = await runner.start()
        await loader.entered.wait()

        with pytest.raises(JobConflictError) as exc_info:
            await runner.start()

        assert exc_info.value.active_job.id == first.id
        assert registry.get(first.id).status == IngestionStatus.IN_PROGRESS
        assert len(registry) == 1

        loader.gate.set()
        assert (await runner.wait(first.id)).status == IngestionStatus.COMPLETED

    @pytest.mark.asyncio()
    async def test_new_run_allowed_after_completion(self) -> None:
        runner, registry = _make_runner()

        first = await runner.start()
        await runner.wait(first.id)
        second = await runner.start()
        await runner.wait(second.id)

        assert len(registry) == 2

    @pytest.mark.asyncio()
    async def test_cancel_stops_run(self) -> None:
        loader = _gated_loader()
        runner, _ = _make_runner(loader)

        job = await runner.start()
        await loader.entered.wait()
        snapshot = runner.cancel(job.id)
        loader.gate.set()
        final = await runner.wait(job.id)

        assert snapshot.id == job.id
        assert final.status == IngestionStatus.CANCELLED
        assert final.documents_processed == 0

    @pytest.mark.asyncio()
    async def test_cancel_unknown_job(self) -> None:
        runner, _ = _make_runner()

        with pytest.raises(JobNotFoundError):
            runner.cancel("missing")

    @pytest.mark.asyncio()
    async def test_cancel_finished_job_conflicts(self) -> None:
        runner, _ = _make_runner()
        job = await runner.start()
        await runner.wait(job.id)

        with pytest.raises(JobConflictError):
            runner.cancel(job.id)

    @pytest.mark.asyncio()
    async def test_shutdown_cancels_running_job(self) -> None:
        loader = _gated_loader()
        runner, registry = _make_runner(loader)

        job = await runner.start()
        await loader.entered.wait()
        await runner.shutdown()

        assert registry.get(job.id).status == IngestionStatus.CANCELLED
        assert registry.get_active() is None

    @pytest.mark.asyncio()
    async def test_shutdown_before_run_starts_closes_job(self) -> None:
        runner, registry = _make_runner(_gated_loader())

        job = await runner.start()
        await runner.shutdown()

        assert registry.get(job.id).status == IngestionStatus.CANCELLED
        assert registry.get(job.id).completed_at is not None


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class TestIngestionScheduler:
    def test_interval_must_be_positive(self) -> None:
        runner, _ = _make_runner()
        with pytest.raises(ValueError):
            IngestionScheduler(runner, interval_seconds=0)

    @pytest.mark.asyncio()
    async def test_trigger_starts_scheduled_job(self) -> None:
        runner, _ = _make_runner()
        scheduler = IngestionScheduler(runner)

        job = await scheduler.trigger()

        assert job is not None
        assert job.source == "Scheduled"
        await runner.wait(job.id)

    @pytest.mark.asyncio()
    async def test_trigger_skips_when_run_active(self) -> None:
        loader = _gated_loader()
        runner, registry = _make_runner(loader)
        active = await runner.start()
        scheduler = IngestionScheduler(runner)

        assert await scheduler.trigger() is None
        assert len(registry) == 1

        loader.gate.set()
        await runner.wait(active.id)

    @pytest.mark.asyncio()
    async def test_loop_runs_on_start_and_stops(self) -> None:
        runner, registry = _make_runner()
        scheduler = IngestionScheduler(runner, interval_seconds=60, run_on_start=True)

        scheduler.start()
        assert scheduler.is_running
        for _ in range(50):
            if len(registry):
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()
        await runner.shutdown()

        assert scheduler.is_running is False
        [job] = registry.list_all()
        assert job.source == "Scheduled"

    @pytest.mark.asyncio()
    async def test_loop_waits_first_interval_when_not_running_on_start(self) -> None:
        runner, registry = _make_runner()
        scheduler = IngestionScheduler(runner, interval_seconds=60, run_on_start=False)

        scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert len(registry) == 0

    @pytest.mark.asyncio()
    async def test_loop_keeps_ticking_after_failed_start(self) -> None:
        runner = MagicMock(spec=IngestionRunner)
        runner.start = AsyncMock(
            side_effect=[UpstreamFailureError("store offline", provider_name="chromadb")]
            + [IngestionJob(source="Scheduled") for _ in range(200)]
        )
        scheduler = IngestionScheduler(runner, interval_seconds=0.01, run_on_start=True)

        scheduler.start()
        for _ in range(100):
            if runner.start.await_count >= 2:
                break
            await asyncio.sleep(0.01)

        assert scheduler.is_running
        await scheduler.stop()

        assert runner.start.await_count >= 2
        assert scheduler.is_running is False
