"""Single-run arbiter for ingestion jobs.

Both the HTTP API and the periodic scheduler submit "start a run" requests
here.  :class:`IngestionRunner` reserves a Pending job in the
:class:`~refdata_rag.pipeline.job_registry.JobRegistry` (rejecting the
request if another run is active), then drives
:meth:`IngestionService.run_ingestion` on a background asyncio task.  The
caller gets the Pending job back immediately and polls the registry.

    API route ──┐
                ├──start()──→ IngestionRunner ──create_task──→ IngestionService
    Scheduler ──┘                   │                               │
                                    └────── JobRegistry ←──put()────┘

Each run owns an ``asyncio.Event``; :meth:`cancel` sets it and the service
stops at the next loader, document or chunk boundary.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from refdata_rag.models.jobs import IngestionJob, IngestionStatus
from refdata_rag.utils.errors import JobConflictError

if TYPE_CHECKING:
    from refdata_rag.pipeline.job_registry import JobRegistry
    from refdata_rag.services.ingestion.ingestion_service import IngestionService

logger = structlog.get_logger(logger_name=__name__)


class _ActiveRun:
    """Task and cancel signal of one in-flight run."""

    def __init__(self, task: asyncio.Task[IngestionJob], cancel_event: asyncio.Event) -> None:
        self.task = task
        self.cancel_event = cancel_event


class IngestionRunner:
    """Starts, cancels and awaits background ingestion runs.

    Parameters
    ----------
    ingestion_service:
        Executes a run.
    registry:
        Holds job snapshots and enforces the one-active-run rule.
    default_source:
        Source label used when a caller does not give one.
    """

    def __init__(
        self,
        ingestion_service: IngestionService,
        registry: JobRegistry,
        default_source: str = "All Sources",
    ) -> None:
        self._service = ingestion_service
        self._registry = registry
        self._default_source = default_source
        self._runs: dict[str, _ActiveRun] = {}

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self, source: str | None = None, force_reprocess: bool = False) -> IngestionJob:
        """Reserve a Pending job and begin processing it in the background.

        Raises
        ------
        JobConflictError
            If another run is Pending or InProgress.
        """
        job = IngestionJob(
            source=source or self._default_source,
            force_reprocess=force_reprocess,
        )
        self._registry.reserve(job)

        cancel_event = asyncio.Event()
        task = asyncio.create_task(
            self._service.run_ingestion(job, cancel_event, on_progress=self._registry.put),
            name=f"ingestion-{job.id}",
        )
        self._runs[job.id] = _ActiveRun(task, cancel_event)
        task.add_done_callback(lambda finished, job_id=job.id: self._on_run_done(job_id, finished))

        logger.info(
            "ingestion_run_started",
            job_id=job.id,
            source=job.source,
            force_reprocess=force_reprocess,
        )
        return job

    def cancel(self, job_id: str) -> IngestionJob:
        """Request cancellation of *job_id* and return its current snapshot.

        Raises
        ------
        JobNotFoundError
            If the job is unknown.
        JobConflictError
            If the job has already reached a terminal state.
        """
        job = self._registry.get(job_id)
        if job.is_terminal:
            raise JobConflictError(
                message=f"Ingestion job {job_id} is already {job.status.value}",
            )

        run = self._runs.get(job_id)
        if run is not None:
            run.cancel_event.set()
        logger.info("ingestion_cancel_requested", job_id=job_id)
        return self._registry.get(job_id)

    async def wait(self, job_id: str) -> IngestionJob:
        """Wait for the run of *job_id* to finish and return its final snapshot."""
        run = self._runs.get(job_id)
        if run is not None:
            await asyncio.wait({run.task})
        return self._registry.get(job_id)

    def is_running(self) -> bool:
        return any(not run.task.done() for run in self._runs.values())

    async def shutdown(self) -> None:
        """Cancel every in-flight run and wait for the tasks to settle."""
        runs = list(self._runs.values())
        for run in runs:
            run.cancel_event.set()
            run.task.cancel()
        if runs:
            await asyncio.gather(*(run.task for run in runs), return_exceptions=True)
        logger.info("ingestion_runner_shutdown", cancelled_runs=len(runs))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _on_run_done(self, job_id: str, task: asyncio.Task[IngestionJob]) -> None:
        """Release the run and make sure its job does not stay active forever.

        A task cancelled before it started never publishes a terminal
        snapshot itself, so the registry entry is closed here.
        """
        self._runs.pop(job_id, None)

        current = self._registry.find(job_id)
        if current is None or current.is_terminal:
            return

        if task.cancelled():
            update = {"status": IngestionStatus.CANCELLED}
        else:
            exc = task.exception()
            update = {
                "status": IngestionStatus.FAILED,
                "error_message": str(exc) if exc else "Ingestion run ended without a final status",
            }
        update["completed_at"] = datetime.now(tz=timezone.utc)
        self._registry.put(current.model_copy(update=update))
        logger.warning("ingestion_run_closed_by_runner", job_id=job_id, status=update["status"].value)
