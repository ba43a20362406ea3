"""Periodic producer of scheduled ingestion runs.

Every ``interval_seconds`` the scheduler asks the
:class:`~refdata_rag.pipeline.ingestion_runner.IngestionRunner` to start a
run labelled ``"Scheduled"``.  If a run is already active, or starting one
fails with an application error, the tick is skipped and logged; the next
tick tries again.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

from refdata_rag.utils.errors import JobConflictError, RefDataError

if TYPE_CHECKING:
    from refdata_rag.models.jobs import IngestionJob
    from refdata_rag.pipeline.ingestion_runner import IngestionRunner

logger = structlog.get_logger(logger_name=__name__)


class IngestionScheduler:
    """Starts an ingestion run on a fixed interval.

    Parameters
    ----------
    runner:
        The arbiter that actually starts runs.
    interval_seconds:
        Time between ticks (default one hour).
    source:
        Source label recorded on scheduled jobs.
    run_on_start:
        Fire the first tick immediately instead of after one interval.
    """

    def __init__(
        self,
        runner: IngestionRunner,
        interval_seconds: float = 3600.0,
        source: str = "Scheduled",
        run_on_start: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._runner = runner
        self._interval = interval_seconds
        self._source = source
        self._run_on_start = run_on_start
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Begin ticking in the background; a second call is a no-op."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop(), name="ingestion-scheduler")
        logger.info("ingestion_scheduler_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Stop ticking.  A run already started keeps going until the runner shuts down."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("ingestion_scheduler_stopped")

    async def trigger(self) -> IngestionJob | None:
        """Submit one scheduled run; return ``None`` if another run is active."""
        try:
            job = await self._runner.start(source=self._source)
        except JobConflictError as exc:
            active = exc.active_job
            logger.info(
                "scheduled_ingestion_skipped",
                reason="job_already_active",
                active_job_id=active.id if active else None,
            )
            return None
        logger.info("scheduled_ingestion_started", job_id=job.id)
        return job

    async def _loop(self) -> None:
        if not self._run_on_start:
            await asyncio.sleep(self._interval)
        while True:
            try:
                await self.trigger()
            except RefDataError as exc:
                logger.error(
                    "scheduled_ingestion_failed",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
            await asyncio.sleep(self._interval)
