"""Thread-safe in-memory registry of ingestion jobs.

The registry is the single place pollers read job status from.  Snapshots
are replaced wholesale under a lock, so readers always see a complete
:class:`~refdata_rag.models.jobs.IngestionJob`, never a half-updated one.

:meth:`JobRegistry.reserve` is the admission check for new runs: it stores
a job only if no other job is Pending or InProgress, atomically, so the
scheduler and the API cannot both start a run.

Jobs are kept until the process restarts.
"""

from __future__ import annotations

import threading

import structlog

from refdata_rag.models.jobs import IngestionJob
from refdata_rag.utils.errors import JobConflictError, JobNotFoundError
from refdata_rag.utils.logging import get_logger


class JobRegistry:
    """Keyed store of ingestion job snapshots."""

    def __init__(self) -> None:
        self._jobs: dict[str, IngestionJob] = {}
        self._lock = threading.Lock()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def put(self, job: IngestionJob) -> None:
        """Insert or replace the snapshot stored under ``job.id``."""
        with self._lock:
            self._jobs[job.id] = job
        self._logger.debug(
            "job_snapshot_stored",
            job_id=job.id,
            status=job.status.value,
            documents_processed=job.documents_processed,
        )

    def reserve(self, job: IngestionJob) -> IngestionJob:
        """Store *job* only if no other job is active.

        Raises
        ------
        JobConflictError
            If a Pending or InProgress job already exists; the blocking job
            is attached as ``active_job``.
        """
        with self._lock:
            active = self._find_active_locked()
            if active is not None:
                raise JobConflictError(
                    message=f"Ingestion job {active.id} is already {active.status.value}",
                    active_job=active,
                )
            self._jobs[job.id] = job
        self._logger.info("job_reserved", job_id=job.id, source=job.source)
        return job

    def get(self, job_id: str) -> IngestionJob:
        """Return the job stored under *job_id*.

        Raises
        ------
        JobNotFoundError
            If no such job exists.
        """
        job = self.find(job_id)
        if job is None:
            raise JobNotFoundError(f"No ingestion job found with ID: {job_id}")
        return job

    def find(self, job_id: str) -> IngestionJob | None:
        with self._lock:
            return self._jobs.get(job_id)

    def list_all(self, include_terminal: bool = True) -> list[IngestionJob]:
        """Return jobs ordered by ``started_at``, newest first."""
        with self._lock:
            jobs = list(self._jobs.values())
        if not include_terminal:
            jobs = [job for job in jobs if not job.is_terminal]
        return sorted(jobs, key=lambda job: job.started_at, reverse=True)

    def get_active(self) -> IngestionJob | None:
        """Return the Pending or InProgress job, if any."""
        with self._lock:
            return self._find_active_locked()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _find_active_locked(self) -> IngestionJob | None:
        for job in self._jobs.values():
            if job.is_active:
                return job
        return None
