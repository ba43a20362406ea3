"""Custom exception hierarchy for refdata-rag.

All application exceptions inherit from :class:`RefDataError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "ollama", "chromadb", "jira") caused the failure.

The hierarchy is organized by how callers are expected to react:

    RefDataError  (base -- catch-all for any refdata-rag error)
    +-- InvalidArgumentError     (caller input rejected, never retried)
    +-- TransientUpstreamError   (timeouts, connection drops, 5xx, 429)
    +-- UpstreamFailureError     (non-retryable or exhausted upstream call)
    +-- DocumentLoadError        (a document source could not be read)
    +-- JobNotFoundError         (unknown ingestion job id)
    +-- JobConflictError         (an ingestion job is already active)
    +-- ConfigurationError       (startup / missing config)

Retry helpers only ever retry :class:`TransientUpstreamError`; the
ingestion orchestrator isolates any :class:`RefDataError` raised while
processing a single document or source.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from refdata_rag.models.jobs import IngestionJob


class RefDataError(Exception):
    """Base exception for all refdata-rag errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for
    structured log output, e.g. ``[ollama] Connection refused``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------

class InvalidArgumentError(RefDataError):
    """Raised when a caller passes an unusable argument (bad chunk sizes, empty query)."""

    def __init__(
        self,
        message: str = "Invalid argument",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Upstream (provider / store) errors
# ---------------------------------------------------------------------------

class TransientUpstreamError(RefDataError):
    """Raised when an upstream call failed in a way that may succeed on retry."""

    def __init__(
        self,
        message: str = "Upstream service temporarily unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UpstreamFailureError(RefDataError):
    """Raised when an upstream call failed permanently or retries were exhausted."""

    def __init__(
        self,
        message: str = "Upstream service call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentLoadError(RefDataError):
    """Raised when a document loader cannot read its source."""

    def __init__(
        self,
        message: str = "Failed to load documents",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Job registry errors
# ---------------------------------------------------------------------------

class JobNotFoundError(RefDataError):
    """Raised when an ingestion job id is not present in the registry."""

    def __init__(
        self,
        message: str = "Ingestion job not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class JobConflictError(RefDataError):
    """Raised when a new ingestion run is requested while another is active.

    The currently active job is attached as :attr:`active_job` so the API
    layer can report which run is blocking the request.
    """

    def __init__(
        self,
        message: str = "An ingestion job is already in progress",
        provider_name: str | None = None,
        active_job: IngestionJob | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._active_job = active_job

    @property
    def active_job(self) -> IngestionJob | None:
        return self._active_job


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(RefDataError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
