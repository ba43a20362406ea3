"""Ingestion job coordination: registry, single-run arbiter and scheduler."""

from refdata_rag.pipeline.ingestion_runner import IngestionRunner
from refdata_rag.pipeline.job_registry import JobRegistry
from refdata_rag.pipeline.scheduler import IngestionScheduler

__all__ = ["IngestionRunner", "IngestionScheduler", "JobRegistry"]
