"""Orchestrator for the document ingestion pipeline.

Pipeline stages per document: **load -> extract metadata -> chunk -> embed
-> store**.

:class:`IngestionService` coordinates the collaborators (document loaders,
chunker, metadata extractor, embedding provider, vector store) without any
of them knowing about each other.  All of them are injected, so tests can
swap in in-memory fakes.

Failure handling follows two levels:

- A loader that cannot read its source, or a document whose metadata,
  chunking, embedding or storage fails, is recorded as an error string and
  the run moves on.  The job ends ``CompletedWithErrors``.
- Anything outside the application's error hierarchy, ``OSError`` and
  ``ValueError`` is treated as a fault in the pipeline itself: the job ends
  ``Failed`` immediately.

A set cancel event, or cancellation of the task running the job, ends the
run ``Cancelled``; progress recorded so far stays valid.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from refdata_rag.models.documents import DocumentChunk
from refdata_rag.models.jobs import IngestionJob, IngestionStatus
from refdata_rag.utils.errors import RefDataError

if TYPE_CHECKING:
    from refdata_rag.interfaces.document_loader import IDocumentLoader
    from refdata_rag.interfaces.embedding_provider import IEmbeddingProvider
    from refdata_rag.interfaces.vector_store_provider import IVectorStoreProvider
    from refdata_rag.models.documents import Document
    from refdata_rag.services.ingestion.chunker import TextChunker
    from refdata_rag.services.ingestion.metadata_extractor import BankingMetadataExtractor

logger = structlog.get_logger(logger_name=__name__)

# Errors isolated to a single source or document.
_ISOLATED_ERRORS: tuple[type[Exception], ...] = (RefDataError, OSError, ValueError)

ProgressCallback = Callable[[IngestionJob], None]


class _RunCancelled(Exception):
    """Internal signal raised when the cancel event is observed."""


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class IngestionService:
    """Runs one ingestion job across every configured document loader.

    Parameters
    ----------
    loaders:
        Document sources, processed in the given order.
    chunker:
        Splits document text into overlapping chunks.
    metadata_extractor:
        Derives typed metadata from document text.
    embedding_provider:
        Generates one embedding per chunk.
    vector_store:
        Persists each embedded chunk.
    """

    def __init__(
        self,
        loaders: Sequence[IDocumentLoader],
        chunker: TextChunker,
        metadata_extractor: BankingMetadataExtractor,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
    ) -> None:
        self._loaders = list(loaders)
        self._chunker = chunker
        self._metadata_extractor = metadata_extractor
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store

    @property
    def loader_names(self) -> list[str]:
        return [loader.get_loader_name() for loader in self._loaders]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_ingestion(
        self,
        job: IngestionJob,
        cancel_event: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> IngestionJob:
        """Drive *job* to a terminal state and return the final snapshot.

        Every intermediate snapshot (in progress, after each processed
        document, terminal) is handed to *on_progress* so pollers see the
        run advance.

        Raises
        ------
        asyncio.CancelledError
            Re-raised after the ``Cancelled`` snapshot is published when the
            task running this coroutine is cancelled.
        """
        publish = on_progress or (lambda _job: None)

        job = job.model_copy(
            update={
                "status": IngestionStatus.IN_PROGRESS,
                "started_at": _utc_now(),
                "completed_at": None,
                "documents_processed": 0,
                "error_message": None,
            }
        )
        publish(job)
        logger.info(
            "ingestion_job_started",
            job_id=job.id,
            source=job.source,
            loaders=self.loader_names,
        )

        errors: list[str] = []
        processed = 0

        try:
            for loader in self._loaders:
                self._raise_if_cancelled(cancel_event)
                documents = await self._load_source(loader, errors)
                if documents is None:
                    continue

                for document in documents:
                    self._raise_if_cancelled(cancel_event)
                    if not await self._ingest_document(document, cancel_event, errors):
                        continue
                    processed += 1
                    job = job.model_copy(update={"documents_processed": processed})
                    publish(job)

        except _RunCancelled:
            job = self._finish(job, IngestionStatus.CANCELLED, errors)
            publish(job)
            logger.warning("ingestion_job_cancelled", job_id=job.id, documents_processed=processed)
            return job
        except asyncio.CancelledError:
            job = self._finish(job, IngestionStatus.CANCELLED, errors)
            publish(job)
            logger.warning("ingestion_job_cancelled", job_id=job.id, documents_processed=processed)
            raise
        except Exception as exc:
            job = job.model_copy(
                update={
                    "status": IngestionStatus.FAILED,
                    "completed_at": _utc_now(),
                    "error_message": str(exc),
                }
            )
            publish(job)
            logger.exception("ingestion_job_failed", job_id=job.id, error=str(exc))
            return job

        status = IngestionStatus.COMPLETED_WITH_ERRORS if errors else IngestionStatus.COMPLETED
        job = self._finish(job, status, errors)
        publish(job)
        logger.info(
            "ingestion_job_completed",
            job_id=job.id,
            status=job.status.value,
            documents_processed=processed,
            error_count=len(errors),
        )
        return job

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _load_source(self, loader: IDocumentLoader, errors: list[str]) -> list[Document] | None:
        """Load one source, recording a failure instead of raising."""
        name = loader.get_loader_name()
        try:
            documents = await loader.load_documents()
        except _ISOLATED_ERRORS as exc:
            errors.append(f"Error loading documents from {name}: {exc}")
            logger.error("source_load_failed", loader=name, error=str(exc))
            return None

        logger.info("source_loaded", loader=name, document_count=len(documents))
        return documents

    async def _ingest_document(
        self,
        document: Document,
        cancel_event: asyncio.Event | None,
        errors: list[str],
    ) -> bool:
        """Process one document; return ``False`` if it failed and was recorded."""
        try:
            stored = await self._process_document(document, cancel_event)
        except _ISOLATED_ERRORS as exc:
            errors.append(f"Error processing document {document.id}: {exc}")
            logger.error("document_processing_failed", document_id=document.id, error=str(exc))
            return False

        logger.info("document_ingested", document_id=document.id, chunks=stored)
        return True

    async def _process_document(
        self,
        document: Document,
        cancel_event: asyncio.Event | None,
    ) -> int:
        """Extract, chunk, embed and store *document*; return the chunk count."""
        metadata = self._metadata_extractor.extract(document.content, document.metadata)
        text_chunks = self._chunker.chunk(document.content)

        for text_chunk in text_chunks:
            self._raise_if_cancelled(cancel_event)
            embedding = await self._embedding_provider.generate_embedding(text_chunk.content)
            chunk = DocumentChunk(
                id=str(uuid.uuid4()),
                source_id=document.id,
                content=text_chunk.content,
                embedding=embedding,
                metadata=metadata,
            )
            await self._vector_store.store(chunk)

        return len(text_chunks)

    @staticmethod
    def _raise_if_cancelled(cancel_event: asyncio.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise _RunCancelled()

    @staticmethod
    def _finish(job: IngestionJob, status: IngestionStatus, errors: list[str]) -> IngestionJob:
        return job.model_copy(
            update={
                "status": status,
                "completed_at": _utc_now(),
                "error_message": "; ".join(errors) if errors else None,
            }
        )
