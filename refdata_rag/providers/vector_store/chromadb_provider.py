"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
The collection uses cosine distance; similarity is reported as
``1 - distance`` clamped to [0, 1].  Embeddings are always computed by our
own :class:`IEmbeddingProvider`, so the collection is opened with a no-op
embedding function.
"""

from __future__ import annotations

import json
import os
from datetime import date, datetime
from typing import Any

# ChromaDB reports anonymous usage through PostHog.  The env var, the
# posthog flag and the client Settings below all switch it off; some
# ChromaDB releases only honour one of them.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from refdata_rag.interfaces.vector_store_provider import IVectorStoreProvider
from refdata_rag.models.documents import (
    DocumentChunk,
    DocumentMetadata,
    DocumentType,
    RetrievedChunk,
)
from refdata_rag.utils.errors import UpstreamFailureError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that must never run.

    Passing it stops ChromaDB from downloading and loading its default ONNX
    model when the collection is created.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "refdata-rag stores pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "document_chunks",
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections created by other ChromaDB versions may carry a
        # different persisted embedding function, which makes ChromaDB
        # reject ours with ValueError.  Opening without one is fine because
        # every embedding is supplied explicitly.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        logger.info(
            "chromadb_collection_ready",
            collection=collection_name,
            persist_directory=persist_directory,
        )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def store(self, chunk: DocumentChunk) -> str:
        """Upsert a single embedded chunk and return its id."""
        if not chunk.embedding:
            raise UpstreamFailureError(
                message=f"Chunk {chunk.id} has no embedding",
                provider_name=self.get_provider_name(),
            )
        try:
            self._collection.upsert(
                ids=[chunk.id],
                embeddings=[chunk.embedding],
                documents=[chunk.content],
                metadatas=[self._chunk_to_metadata(chunk)],
            )
        except Exception as exc:
            raise UpstreamFailureError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug("chromadb_store", chunk_id=chunk.id, source_id=chunk.source_id)
        return chunk.id

    async def search_similar(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        min_score: float = 0.0,
    ) -> list[RetrievedChunk]:
        """Nearest-neighbour search with a similarity floor."""
        if top_k <= 0:
            return []
        try:
            total = self._collection.count()
            if total == 0:
                return []

            results = self._collection.query(
                query_embeddings=[query_embedding],
                n_results=min(top_k, total),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise UpstreamFailureError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results["documents"] else [""] * len(ids)
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
        distances = results["distances"][0] if results["distances"] else [1.0] * len(ids)

        retrieved: list[RetrievedChunk] = []
        for chunk_id, doc_text, meta, distance in zip(
            ids, documents, metadatas, distances, strict=True
        ):
            similarity = max(0.0, min(1.0, 1.0 - distance))
            if similarity < min_score:
                continue
            retrieved.append(
                RetrievedChunk(
                    chunk=self._metadata_to_chunk(chunk_id, meta or {}, doc_text or ""),
                    similarity_score=similarity,
                )
            )

        retrieved.sort(key=lambda rc: rc.similarity_score, reverse=True)

        logger.info(
            "chromadb_query",
            raw_results=len(ids),
            results_count=len(retrieved),
            min_score=min_score,
            top_score=retrieved[0].similarity_score if retrieved else 0.0,
        )
        return retrieved

    async def count(self) -> int:
        try:
            return self._collection.count()
        except Exception as exc:
            raise UpstreamFailureError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def check_health(self) -> bool:
        try:
            self._client.heartbeat()
            self._collection.count()
        except Exception as exc:
            logger.warning("chromadb_health_check_failed", error=str(exc))
            return False
        return True

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        return self._collection is not None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, str | int | float | bool]:
        """Flatten a chunk's metadata into ChromaDB's scalar-only format.

        ChromaDB metadata values must be str, int, float or bool, so the
        open ``extensions`` map is stored as a JSON string and the optional
        effective date is omitted when absent.
        """
        metadata = chunk.metadata
        meta: dict[str, str | int | float | bool] = {
            "source_id": chunk.source_id,
            "title": metadata.title,
            "department": metadata.department,
            "document_type": metadata.document_type.value,
            "version": metadata.version,
            "created_at": chunk.created_at.isoformat(),
            "extensions": json.dumps(metadata.extensions, default=str, sort_keys=True),
        }
        if metadata.effective_date is not None:
            meta["effective_date"] = metadata.effective_date.isoformat()
        return meta

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, meta: dict[str, Any], text: str) -> DocumentChunk:
        """Rebuild a :class:`DocumentChunk` from stored metadata (without its vector)."""
        effective_str = meta.get("effective_date")
        created_str = meta.get("created_at")
        try:
            extensions = json.loads(meta.get("extensions") or "{}")
        except json.JSONDecodeError:
            extensions = {}

        try:
            document_type = DocumentType(meta.get("document_type", DocumentType.REFERENCE_DATA.value))
        except ValueError:
            document_type = DocumentType.REFERENCE_DATA

        fields: dict[str, Any] = {
            "id": chunk_id,
            "source_id": meta.get("source_id", ""),
            "content": text,
            "metadata": DocumentMetadata(
                title=meta.get("title", "Untitled Document"),
                department=meta.get("department", "General"),
                document_type=document_type,
                effective_date=date.fromisoformat(effective_str) if effective_str else None,
                version=meta.get("version", "1.0"),
                extensions=extensions if isinstance(extensions, dict) else {},
            ),
        }
        if created_str:
            fields["created_at"] = datetime.fromisoformat(created_str)
        return DocumentChunk(**fields)
