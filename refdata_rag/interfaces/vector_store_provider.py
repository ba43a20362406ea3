"""Abstract base class for vector-store providers.

The store persists :class:`~refdata_rag.models.documents.DocumentChunk`
records (content, embedding, metadata) and answers nearest-neighbour
queries.  Storing a chunk whose id already exists replaces it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from refdata_rag.models.documents import DocumentChunk, RetrievedChunk


# Concrete implementation: ChromaDBProvider (refdata_rag/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector stores used by both pipelines.

    All methods are async so network-backed stores never block the event
    loop.
    """

    @abstractmethod
    async def store(self, chunk: DocumentChunk) -> str:
        """Persist *chunk* (upsert by id) and return its id.

        Raises
        ------
        refdata_rag.utils.errors.UpstreamFailureError
            If the write fails.
        """

    @abstractmethod
    async def search_similar(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        min_score: float = 0.0,
    ) -> list[RetrievedChunk]:
        """Return up to *top_k* stored chunks most similar to *query_embedding*.

        Parameters
        ----------
        query_embedding:
            Vector produced by the same embedding provider used at ingestion.
        top_k:
            Maximum number of results.
        min_score:
            Similarity floor in [0, 1]; weaker matches are dropped.

        Returns
        -------
        list[RetrievedChunk]
            Matches ordered by similarity, most similar first.

        Raises
        ------
        refdata_rag.utils.errors.UpstreamFailureError
            If the query fails.
        """

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored chunks."""

    @abstractmethod
    async def check_health(self) -> bool:
        """Return ``True`` if the store can be queried right now."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this store (e.g. ``"chromadb"``)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is configured and initialised."""
