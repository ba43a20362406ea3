"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into a fixed-length vector.  Every
vector produced by one provider instance has the same length, so chunks
embedded at ingestion time and queries embedded at search time are
comparable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OllamaEmbeddingProvider (refdata_rag/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for embedding services used by both pipelines."""

    @abstractmethod
    async def generate_embedding(self, text: str) -> list[float]:
        """Generate an embedding vector for *text*.

        Parameters
        ----------
        text:
            The text to embed (a chunk at ingestion time, a query at search
            time).

        Returns
        -------
        list[float]
            The embedding vector.

        Raises
        ------
        refdata_rag.utils.errors.UpstreamFailureError
            If the call fails permanently or retries are exhausted.
        """

    @abstractmethod
    async def check_health(self) -> bool:
        """Return ``True`` if the backing service answers right now."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this provider (e.g. ``"ollama_embedding"``)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured well enough to be used."""
