"""Abstract base class for answer-generation providers.

A generation provider receives the user's query together with the context
assembled from retrieved chunks and returns the model's answer as text.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OllamaLLMProvider (refdata_rag/providers/llm/)
class ILLMProvider(ABC):
    """Contract for LLM services used by the query pipeline."""

    @abstractmethod
    async def generate_answer(self, prompt: str, context: str) -> str:
        """Generate an answer to *prompt* grounded in *context*.

        Parameters
        ----------
        prompt:
            The user's question.
        context:
            Text assembled from retrieved chunks, or the fixed
            "no relevant information" marker.  May be empty.

        Returns
        -------
        str
            The model's answer.

        Raises
        ------
        refdata_rag.utils.errors.UpstreamFailureError
            If the call fails permanently or retries are exhausted.
        """

    @abstractmethod
    async def check_health(self) -> bool:
        """Return ``True`` if the model server answers right now."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this provider (e.g. ``"ollama"``)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured well enough to be used."""
