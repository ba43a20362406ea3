"""Ollama embedding provider adapter.

Wraps the Ollama OpenAI-compatible endpoint to implement
:class:`IEmbeddingProvider`.  Runs locally with no API key required; the
model defaults to ``nomic-embed-text`` and is configurable via
``OLLAMA_EMBEDDING_MODEL``.

Every call goes through :func:`~refdata_rag.utils.retry.call_with_retry`:
transient failures are retried with exponential backoff, everything else
surfaces immediately as :class:`UpstreamFailureError`.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from refdata_rag.config.settings import Settings
from refdata_rag.interfaces.embedding_provider import IEmbeddingProvider
from refdata_rag.providers.openai_errors import translate_openai_error
from refdata_rag.utils.errors import UpstreamFailureError
from refdata_rag.utils.retry import RetryPolicy, call_with_retry

logger = structlog.get_logger(logger_name=__name__)


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by a model served via Ollama."""

    def __init__(
        self,
        settings: Settings,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._model = settings.ollama_embedding_model
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
        )
        # Retries are ours; the SDK's built-in retry loop is disabled so
        # attempt counts stay predictable.
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",  # Ollama ignores the key but the SDK requires one
            timeout=settings.ollama_timeout_seconds,
            max_retries=0,
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def generate_embedding(self, text: str) -> list[float]:
        """Embed *text*, retrying transient failures."""
        return await call_with_retry(
            lambda: self._embed_once(text),
            self._retry_policy,
            operation_name="embedding",
            provider_name=self.get_provider_name(),
        )

    async def check_health(self) -> bool:
        """Return ``True`` if the Ollama server lists its installed models."""
        if not self.is_available():
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self._base_url}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    def get_provider_name(self) -> str:
        return "ollama_embedding"

    def is_available(self) -> bool:
        return bool(self._base_url and self._model)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _embed_once(self, text: str) -> list[float]:
        try:
            response = await self._client.embeddings.create(
                input=[text],
                model=self._model,
            )
        except openai.APIError as exc:
            raise translate_openai_error(
                exc,
                operation="Ollama embedding",
                provider_name=self.get_provider_name(),
            ) from exc

        if not response.data:
            raise UpstreamFailureError(
                message="Ollama returned no embedding data",
                provider_name=self.get_provider_name(),
            )
        embedding = list(response.data[0].embedding)
        logger.debug(
            "ollama_embedding",
            model=self._model,
            text_length=len(text),
            dimension=len(embedding),
        )
        return embedding
