"""Ollama LLM provider adapter.

Wraps a local Ollama server via its OpenAI-compatible API endpoint, reusing
the ``openai`` client library pointed at the Ollama base URL.  The query
and the retrieved context are combined into a single prompt::

    Context:
    <context>

    Question: <query>

    Answer:

When no context is supplied the bare query is sent.  Sampling parameters
(temperature 0.7, top_p 0.9, 1000 max tokens by default) come from the
``generation`` section of ``config/config.yaml``.

Setup: install Ollama, ``ollama pull phi3.5``, then point
``OLLAMA_BASE_URL`` at the server (default ``http://localhost:11434``).
"""

from __future__ import annotations

from typing import Any

import httpx
import openai
import structlog

from refdata_rag.config.settings import Settings
from refdata_rag.interfaces.llm_provider import ILLMProvider
from refdata_rag.providers.openai_errors import translate_openai_error
from refdata_rag.utils.errors import UpstreamFailureError
from refdata_rag.utils.retry import RetryPolicy, call_with_retry

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_GENERATION: dict[str, Any] = {
    "temperature": 0.7,
    "top_p": 0.9,
    "max_tokens": 1000,
}


def build_prompt(prompt: str, context: str) -> str:
    """Combine the user's query and the retrieved context into one prompt."""
    if not context:
        return prompt
    return f"Context:\n{context}\n\nQuestion: {prompt}\n\nAnswer:"


class OllamaLLMProvider(ILLMProvider):
    """LLM provider backed by a local Ollama server."""

    def __init__(
        self,
        settings: Settings,
        generation_config: dict[str, Any] | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._model = settings.ollama_generation_model
        self._generation = {**_DEFAULT_GENERATION, **(generation_config or {})}
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
        )
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",
            timeout=settings.ollama_timeout_seconds,
            max_retries=0,
        )

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def generate_answer(self, prompt: str, context: str) -> str:
        """Generate an answer via Ollama, retrying transient failures."""
        full_prompt = build_prompt(prompt, context)
        return await call_with_retry(
            lambda: self._complete_once(full_prompt),
            self._retry_policy,
            operation_name="generation",
            provider_name=self.get_provider_name(),
        )

    async def check_health(self) -> bool:
        """Hit Ollama's native ``/api/tags`` endpoint, which lists installed models."""
        if not self.is_available():
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self._base_url}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    def get_provider_name(self) -> str:
        return "ollama"

    def is_available(self) -> bool:
        return bool(self._base_url)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _complete_once(self, full_prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": full_prompt}],
                temperature=self._generation["temperature"],
                top_p=self._generation["top_p"],
                max_tokens=self._generation["max_tokens"],
            )
        except openai.APIError as exc:
            raise translate_openai_error(
                exc,
                operation="Ollama generation",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise UpstreamFailureError(
                message="Ollama returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "ollama_completion",
            model=self._model,
            prompt_length=len(full_prompt),
            response_length=len(content),
        )
        return content
