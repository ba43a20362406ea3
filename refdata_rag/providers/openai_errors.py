"""Translation of ``openai`` client exceptions into the refdata-rag hierarchy.

Ollama serves an OpenAI-compatible API, so the embedding and generation
adapters share the ``openai`` client and therefore its exception types.
Timeouts, dropped connections, rate limiting and 5xx responses are treated
as transient and retried by the adapter; every other API error is final.
"""

from __future__ import annotations

import openai

from refdata_rag.utils.errors import TransientUpstreamError, UpstreamFailureError

_TRANSIENT_ERRORS: tuple[type[openai.APIError], ...] = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def translate_openai_error(
    exc: openai.APIError,
    *,
    operation: str,
    provider_name: str,
) -> TransientUpstreamError | UpstreamFailureError:
    """Return the domain error matching *exc*; the caller raises it ``from exc``."""
    message = f"{operation} API error: {exc}"
    if isinstance(exc, _TRANSIENT_ERRORS):
        return TransientUpstreamError(message=message, provider_name=provider_name)
    return UpstreamFailureError(message=message, provider_name=provider_name)
