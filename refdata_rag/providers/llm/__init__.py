"""LLM provider adapters.

    OllamaLLMProvider -- local models (``phi3.5`` by default) served by
    Ollama through its OpenAI-compatible API.
"""

from refdata_rag.providers.llm.ollama_provider import OllamaLLMProvider

__all__ = ["OllamaLLMProvider"]
