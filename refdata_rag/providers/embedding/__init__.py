"""Embedding provider implementations.

    OllamaEmbeddingProvider -- ``nomic-embed-text`` (or any embedding model)
    served by a local Ollama instance through its OpenAI-compatible API.
"""

from refdata_rag.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider

__all__ = ["OllamaEmbeddingProvider"]
