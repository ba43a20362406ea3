"""Public interface definitions for every external collaborator.

The ingestion and query pipelines only ever talk to the abstract base
classes in this package.  Concrete adapters live in
``refdata_rag/providers/`` and are wired together in ``refdata_rag/main.py``
at startup, so tests can inject in-memory fakes without touching the
network.

    Interface              ->  Concrete implementations
    ------------------------------------------------------------------
    IEmbeddingProvider     ->  OllamaEmbeddingProvider
    ILLMProvider           ->  OllamaLLMProvider
    IVectorStoreProvider   ->  ChromaDBProvider
    IDocumentLoader        ->  LocalFileLoader, JiraDocumentLoader,
                               ConfluenceDocumentLoader, WebPageDocumentLoader
"""

from refdata_rag.interfaces.document_loader import IDocumentLoader
from refdata_rag.interfaces.embedding_provider import IEmbeddingProvider
from refdata_rag.interfaces.llm_provider import ILLMProvider
from refdata_rag.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IDocumentLoader",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
]
