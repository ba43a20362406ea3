"""Vector store provider implementations.

    ChromaDBProvider -- local persistent ChromaDB collection, cosine space.
"""

from refdata_rag.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
