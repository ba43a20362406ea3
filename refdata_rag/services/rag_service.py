"""Retrieval-augmented question answering over the reference-data corpus.

Data flow for one query:

  1. EMBED     -- the query text becomes a vector via IEmbeddingProvider.
  2. RETRIEVE  -- the vector store returns the top-K most similar chunks;
                  anything below the similarity floor is discarded.
  3. CONTEXT   -- surviving chunks are rendered into one text block with a
                  header per document (title, department, type, date).
  4. GENERATE  -- the query and the context go to ILLMProvider.

Unlike the ingestion pipeline there is no failure isolation here: any
provider or store error is logged and propagates to the caller unchanged.
Retries, where they exist, happen inside the providers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from refdata_rag.models.chat import ChatExchange
from refdata_rag.utils.errors import InvalidArgumentError
from refdata_rag.utils.logging import get_logger

if TYPE_CHECKING:
    from refdata_rag.interfaces.embedding_provider import IEmbeddingProvider
    from refdata_rag.interfaces.llm_provider import ILLMProvider
    from refdata_rag.interfaces.vector_store_provider import IVectorStoreProvider
    from refdata_rag.models.documents import RetrievedChunk

logger: structlog.BoundLogger = get_logger(__name__)

NO_CONTEXT_MARKER = "No relevant information found in the knowledge base."
CONTEXT_HEADER = "Based on the following banking reference documents:"

DEFAULT_TOP_K = 5
DEFAULT_MIN_SIMILARITY = 0.7


def build_context(chunks: list[RetrievedChunk]) -> str:
    """Render retrieved chunks into the context block handed to the model.

    Each chunk becomes::

        --- Document: <title> ---
        Department: <department>
        Type: <document type>
        Effective Date: <YYYY-MM-DD>

        <content>

    The attribute lines are omitted when the value is absent.  With no
    chunks the fixed :data:`NO_CONTEXT_MARKER` is returned.
    """
    if not chunks:
        return NO_CONTEXT_MARKER

    lines: list[str] = [CONTEXT_HEADER, ""]
    for retrieved in chunks:
        metadata = retrieved.chunk.metadata
        lines.append(f"--- Document: {metadata.title or 'Unknown'} ---")
        if metadata.department:
            lines.append(f"Department: {metadata.department}")
        if metadata.document_type:
            lines.append(f"Type: {metadata.document_type.value}")
        if metadata.effective_date:
            lines.append(f"Effective Date: {metadata.effective_date.isoformat()}")
        lines.append("")
        lines.append(retrieved.chunk.content)
        lines.append("")

    return "\n".join(lines).rstrip("\n")


class RAGService:
    """Answers natural-language queries from the stored reference documents.

    Parameters
    ----------
    embedding_provider:
        Embeds the query; must be the provider used at ingestion time.
    vector_store:
        Similarity search over stored chunks.
    llm:
        Generates the answer from the query and assembled context.
    top_k:
        Maximum number of chunks used as context (default 5).
    min_similarity:
        Similarity floor in [0, 1] (default 0.7).
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        llm: ILLMProvider,
        top_k: int = DEFAULT_TOP_K,
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._llm = llm
        self._top_k = top_k
        self._min_similarity = min_similarity

    async def answer(self, query: str | None, user_id: str | None = None) -> ChatExchange:
        """Answer *query* and return the exchange with its supporting chunks.

        Raises
        ------
        InvalidArgumentError
            If *query* is empty or whitespace; no provider is called.
        """
        if not query or not query.strip():
            raise InvalidArgumentError("Query cannot be empty")

        logger.info("rag_query_received", query_length=len(query), user_id=user_id)

        try:
            query_embedding = await self._embedding_provider.generate_embedding(query)
            candidates = await self._vector_store.search_similar(
                query_embedding,
                top_k=self._top_k,
                min_score=self._min_similarity,
            )
            relevant = self._filter_and_rank(candidates)
            context = build_context(relevant)
            response = await self._llm.generate_answer(query, context)
        except Exception as exc:
            logger.error(
                "rag_query_failed",
                error_type=type(exc).__name__,
                error=str(exc),
                user_id=user_id,
            )
            raise

        logger.info(
            "rag_query_complete",
            candidates=len(candidates),
            relevant_chunks=len(relevant),
            top_score=relevant[0].similarity_score if relevant else 0.0,
        )
        return ChatExchange(
            query=query,
            response=response,
            relevant_chunks=relevant,
            timestamp=datetime.now(tz=timezone.utc),
            user_id=user_id,
        )

    def _filter_and_rank(self, candidates: list[RetrievedChunk]) -> list[RetrievedChunk]:
        """Enforce the floor and ordering even if the store returned extras."""
        kept = [rc for rc in candidates if rc.similarity_score >= self._min_similarity]
        kept.sort(key=lambda rc: rc.similarity_score, reverse=True)
        return kept[: self._top_k]
