"""Unit tests for RAGService and context building."""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock

import pytest

from refdata_rag.models.documents import DocumentChunk, DocumentMetadata, DocumentType, RetrievedChunk
from refdata_rag.services.rag_service import CONTEXT_HEADER, NO_CONTEXT_MARKER, RAGService, build_context
from refdata_rag.utils.errors import InvalidArgumentError, UpstreamFailureError
from tests.conftest import MockEmbeddingProvider, MockLLMProvider, MockVectorStore, _hash_to_vector

# ── Helpers ───────────────────────────────────────────────


def _make_retrieved(
    chunk_id: str,
    score: float,
    content: str = "Chunk text.",
    title: str = "Fee Schedule",
    effective_date: date | None = None,
) -> RetrievedChunk:
    chunk = DocumentChunk(
        id=chunk_id,
        source_id=f"doc-{chunk_id}",
        content=content,
        metadata=DocumentMetadata(
            title=title,
            department="Finance",
            document_type=DocumentType.POLICY,
            effective_date=effective_date,
        ),
    )
    return RetrievedChunk(chunk=chunk, similarity_score=score)


def _make_service(
    embedding: MockEmbeddingProvider | None = None,
    store: object | None = None,
    llm: MockLLMProvider | None = None,
) -> RAGService:
    return RAGService(
        embedding_provider=embedding or MockEmbeddingProvider(),
        vector_store=store or MockVectorStore(),
        llm=llm or MockLLMProvider(),
    )


# ── Context Building ──────────────────────────────────────


class TestBuildContext:
    def test_no_chunks_gives_marker(self) -> None:
        assert build_context([]) == NO_CONTEXT_MARKER

    def test_block_format(self) -> None:
        context = build_context([_make_retrieved("a", 0.9, content="Wire fee is 25 USD.", effective_date=date(2024, 1, 1))])

        assert context == (
            f"{CONTEXT_HEADER}\n"
            "\n"
            "--- Document: Fee Schedule ---\n"
            "Department: Finance\n"
            "Type: Policy\n"
            "Effective Date: 2024-01-01\n"
            "\n"
            "Wire fee is 25 USD."
        )

    def test_missing_date_line_is_omitted(self) -> None:
        context = build_context([_make_retrieved("a", 0.9)])
        assert "Effective Date" not in context

    def test_blocks_are_separated_by_blank_line(self) -> None:
        context = build_context([_make_retrieved("a", 0.9, content="First."), _make_retrieved("b", 0.8, content="Second.")])
        assert "First.\n\n--- Document: Fee Schedule ---" in context


# ── Answering ─────────────────────────────────────────────


class TestRAGServiceAnswer:
    @pytest.mark.asyncio()
    @pytest.mark.parametrize("query", ["", "   ", None])
    async def test_empty_query_rejected_before_any_call(self, query: str | None) -> None:
        embedding = MockEmbeddingProvider()
        llm = MockLLMProvider()
        service = _make_service(embedding=embedding, llm=llm)

        with pytest.raises(InvalidArgumentError, match="Query cannot be empty"):
            await service.answer(query)

        assert embedding.calls == []
        assert llm.calls == []

    @pytest.mark.asyncio()
    async def test_relevant_chunk_is_used_as_context(self) -> None:
        store = MockVectorStore()
        query = "What is the wire transfer fee?"
        await store.store(
            DocumentChunk(
                id="hit",
                source_id="fees.md",
                content="Wire fee is 25 USD.",
                embedding=_hash_to_vector(query),
                metadata=DocumentMetadata(title="Fee Schedule"),
            )
        )
        await store.store(
            DocumentChunk(id="miss", source_id="other.md", content="Unrelated.", embedding=_hash_to_vector("zzz"))
        )
        llm = MockLLMProvider(answer="The fee is 25 USD.")
        service = _make_service(store=store, llm=llm)

        exchange = await service.answer(query, user_id="analyst-7")

        assert exchange.response == "The fee is 25 USD."
        assert exchange.query == query
        assert exchange.user_id == "analyst-7"
        assert [rc.chunk.id for rc in exchange.relevant_chunks] == ["hit"]
        prompt, context = llm.calls[0]
        assert prompt == query
        assert context.startswith(CONTEXT_HEADER)
        assert "--- Document: Fee Schedule ---" in context
        assert "Wire fee is 25 USD." in context

    @pytest.mark.asyncio()
    async def test_candidates_below_floor_are_discarded(self) -> None:
        store = AsyncMock()
        store.search_similar = AsyncMock(return_value=[_make_retrieved(str(i), 0.5) for i in range(5)])
        llm = MockLLMProvider()
        service = _make_service(store=store, llm=llm)

        exchange = await service.answer("Anything about fees?")

        assert exchange.relevant_chunks == []
        assert llm.calls[0][1] == NO_CONTEXT_MARKER
        store.search_similar.assert_awaited_once()
        assert store.search_similar.call_args.kwargs == {"top_k": 5, "min_score": 0.7}

    @pytest.mark.asyncio()
    async def test_results_are_reordered_by_similarity(self) -> None:
        store = AsyncMock()
        store.search_similar = AsyncMock(
            return_value=[_make_retrieved("low", 0.75), _make_retrieved("high", 0.95), _make_retrieved("mid", 0.8)]
        )
        service = _make_service(store=store)

        exchange = await service.answer("fees")

        assert [rc.chunk.id for rc in exchange.relevant_chunks] == ["high", "mid", "low"]

    @pytest.mark.asyncio()
    async def test_each_exchange_gets_a_new_id(self) -> None:
        service = _make_service()

        first = await service.answer("q1")
        second = await service.answer("q2")

        assert first.id != second.id
        assert first.timestamp.tzinfo is not None


# ── Error Handling ────────────────────────────────────────


class TestRAGServiceErrors:
    @pytest.mark.asyncio()
    async def test_embedding_failure_propagates(self) -> None:
        llm = MockLLMProvider()
        service = _make_service(embedding=MockEmbeddingProvider(fail_on=["fees"]), llm=llm)

        with pytest.raises(UpstreamFailureError):
            await service.answer("fees")

        assert llm.calls == []

    @pytest.mark.asyncio()
    async def test_generation_failure_propagates(self) -> None:
        llm = AsyncMock()
        llm.generate_answer = AsyncMock(side_effect=UpstreamFailureError("model down"))
        service = _make_service(llm=llm)

        with pytest.raises(UpstreamFailureError, match="model down"):
            await service.answer("fees")
