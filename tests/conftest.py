"""Shared pytest fixtures for the refdata-rag test suite."""

from __future__ import annotations

import hashlib
import struct
from pathlib import Path
from typing import Any

import pytest

from refdata_rag.interfaces.document_loader import IDocumentLoader
from refdata_rag.interfaces.embedding_provider import IEmbeddingProvider
from refdata_rag.interfaces.llm_provider import ILLMProvider
from refdata_rag.interfaces.vector_store_provider import IVectorStoreProvider
from refdata_rag.models.documents import Document, DocumentChunk, RetrievedChunk
from refdata_rag.utils.errors import DocumentLoadError, UpstreamFailureError

# ---------------------------------------------------------------------------
# Embedding / generation mocks
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 64


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit-length vector by hashing *text*.

    Same text always produces the same vector, so a query equal to a stored
    chunk's content has cosine similarity 1.0 with it.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    # Unsigned ints avoid the NaN/inf bit patterns raw floats can produce.
    values = [v / 2**32 - 0.5 for v in struct.unpack(f"<{dim}I", raw)]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """Deterministic in-memory embedding provider.

    Texts containing any of *fail_on* raise ``UpstreamFailureError``,
    simulating a model endpoint that keeps rejecting one document.
    """

    def __init__(self, fail_on: list[str] | None = None) -> None:
        self.fail_on = fail_on or []
        self.calls: list[str] = []
        self.healthy = True

    async def generate_embedding(self, text: str) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise UpstreamFailureError("embedding rejected", provider_name="mock-embedding")
        return _hash_to_vector(text)

    async def check_health(self) -> bool:
        return self.healthy

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockLLMProvider(ILLMProvider):
    """Returns a fixed answer and records every prompt/context pair."""

    def __init__(self, answer: str = "Mock answer.") -> None:
        self.answer = answer
        self.calls: list[tuple[str, str]] = []
        self.healthy = True

    async def generate_answer(self, prompt: str, context: str) -> str:
        self.calls.append((prompt, context))
        return self.answer

    async def check_health(self) -> bool:
        return self.healthy

    def get_provider_name(self) -> str:
        return "mock-llm"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Vector store mock
# ---------------------------------------------------------------------------


class MockVectorStore(IVectorStoreProvider):
    """Dict-backed vector store ranking by cosine similarity."""

    def __init__(self) -> None:
        self.chunks: dict[str, DocumentChunk] = {}
        self.healthy = True

    async def store(self, chunk: DocumentChunk) -> str:
        self.chunks[chunk.id] = chunk
        return chunk.id

    async def search_similar(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        min_score: float = 0.0,
    ) -> list[RetrievedChunk]:
        scored = []
        for chunk in self.chunks.values():
            score = _cosine(query_embedding, chunk.embedding)
            if score >= min_score:
                scored.append(RetrievedChunk(chunk=chunk, similarity_score=score))
        scored.sort(key=lambda rc: rc.similarity_score, reverse=True)
        return scored[:top_k]

    async def count(self) -> int:
        return len(self.chunks)

    async def check_health(self) -> bool:
        return self.healthy

    def get_provider_name(self) -> str:
        return "mock-vector-store"

    def is_available(self) -> bool:
        return True


def _cosine(a: list[float], b: list[float]) -> float:
    if not a or not b:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = sum(x * x for x in a) ** 0.5
    norm_b = sum(y * y for y in b) ** 0.5
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return max(0.0, min(1.0, dot / (norm_a * norm_b)))


# ---------------------------------------------------------------------------
# Loader mocks
# ---------------------------------------------------------------------------


class StaticDocumentLoader(IDocumentLoader):
    """Returns a fixed list of documents."""

    def __init__(self, documents: list[Document], name: str = "StaticLoader") -> None:
        self._documents = documents
        self._name = name

    async def load_documents(self) -> list[Document]:
        return list(self._documents)

    def get_loader_name(self) -> str:
        return self._name


class FailingLoader(IDocumentLoader):
    """Always fails to read its source."""

    def __init__(self, name: str = "FailingLoader") -> None:
        self._name = name

    async def load_documents(self) -> list[Document]:
        raise DocumentLoadError("source unreachable", provider_name=self._name)

    def get_loader_name(self) -> str:
        return self._name


def make_document(doc_id: str, content: str, **metadata: Any) -> Document:
    return Document(id=doc_id, content=content, source_path=f"/docs/{doc_id}", metadata=metadata)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def mock_llm_provider() -> MockLLMProvider:
    return MockLLMProvider()


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    return MockVectorStore()


@pytest.fixture
def sample_policy_text() -> str:
    """A short policy document with every extractable attribute."""
    return (
        "# Wire Transfer Approval Policy\n"
        "Department: Operations\n"
        "Effective Date: 3/15/2024\n"
        "Version: 2.1\n"
        "\n"
        "All outgoing wire transfers above 50,000 USD must be approved by two "
        "authorised signatories. Approvals shall be recorded in the payments "
        "system before release. Exceptions require sign-off from the head of "
        "Operations.\n"
    )


@pytest.fixture
def sample_reference_text() -> str:
    """A multi-sentence reference document long enough to produce several chunks."""
    sentences = [
        f"Branch code {i:03d} maps to regional clearing centre {100 + i}."
        for i in range(40)
    ]
    return "Branch Code Mapping. " + " ".join(sentences)


@pytest.fixture
def mock_settings() -> Any:
    """Return Settings pointing at a fake Ollama host, ignoring any local .env."""
    from refdata_rag.config.settings import Settings

    return Settings(
        _env_file=None,
        ollama_base_url="http://ollama.test:11434",
        ollama_embedding_model="nomic-embed-text",
        ollama_generation_model="phi3.5",
        ollama_timeout_seconds=5.0,
        chromadb_persist_dir="/tmp/test_chromadb",
        app_env="test",
    )
