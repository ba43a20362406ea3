"""Unit tests for the factory functions in refdata_rag/main.py.

Settings are built directly (ignoring any local ``.env``) and external
clients are patched, so no Ollama, ChromaDB or network access is needed.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from refdata_rag.config.loader import load_config
from refdata_rag.config.settings import Settings
from refdata_rag.providers.loaders.confluence_loader import ConfluenceDocumentLoader
from refdata_rag.providers.loaders.jira_loader import JiraDocumentLoader
from refdata_rag.providers.loaders.local_file_loader import LocalFileLoader
from refdata_rag.providers.loaders.web_page_loader import WebPageDocumentLoader
from refdata_rag.utils.errors import ConfigurationError

# ======================================================================
# Shared helpers
# ======================================================================


def _settings(**overrides) -> Settings:
    """Build Settings with every document source disabled unless overridden."""
    defaults = {
        "_env_file": None,
        "ollama_base_url": "http://ollama.test:11434",
        "chromadb_persist_dir": "/tmp/refdata-rag-test-chromadb",
        "documents_base_path": "",
        "jira_base_url": "",
        "confluence_base_url": "",
        "web_page_urls": "",
        "app_env": "test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _config(**sections) -> dict:
    config = load_config("/nonexistent/config.yaml")
    config.update(sections)
    return config


def _http_client() -> MagicMock:
    return MagicMock(spec=httpx.AsyncClient)


# ======================================================================
# _build_retry_policy
# ======================================================================


class TestBuildRetryPolicy:
    def test_uses_settings(self) -> None:
        from refdata_rag.main import _build_retry_policy

        policy = _build_retry_policy(_settings(retry_max_attempts=5, retry_base_delay=0.5))

        assert policy.max_attempts == 5
        assert policy.base_delay == 0.5

    @pytest.mark.parametrize(
        "update",
        [{"retry_max_attempts": 0}, {"retry_base_delay": -1.0}],
    )
    def test_invalid_values_raise_configuration_error(self, update: dict) -> None:
        from refdata_rag.main import _build_retry_policy

        # model_copy skips field validation, as an unchecked override would.
        bad = _settings().model_copy(update=update)

        with pytest.raises(ConfigurationError, match="Invalid retry settings"):
            _build_retry_policy(bad)


# ======================================================================
# _build_document_loaders
# ======================================================================


class TestBuildDocumentLoaders:
    def test_unconfigured_sources_are_left_out(self) -> None:
        from refdata_rag.main import _build_document_loaders

        loaders = _build_document_loaders(_settings(), _config(), _http_client())

        assert loaders == []

    def test_one_loader_per_configured_source(self, tmp_path: Path) -> None:
        from refdata_rag.main import _build_document_loaders

        settings = _settings(
            documents_base_path=str(tmp_path),
            jira_base_url="https://jira.bank.test",
            confluence_base_url="https://wiki.bank.test",
            web_page_urls="https://intranet.bank.test/holidays, https://intranet.bank.test/bics",
        )

        loaders = _build_document_loaders(settings, _config(), _http_client())

        assert [type(loader) for loader in loaders] == [
            LocalFileLoader,
            JiraDocumentLoader,
            ConfluenceDocumentLoader,
            WebPageDocumentLoader,
        ]

    def test_only_jira_configured(self) -> None:
        from refdata_rag.main import _build_document_loaders

        loaders = _build_document_loaders(
            _settings(jira_base_url="https://jira.bank.test"), _config(), _http_client()
        )

        assert [loader.get_loader_name() for loader in loaders] == ["JiraDocumentLoader"]

    def test_yaml_extensions_reach_local_loader(self, tmp_path: Path) -> None:
        from refdata_rag.main import _build_document_loaders

        config = _config(ingestion={"supported_extensions": [".md", ".TXT"]})

        [loader] = _build_document_loaders(_settings(documents_base_path=str(tmp_path)), config, _http_client())

        assert isinstance(loader, LocalFileLoader)
        assert loader.supported_extensions == frozenset({".md", ".txt"})

    def test_default_extensions_when_yaml_has_none(self, tmp_path: Path) -> None:
        from refdata_rag.main import _build_document_loaders

        config = _config(ingestion={})

        [loader] = _build_document_loaders(_settings(documents_base_path=str(tmp_path)), config, _http_client())

        assert ".pdf" in loader.supported_extensions
        assert ".docx" in loader.supported_extensions


# ======================================================================
# _build_all
# ======================================================================


class TestBuildAll:
    """All external clients are patched so the assembly runs offline."""

    @staticmethod
    def _patches():
        return (
            patch("refdata_rag.main.ChromaDBProvider", return_value=MagicMock()),
            patch("refdata_rag.main.httpx.AsyncClient", return_value=MagicMock()),
        )

    def test_returns_dict_with_expected_keys(self, tmp_path: Path) -> None:
        from refdata_rag.main import _build_all
        from refdata_rag.pipeline.ingestion_runner import IngestionRunner
        from refdata_rag.pipeline.scheduler import IngestionScheduler
        from refdata_rag.services.rag_service import RAGService

        chroma_patch, http_patch = self._patches()
        with chroma_patch as chroma_cls, http_patch:
            result = _build_all(_settings(documents_base_path=str(tmp_path)), _config())

        assert set(result) == {
            "http_client",
            "embedding_provider",
            "llm_provider",
            "vector_store",
            "ingestion_service",
            "job_registry",
            "ingestion_runner",
            "scheduler",
            "rag_service",
        }
        assert isinstance(result["ingestion_runner"], IngestionRunner)
        assert result["ingestion_runner"].registry is result["job_registry"]
        assert isinstance(result["scheduler"], IngestionScheduler)
        assert not result["scheduler"].is_running
        assert isinstance(result["rag_service"], RAGService)
        assert result["ingestion_service"].loader_names == ["LocalFileLoader"]
        chroma_cls.assert_called_once_with(
            persist_directory="/tmp/refdata-rag-test-chromadb",
            collection_name="document_chunks",
        )

    @pytest.mark.parametrize(("chunk_size", "chunk_overlap"), [(500, 500), (200, 300)])
    def test_overlap_not_below_chunk_size_raises(self, chunk_size: int, chunk_overlap: int) -> None:
        from refdata_rag.main import _build_all

        settings = _settings(chunk_size=chunk_size, chunk_overlap=chunk_overlap)

        chroma_patch, http_patch = self._patches()
        with chroma_patch, http_patch, pytest.raises(ConfigurationError, match="Invalid chunking settings"):
            _build_all(settings, _config())

    def test_invalid_retry_settings_raise(self) -> None:
        from refdata_rag.main import _build_all

        settings = _settings().model_copy(update={"retry_max_attempts": 0})

        chroma_patch, http_patch = self._patches()
        with chroma_patch, http_patch, pytest.raises(ConfigurationError):
            _build_all(settings, _config())


# ======================================================================
# create_app
# ======================================================================


class TestCreateApp:
    def test_registers_api_routes(self) -> None:
        from refdata_rag.main import create_app

        app = create_app()
        paths = {route.path for route in app.routes}

        assert "/api/v1/ingestion/start" in paths
        assert "/api/v1/chat" in paths
        assert "/api/v1/health/ready" in paths
