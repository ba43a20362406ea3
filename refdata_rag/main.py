"""refdata-rag FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml``, configures
structured logging, and starts the periodic ingestion scheduler.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from refdata_rag import __version__
from refdata_rag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from refdata_rag.api.routes import router as api_router
from refdata_rag.config.loader import load_config
from refdata_rag.config.settings import Settings
from refdata_rag.interfaces.document_loader import IDocumentLoader
from refdata_rag.interfaces.embedding_provider import IEmbeddingProvider
from refdata_rag.interfaces.llm_provider import ILLMProvider
from refdata_rag.pipeline.ingestion_runner import IngestionRunner
from refdata_rag.pipeline.job_registry import JobRegistry
from refdata_rag.pipeline.scheduler import IngestionScheduler
from refdata_rag.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from refdata_rag.providers.llm.ollama_provider import OllamaLLMProvider
from refdata_rag.providers.loaders.confluence_loader import ConfluenceDocumentLoader
from refdata_rag.providers.loaders.jira_loader import JiraDocumentLoader
from refdata_rag.providers.loaders.local_file_loader import LocalFileLoader
from refdata_rag.providers.loaders.web_page_loader import WebPageDocumentLoader
from refdata_rag.providers.vector_store.chromadb_provider import ChromaDBProvider
from refdata_rag.services.ingestion.chunker import TextChunker
from refdata_rag.services.ingestion.ingestion_service import IngestionService
from refdata_rag.services.ingestion.metadata_extractor import BankingMetadataExtractor
from refdata_rag.services.rag_service import RAGService
from refdata_rag.utils.errors import ConfigurationError, InvalidArgumentError
from refdata_rag.utils.logging import configure_logging, get_logger
from refdata_rag.utils.retry import RetryPolicy

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider construction
# ---------------------------------------------------------------------------


def _build_retry_policy(app_settings: Settings) -> RetryPolicy:
    try:
        return RetryPolicy(
            max_attempts=app_settings.retry_max_attempts,
            base_delay=app_settings.retry_base_delay,
        )
    except ValueError as exc:
        raise ConfigurationError(message=f"Invalid retry settings: {exc}") from exc


def _build_embedding_provider(app_settings: Settings, retry_policy: RetryPolicy) -> IEmbeddingProvider:
    return OllamaEmbeddingProvider(settings=app_settings, retry_policy=retry_policy)


def _build_llm_provider(
    app_settings: Settings,
    app_config: dict[str, Any],
    retry_policy: RetryPolicy,
) -> ILLMProvider:
    return OllamaLLMProvider(
        settings=app_settings,
        generation_config=app_config.get("generation"),
        retry_policy=retry_policy,
    )


def _build_document_loaders(
    app_settings: Settings,
    app_config: dict[str, Any],
    http_client: httpx.AsyncClient,
) -> list[IDocumentLoader]:
    """Instantiate one loader per configured document source.

    Sources without a base path or URL are left out entirely.
    """
    loaders: list[IDocumentLoader] = []

    if app_settings.documents_base_path:
        extensions = app_config.get("ingestion", {}).get("supported_extensions")
        if extensions:
            loaders.append(LocalFileLoader(app_settings.documents_base_path, extensions))
        else:
            loaders.append(LocalFileLoader(app_settings.documents_base_path))

    if app_settings.jira_base_url:
        loaders.append(
            JiraDocumentLoader(
                http_client=http_client,
                base_url=app_settings.jira_base_url,
                username=app_settings.jira_username,
                api_token=app_settings.jira_api_token,
                jql=app_settings.jira_jql,
            )
        )

    if app_settings.confluence_base_url:
        loaders.append(
            ConfluenceDocumentLoader(
                http_client=http_client,
                base_url=app_settings.confluence_base_url,
                username=app_settings.confluence_username,
                api_token=app_settings.confluence_api_token,
                space_key=app_settings.confluence_space_key,
            )
        )

    urls = app_settings.get_web_page_urls()
    if urls:
        web_config = app_config.get("web_loader", {})
        loaders.append(
            WebPageDocumentLoader(
                http_client=http_client,
                urls=urls,
                user_agent=web_config.get("user_agent", "Mozilla/5.0 (compatible; RefDataRagBot/1.0)"),
                timeout=float(web_config.get("timeout_seconds", 30.0)),
            )
        )

    return loaders


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, app_config: dict[str, Any]) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.

    Raises
    ------
    ConfigurationError
        If chunking or retry settings are inconsistent.
    """
    http_client = httpx.AsyncClient(timeout=30.0)
    retry_policy = _build_retry_policy(app_settings)

    embedding_provider = _build_embedding_provider(app_settings, retry_policy)
    llm_provider = _build_llm_provider(app_settings, app_config, retry_policy)
    vector_store = ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )

    try:
        chunker = TextChunker(chunk_size=app_settings.chunk_size, overlap=app_settings.chunk_overlap)
    except InvalidArgumentError as exc:
        raise ConfigurationError(message=f"Invalid chunking settings: {exc.message}") from exc

    loaders = _build_document_loaders(app_settings, app_config, http_client)
    ingestion_service = IngestionService(
        loaders=loaders,
        chunker=chunker,
        metadata_extractor=BankingMetadataExtractor(),
        embedding_provider=embedding_provider,
        vector_store=vector_store,
    )

    ingestion_config = app_config.get("ingestion", {})
    job_registry = JobRegistry()
    ingestion_runner = IngestionRunner(
        ingestion_service=ingestion_service,
        registry=job_registry,
        default_source=ingestion_config.get("source_label", "All Sources"),
    )
    scheduler = IngestionScheduler(
        runner=ingestion_runner,
        interval_seconds=app_settings.ingestion_interval_seconds,
        source=ingestion_config.get("scheduled_source_label", "Scheduled"),
        run_on_start=app_settings.ingestion_run_on_startup,
    )

    rag_service = RAGService(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        llm=llm_provider,
        top_k=app_settings.rag_top_k,
        min_similarity=app_settings.rag_min_similarity,
    )

    return {
        "http_client": http_client,
        "embedding_provider": embedding_provider,
        "llm_provider": llm_provider,
        "vector_store": vector_store,
        "ingestion_service": ingestion_service,
        "job_registry": job_registry,
        "ingestion_runner": ingestion_runner,
        "scheduler": scheduler,
        "rag_service": rag_service,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    scheduler: IngestionScheduler = components["scheduler"]
    if settings.ingestion_schedule_enabled:
        scheduler.start()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        loaders=components["ingestion_service"].loader_names,
        schedule_enabled=settings.ingestion_schedule_enabled,
    )

    yield

    await scheduler.stop()
    runner: IngestionRunner = components["ingestion_runner"]
    await runner.shutdown()
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="Scheduler stopped, runs cancelled, HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="refdata-rag API",
        version=__version__,
        description=(
            "Ingest banking reference documents from files, Jira, Confluence "
            "and web pages into a vector store, and answer questions about "
            "them with a locally hosted language model."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=config.get("api", {}).get("cors_origins"))

    application.include_router(api_router)
    return application


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def run() -> None:
    """Serve the application with uvicorn using host and port from settings."""
    uvicorn.run(
        "refdata_rag.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )


if __name__ == "__main__":
    run()
