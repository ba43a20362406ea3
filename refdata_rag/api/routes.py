"""FastAPI routes for refdata-rag.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern, so tests can build a bare
application and attach mocks to its state.

# Endpoint                              Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/ingestion/start               POST    Start a run (202, 409)
# /api/v1/ingestion/status/{job_id}     GET     One job (404 if unknown)
# /api/v1/ingestion/status              GET     All jobs, newest first
# /api/v1/ingestion/{job_id}/cancel     POST    Request cancellation (202, 404, 409)
# /api/v1/chat                          POST    Answer a question from indexed documents
# /api/v1/health                        GET     Basic health
# /api/v1/health/detailed               GET     Per-component health (503 if degraded)
# /api/v1/health/live                   GET     Liveness
# /api/v1/health/ready                  GET     Readiness (503 if the store is down)
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Annotated

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response

from refdata_rag import __version__
from refdata_rag.api.schemas import (
    ChatRequest,
    ChatResponse,
    ComponentHealth,
    DetailedHealthResponse,
    ErrorResponse,
    HealthResponse,
    IngestionJobListResponse,
    IngestionStatusResponse,
    StartIngestionRequest,
)
from refdata_rag.interfaces.embedding_provider import IEmbeddingProvider
from refdata_rag.interfaces.llm_provider import ILLMProvider
from refdata_rag.interfaces.vector_store_provider import IVectorStoreProvider
from refdata_rag.pipeline.ingestion_runner import IngestionRunner
from refdata_rag.pipeline.job_registry import JobRegistry
from refdata_rag.services.rag_service import RAGService
from refdata_rag.utils.errors import (
    InvalidArgumentError,
    JobConflictError,
    JobNotFoundError,
    RefDataError,
)
from refdata_rag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_CHAT_FAILURE_DETAIL = "An error occurred while processing your request. Please try again later."


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_runner(request: Request) -> IngestionRunner:
    return request.app.state.ingestion_runner


def _get_registry(request: Request) -> JobRegistry:
    return request.app.state.job_registry


def _get_rag_service(request: Request) -> RAGService:
    return request.app.state.rag_service


def _get_vector_store(request: Request) -> IVectorStoreProvider:
    return request.app.state.vector_store


def _get_embedding_provider(request: Request) -> IEmbeddingProvider:
    return request.app.state.embedding_provider


def _get_llm_provider(request: Request) -> ILLMProvider:
    return request.app.state.llm_provider


RunnerDep = Annotated[IngestionRunner, Depends(_get_runner)]
RegistryDep = Annotated[JobRegistry, Depends(_get_registry)]
RAGServiceDep = Annotated[RAGService, Depends(_get_rag_service)]
VectorStoreDep = Annotated[IVectorStoreProvider, Depends(_get_vector_store)]
EmbeddingDep = Annotated[IEmbeddingProvider, Depends(_get_embedding_provider)]
LLMDep = Annotated[ILLMProvider, Depends(_get_llm_provider)]


# ---------------------------------------------------------------------------
# Ingestion endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/ingestion/start",
    response_model=IngestionStatusResponse,
    status_code=202,
    responses={409: {"model": ErrorResponse}},
    summary="Start an ingestion run",
)
async def start_ingestion(
    runner: RunnerDep,
    body: Annotated[StartIngestionRequest | None, Body()] = None,
) -> IngestionStatusResponse:
    """Reserve a Pending job and begin ingesting in the background."""
    body = body or StartIngestionRequest()
    try:
        job = await runner.start(source=body.source, force_reprocess=body.force_reprocess)
    except JobConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.message) from exc
    return IngestionStatusResponse.from_job(job)


@router.get(
    "/ingestion/status/{job_id}",
    response_model=IngestionStatusResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get one ingestion job",
)
async def get_ingestion_status(job_id: str, registry: RegistryDep) -> IngestionStatusResponse:
    try:
        job = registry.get(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    return IngestionStatusResponse.from_job(job)


@router.get(
    "/ingestion/status",
    response_model=IngestionJobListResponse,
    summary="List ingestion jobs",
)
async def list_ingestion_jobs(
    registry: RegistryDep,
    include_completed: Annotated[bool, Query()] = True,
) -> IngestionJobListResponse:
    """Return jobs newest first; ``include_completed=false`` keeps only active ones."""
    jobs = [
        IngestionStatusResponse.from_job(job)
        for job in registry.list_all(include_terminal=include_completed)
    ]
    return IngestionJobListResponse(jobs=jobs, total=len(jobs))


@router.post(
    "/ingestion/{job_id}/cancel",
    response_model=IngestionStatusResponse,
    status_code=202,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Request cancellation of an ingestion run",
)
async def cancel_ingestion(job_id: str, runner: RunnerDep) -> IngestionStatusResponse:
    try:
        job = runner.cancel(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    except JobConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.message) from exc
    return IngestionStatusResponse.from_job(job)


# ---------------------------------------------------------------------------
# Chat endpoint
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Ask a question about the indexed reference documents",
)
async def chat(body: ChatRequest, rag_service: RAGServiceDep) -> ChatResponse:
    """Answer *query* from the indexed documents.

    Failures other than an empty query are reported with a generic message;
    details stay in the server log.
    """
    try:
        exchange = await rag_service.answer(body.query, user_id=body.user_id)
    except InvalidArgumentError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc
    except Exception as exc:
        _logger.error(
            "chat_request_failed",
            error_type=type(exc).__name__,
            error=str(exc),
            user_id=body.user_id,
        )
        raise HTTPException(status_code=500, detail=_CHAT_FAILURE_DETAIL) from exc
    return ChatResponse.from_exchange(exchange)


# ---------------------------------------------------------------------------
# Health endpoints
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Basic health check")
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", timestamp=datetime.now(tz=timezone.utc), version=__version__)


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    responses={503: {"model": DetailedHealthResponse}},
    summary="Per-component health",
)
async def detailed_health(
    response: Response,
    vector_store: VectorStoreDep,
    embedding_provider: EmbeddingDep,
    llm_provider: LLMDep,
) -> DetailedHealthResponse:
    """Check the vector store and both model endpoints concurrently."""
    store_ok, embedding_ok, llm_ok = await asyncio.gather(
        vector_store.check_health(),
        embedding_provider.check_health(),
        llm_provider.check_health(),
    )

    indexed_chunks: int | None = None
    if store_ok:
        try:
            indexed_chunks = await vector_store.count()
        except RefDataError as exc:
            _logger.warning("vector_store_count_failed", error=str(exc))
            store_ok = False

    components = [
        ComponentHealth(name="vector_store", provider=vector_store.get_provider_name(), healthy=store_ok),
        ComponentHealth(name="embedding", provider=embedding_provider.get_provider_name(), healthy=embedding_ok),
        ComponentHealth(name="generation", provider=llm_provider.get_provider_name(), healthy=llm_ok),
    ]

    all_ok = all(component.healthy for component in components)
    if not all_ok:
        response.status_code = 503
    return DetailedHealthResponse(
        status="healthy" if all_ok else "unhealthy",
        timestamp=datetime.now(tz=timezone.utc),
        version=__version__,
        components=components,
        indexed_chunks=indexed_chunks,
    )


@router.get("/health/live", summary="Liveness check")
async def liveness() -> dict[str, str]:
    return {"status": "alive"}


@router.get(
    "/health/ready",
    responses={503: {"description": "Vector store unreachable"}},
    summary="Readiness check",
)
async def readiness(response: Response, vector_store: VectorStoreDep) -> dict[str, str]:
    """Ready once the vector store answers."""
    if await vector_store.check_health():
        return {"status": "ready"}
    response.status_code = 503
    return {"status": "not_ready"}
