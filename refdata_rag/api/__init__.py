"""refdata-rag API layer: routes, schemas, and middleware."""

from refdata_rag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from refdata_rag.api.routes import router
from refdata_rag.api.schemas import (
    ChatRequest,
    ChatResponse,
    DetailedHealthResponse,
    ErrorResponse,
    HealthResponse,
    IngestionJobListResponse,
    IngestionStatusResponse,
    StartIngestionRequest,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ChatRequest",
    "ChatResponse",
    "DetailedHealthResponse",
    "ErrorResponse",
    "HealthResponse",
    "IngestionJobListResponse",
    "IngestionStatusResponse",
    "StartIngestionRequest",
]
