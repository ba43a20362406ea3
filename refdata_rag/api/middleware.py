"""HTTP middleware for the refdata-rag API.

Three layers wrap every route:

- **CORS** (:func:`configure_cors`) for the internal web front ends listed
  in ``config/config.yaml``.  The API only serves ``GET`` and ``POST``.
- **Request logging** (:class:`RequestLoggingMiddleware`) tags each request
  with an id, bound into the structlog context so every log line emitted
  while handling it (ingestion start, chat query, provider errors) carries
  the same ``request_id``.  The id is echoed in ``X-Request-ID``.
  Liveness and readiness checks are logged at debug level.
- **Error handling** (:class:`ErrorHandlingMiddleware`) turns a
  :class:`~refdata_rag.utils.errors.RefDataError` that escapes a route into
  a JSON :class:`~refdata_rag.api.schemas.ErrorResponse`.

``main.py`` adds ErrorHandling first and RequestLogging second; Starlette
runs the last-added middleware outermost, so the request log sees the
status code produced by the error handler.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from refdata_rag.api.schemas import ErrorResponse
from refdata_rag.utils.errors import (
    InvalidArgumentError,
    JobConflictError,
    JobNotFoundError,
    RefDataError,
)
from refdata_rag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Polled every few seconds by the orchestrator; logged at debug level.
_HEALTH_CHECK_PATHS = frozenset({"/api/v1/health/live", "/api/v1/health/ready"})

# Caller errors keep their message; everything else is reported generically.
_CLIENT_ERROR_STATUS: dict[type[RefDataError], int] = {
    InvalidArgumentError: 400,
    JobNotFoundError: 404,
    JobConflictError: 409,
}

_GENERIC_ERROR_DETAIL = "An internal error occurred."


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Allow the configured front-end origins to call the API.

    With no explicit origins every origin is allowed, but then credentials
    are not, since browsers reject a wildcard origin on credentialed
    requests.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )


# ---------------------------------------------------------------------------
# Request logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of a request and log its outcome."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        path = request.url.path
        start = time.perf_counter()
        status_code = 500

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
                status_code = response.status_code
                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            finally:
                log = _logger.debug if path in _HEALTH_CHECK_PATHS else _logger.info
                log(
                    "http_request",
                    method=request.method,
                    path=path,
                    status=status_code,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                )


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Map application errors escaping a route to JSON responses.

    Argument, unknown-job and job-conflict errors become 400, 404 and 409
    with their own message.  Any other :class:`RefDataError` (an Ollama,
    ChromaDB or source failure) becomes a 500 whose detail is generic,
    because provider messages can carry internal URLs and response bodies;
    the full error is logged.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except RefDataError as exc:
            status_code = _status_for(exc)
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=request.url.path,
                status=status_code,
            )
            detail = exc.message if status_code < 500 else _GENERIC_ERROR_DETAIL
            body = ErrorResponse(error=type(exc).__name__, detail=detail)
            return JSONResponse(status_code=status_code, content=body.model_dump())


def _status_for(exc: RefDataError) -> int:
    for error_type, status_code in _CLIENT_ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 500
