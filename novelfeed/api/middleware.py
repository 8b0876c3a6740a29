"""API middleware: CORS, request logging, error handling and cache headers.

Starlette runs middleware last-added-first, so ``create_app`` adds them in
this order::

    app.add_middleware(CacheControlMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

giving ``Client → RequestLogging → ErrorHandling → CacheControl → route``.
Request logging therefore sees the final status code, including errors the
error handler turned into JSON bodies.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from novelfeed.api.schemas import ErrorResponse
from novelfeed.utils.errors import NovelFeedError, WorkflowError
from novelfeed.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_DEFAULT_CACHE_CONTROL = f"public, max-age={24 * 60 * 60}"


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]``.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn ``NovelFeedError`` into ``{"ok": false, ...}`` with the error's status.

    Stack traces stay in the logs; the client only sees the error type and
    message.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except NovelFeedError as exc:
            message = exc.get_message() if isinstance(exc, WorkflowError) else exc.message
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=message,
                provider=exc.provider_name,
                status=exc.status,
                path=str(request.url.path),
            )
            body = ErrorResponse(error=type(exc).__name__, message=message)
            return JSONResponse(status_code=exc.status, content=body.model_dump())


# ---------------------------------------------------------------------------
# Cache headers
# ---------------------------------------------------------------------------


class CacheControlMiddleware(BaseHTTPMiddleware):
    """Mark successful ``/bili`` responses cacheable for a day unless the route set its own policy."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        response = await call_next(request)
        if (
            response.status_code == 200
            and request.url.path.startswith("/bili")
            and "cache-control" not in response.headers
        ):
            response.headers["Cache-Control"] = _DEFAULT_CACHE_CONTROL
        return response
