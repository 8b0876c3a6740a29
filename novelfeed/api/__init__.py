"""novelfeed API layer: routes, schemas and middleware."""

from novelfeed.api.middleware import (
    CacheControlMiddleware,
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from novelfeed.api.routes import router
from novelfeed.api.schemas import (
    AbortTaskRequest,
    AbortTaskResponse,
    ChapterResponse,
    ErrorResponse,
    HealthResponse,
    ListingResponse,
    NovelListResponse,
    NovelResponse,
    TaskListResponse,
    VolumeResponse,
)

__all__ = [
    "AbortTaskRequest",
    "AbortTaskResponse",
    "CacheControlMiddleware",
    "ChapterResponse",
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "HealthResponse",
    "ListingResponse",
    "NovelListResponse",
    "NovelResponse",
    "RequestLoggingMiddleware",
    "TaskListResponse",
    "VolumeResponse",
    "configure_cors",
    "router",
]
