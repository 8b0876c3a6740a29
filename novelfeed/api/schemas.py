"""Pydantic response schemas for the novelfeed API.

Every JSON response uses the same envelope: ``ok`` tells success from
failure, ``provider`` names the upstream site, and ``data`` (success) or
``message`` (failure) carries the payload.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from novelfeed.models.listing import ListingPage
from novelfeed.models.novel import ChapterContent, NovelPage, NovelRecord, VolumePage
from novelfeed.models.progress import SyncProgress

PROVIDER = "bilinovel"


class ProviderResponse(BaseModel):
    ok: bool = True
    provider: str = PROVIDER


class NovelResponse(ProviderResponse):
    data: NovelPage


class VolumeResponse(ProviderResponse):
    data: VolumePage


class ChapterResponse(ProviderResponse):
    data: ChapterContent


class ListingResponse(ProviderResponse):
    data: ListingPage


class NovelListResponse(ProviderResponse):
    data: list[NovelRecord] = Field(default_factory=list)


class TaskInfo(BaseModel):
    """A running background task with its latest progress snapshot, if any."""

    key: str
    status: str
    started_at: str
    progress: SyncProgress | None = None


class TaskListResponse(BaseModel):
    ok: bool = True
    tasks: list[TaskInfo] = Field(default_factory=list)
    recent: list[SyncProgress] = Field(
        default_factory=list,
        description="Progress snapshots of finished tasks, most recent first.",
    )


class AbortTaskRequest(BaseModel):
    key: str = Field(..., min_length=1)


class AbortTaskResponse(BaseModel):
    ok: bool
    key: str


class HealthResponse(BaseModel):
    """Application health check response."""

    ok: bool = True
    status: str
    version: str
    browser: str
    queues: dict[str, Any]
    tasks: int


class ErrorResponse(BaseModel):
    """Standard error response body."""

    ok: bool = False
    error: str
    message: str
