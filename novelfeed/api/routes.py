"""FastAPI routes for novelfeed.

Reads are database-first: a stored novel, volume or chapter is returned
immediately and a background re-sync is scheduled; only when nothing is
stored does the request wait on a live fetch, bounded by
``api.request_timeout``.

Endpoint                              Method  Description
──────────────────────────────────────────────────────────────────────
/bili/                                GET     Provider banner
/bili/novels                          GET     Stored novels (``?done=``)
/bili/novel/{nid}                     GET     Novel with its volume list
/bili/novel/{nid}/vol/{vid}           GET     Volume with its chapter list
/bili/novel/{nid}/chapter/{cid}       GET     Chapter content
/bili/top                             GET     Ranking page
/bili/wenku                           GET     Library page
/bili/img3/{path}, /bili/files/{path} GET     Image proxy
/tasks                                GET     Running background syncs
/task/abort                           POST    Ask a background sync to stop
/health                               GET     Health check

Dependencies are resolved from ``app.state`` (populated in
``novelfeed.main._build_all``) through ``Annotated[..., Depends(...)]``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Annotated, Any, TypeVar

import httpx
import structlog
from fastapi import APIRouter, Depends, Query, Request, Response

from novelfeed import __version__
from novelfeed.api.schemas import (
    AbortTaskRequest,
    AbortTaskResponse,
    ChapterResponse,
    HealthResponse,
    ListingResponse,
    NovelListResponse,
    NovelResponse,
    ProviderResponse,
    TaskInfo,
    TaskListResponse,
    VolumeResponse,
)
from novelfeed.config.tunables import ApiConfig
from novelfeed.interfaces.novel_repository import INovelRepository
from novelfeed.models.listing import TopFilter, WenkuFilter
from novelfeed.models.progress import SyncPhase
from novelfeed.services.progress_tracker import SyncProgressTracker
from novelfeed.services.sync_service import NovelSyncService
from novelfeed.utils.errors import WorkflowError
from novelfeed.utils.logging import get_logger
from novelfeed.utils.url import upstream_image_url

_logger: structlog.BoundLogger = get_logger(__name__)

_T = TypeVar("_T")

router = APIRouter()

_IMAGE_HEADERS = {
    "Accept": "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
    "Accept-Language": "zh-CN,zh;q=0.9",
    "Referer": "https://www.linovelib.com/",
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/142.0.0.0 Safari/537.36"
    ),
}
_IMAGE_CACHE_CONTROL = "max-age=2678400"


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_sync_service(request: Request) -> NovelSyncService:
    return request.app.state.sync_service


def _get_repository(request: Request) -> INovelRepository:
    return request.app.state.repository


def _get_progress(request: Request) -> SyncProgressTracker:
    return request.app.state.progress


def _get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def _get_api_config(request: Request) -> ApiConfig:
    return request.app.state.config.api


SyncServiceDep = Annotated[NovelSyncService, Depends(_get_sync_service)]
RepositoryDep = Annotated[INovelRepository, Depends(_get_repository)]
ProgressDep = Annotated[SyncProgressTracker, Depends(_get_progress)]
HttpClientDep = Annotated[httpx.AsyncClient, Depends(_get_http_client)]
ApiConfigDep = Annotated[ApiConfig, Depends(_get_api_config)]


async def _live(awaitable: Awaitable[_T], timeout: float, label: str) -> _T:
    """Await a live fetch, turning a timeout into a 504 ``WorkflowError``.

    The fetch itself is shared through the in-flight deduplicator, so the
    timeout only abandons this request's wait, not the underlying work.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise WorkflowError(f"Timed out fetching {label}", status=504, cause=exc) from exc


# ---------------------------------------------------------------------------
# Novel routes
# ---------------------------------------------------------------------------


@router.get("/bili/", response_model=ProviderResponse)
async def provider_banner() -> ProviderResponse:
    return ProviderResponse()


@router.get("/bili/novels", response_model=NovelListResponse)
async def list_novels(
    repository: RepositoryDep,
    done: bool | None = Query(default=None),
) -> NovelListResponse:
    return NovelListResponse(data=await repository.list_novels(done=done))


@router.get("/bili/novel/{nid}", response_model=NovelResponse)
async def get_novel(
    nid: int,
    service: SyncServiceDep,
    repository: RepositoryDep,
    api: ApiConfigDep,
) -> NovelResponse:
    stored = await repository.get_novel_page(nid)
    if stored is None:
        stored = await _live(service.get_novel(nid), api.request_timeout, f"novel nid:{nid}")
    service.schedule_update(nid)
    return NovelResponse(data=stored)


@router.get("/bili/novel/{nid}/vol/{vid}", response_model=VolumeResponse)
async def get_novel_volume(
    nid: int,
    vid: int,
    service: SyncServiceDep,
    repository: RepositoryDep,
    api: ApiConfigDep,
) -> VolumeResponse:
    stored = await repository.get_volume_page(nid, vid)
    if stored is None:
        stored = await _live(
            service.get_novel_volume(nid, vid), api.request_timeout, f"volume nid:{nid} vid:{vid}"
        )
    service.schedule_update(nid)
    return VolumeResponse(data=stored)


@router.get("/bili/novel/{nid}/chapter/{cid}", response_model=ChapterResponse)
async def get_novel_chapter(
    nid: int,
    cid: int,
    service: SyncServiceDep,
    repository: RepositoryDep,
    api: ApiConfigDep,
) -> ChapterResponse:
    stored = await repository.get_chapter_content(nid, cid)
    if stored is None:
        stored = await _live(
            service.get_novel_chapter(nid, cid), api.request_timeout, f"chapter nid:{nid} cid:{cid}"
        )
    service.schedule_update(nid)
    return ChapterResponse(data=stored)


# ---------------------------------------------------------------------------
# Listing routes
# ---------------------------------------------------------------------------


@router.get("/bili/top", response_model=ListingResponse)
async def get_top(
    service: SyncServiceDep,
    api: ApiConfigDep,
    sort: str | None = Query(default=None),
    page: int | None = Query(default=None, ge=1),
) -> ListingResponse:
    filter_ = TopFilter(sort=sort, page=page)
    listing = await _live(service.get_top(filter_), api.request_timeout, "top page")
    return ListingResponse(data=listing)


@router.get("/bili/wenku", response_model=ListingResponse)
async def get_wenku(
    service: SyncServiceDep,
    api: ApiConfigDep,
    path: str | None = Query(default=None),
    sort: str | None = Query(default=None),
    tag: str | None = Query(default=None),
    progress: str | None = Query(default=None),
    animation: str | None = Query(default=None),
    region: str | None = Query(default=None),
    word_count: str | None = Query(default=None, alias="wordCount"),
    updated_within: str | None = Query(default=None, alias="updatedWithin"),
    page: int | None = Query(default=None, ge=1),
) -> ListingResponse:
    filter_ = WenkuFilter(
        path=path,
        sort=sort,
        tag=tag,
        progress=progress,
        animation=animation,
        region=region,
        word_count=word_count,
        updated_within=updated_within,
        page=page,
    )
    listing = await _live(service.get_wenku(filter_), api.request_timeout, "wenku page")
    return ListingResponse(data=listing)


# ---------------------------------------------------------------------------
# Image proxy
# ---------------------------------------------------------------------------


async def _proxy_image(
    kind: str,
    path: str,
    request: Request,
    client: httpx.AsyncClient,
    api: ApiConfig,
) -> Response:
    target = upstream_image_url(kind, path, request.url.query)
    _logger.debug("image_proxy_fetch", source=str(request.url.path), target=target)
    try:
        upstream = await client.get(target, headers=_IMAGE_HEADERS, timeout=api.image_timeout)
    except httpx.HTTPError as exc:
        _logger.warning("image_proxy_failed", target=target, error=str(exc))
        return Response(status_code=502, headers={"X-Forward-Img": target})

    if upstream.status_code != 200:
        return Response(status_code=404, headers={"X-Forward-Img": target})

    return Response(
        content=upstream.content,
        media_type=upstream.headers.get("Content-Type", "image/jpeg"),
        headers={
            "Cache-Control": upstream.headers.get("Cache-Control", _IMAGE_CACHE_CONTROL),
            "X-Forward-Img": target,
        },
    )


@router.get("/bili/img3/{path:path}")
async def proxy_img3(
    path: str,
    request: Request,
    client: HttpClientDep,
    api: ApiConfigDep,
) -> Response:
    return await _proxy_image("img3", path, request, client, api)


@router.get("/bili/files/{path:path}")
async def proxy_files(
    path: str,
    request: Request,
    client: HttpClientDep,
    api: ApiConfigDep,
) -> Response:
    return await _proxy_image("files", path, request, client, api)


# ---------------------------------------------------------------------------
# Tasks and health
# ---------------------------------------------------------------------------


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(service: SyncServiceDep, progress: ProgressDep) -> TaskListResponse:
    running = service.task_manager.running()
    running_keys = {task.key for task in running}
    tasks = [
        TaskInfo(
            key=task.key,
            status=task.status.value,
            started_at=task.started_at.isoformat(),
            progress=progress.get(task.key),
        )
        for task in running
    ]
    recent = [
        snapshot
        for snapshot in progress.snapshots()
        if snapshot.key not in running_keys and snapshot.phase in (SyncPhase.DONE, SyncPhase.FAILED)
    ]
    return TaskListResponse(tasks=tasks, recent=recent)


@router.post("/task/abort", response_model=AbortTaskResponse)
async def abort_task(body: AbortTaskRequest, service: SyncServiceDep) -> AbortTaskResponse:
    return AbortTaskResponse(ok=service.task_manager.abort(body.key), key=body.key)


@router.get("/health", response_model=HealthResponse)
async def health(request: Request, service: SyncServiceDep) -> HealthResponse:
    browser: Any = getattr(request.app.state, "browser", None)
    state = getattr(browser, "state", None)
    index_queue, detail_queue = service.queues
    return HealthResponse(
        status="healthy",
        version=__version__,
        browser=state.value if state is not None else "unknown",
        queues={
            queue.name: {
                "limit": queue.limit,
                "active": queue.active_count,
                "pending": queue.pending_count,
            }
            for queue in (index_queue, detail_queue)
        },
        tasks=len(service.task_manager),
    )


