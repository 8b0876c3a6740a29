"""novelfeed FastAPI application entry point.

Wires the browser session, scraper, repository, caches and sync service
together and exposes them to the routes through ``app.state``.  Loads
configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging at import time.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from novelfeed import __version__
from novelfeed.api.middleware import (
    CacheControlMiddleware,
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from novelfeed.api.routes import router as api_router
from novelfeed.config.loader import load_app_config
from novelfeed.config.settings import Settings
from novelfeed.config.tunables import AppConfig
from novelfeed.providers.browser.playwright_session import BrowserSession
from novelfeed.providers.scraper.linovelib import LinovelibScraper
from novelfeed.providers.storage.sqlite_novel_repository import SQLiteNovelRepository
from novelfeed.services.progress_tracker import SyncProgressTracker
from novelfeed.services.sync_service import NovelSyncService, SyncCaches
from novelfeed.services.task_manager import BackgroundTaskManager
from novelfeed.utils.logging import configure_logging, get_logger
from novelfeed.utils.url import ImageProxy

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_app_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, app_config: AppConfig) -> dict[str, Any]:
    """Construct every provider and service.

    Returns a flat dict of named components to be stored on ``app.state``
    (and reused by the CLI).  Nothing here touches the network or disk;
    the repository is initialised and the browser connects lazily.
    """
    repository = SQLiteNovelRepository(app_settings.database_path)
    browser = BrowserSession(app_config.browser)
    image_proxy = ImageProxy(app_settings.public_origin)
    scraper = LinovelibScraper(browser, transform_url=image_proxy)
    task_manager = BackgroundTaskManager()
    progress = SyncProgressTracker()
    sync_service = NovelSyncService(
        scraper,
        repository,
        app_config,
        caches=SyncCaches.from_config(app_config.cache),
        task_manager=task_manager,
        progress=progress,
    )
    http_client = httpx.AsyncClient(follow_redirects=True)

    return {
        "settings": app_settings,
        "config": app_config,
        "repository": repository,
        "browser": browser,
        "image_proxy": image_proxy,
        "scraper": scraper,
        "task_manager": task_manager,
        "progress": progress,
        "sync_service": sync_service,
        "http_client": http_client,
    }


async def shutdown_components(components: dict[str, Any]) -> None:
    """Stop background syncs, then release the browser, HTTP client and database."""
    await components["task_manager"].shutdown()
    await components["browser"].close()
    await components["http_client"].aclose()
    await components["repository"].close()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["repository"].initialize()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        database=settings.database_path,
        remote_browser=settings.uses_remote_browser,
    )

    yield

    await shutdown_components(components)
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="novelfeed API",
        version=__version__,
        description=(
            "Scrape linovelib novels, volumes and chapters into a local database "
            "and serve them as JSON, keeping the copy in sync incrementally."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(CacheControlMiddleware)
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=config.api.cors_origins)

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "novelfeed.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
