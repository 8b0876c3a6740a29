"""Unit tests for component wiring and the app factory in novelfeed/main.py."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from novelfeed import main
from novelfeed.config.settings import Settings
from novelfeed.config.tunables import AppConfig
from novelfeed.providers.browser.playwright_session import BrowserSession
from novelfeed.providers.storage.sqlite_novel_repository import SQLiteNovelRepository
from novelfeed.services.sync_service import NovelSyncService


def _settings(tmp_path: Path, **overrides) -> Settings:
    defaults = {
        "database_path": str(tmp_path / "novels.db"),
        "public_origin": "https://feed.example.com",
        "app_env": "test",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


# ======================================================================
# _build_all
# ======================================================================


class TestBuildAll:
    def test_components(self, tmp_path: Path) -> None:
        components = main._build_all(_settings(tmp_path), AppConfig())

        assert isinstance(components["repository"], SQLiteNovelRepository)
        assert isinstance(components["browser"], BrowserSession)
        assert isinstance(components["sync_service"], NovelSyncService)
        assert components["sync_service"].task_manager is components["task_manager"]

    def test_nothing_touches_disk(self, tmp_path: Path) -> None:
        main._build_all(_settings(tmp_path), AppConfig())
        assert not (tmp_path / "novels.db").exists()

    def test_image_proxy_uses_public_origin(self, tmp_path: Path) -> None:
        components = main._build_all(_settings(tmp_path), AppConfig())
        proxy = components["image_proxy"]
        assert proxy("https://img3.readpai.com/cover/1.jpg") == "https://feed.example.com/bili/img3/cover/1.jpg"

    def test_queue_limits_follow_config(self, tmp_path: Path) -> None:
        components = main._build_all(_settings(tmp_path), AppConfig())
        index_queue, detail_queue = components["sync_service"].queues
        assert index_queue.limit == AppConfig().queue.index_limit
        assert detail_queue.limit == AppConfig().queue.detail_limit


class TestShutdownComponents:
    @pytest.mark.asyncio
    async def test_tasks_stop_before_resources(self) -> None:
        order: list[str] = []

        def _recorder(name: str) -> AsyncMock:
            return AsyncMock(side_effect=lambda *args, **kwargs: order.append(name))

        components = {
            "task_manager": MagicMock(shutdown=_recorder("tasks")),
            "browser": MagicMock(close=_recorder("browser")),
            "http_client": MagicMock(aclose=_recorder("http")),
            "repository": MagicMock(close=_recorder("repository")),
        }
        await main.shutdown_components(components)

        assert order == ["tasks", "browser", "http", "repository"]


# ======================================================================
# create_app
# ======================================================================


class TestCreateApp:
    def test_returns_fastapi_instance(self) -> None:
        application = main.create_app()
        assert isinstance(application, FastAPI)
        assert application.title == "novelfeed API"

    def test_app_has_api_routes(self) -> None:
        application = main.create_app()
        paths = {route.path for route in application.routes}
        assert "/bili/novel/{nid}" in paths
        assert "/bili/novel/{nid}/chapter/{cid}" in paths
        assert "/health" in paths

    def test_lifespan_initializes_repository(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path)
        with patch.object(main, "settings", settings):
            with TestClient(main.create_app()) as client:
                resp = client.get("/health")
                novels = client.get("/bili/novels")

        assert resp.status_code == 200
        assert resp.json()["browser"] == "disconnected"
        assert novels.json()["data"] == []
        assert (tmp_path / "novels.db").exists()
