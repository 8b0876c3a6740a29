"""Unit tests for Settings and the YAML configuration loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from novelfeed.config.loader import _deep_merge, load_app_config, load_config
from novelfeed.config.settings import Settings
from novelfeed.config.tunables import AppConfig
from novelfeed.utils.errors import ConfigurationError

REPO_CONFIG = Path(__file__).resolve().parents[2] / "config" / "config.yaml"


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    for name in ("DATABASE_PATH", "BROWSER_WS_ENDPOINT", "PUBLIC_ORIGIN", "APP_ENV"):
        monkeypatch.delenv(name, raising=False)
    return Settings(_env_file=None)


class TestSettings:
    def test_defaults(self, settings: Settings) -> None:
        assert settings.database_path == "data/novelfeed.db"
        assert settings.browser_headless is True
        assert settings.uses_remote_browser is False

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BROWSER_WS_ENDPOINT", "ws://browser:3000")
        monkeypatch.setenv("APP_PORT", "9000")
        settings = Settings(_env_file=None)
        assert settings.uses_remote_browser is True
        assert settings.app_port == 9000


class TestLoadConfig:
    def test_missing_yaml_falls_back_to_defaults(self, tmp_path: Path, settings: Settings) -> None:
        config = load_app_config(str(tmp_path / "missing.yaml"), settings)
        assert config.cache == AppConfig().cache
        assert config.cache.chapter.ttl == 86400
        assert config.sync.dedup_grace == 2.0

    def test_repo_config_matches_defaults(self, settings: Settings) -> None:
        config = load_app_config(str(REPO_CONFIG), settings)
        defaults = AppConfig()
        assert config.cache == defaults.cache
        assert config.queue == defaults.queue
        assert config.sync == defaults.sync
        assert config.browser.max_attempts == 3

    def test_yaml_values_loaded(self, tmp_path: Path, settings: Settings) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "cache:\n  listing:\n    ttl: 120\nqueue:\n  detail_limit: 3\n",
            encoding="utf-8",
        )
        config = load_app_config(str(path), settings)
        assert config.cache.listing.ttl == 120
        assert config.cache.novel.ttl == 3600
        assert config.queue.detail_limit == 3

    def test_environment_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("browser:\n  ws_endpoint: ws://yaml\n  headless: true\n", encoding="utf-8")
        monkeypatch.setenv("BROWSER_WS_ENDPOINT", "ws://env")
        monkeypatch.setenv("BROWSER_HEADLESS", "false")

        raw = load_config(str(path), Settings(_env_file=None))
        assert raw["browser"]["ws_endpoint"] == "ws://env"
        assert raw["browser"]["headless"] is False

    def test_unparseable_yaml_raises(self, tmp_path: Path, settings: Settings) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("cache: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(str(path), settings)

    def test_invalid_values_raise(self, tmp_path: Path, settings: Settings) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("queue:\n  detail_limit: 0\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_app_config(str(path), settings)


class TestDeepMerge:
    def test_nested_merge(self) -> None:
        base = {"a": {"b": 1, "c": 2}, "d": 3}
        _deep_merge(base, {"a": {"c": 20}, "e": 5})
        assert base == {"a": {"b": 1, "c": 20}, "d": 3, "e": 5}

    def test_scalar_replaces_dict(self) -> None:
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": 7})
        assert base == {"a": 7}
