"""Unit tests for novelfeed.utils.logging."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest
import structlog

from novelfeed.utils import logging as novel_logging


@pytest.fixture
def restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    quiet_levels = {name: logging.getLogger(name).level for name in novel_logging._QUIET_LOGGERS}
    config = structlog.get_config()
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, quiet_level in quiet_levels.items():
        logging.getLogger(name).setLevel(quiet_level)
    structlog.configure(**config)


def _renderer() -> object:
    return structlog.get_config()["processors"][-1]


@pytest.mark.usefixtures("restore_logging")
class TestConfigureLogging:
    def test_noisy_libraries_capped_at_warning(self) -> None:
        novel_logging.configure_logging("DEBUG")
        for name in novel_logging._QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
        assert logging.getLogger().level == logging.DEBUG

    def test_development_renders_console(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("APP_ENV", raising=False)
        novel_logging.configure_logging()
        assert isinstance(_renderer(), structlog.dev.ConsoleRenderer)

    def test_production_renders_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_ENV", "production")
        novel_logging.configure_logging()
        assert isinstance(_renderer(), structlog.processors.JSONRenderer)

    def test_single_root_handler(self) -> None:
        novel_logging.configure_logging()
        novel_logging.configure_logging()
        assert len(logging.getLogger().handlers) == 1
