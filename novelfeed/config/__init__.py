"""Configuration module: exports Settings, the loaders and the typed tunables."""

from novelfeed.config.loader import load_app_config, load_config
from novelfeed.config.settings import Settings
from novelfeed.config.tunables import (
    ApiConfig,
    AppConfig,
    BrowserConfig,
    CacheClassConfig,
    CacheConfig,
    QueueConfig,
    SyncConfig,
)

__all__ = [
    "ApiConfig",
    "AppConfig",
    "BrowserConfig",
    "CacheClassConfig",
    "CacheConfig",
    "QueueConfig",
    "Settings",
    "SyncConfig",
    "load_app_config",
    "load_config",
]
