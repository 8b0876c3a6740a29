"""Typed tunables for the fetch and sync layers.

Every section has complete defaults so a missing ``config/config.yaml`` (or a
partial one) still yields a working configuration.  All durations are in
seconds.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class BrowserConfig(BaseModel):
    """Browser session behaviour: pacing, retries and the failure circuit."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://www.linovelib.com"
    ws_endpoint: str = ""
    headless: bool = True
    screenshot_dir: str = ".screenshot"
    max_attempts: int = Field(default=3, ge=1)
    request_delay: float = Field(default=5.0, ge=0)
    reconnect_delay: float = Field(default=10.0, ge=0)
    navigation_timeout: float = Field(default=60.0, gt=0)
    selector_timeout: float = Field(default=60.0, gt=0)
    close_timeout: float = Field(default=2.0, gt=0)
    failure_threshold: int = Field(default=10, ge=1)
    failure_ttl: float = Field(default=3600.0, gt=0)
    failure_cache_size: int = Field(default=100, ge=1)
    block_resources: bool = True


class CacheClassConfig(BaseModel):
    """TTL and capacity of one result-cache class."""

    model_config = ConfigDict(frozen=True)

    ttl: int = Field(default=3600, gt=0)
    max_size: int = Field(default=1000, ge=1)


class CacheConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    listing: CacheClassConfig = CacheClassConfig()
    novel: CacheClassConfig = CacheClassConfig()
    volume: CacheClassConfig = CacheClassConfig()
    chapter: CacheClassConfig = CacheClassConfig(ttl=86400, max_size=100)


class QueueConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    index_limit: int = Field(default=1, ge=1)
    detail_limit: int = Field(default=1, ge=1)


class SyncConfig(BaseModel):
    """Incremental sync pacing and freshness windows."""

    model_config = ConfigDict(frozen=True)

    # A stored novel fetched within this window is not re-synced.
    novel_fresh_done: float = Field(default=86400.0, ge=0)
    novel_fresh_pending: float = Field(default=3600.0, ge=0)
    volume_pause_min: float = Field(default=1.0, ge=0)
    volume_pause_max: float = Field(default=2.0, ge=0)
    chapter_page_delay: float = Field(default=1.0, ge=0)
    max_chapter_pages: int = Field(default=100, ge=1)
    dedup_grace: float = Field(default=2.0, ge=0)
    schedule_listed: bool = True


class ApiConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    request_timeout: float = Field(default=30.0, gt=0)
    image_timeout: float = Field(default=30.0, gt=0)
    cors_origins: list[str] = ["*"]


class AppConfig(BaseModel):
    """Root of the validated configuration tree."""

    model_config = ConfigDict(frozen=True)

    browser: BrowserConfig = BrowserConfig()
    cache: CacheConfig = CacheConfig()
    queue: QueueConfig = QueueConfig()
    sync: SyncConfig = SyncConfig()
    api: ApiConfig = ApiConfig()
