"""Utility modules for novelfeed.

- **errors** -- Exception hierarchy rooted at NovelFeedError; every error
  carries an HTTP-like ``status`` the API layer maps directly.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **retry** -- tenacity-backed exponential-backoff executor shared by all
  fetch call sites.
- **memoize** -- in-flight request deduplication and cache-key derivation.
- **concurrency** -- FIFO work queues bounding simultaneous page fetches.
- **url** (not re-exported here) -- image URL rewriting for the proxy routes.
"""

# -- Domain exception hierarchy --------------------------------------------
from novelfeed.utils.errors import (
    ConfigurationError,
    NotFoundError,
    NovelFeedError,
    PersistenceError,
    ScrapeError,
    TransientFetchError,
    UpstreamBlockedError,
    WorkflowError,
)

# -- Structured logging setup ----------------------------------------------
from novelfeed.utils.logging import configure_logging, get_logger

# -- Fetch orchestration helpers -------------------------------------------
from novelfeed.utils.concurrency import WorkQueue
from novelfeed.utils.memoize import InflightDeduplicator, entity_cache_key, filter_cache_key
from novelfeed.utils.retry import default_backoff, retry

__all__ = [
    "ConfigurationError",
    "InflightDeduplicator",
    "NotFoundError",
    "NovelFeedError",
    "PersistenceError",
    "ScrapeError",
    "TransientFetchError",
    "UpstreamBlockedError",
    "WorkQueue",
    "WorkflowError",
    "configure_logging",
    "default_backoff",
    "entity_cache_key",
    "filter_cache_key",
    "get_logger",
    "retry",
]
