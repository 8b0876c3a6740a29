"""novelfeed: incremental light-novel scraper and JSON feed server.

Scrapes linovelib.com through a shared headless browser session, caches
parsed pages, persists novels/volumes/chapters to SQLite with ``done``
bookkeeping, and serves the stored data over a FastAPI JSON API.
"""

__version__ = "0.1.0"
