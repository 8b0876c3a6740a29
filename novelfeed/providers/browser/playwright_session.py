"""Shared Playwright browser session used for every upstream page fetch.

One Chromium connection is created lazily and shared by all callers.  A
failed navigation tears the connection down and the next attempt starts
from a fresh one, which is what gets the scraper past most interstitials
and stuck remote sessions.

Connection modes
----------------
- ``BROWSER_WS_ENDPOINT`` set: attach to a remote browser over CDP.
- otherwise: launch a local Chromium (headless unless configured).

Pacing
------
Every navigation except the first one after a (re)connect waits a random
``[0, 2 * request_delay]`` seconds.  Between failed attempts the retry
executor waits a random ``[0, 2 * reconnect_delay]`` seconds.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urljoin

import structlog
from cachetools import TTLCache
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright
from tenacity import RetryCallState

from novelfeed.config.tunables import BrowserConfig
from novelfeed.interfaces.page_fetcher import IPageFetcher
from novelfeed.utils.errors import TransientFetchError, UpstreamBlockedError
from novelfeed.utils.logging import get_logger
from novelfeed.utils.retry import retry

logger: structlog.BoundLogger = get_logger(__name__)

BLOCKED_RESOURCE_TYPES = frozenset({"image", "media", "stylesheet", "font"})

BLOCKED_DOMAINS = (
    "google-analytics.com",
    "googletagmanager.com",
    "doubleclick.net",
    "twitter.com",
    "linkedin.com",
    "adservice.google.com",
    "googleadservices.com",
    "facebook.net",
    "adnxs.com",
    "criteo.com",
)

BLOCKED_PATHS = ("/ads/", "/analytics/", "/pixel/", "/tracking/", "/stats/")

CHALLENGE_SELECTORS = ("#cf-wrapper", ".ray-id")


class SessionState(str, Enum):  # noqa: UP042
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class _FailureRecord:
    count: int
    error: Exception


def should_block(resource_type: str, url: str) -> bool:
    """Return ``True`` for requests the session never lets through."""
    if resource_type in BLOCKED_RESOURCE_TYPES:
        return True
    if any(domain in url for domain in BLOCKED_DOMAINS):
        return True
    return any(path in url for path in BLOCKED_PATHS)


def screenshot_filename(path: str) -> str:
    """Map a site path to the diagnostic screenshot file name.

    ``/novel/1/2.html`` becomes ``novel_1_2.png``; ``/novel/1/catalog``
    becomes ``novel_1_catalog.png``.
    """
    name = path.split("?", 1)[0].lstrip("/").replace("/", "_")
    if name.endswith(".html"):
        name = name[: -len(".html")]
    return f"{name or 'index'}.png"


class PlaywrightConnector:
    """Opens Chromium connections through a single Playwright driver."""

    def __init__(self, config: BrowserConfig) -> None:
        self._config = config
        self._playwright: Any = None

    @property
    def remote(self) -> bool:
        return bool(self._config.ws_endpoint)

    async def connect(self) -> Any:
        if self._playwright is None:
            self._playwright = await async_playwright().start()

        if self.remote:
            browser = await self._playwright.chromium.connect_over_cdp(self._config.ws_endpoint)
            logger.info("browser_connected", mode="remote")
        else:
            browser = await self._playwright.chromium.launch(
                headless=self._config.headless,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
            logger.info("browser_connected", mode="local", headless=self._config.headless)
        return browser

    async def stop(self) -> None:
        playwright, self._playwright = self._playwright, None
        if playwright is not None:
            await playwright.stop()


class BrowserSession(IPageFetcher):
    """Page fetcher backed by one shared, self-healing browser connection.

    Parameters
    ----------
    config:
        Browser tunables (attempts, delays, timeouts, failure circuit).
    connector:
        Object with ``async connect() -> browser`` and ``async stop()``.
        Defaults to :class:`PlaywrightConnector`.
    sleep:
        Awaitable sleep used for pacing and retry waits.
    rng:
        Random source for the randomized delays.
    """

    def __init__(
        self,
        config: BrowserConfig,
        connector: Any = None,
        *,
        sleep: Any = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config
        self._connector = connector if connector is not None else PlaywrightConnector(config)
        self._sleep = sleep
        self._rng = rng if rng is not None else random.Random()

        self._browser: Any = None
        self._state = SessionState.DISCONNECTED
        self._first = True
        self._reconnect_task: asyncio.Future[None] | None = None
        self._failures: TTLCache[str, _FailureRecord] = TTLCache(
            maxsize=config.failure_cache_size, ttl=config.failure_ttl
        )

    @property
    def state(self) -> SessionState:
        return self._state

    def failure_count(self, path: str) -> int:
        record = self._failures.get(self._resolve(path))
        return record.count if record is not None else 0

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    async def reconnect(self) -> None:
        """Replace the browser connection.  Concurrent callers share one attempt."""
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.ensure_future(self._connect())
        await asyncio.shield(self._reconnect_task)

    async def _connect(self) -> None:
        self._state = SessionState.CONNECTING
        await self._teardown()
        try:
            self._browser = await self._connector.connect()
        except PlaywrightError as exc:
            self._state = SessionState.DISCONNECTED
            logger.error("browser_connect_failed", error=str(exc))
            raise TransientFetchError(f"Failed connecting browser: {exc}") from exc
        self._state = SessionState.CONNECTED
        self._first = True

    async def _ensure_connected(self) -> None:
        if self._browser is None or not self._browser.is_connected():
            if self._browser is not None:
                logger.warning("browser_disconnected")
            await self.reconnect()

    async def _teardown(self) -> None:
        browser, self._browser = self._browser, None
        if browser is None:
            return
        try:
            await asyncio.wait_for(browser.close(), timeout=self._config.close_timeout)
        except (asyncio.TimeoutError, PlaywrightError) as exc:
            logger.debug("browser_close_failed", error=str(exc))

    async def new_page(self) -> Any:
        """Open a page on a live connection, reconnecting once if that fails."""
        await self._ensure_connected()
        try:
            return await self._open_page()
        except PlaywrightError as first_error:
            logger.warning("new_page_failed", error=str(first_error))
            await self.reconnect()
            try:
                return await self._open_page()
            except PlaywrightError as exc:
                self._state = SessionState.DISCONNECTED
                raise TransientFetchError(f"Failed creating page: {exc}") from exc

    async def _open_page(self) -> Any:
        page = await self._browser.new_page()
        if self._config.block_resources:
            await page.route("**/*", self._route_request)
        return page

    async def _route_request(self, route: Any) -> None:
        request = route.request
        if should_block(request.resource_type, request.url):
            await route.abort()
        else:
            await route.continue_()

    # ------------------------------------------------------------------
    # IPageFetcher implementation
    # ------------------------------------------------------------------

    def _resolve(self, path: str) -> str:
        return urljoin(self._config.base_url, path)

    def _reconnect_wait(self, retry_state: RetryCallState) -> float:
        return self._rng.uniform(0, 2 * self._config.reconnect_delay)

    async def fetch(
        self,
        path: str,
        *,
        selector: str | None = None,
        timeout: float | None = None,
    ) -> str:
        url = self._resolve(path)
        record = self._failures.get(url)
        if record is not None and record.count > self._config.failure_threshold:
            logger.warning("fetch_skipped", url=url, failures=record.count)
            raise record.error

        attempts = 0

        async def _attempt(signal: asyncio.Event) -> str:
            nonlocal attempts
            attempts += 1
            if attempts > 1:
                await self.reconnect()
            return await self._navigate(url, path, selector, timeout)

        html = await retry(
            _attempt,
            self._config.max_attempts - 1,
            logger=logger,
            wait=self._reconnect_wait,
            sleep=self._sleep,
        )
        self._failures.pop(url, None)
        return html

    async def _navigate(
        self,
        url: str,
        path: str,
        selector: str | None,
        timeout: float | None,
    ) -> str:
        page = await self.new_page()
        if page.is_closed():
            page = await self.new_page()

        if self._first:
            self._first = False
        else:
            await self._sleep(self._rng.uniform(0, 2 * self._config.request_delay))

        logger.info("navigation_started", url=url)
        try:
            await page.goto(
                url,
                timeout=self._config.navigation_timeout * 1000,
                wait_until="domcontentloaded",
            )
            for challenge in CHALLENGE_SELECTORS:
                if await page.locator(challenge).count() > 0:
                    raise UpstreamBlockedError(url)
            if selector:
                wait_for = timeout if timeout is not None else self._config.selector_timeout
                await page.wait_for_selector(selector, timeout=wait_for * 1000)
            html = await page.content()
        except UpstreamBlockedError as exc:
            await self._handle_failure(page, url, path, exc)
            raise
        except PlaywrightError as exc:
            error = TransientFetchError(f'Failed fetching "{url}": {exc}')
            await self._handle_failure(page, url, path, error)
            raise error from exc

        logger.info("navigation_finished", url=url, size=len(html))
        await self._close_page(page)
        return html

    async def _handle_failure(self, page: Any, url: str, path: str, error: Exception) -> None:
        previous = self._failures.get(url)
        count = (previous.count if previous is not None else 0) + 1
        self._failures[url] = _FailureRecord(count=count, error=error)
        logger.error("navigation_failed", url=url, failures=count, error=str(error))
        await self._screenshot(page, path)
        await self._close_page(page)

    async def _screenshot(self, page: Any, path: str) -> None:
        directory = Path(self._config.screenshot_dir)
        target = directory / screenshot_filename(path)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(target), full_page=True)
        except (OSError, PlaywrightError) as exc:
            logger.debug("screenshot_failed", path=str(target), error=str(exc))

    async def _close_page(self, page: Any) -> None:
        try:
            await asyncio.wait_for(page.close(), timeout=self._config.close_timeout)
        except (asyncio.TimeoutError, PlaywrightError) as exc:
            logger.debug("page_close_failed", error=str(exc))

    async def close(self) -> None:
        """Tear down the connection and the driver.  Never raises."""
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        await self._teardown()
        try:
            await asyncio.wait_for(self._connector.stop(), timeout=self._config.close_timeout)
        except Exception as exc:  # noqa: BLE001
            logger.warning("browser_stop_failed", error=str(exc))
        self._state = SessionState.DISCONNECTED
        logger.info("browser_session_closed")
