"""Abstract base class for page fetchers.

A page fetcher turns a site-relative path into the serialized HTML of the
rendered page.  The production implementation drives a shared headless
browser (``novelfeed.providers.browser.playwright_session``); tests use
in-memory fakes serving fixture files.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IPageFetcher(ABC):
    """Contract for fetching rendered upstream pages."""

    @abstractmethod
    async def fetch(
        self,
        path: str,
        *,
        selector: str | None = None,
        timeout: float | None = None,
    ) -> str:
        """Return the HTML of the page at *path*.

        Parameters
        ----------
        path:
            Site-relative path such as ``/novel/1410.html``.
        selector:
            Optional CSS selector that must be present before the page is
            considered loaded.
        timeout:
            Seconds to wait for *selector*.  ``None`` uses the fetcher's
            default.

        Raises
        ------
        UpstreamBlockedError
            An anti-automation interstitial was served on every attempt.
        TransientFetchError
            Navigation kept failing or timing out.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release all resources.  Must never raise."""
