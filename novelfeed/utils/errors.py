"""Custom exception hierarchy for novelfeed.

All application exceptions inherit from :class:`NovelFeedError`, which
carries an optional ``provider_name`` (e.g. "browser", "sqlite",
"linovelib") and an HTTP-like ``status`` so the API layer can map any
failure to a response without knowing where it came from.

    NovelFeedError  (base -- status 500)
    +-- ConfigurationError     (startup / missing config)
    +-- ScrapeError            (page lacked the expected structure)
    +-- UpstreamBlockedError   (anti-automation interstitial detected)
    +-- TransientFetchError    (timeouts, connection errors)
    +-- PersistenceError       (database read/write failed)
    +-- WorkflowError          (sync workflow failure, chains its cause)
        +-- NotFoundError      (resource absent upstream -- status 404)

Transient and blocked errors are retried inside the browser session; only
``WorkflowError`` and its subclasses are expected to reach the API layer.
"""

from __future__ import annotations


class NovelFeedError(Exception):
    """Base exception for all novelfeed errors.

    ``__str__`` prefixes the provider name in brackets for log scanning,
    e.g. ``[sqlite] database is locked``.
    """

    default_status = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    @property
    def status(self) -> int:
        return self.default_status

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


class ConfigurationError(NovelFeedError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Fetch-layer errors
# ---------------------------------------------------------------------------


class ScrapeError(NovelFeedError):
    """Raised when a fetched page does not have the structure the scraper expects.

    Usually means the novel was taken down or the site layout changed.
    ``missing`` is set when the page explicitly says the work is gone, so
    the workflow can answer 404 instead of 500.
    """

    def __init__(self, pathname: str, reason: str = "unknown", missing: bool = False) -> None:
        self.pathname = pathname
        self.reason = reason or "unknown"
        self.missing = missing
        super().__init__(
            message=f'Failed resolving "{pathname}": {self.reason}',
            provider_name="linovelib",
        )


class UpstreamBlockedError(NovelFeedError):
    """Raised when an anti-automation challenge page is served instead of content.

    The browser session treats this like a navigation failure: the
    connection is torn down and rebuilt before the next attempt.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(message=f"{url} is blocked by cloudflare", provider_name="browser")


class TransientFetchError(NovelFeedError):
    """Raised for timeouts and connection failures while fetching a page."""

    def __init__(
        self,
        message: str = "Fetch failed",
        provider_name: str | None = "browser",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PersistenceError(NovelFeedError):
    """Raised when a write-through or read from the novel database fails."""

    def __init__(
        self,
        message: str = "Database operation failed",
        provider_name: str | None = "sqlite",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Workflow errors
# ---------------------------------------------------------------------------


class WorkflowError(NovelFeedError):
    """Raised when a fetch or sync workflow fails.

    Carries an HTTP-like ``status`` and keeps the triggering error as
    ``cause``.  Wrapping another ``WorkflowError`` unwraps to that error's
    own cause (when it has one) so chains stay one level deep, and an inner
    404 is never downgraded.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        if isinstance(cause, WorkflowError):
            if status is None or cause.status == 404:
                status = cause.status
            if cause.cause is not None:
                cause = cause.cause
        super().__init__(message=message)
        self._status = status if status is not None else self.default_status
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def status(self) -> int:
        return self._status

    def get_message(self) -> str:
        """Return the message with the cause's message appended, if any."""
        if self.cause is not None and str(self.cause):
            return f"{self.message}: {self.cause}"
        return self.message


class NotFoundError(WorkflowError):
    """Raised when the requested novel, volume or chapter does not exist upstream."""

    default_status = 404

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message=message, status=404, cause=cause)
