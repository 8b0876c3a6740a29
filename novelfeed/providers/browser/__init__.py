"""Browser providers.

BrowserSession is the production IPageFetcher: one shared Playwright
connection with pacing, retries and a per-URL failure circuit.
"""

from novelfeed.providers.browser.playwright_session import (
    BrowserSession,
    PlaywrightConnector,
    SessionState,
)

__all__ = ["BrowserSession", "PlaywrightConnector", "SessionState"]
