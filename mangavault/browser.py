"""
Browser sessions - render theme pages with Playwright.

One Chromium instance is shared by the process; every job gets its own
browser context (own proxy, cookies and cache) which is closed when the
job ends, whatever the outcome.

Requires: playwright package and browser binaries
Install with: pip install playwright && playwright install chromium
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    Route,
    TimeoutError as PlaywrightTimeout,
    async_playwright,
)

from .config import config
from .database.models import ProxyEndpoint
from .exceptions import FetchError

logger = logging.getLogger(__name__)

# Resource types that never carry data we parse
BLOCKED_RESOURCE_TYPES = frozenset({"stylesheet", "font", "media"})

BLOCKED_DOMAINS = (
    "google-analytics.com",
    "googletagmanager.com",
    "doubleclick.net",
    "googlesyndication.com",
    "adservice.google.com",
    "facebook.net",
    "scorecardresearch.com",
)


class BrowserSession:
    """A single page inside a job-scoped browser context."""

    def __init__(self, page: Page, timeout: int, proxy: ProxyEndpoint | None = None):
        self.page = page
        self.timeout = timeout
        self.proxy = proxy

    async def fetch_html(self, url: str) -> str:
        """
        Navigate to url and return the rendered HTML.

        Raises:
            FetchError: navigation failed, timed out, or returned an HTTP error
        """
        try:
            response = await self.page.goto(url, timeout=self.timeout, wait_until="domcontentloaded")
        except PlaywrightTimeout as e:
            raise FetchError(url, "Page load timeout") from e
        except PlaywrightError as e:
            raise FetchError(url, str(e)) from e

        if response is None:
            raise FetchError(url, "No response received")
        if response.status >= 400:
            raise FetchError(url, f"HTTP {response.status}")

        # Let client-side scripts settle; some readers render late
        try:
            await self.page.wait_for_load_state("networkidle", timeout=10000)
        except PlaywrightTimeout:
            logger.debug(f"Network did not go idle for {url}, using current DOM")

        return await self.page.content()


class BrowserManager:
    """
    Owns the shared Chromium process and hands out job-scoped sessions.
    """

    def __init__(
        self,
        timeout: int | None = None,
        headless: bool | None = None,
        user_agent: str | None = None,
    ):
        self.timeout = timeout or config.BROWSER_TIMEOUT
        self.headless = config.BROWSER_HEADLESS if headless is None else headless
        self.user_agent = user_agent or config.USER_AGENT

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        """Start the browser instance."""
        async with self._lock:
            if self._browser is None:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=[
                        "--disable-gpu",
                        "--disable-dev-shm-usage",
                        "--disable-setuid-sandbox",
                        "--no-sandbox",
                        "--disable-blink-features=AutomationControlled",
                    ]
                )
                logger.info("Started Playwright browser")

    async def stop(self) -> None:
        """Stop the browser instance."""
        async with self._lock:
            if self._browser:
                await self._browser.close()
                self._browser = None
            if self._playwright:
                await self._playwright.stop()
                self._playwright = None
                logger.info("Stopped Playwright browser")

    @asynccontextmanager
    async def session(self, proxy: ProxyEndpoint | None = None) -> AsyncIterator[BrowserSession]:
        """
        Open a browser context for one job.

        The context is closed on every exit path, including errors and
        cancellation.
        """
        if self._browser is None:
            await self.start()

        context: BrowserContext | None = None
        try:
            context = await self._browser.new_context(
                user_agent=self.user_agent,
                proxy=proxy.to_playwright() if proxy else None,
                viewport={"width": 1366, "height": 900},
                locale="tr-TR",
                extra_http_headers={"Accept-Language": "tr-TR,tr;q=0.9,en-US;q=0.8,en;q=0.7"},
            )
            page = await context.new_page()
            await page.route("**/*", self._filter_requests)

            if proxy and not proxy.is_direct:
                logger.debug(f"Browser context using proxy {proxy.label} ({proxy.key})")
            yield BrowserSession(page, self.timeout, proxy)
        finally:
            if context is not None:
                try:
                    await context.close()
                except PlaywrightError as e:
                    logger.warning(f"Error closing browser context: {e}")

    async def _filter_requests(self, route: Route) -> None:
        """Abort stylesheet, font, media and tracking requests."""
        request = route.request
        if request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
            return

        url = request.url
        if any(domain in url for domain in BLOCKED_DOMAINS):
            await route.abort()
            return

        await route.continue_()
