# site_sync/crawler/browser.py
"""
Headless browser lifecycle and the page pool used by the render fetch tier.

One Chromium process backs every page of a crawl run. :class:`BrowserManager`
owns it: the process starts lazily the first time a page is needed and is
closed once when the run's ``async with`` block exits. Pages, not browser
processes, are the unit of concurrency; :class:`PagePool` recycles them.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Sequence

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from site_sync.exceptions import CrawlFatal
from site_sync.logger import get_logger

__all__ = ("BrowserManager", "PagePool")

_LAUNCH_ARGS: Sequence[str] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
)


class BrowserManager:
    """Lifecycle owner of the shared Chromium process of one crawl run."""

    def __init__(self, *, user_agent: str, headless: bool = True) -> None:
        self.user_agent = user_agent
        self.headless = headless
        self.logger = get_logger("browser")
        self._lock = asyncio.Lock()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._launch_error: Optional[CrawlFatal] = None

    @property
    def started(self) -> bool:
        return self._context is not None

    async def __aenter__(self) -> BrowserManager:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def context(self) -> BrowserContext:
        """Return the run's browser context, launching Chromium on first call."""
        async with self._lock:
            if self._context is not None:
                return self._context
            if self._launch_error is not None:
                raise self._launch_error
            try:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless, args=list(_LAUNCH_ARGS)
                )
                self._context = await self._browser.new_context(user_agent=self.user_agent)
            except PlaywrightError as exc:
                await self._shutdown()
                self._launch_error = CrawlFatal(f"Unable to start headless browser: {exc}")
                raise self._launch_error from exc
            self.logger.info("Headless browser started")
            return self._context

    async def new_page(self) -> Page:
        context = await self.context()
        try:
            return await context.new_page()
        except PlaywrightError as exc:
            raise CrawlFatal(f"Unable to open browser page: {exc}") from exc

    async def close(self) -> None:
        async with self._lock:
            was_started = self._context is not None
            await self._shutdown()
        if was_started:
            self.logger.info("Headless browser closed")

    async def _shutdown(self) -> None:
        if self._context is not None:
            try:
                await self._context.close()
            except PlaywrightError as exc:
                self.logger.debug("Context close failed: %s", exc)
            self._context = None
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as exc:
                self.logger.debug("Browser close failed: %s", exc)
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


class PagePool:
    """Recycles up to *size* idle browser pages.

    ``acquire`` never waits: it hands out an idle page or opens a new one.
    ``release`` keeps at most *size* idle pages and closes the surplus.
    """

    def __init__(self, browser: BrowserManager, size: int) -> None:
        self.browser = browser
        self.size = size
        self.logger = get_logger("browser")
        self._idle: List[Page] = []
        self.created = 0

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    async def warm(self) -> None:
        """Pre-open pages until *size* are idle."""
        while len(self._idle) < self.size:
            self._idle.append(await self._open())

    async def acquire(self) -> Page:
        while self._idle:
            page = self._idle.pop()
            if not page.is_closed():
                return page
        return await self._open()

    async def release(self, page: Page) -> None:
        if page.is_closed():
            return
        if len(self._idle) < self.size:
            self._idle.append(page)
            return
        try:
            await page.close()
        except PlaywrightError as exc:
            self.logger.debug("Page close failed: %s", exc)

    async def close_all(self) -> None:
        idle, self._idle = self._idle, []
        for page in idle:
            try:
                await page.close()
            except PlaywrightError as exc:
                self.logger.debug("Page close failed: %s", exc)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Page]:
        """Acquire a page for the duration of the block; always released."""
        page = await self.acquire()
        try:
            yield page
        finally:
            await self.release(page)

    async def _open(self) -> Page:
        page = await self.browser.new_page()
        self.created += 1
        return page
