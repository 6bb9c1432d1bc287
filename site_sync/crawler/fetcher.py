# site_sync/crawler/fetcher.py
"""
Fetcher module: two-tier page retrieval.

Tier 1 is a plain aiohttp GET with a browser-like header set. Any failure of
that request (non-2xx, timeout, network error) is retried once through the
headless browser, which executes client-side script and returns the rendered
DOM. Both tiers produce the same :class:`FetchResult`.
"""
from __future__ import annotations

import asyncio
import re
from typing import Optional

from aiohttp import ClientError, ClientSession, ClientTimeout
from playwright.async_api import Error as PlaywrightError

from site_sync.config import CrawlerConfig
from site_sync.crawler.browser import PagePool
from site_sync.crawler.models import FetchResult, FetchTier
from site_sync.exceptions import FetchFailed
from site_sync.logger import get_logger

__all__ = ("Fetcher", "looks_client_rendered")

_FRAMEWORK_MARKERS = ("react", "vue", "angular", "__NEXT_DATA__")
_BODY_RE = re.compile(r"<body[^>]*>(.*?)</body>", re.IGNORECASE | re.DOTALL)


def looks_client_rendered(html: str) -> bool:
    """Cheap guess whether *html* is an empty shell filled in by JavaScript."""
    if len(html) < 5000 and any(marker in html for marker in _FRAMEWORK_MARKERS):
        return True
    body = _BODY_RE.search(html)
    return html.count("<script") > 5 and (body is None or len(body.group(1)) < 1000)


class Fetcher:
    """Retrieves the HTML of one URL, falling back to a headless render."""

    def __init__(
        self,
        session: ClientSession,
        config: CrawlerConfig,
        pool: Optional[PagePool] = None,
    ) -> None:
        self.session = session
        self.config = config
        self.pool = pool
        self.logger = get_logger("fetcher")
        self._headers = {"User-Agent": config.user_agent, "Accept": config.accept_header}

    async def fetch_page(self, url: str) -> FetchResult:
        """Return the page HTML or raise :class:`FetchFailed` once both tiers are exhausted."""
        try:
            result = await self._fetch_static(url)
        except FetchFailed as exc:
            if self.pool is None or not self.config.render_fallback:
                raise
            self.logger.debug("Static fetch failed (%s), rendering %s", exc.reason, url)
            result = await self._fetch_rendered(url)
        else:
            if (
                self.pool is not None
                and self.config.render_suspected_spa
                and looks_client_rendered(result.html)
            ):
                self.logger.debug("Page looks client-rendered, rendering %s", url)
                try:
                    result = await self._fetch_rendered(url)
                except FetchFailed as exc:
                    self.logger.debug("Render failed (%s), keeping static HTML", exc.reason)

        if not result.html or not result.html.strip():
            raise FetchFailed(url, f"empty HTML from {result.tier.value} tier")
        return result

    async def _fetch_static(self, url: str) -> FetchResult:
        timeout = ClientTimeout(total=self.config.fetch_timeout)
        try:
            async with self.session.get(url, headers=self._headers, timeout=timeout) as resp:
                if not 200 <= resp.status < 300:
                    raise FetchFailed(url, f"HTTP {resp.status}")
                html = await resp.text(errors="replace")
                return FetchResult(
                    url=url,
                    html=html,
                    tier=FetchTier.STATIC,
                    last_modified_header=resp.headers.get("Last-Modified"),
                )
        except asyncio.TimeoutError as exc:
            raise FetchFailed(url, "timeout") from exc
        except ClientError as exc:
            raise FetchFailed(url, f"{type(exc).__name__}: {exc}") from exc

    async def _fetch_rendered(self, url: str) -> FetchResult:
        if self.pool is None:
            raise FetchFailed(url, "render tier unavailable")
        async with self.pool.session() as page:
            try:
                page.set_default_navigation_timeout(self.config.navigation_timeout * 1000)
                response = await page.goto(
                    url, wait_until="networkidle", timeout=self.config.render_timeout * 1000
                )
                html = await page.content()
            except PlaywrightError as exc:
                raise FetchFailed(url, f"render failed: {exc}") from exc
        last_modified = None
        if response is not None:
            last_modified = response.headers.get("last-modified")
        return FetchResult(url=url, html=html, tier=FetchTier.RENDERED, last_modified_header=last_modified)
