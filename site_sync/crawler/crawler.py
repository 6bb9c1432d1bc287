# === FILE: site_sync/crawler/crawler.py ===
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlsplit

from aiohttp import ClientSession

from site_sync.config import CrawlerConfig
from site_sync.crawler.browser import BrowserManager, PagePool
from site_sync.crawler.discovery import SitemapDiscoverer
from site_sync.crawler.fetcher import Fetcher
from site_sync.crawler.models import CrawlState, DiscoveryResult, PageRecord
from site_sync.exceptions import ExtractionFailed, FetchFailed
from site_sync.logger import get_logger
from site_sync.parser.html_parser import extract_page
from site_sync.parser.robots_parser import RobotsRules
from site_sync.utils import (
    is_same_domain,
    matches_exclude,
    normalize_url,
    parse_timestamp,
    root_url,
    split_domain,
)

__all__ = ("CrawlRun", "AsyncCrawler")


@dataclass
class CrawlRun:
    """Outcome of one crawl: stored pages plus the run's frontier state."""

    domain: str
    pages: List[PageRecord]
    state: CrawlState
    discovery: DiscoveryResult

    @property
    def sitemap_valid(self) -> bool:
        return self.discovery.sitemap_valid


class AsyncCrawler:
    """Breadth-first crawler: sitemap seeds, bounded parallel batches, max-page cutoff.

    Use as an async context manager; the aiohttp session, the headless browser
    and its page pool live exactly as long as the ``async with`` block.
    """

    def __init__(
        self,
        config: CrawlerConfig,
        *,
        browser: Optional[BrowserManager] = None,
        session: Optional[ClientSession] = None,
    ) -> None:
        self.config = config
        self.logger = get_logger("crawler")
        self.session = session
        self._owns_session = session is None
        self.browser = browser
        self.pool: Optional[PagePool] = None
        self.fetcher: Optional[Fetcher] = None

    async def __aenter__(self) -> AsyncCrawler:
        if self.session is None:
            self.session = ClientSession(raise_for_status=False)
        if self.config.render_fallback or self.config.render_suspected_spa:
            if self.browser is None:
                self.browser = BrowserManager(
                    user_agent=self.config.pool_user_agent, headless=self.config.headless
                )
            self.pool = PagePool(self.browser, self.config.concurrency)
        self.fetcher = Fetcher(self.session, self.config, self.pool)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if self.pool is not None:
                await self.pool.close_all()
            if self.browser is not None:
                await self.browser.close()
        finally:
            if self._owns_session and self.session and not self.session.closed:
                await self.session.close()

    async def crawl(
        self,
        domain: str,
        max_pages: Optional[int] = None,
        concurrency: Optional[int] = None,
    ) -> List[PageRecord]:
        run = await self.run(domain, max_pages=max_pages, concurrency=concurrency)
        return run.pages

    async def run(
        self,
        domain: str,
        max_pages: Optional[int] = None,
        concurrency: Optional[int] = None,
    ) -> CrawlRun:
        if self.session is None or self.fetcher is None:
            raise RuntimeError("Session not initialized")
        scheme, host = split_domain(domain, self.config.scheme)
        limit = max_pages or self.config.max_pages
        width = concurrency or self.config.concurrency

        self.logger.info("Crawl started: %s (max %d pages, %d in flight)", host, limit, width)
        start = time.monotonic()

        discovery = await SitemapDiscoverer(self.session, self.config).discover(
            root_url(scheme, host)
        )
        if self.pool is not None and self.config.prewarm_sessions:
            await self.pool.warm()

        state = CrawlState(sitemap_entries=discovery.sitemap_entries)
        robots = discovery.robots if self.config.respect_robots else None
        self._offer(root_url(scheme, host), state, host, robots)
        for url in sorted(discovery.seed_urls):
            self._offer(url, state, host, robots)

        pages: List[PageRecord] = []
        while state.queued and len(pages) < limit:
            batch = state.next_batch(width)
            if not batch:
                continue
            outcomes = await asyncio.gather(
                *(self._process(url, state, host, robots) for url in batch),
                return_exceptions=True,
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome
            for page in outcomes:
                if page is not None and len(pages) < limit:
                    pages.append(page)
            if len(pages) >= limit:
                break
            await asyncio.sleep(self.config.batch_delay)

        duration = time.monotonic() - start
        self.logger.info(
            "Crawl finished: %d pages in %.2f s, %d failed, %d still queued",
            len(pages),
            duration,
            len(state.failed),
            len(state.queued),
        )
        if state.skipped:
            self.logger.info("Skipped by exclude rules: %d", len(state.skipped))
        return CrawlRun(domain=host, pages=pages, state=state, discovery=discovery)

    async def _process(
        self,
        url: str,
        state: CrawlState,
        host: str,
        robots: Optional[RobotsRules],
    ) -> Optional[PageRecord]:
        assert self.fetcher is not None
        try:
            fetched = await self.fetcher.fetch_page(url)
        except FetchFailed as exc:
            self.logger.warning("Failed %s: %s", url, exc.reason)
            state.failed.add(url)
            return None

        entry = state.sitemap_entries.get(url)
        try:
            page = extract_page(
                fetched.html,
                url,
                host,
                entry,
                fetched.last_modified_header,
                keep_query=not self.config.ignore_query_params,
                include_external=self.config.follow_external_links,
                used_fallback=fetched.used_fallback,
            )
        except ExtractionFailed as exc:
            self.logger.warning("Extraction failed, keeping partial record: %s", exc)
            return PageRecord.partial(
                url,
                host,
                entry,
                parse_timestamp(fetched.last_modified_header),
                used_fallback=fetched.used_fallback,
            )

        for link in page.links:
            self._offer(link, state, host, robots)
        return page

    def _offer(
        self,
        url: str,
        state: CrawlState,
        host: str,
        robots: Optional[RobotsRules],
    ) -> bool:
        """Put *url* on the frontier if it passes the filters and was never seen."""
        normalized = normalize_url(url, keep_query=not self.config.ignore_query_params)
        if normalized is None or normalized in state.discovered:
            return False
        if not self.config.follow_external_links and not is_same_domain(normalized, host):
            return False
        if matches_exclude(normalized, self.config.exclude_patterns) or not self._allowed(
            normalized, robots
        ):
            state.skipped.add(normalized)
            return False
        return state.enqueue(normalized)

    def _allowed(self, url: str, robots: Optional[RobotsRules]) -> bool:
        if robots is None:
            return True
        parts = urlsplit(url)
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"
        return robots.can_fetch(self.config.user_agent, path)
