# File: site_sync/engine.py
"""site_sync.engine: Orchestration layer: crawl → store → summary, и синхронизация."""

from __future__ import annotations

from typing import Any, Callable, List, Optional

from site_sync.config import CrawlerConfig, load_config
from site_sync.crawler.crawler import AsyncCrawler, CrawlRun
from site_sync.crawler.models import PageRecord
from site_sync.exceptions import CrawlFatal, StoreError
from site_sync.logger import logger
from site_sync.store.base import CrawlSummary, PageStore
from site_sync.store.writer import BatchWriter
from site_sync.sync import SyncReconciler, SyncResult
from site_sync.utils import split_domain

__all__ = ["Engine", "run_crawl", "run_sync"]


class Engine:
    """Фасад для CLI, HTTP-сервера и тестов."""

    @staticmethod
    def load_config(path: Optional[str]) -> CrawlerConfig:
        """Загружает конфиг из YAML/JSON или использует значения по умолчанию."""
        return load_config(path)

    def __init__(
        self,
        config: CrawlerConfig,
        store: PageStore,
        *,
        crawler_factory: Callable[[CrawlerConfig], AsyncCrawler] = AsyncCrawler,
    ) -> None:
        self.config = config
        self.store = store
        self.crawler_factory = crawler_factory

    def with_overrides(self, **overrides: Any) -> Engine:
        """Copy of the engine with per-request config overrides (``None`` values ignored)."""
        update = {k: v for k, v in overrides.items() if v is not None}
        if not update:
            return self
        config = CrawlerConfig.model_validate({**self.config.model_dump(), **update})
        return Engine(config, self.store, crawler_factory=self.crawler_factory)

    async def crawl_site(
        self, domain: str, user_id: str, *, max_pages: Optional[int] = None
    ) -> CrawlRun:
        """Crawl *domain*, persist its pages for *user_id* and record the crawl summary."""
        _, host = split_domain(domain, self.config.scheme)
        logger.info("Starting crawl of %s for %s", host, user_id)
        try:
            async with self.crawler_factory(self.config) as crawler:
                run = await crawler.run(domain, max_pages=max_pages)
        except CrawlFatal as exc:
            logger.error("Crawl of %s aborted: %s", host, exc)
            await self._record_summary(
                user_id, host, CrawlSummary(page_count=0, sitemap_valid=False, failed=True)
            )
            raise

        written = await BatchWriter(self.store, self.config.batch_size).store_batch(
            user_id, run.pages
        )
        if written.errors:
            logger.warning("%d batch(es) of %s were not stored", len(written.errors), host)
        await self._record_summary(
            user_id,
            host,
            CrawlSummary(page_count=len(run.pages), sitemap_valid=run.sitemap_valid),
        )
        return run

    async def sync(self, domain: str, user_id: str) -> SyncResult:
        """Reconcile the stored pages of *user_id* with a fresh crawl of *domain*."""
        reconciler = SyncReconciler(
            self.store, self._fresh_pages, max_pages=self.config.sync_max_pages
        )
        return await reconciler.sync(domain, user_id)

    async def _fresh_pages(self, domain: str, user_id: str, max_pages: int) -> List[PageRecord]:
        # the sync crawl is stored and summarised like any other crawl
        run = await self.crawl_site(domain, user_id, max_pages=max_pages)
        return run.pages

    async def _record_summary(self, user_id: str, host: str, summary: CrawlSummary) -> None:
        try:
            await self.store.update_crawl_summary(user_id, host, summary)
        except StoreError as exc:
            logger.error("Error updating crawl summary of %s: %s", host, exc)


async def run_crawl(
    config: CrawlerConfig, store: PageStore, domain: str, user_id: str
) -> CrawlRun:
    """Shortcut used by the CLI: one crawl with a throwaway :class:`Engine`."""
    return await Engine(config, store).crawl_site(domain, user_id)


async def run_sync(
    config: CrawlerConfig, store: PageStore, domain: str, user_id: str
) -> SyncResult:
    return await Engine(config, store).sync(domain, user_id)
