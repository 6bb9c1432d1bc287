# File: site_sync/store/memory.py
"""site_sync.store.memory: in-process page store (tests, server default)."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from site_sync.crawler.models import PageRecord
from site_sync.exceptions import StoreWriteFailed
from site_sync.store.base import CrawlSummary, PageStore, StoredPage, SyncStatus

PageKey = Tuple[str, str]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryPageStore(PageStore):
    """Dictionary-backed :class:`PageStore`.

    Every change is staged on copies of the dictionaries and installed only
    after :meth:`_persist` accepted it, so a failed write leaves no trace.
    """

    def __init__(self) -> None:
        self.pages: Dict[PageKey, StoredPage] = {}
        self.summaries: Dict[PageKey, CrawlSummary] = {}

    async def get_discovered_pages(self, user_id: str) -> List[StoredPage]:
        return [p for (uid, _), p in self.pages.items() if uid == user_id and p.sitemap_discovered]

    async def list_pages(self, user_id: str) -> List[StoredPage]:
        return [p for (uid, _), p in self.pages.items() if uid == user_id]

    async def upsert_pages(
        self,
        user_id: str,
        pages: Sequence[PageRecord],
        *,
        sync_status: Optional[SyncStatus] = None,
        sitemap_discovered: Optional[bool] = None,
    ) -> None:
        stamp = _now()
        staged = dict(self.pages)
        for page in pages:
            row = staged.get((user_id, page.url)) or StoredPage(user_id=user_id, url=page.url)
            row = replace(
                row,
                title=page.title,
                description=page.description,
                last_modified=page.last_modified,
                change_frequency=page.change_frequency,
                priority=page.priority,
                last_sync=stamp,
            )
            if sync_status is not None:
                row.sync_status = sync_status
            if sitemap_discovered is not None:
                row.sitemap_discovered = sitemap_discovered
            staged[(user_id, page.url)] = row
        self._commit(pages=staged)

    async def update_sync_status(
        self, url: str, user_id: str, status: SyncStatus, timestamp: datetime
    ) -> None:
        row = self.pages.get((user_id, url))
        if row is None:
            raise StoreWriteFailed(f"No stored page {url} for user {user_id}")
        staged = dict(self.pages)
        staged[(user_id, url)] = replace(row, sync_status=status, last_sync=timestamp)
        self._commit(pages=staged)

    async def update_crawl_summary(self, user_id: str, domain: str, summary: CrawlSummary) -> None:
        if summary.updated_at is None:
            summary = replace(summary, updated_at=_now())
        staged = dict(self.summaries)
        staged[(user_id, domain)] = summary
        self._commit(summaries=staged)

    async def get_crawl_summary(self, user_id: str, domain: str) -> Optional[CrawlSummary]:
        return self.summaries.get((user_id, domain))

    def _commit(
        self,
        *,
        pages: Optional[Dict[PageKey, StoredPage]] = None,
        summaries: Optional[Dict[PageKey, CrawlSummary]] = None,
    ) -> None:
        pages = self.pages if pages is None else pages
        summaries = self.summaries if summaries is None else summaries
        self._persist(pages, summaries)
        self.pages = pages
        self.summaries = summaries

    def _persist(
        self, pages: Dict[PageKey, StoredPage], summaries: Dict[PageKey, CrawlSummary]
    ) -> None:
        """Hook for subclasses that write the staged state somewhere durable."""


__all__ = ["InMemoryPageStore"]
