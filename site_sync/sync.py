# File: site_sync/sync.py
"""site_sync.sync: reconciles a fresh crawl with the pages stored for a user.

Every stored page previously discovered through the sitemap lands in exactly
one bucket (updated, unchanged, removed), and so does every freshly crawled
page (added, updated, unchanged). Removed pages keep their row; only their
``sync_status`` changes.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Set

from site_sync.crawler.models import PageRecord
from site_sync.exceptions import StoreError, StoreReadFailed
from site_sync.logger import get_logger
from site_sync.store.base import PageStore, StoredPage, SyncStatus

__all__ = ["SyncResult", "SyncReconciler", "CrawlRunner"]

#: ``(domain, user_id, max_pages) -> fresh pages``
CrawlRunner = Callable[[str, str, int], Awaitable[List[PageRecord]]]


@dataclass
class SyncResult:
    added: int = 0
    updated: int = 0
    removed: int = 0
    unchanged: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SyncReconciler:
    """Computes and applies the added/updated/removed delta for one user and domain."""

    def __init__(self, store: PageStore, crawl: CrawlRunner, *, max_pages: int = 500) -> None:
        self.store = store
        self.crawl = crawl
        self.max_pages = max_pages
        self.logger = get_logger("sync")

    async def sync(self, domain: str, user_id: str) -> SyncResult:
        result = SyncResult()
        try:
            rows = await self.store.get_discovered_pages(user_id)
        except StoreReadFailed as exc:
            self.logger.error("Sync of %s aborted, cannot read stored pages: %s", domain, exc)
            result.errors.append(f"Sync failed: {exc}")
            return result
        existing: Dict[str, StoredPage] = {row.url: row for row in rows}

        # CrawlFatal propagates: nothing may be marked removed after a failed crawl.
        fresh = await self.crawl(domain, user_id, self.max_pages)

        seen: Set[str] = set()
        for page in fresh:
            if page.url in seen:
                continue
            seen.add(page.url)
            row = existing.get(page.url)
            if row is None:
                if await self._mark_synced(user_id, page, result, "add"):
                    result.added += 1
            elif self._changed(page, row):
                if await self._mark_synced(user_id, page, result, "update"):
                    result.updated += 1
            else:
                result.unchanged += 1

        timestamp = datetime.now(timezone.utc)
        for url in existing:
            if url in seen:
                continue
            try:
                await self.store.update_sync_status(url, user_id, SyncStatus.REMOVED, timestamp)
            except StoreError as exc:
                result.errors.append(f"Failed to mark {url} as removed: {exc}")
                continue
            result.removed += 1

        self.logger.info(
            "Sync of %s for %s: %d added, %d updated, %d removed, %d unchanged, %d error(s)",
            domain,
            user_id,
            result.added,
            result.updated,
            result.removed,
            result.unchanged,
            len(result.errors),
        )
        return result

    @staticmethod
    def _changed(page: PageRecord, row: StoredPage) -> bool:
        # a page that comes back after being removed is restored
        if row.sync_status is SyncStatus.REMOVED:
            return True
        return page.last_modified is not None and page.last_modified != row.last_modified

    async def _mark_synced(self, user_id: str, page: PageRecord, result: SyncResult, action: str) -> bool:
        try:
            await self.store.upsert_pages(
                user_id, [page], sync_status=SyncStatus.SYNCED, sitemap_discovered=True
            )
        except StoreError as exc:
            result.errors.append(f"Failed to {action} {page.url}: {exc}")
            return False
        return True
