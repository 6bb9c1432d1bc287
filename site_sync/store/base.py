# File: site_sync/store/base.py
"""site_sync.store.base: abstract page store consumed by the writer and the reconciler.

The relational backend of the dashboard is not part of this package; it is
reached only through :class:`PageStore`. Every call is assumed to be
network-latent and individually fallible: writes raise
:class:`~site_sync.exceptions.StoreWriteFailed`, reads raise
:class:`~site_sync.exceptions.StoreReadFailed`, and nothing is atomic across a
batch.
"""
from __future__ import annotations

import abc
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence

from site_sync.crawler.models import ChangeFrequency, PageRecord


class SyncStatus(str, Enum):
    SYNCED = "synced"
    REMOVED = "removed"


@dataclass(slots=True)
class StoredPage:
    """One persisted page row."""

    user_id: str
    url: str
    title: str = ""
    description: Optional[str] = None
    last_modified: Optional[datetime] = None
    change_frequency: Optional[ChangeFrequency] = None
    priority: Optional[float] = None
    sitemap_discovered: bool = False
    sync_status: Optional[SyncStatus] = None
    last_sync: Optional[datetime] = None


@dataclass(slots=True)
class CrawlSummary:
    """Per-(user, domain) outcome of the latest crawl."""

    page_count: int
    sitemap_valid: bool
    failed: bool = False
    updated_at: Optional[datetime] = None


class PageStore(abc.ABC):
    """Persistence interface of the sync engine."""

    @abc.abstractmethod
    async def get_discovered_pages(self, user_id: str) -> List[StoredPage]:
        """Pages of *user_id* previously marked ``sitemap_discovered``."""

    @abc.abstractmethod
    async def upsert_pages(
        self,
        user_id: str,
        pages: Sequence[PageRecord],
        *,
        sync_status: Optional[SyncStatus] = None,
        sitemap_discovered: Optional[bool] = None,
    ) -> None:
        """Insert or update rows keyed by ``(user_id, url)``.

        ``None`` for *sync_status* / *sitemap_discovered* leaves the stored
        value of an existing row untouched.
        """

    @abc.abstractmethod
    async def update_sync_status(
        self, url: str, user_id: str, status: SyncStatus, timestamp: datetime
    ) -> None:
        """Set the sync status of one existing row."""

    @abc.abstractmethod
    async def update_crawl_summary(self, user_id: str, domain: str, summary: CrawlSummary) -> None:
        """Record page count and sitemap validity of the latest crawl."""

    @abc.abstractmethod
    async def get_crawl_summary(self, user_id: str, domain: str) -> Optional[CrawlSummary]:
        """Latest crawl summary, if any."""

    @abc.abstractmethod
    async def list_pages(self, user_id: str) -> List[StoredPage]:
        """Every stored page of *user_id*."""


__all__ = ["SyncStatus", "StoredPage", "CrawlSummary", "PageStore"]
