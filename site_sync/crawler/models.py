# site_sync/crawler/models.py
"""
Data models for the SiteSync crawler.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Deque, Dict, List, Optional, Set
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from site_sync.parser.robots_parser import RobotsRules

__all__ = (
    "ChangeFrequency",
    "SitemapEntry",
    "PageRecord",
    "FetchTier",
    "FetchResult",
    "DiscoveryResult",
    "CrawlState",
)


class ChangeFrequency(str, Enum):
    """Values allowed in a sitemap ``<changefreq>``."""

    ALWAYS = "always"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional[ChangeFrequency]:
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(slots=True)
class SitemapEntry:
    """Metadata harvested from one sitemap ``<url>`` element."""

    url: str
    last_modified: Optional[datetime] = None
    change_frequency: Optional[ChangeFrequency] = None
    priority: Optional[float] = None


@dataclass(slots=True)
class PageRecord:
    """Structured metadata of one fetched page."""

    url: str
    domain: str
    title: str
    description: Optional[str] = None
    last_modified: Optional[datetime] = None
    change_frequency: Optional[ChangeFrequency] = None
    priority: Optional[float] = None
    links: List[str] = field(default_factory=list)
    used_fallback: bool = False

    @staticmethod
    def fallback_title(url: str) -> str:
        segment = urlsplit(url).path.rstrip("/").rsplit("/", 1)[-1]
        return segment or "Untitled Page"

    @classmethod
    def partial(
        cls,
        url: str,
        domain: str,
        sitemap_entry: Optional[SitemapEntry] = None,
        last_modified_header: Optional[datetime] = None,
        used_fallback: bool = False,
    ) -> PageRecord:
        """Best-effort record for a page whose HTML could not be parsed."""
        entry = sitemap_entry
        return cls(
            url=url,
            domain=domain,
            title=cls.fallback_title(url),
            last_modified=(entry.last_modified if entry and entry.last_modified else last_modified_header),
            change_frequency=entry.change_frequency if entry else None,
            priority=entry.priority if entry else None,
            used_fallback=used_fallback,
        )


class FetchTier(str, Enum):
    STATIC = "static"
    RENDERED = "rendered"


@dataclass(slots=True)
class FetchResult:
    """HTML of one URL and the tier that produced it."""

    url: str
    html: str
    tier: FetchTier
    last_modified_header: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.tier is FetchTier.RENDERED


@dataclass(slots=True)
class DiscoveryResult:
    """Seed URLs and sitemap metadata found for a domain."""

    seed_urls: Set[str] = field(default_factory=set)
    sitemap_entries: Dict[str, SitemapEntry] = field(default_factory=dict)
    sitemap_valid: bool = False
    sitemaps: List[str] = field(default_factory=list)
    robots: Optional[RobotsRules] = None


@dataclass
class CrawlState:
    """Mutable frontier state of a single crawl run.

    ``discovered`` holds every URL ever enqueued, so a URL enters ``queued``
    at most once.
    """

    discovered: Set[str] = field(default_factory=set)
    queued: Deque[str] = field(default_factory=deque)
    visited: Set[str] = field(default_factory=set)
    failed: Set[str] = field(default_factory=set)
    skipped: Set[str] = field(default_factory=set)
    sitemap_entries: Dict[str, SitemapEntry] = field(default_factory=dict)

    def enqueue(self, url: str) -> bool:
        if url in self.discovered:
            return False
        self.discovered.add(url)
        self.queued.append(url)
        return True

    def next_batch(self, size: int) -> List[str]:
        """Pop up to *size* URLs, drop those already visited, mark the rest visited."""
        batch: List[str] = []
        while self.queued and len(batch) < size:
            url = self.queued.popleft()
            if url in self.visited:
                continue
            self.visited.add(url)
            batch.append(url)
        return batch
