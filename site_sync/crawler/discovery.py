# site_sync/crawler/discovery.py
"""
Seed URL discovery from robots.txt and sitemaps.

Every ``Sitemap:`` directive of robots.txt and every conventional sitemap path
is probed concurrently. Sitemap indexes are followed recursively (also
concurrently); urlsets contribute seed URLs and per-URL metadata. A candidate
that cannot be fetched or parsed is simply absent: discovery never fails, it
only reports ``sitemap_valid=False`` and the crawl starts from the homepage.
"""
from __future__ import annotations

import asyncio
import gzip
from typing import Optional, Set, Tuple

from aiohttp import ClientError, ClientSession, ClientTimeout

from site_sync.config import CrawlerConfig
from site_sync.crawler.models import DiscoveryResult
from site_sync.exceptions import DiscoveryProbeFailed
from site_sync.logger import get_logger
from site_sync.parser.robots_parser import RobotsRules, parse_robots
from site_sync.parser.sitemap_parser import SitemapDocument, SitemapKind, parse_sitemap
from site_sync.utils import is_same_domain, normalize_url, remove_duplicates, root_url, split_domain

__all__ = ("SitemapDiscoverer",)

_GZIP_MAGIC = b"\x1f\x8b"


class SitemapDiscoverer:
    """Resolves the seed URL set of a domain."""

    def __init__(self, session: ClientSession, config: CrawlerConfig) -> None:
        self.session = session
        self.config = config
        self.logger = get_logger("discovery")
        self._timeout = ClientTimeout(total=config.probe_timeout)
        self._headers = {"User-Agent": config.user_agent}

    async def discover(self, domain: str) -> DiscoveryResult:
        scheme, host = split_domain(domain, self.config.scheme)
        base = root_url(scheme, host)
        result = DiscoveryResult()

        result.robots = await self._load_robots(f"{base}/robots.txt")
        robots_sitemaps = result.robots.sitemaps if result.robots else []
        candidates = remove_duplicates(
            [*robots_sitemaps, *(f"{base}{path}" for path in self.config.sitemap_paths)]
        )

        seen: Set[str] = set()
        counts = await asyncio.gather(
            *(self._process(url, host, result, seen, depth=0) for url in candidates)
        )
        result.sitemap_valid = any(count > 0 for count in counts)
        self.logger.info(
            "Discovery for %s: %d seed URLs from %d sitemap(s), sitemap valid: %s",
            host,
            len(result.seed_urls),
            len(result.sitemaps),
            result.sitemap_valid,
        )
        return result

    async def _process(
        self,
        url: str,
        host: str,
        result: DiscoveryResult,
        seen: Set[str],
        depth: int,
    ) -> int:
        """Probe one sitemap and return how many page URLs it contributed."""
        if url in seen:
            return 0
        seen.add(url)
        try:
            document = await self._probe_sitemap(url)
        except DiscoveryProbeFailed as exc:
            self.logger.debug("Sitemap candidate absent: %s", exc)
            return 0

        if document.kind is SitemapKind.INDEX:
            if depth >= self.config.max_sitemap_depth:
                self.logger.debug("Sitemap index too deep, skipped: %s", url)
                return 0
            nested = [loc for loc in document.sitemaps if is_same_domain(loc, host)]
            counts = await asyncio.gather(
                *(self._process(loc, host, result, seen, depth + 1) for loc in nested)
            )
            return sum(counts)

        keep_query = not self.config.ignore_query_params
        count = 0
        for entry in document.entries:
            normalized = normalize_url(entry.url, keep_query=keep_query)
            if normalized is None or not is_same_domain(normalized, host):
                continue
            entry.url = normalized
            result.sitemap_entries[normalized] = entry
            result.seed_urls.add(normalized)
            count += 1
        if count:
            result.sitemaps.append(url)
        return count

    async def _load_robots(self, url: str) -> Optional[RobotsRules]:
        try:
            _, body = await self._get(url)
        except DiscoveryProbeFailed as exc:
            self.logger.debug("robots.txt unavailable: %s", exc)
            return None
        return parse_robots(body.decode("utf-8", errors="replace"))

    async def _probe_sitemap(self, url: str) -> SitemapDocument:
        content_type, body = await self._get(url)
        if body.startswith(_GZIP_MAGIC):
            try:
                body = gzip.decompress(body)
            except (OSError, EOFError) as exc:
                raise DiscoveryProbeFailed(url, f"bad gzip payload: {exc}") from exc
        elif "xml" not in content_type:
            raise DiscoveryProbeFailed(url, f"non-XML content type {content_type!r}")

        document = parse_sitemap(body)
        if document.kind is SitemapKind.UNKNOWN:
            raise DiscoveryProbeFailed(url, "not a sitemap document")
        return document

    async def _get(self, url: str) -> Tuple[str, bytes]:
        try:
            async with self.session.get(url, headers=self._headers, timeout=self._timeout) as resp:
                if not 200 <= resp.status < 300:
                    raise DiscoveryProbeFailed(url, f"HTTP {resp.status}")
                content_type = resp.headers.get("Content-Type", "").lower()
                return content_type, await resp.read()
        except asyncio.TimeoutError as exc:
            raise DiscoveryProbeFailed(url, "timeout") from exc
        except ClientError as exc:
            raise DiscoveryProbeFailed(url, f"{type(exc).__name__}: {exc}") from exc
