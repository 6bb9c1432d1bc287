# File: site_sync/store/json_store.py
"""site_sync.store.json_store: page store persisted as one JSON document.

Keeps CLI runs comparable across invocations, so ``site-sync sync`` has
previous state to reconcile against.
"""
from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from site_sync.crawler.models import ChangeFrequency
from site_sync.exceptions import StoreReadFailed, StoreWriteFailed
from site_sync.logger import logger
from site_sync.store.base import CrawlSummary, StoredPage, SyncStatus
from site_sync.store.memory import InMemoryPageStore, PageKey

_FORMAT_VERSION = 1


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _page_to_dict(page: StoredPage) -> Dict[str, Any]:
    return {
        "user_id": page.user_id,
        "url": page.url,
        "title": page.title,
        "description": page.description,
        "last_modified": _iso(page.last_modified),
        "change_frequency": page.change_frequency.value if page.change_frequency else None,
        "priority": page.priority,
        "sitemap_discovered": page.sitemap_discovered,
        "sync_status": page.sync_status.value if page.sync_status else None,
        "last_sync": _iso(page.last_sync),
    }


def _page_from_dict(data: Dict[str, Any]) -> StoredPage:
    return StoredPage(
        user_id=data["user_id"],
        url=data["url"],
        title=data.get("title", ""),
        description=data.get("description"),
        last_modified=_dt(data.get("last_modified")),
        change_frequency=ChangeFrequency.parse(data.get("change_frequency")),
        priority=data.get("priority"),
        sitemap_discovered=bool(data.get("sitemap_discovered", False)),
        sync_status=SyncStatus(data["sync_status"]) if data.get("sync_status") else None,
        last_sync=_dt(data.get("last_sync")),
    )


class JsonFilePageStore(InMemoryPageStore):
    """:class:`InMemoryPageStore` that rewrites *path* before every change is committed."""

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self.path = Path(path).expanduser()
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            for raw in data.get("pages", []):
                page = _page_from_dict(raw)
                self.pages[(page.user_id, page.url)] = page
            for raw in data.get("summaries", []):
                self.summaries[(raw["user_id"], raw["domain"])] = CrawlSummary(
                    page_count=raw["page_count"],
                    sitemap_valid=raw["sitemap_valid"],
                    failed=raw.get("failed", False),
                    updated_at=_dt(raw.get("updated_at")),
                )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise StoreReadFailed(f"Cannot read page store {self.path}: {exc}") from exc
        logger.debug("Loaded %d pages from %s", len(self.pages), self.path)

    def _persist(
        self, pages: Dict[PageKey, StoredPage], summaries: Dict[PageKey, CrawlSummary]
    ) -> None:
        document = {
            "version": _FORMAT_VERSION,
            "pages": [_page_to_dict(p) for p in pages.values()],
            "summaries": [
                {
                    "user_id": user_id,
                    "domain": domain,
                    "page_count": s.page_count,
                    "sitemap_valid": s.sitemap_valid,
                    "failed": s.failed,
                    "updated_at": _iso(s.updated_at),
                }
                for (user_id, domain), s in summaries.items()
            ],
        }
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreWriteFailed(f"Cannot write page store {self.path}: {exc}") from exc


__all__ = ["JsonFilePageStore"]
