# File: site_sync/store/writer.py
"""site_sync.store.writer: sequential, fixed-size batch upserts with partial success."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from site_sync.crawler.models import PageRecord
from site_sync.exceptions import StoreWriteFailed
from site_sync.logger import get_logger
from site_sync.store.base import PageStore


@dataclass
class WriteSummary:
    stored: int = 0
    batches: int = 0
    errors: List[str] = field(default_factory=list)


class BatchWriter:
    """Upserts crawled pages in batches of *batch_size*.

    A failed batch is logged and skipped; the remaining batches are still
    written.
    """

    def __init__(self, store: PageStore, batch_size: int = 100) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.store = store
        self.batch_size = batch_size
        self.logger = get_logger("store")

    async def store_batch(self, user_id: str, pages: Sequence[PageRecord]) -> WriteSummary:
        summary = WriteSummary()
        for start in range(0, len(pages), self.batch_size):
            batch = pages[start:start + self.batch_size]
            summary.batches += 1
            try:
                await self.store.upsert_pages(user_id, batch)
            except StoreWriteFailed as exc:
                message = f"Batch {start}-{start + len(batch)} failed: {exc}"
                self.logger.error("Error storing %s", message)
                summary.errors.append(message)
                continue
            summary.stored += len(batch)
        self.logger.info(
            "Stored %d/%d pages in %d batch(es)", summary.stored, len(pages), summary.batches
        )
        return summary


__all__ = ["BatchWriter", "WriteSummary"]
