# File: site_sync/store/__init__.py
"""site_sync.store: page store interface, implementations and the batch writer."""

from .base import CrawlSummary, PageStore, StoredPage, SyncStatus
from .json_store import JsonFilePageStore
from .memory import InMemoryPageStore
from .writer import BatchWriter, WriteSummary

__all__ = [
    "CrawlSummary",
    "PageStore",
    "StoredPage",
    "SyncStatus",
    "InMemoryPageStore",
    "JsonFilePageStore",
    "BatchWriter",
    "WriteSummary",
]
