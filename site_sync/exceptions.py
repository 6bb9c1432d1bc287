# File: site_sync/exceptions.py
"""site_sync.exceptions: error taxonomy of the discovery → fetch → reconcile pipeline.

Only :class:`CrawlFatal` is meant to reach the top-level caller; the other
errors are caught where they happen and turned into aggregate signals
(``failed`` set, ``errors`` list, ``sitemap_valid=False``).
"""
from __future__ import annotations

__all__ = [
    "SiteSyncError",
    "DiscoveryProbeFailed",
    "FetchFailed",
    "ExtractionFailed",
    "StoreError",
    "StoreWriteFailed",
    "StoreReadFailed",
    "CrawlFatal",
]


class SiteSyncError(Exception):
    """Base class for all project errors."""


class DiscoveryProbeFailed(SiteSyncError):
    """A single robots/sitemap candidate could not be used."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class FetchFailed(SiteSyncError):
    """Both fetch tiers were exhausted for a URL."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class ExtractionFailed(SiteSyncError):
    """HTML could not be parsed into page metadata."""


class StoreError(SiteSyncError):
    """Page store call failed."""


class StoreWriteFailed(StoreError):
    """Batch or row-level write to the page store failed."""


class StoreReadFailed(StoreError):
    """Reading from the page store failed."""


class CrawlFatal(SiteSyncError):
    """Resource-level failure that prevents any further progress of a run."""
