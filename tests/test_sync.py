# File: tests/test_sync.py
from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from site_sync.exceptions import CrawlFatal, StoreReadFailed, StoreWriteFailed
from site_sync.store import InMemoryPageStore, SyncStatus
from site_sync.sync import SyncReconciler

T1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T2 = T1 + timedelta(days=30)
BASE = "https://example.com"


async def seed(store, make_page, pages, user_id="u1"):
    """Store *pages* (path → lastmod) as previously synced sitemap pages."""
    records = [make_page(f"{BASE}{path}", last_modified=lm) for path, lm in pages.items()]
    await store.upsert_pages(user_id, records, sync_status=SyncStatus.SYNCED, sitemap_discovered=True)


def crawl_returning(pages):
    calls = []

    async def _crawl(domain, user_id, max_pages):
        calls.append((domain, user_id, max_pages))
        return list(pages)

    _crawl.calls = calls
    return _crawl


async def statuses(store, user_id="u1"):
    return {p.url: p.sync_status for p in await store.list_pages(user_id)}


@pytest.mark.asyncio()
async def test_three_stored_two_fresh_one_changed(make_page):
    store = InMemoryPageStore()
    await store.upsert_pages(
        "u1",
        [
            make_page(f"{BASE}/a", last_modified=T1),
            make_page(f"{BASE}/b", last_modified=T1),
            make_page(f"{BASE}/c", last_modified=T1),
        ],
        sync_status=SyncStatus.SYNCED,
        sitemap_discovered=True,
    )
    fresh = [make_page(f"{BASE}/a", last_modified=T1), make_page(f"{BASE}/b", last_modified=T2)]
    crawl = crawl_returning(fresh)

    result = await SyncReconciler(store, crawl, max_pages=500).sync("example.com", "u1")

    assert (result.added, result.updated, result.removed, result.errors) == (0, 1, 1, [])
    assert result.unchanged == 1
    assert crawl.calls == [("example.com", "u1", 500)]
    rows = {p.url: p for p in await store.list_pages("u1")}
    assert rows[f"{BASE}/b"].last_modified == T2
    assert rows[f"{BASE}/c"].sync_status is SyncStatus.REMOVED
    # removed rows are kept, only their status changes
    assert len(rows) == 3


@pytest.mark.asyncio()
async def test_new_pages_are_added_as_synced(make_page):
    store = InMemoryPageStore()
    result = await SyncReconciler(store, crawl_returning([make_page(f"{BASE}/new")])).sync("example.com", "u1")
    assert result.added == 1
    [row] = await store.get_discovered_pages("u1")
    assert row.sync_status is SyncStatus.SYNCED
    assert row.sitemap_discovered is True


@pytest.mark.asyncio()
async def test_missing_lastmod_counts_as_unchanged(make_page):
    store = InMemoryPageStore()
    await seed(store, make_page, {"/a": T1})
    result = await SyncReconciler(store, crawl_returning([make_page(f"{BASE}/a")])).sync("example.com", "u1")
    assert result.unchanged == 1
    assert result.updated == 0


@pytest.mark.asyncio()
async def test_same_instant_different_zone_is_unchanged(make_page):
    store = InMemoryPageStore()
    await seed(store, make_page, {"/a": T1})
    shifted = T1.astimezone(timezone(timedelta(hours=5)))
    result = await SyncReconciler(store, crawl_returning([make_page(f"{BASE}/a", last_modified=shifted)])).sync(
        "example.com", "u1"
    )
    assert result.unchanged == 1


@pytest.mark.asyncio()
async def test_removed_page_that_returns_is_restored(make_page):
    store = InMemoryPageStore()
    await seed(store, make_page, {"/a": T1})
    await SyncReconciler(store, crawl_returning([])).sync("example.com", "u1")
    assert (await statuses(store))[f"{BASE}/a"] is SyncStatus.REMOVED

    result = await SyncReconciler(store, crawl_returning([make_page(f"{BASE}/a", last_modified=T1)])).sync(
        "example.com", "u1"
    )
    assert result.updated == 1
    assert (await statuses(store))[f"{BASE}/a"] is SyncStatus.SYNCED


@pytest.mark.asyncio()
async def test_pages_not_from_sitemap_are_never_removed(make_page):
    store = InMemoryPageStore()
    await store.upsert_pages("u1", [make_page(f"{BASE}/manual")])
    result = await SyncReconciler(store, crawl_returning([])).sync("example.com", "u1")
    assert result.removed == 0
    assert (await statuses(store))[f"{BASE}/manual"] is None


@pytest.mark.asyncio()
async def test_crawl_failure_propagates_and_marks_nothing(make_page):
    store = InMemoryPageStore()
    await seed(store, make_page, {"/a": T1, "/b": T1})

    async def crawl(domain, user_id, max_pages):
        raise CrawlFatal("browser unavailable")

    with pytest.raises(CrawlFatal):
        await SyncReconciler(store, crawl).sync("example.com", "u1")
    assert set((await statuses(store)).values()) == {SyncStatus.SYNCED}


@pytest.mark.asyncio()
async def test_unreadable_store_reports_error():
    class BrokenStore(InMemoryPageStore):
        async def get_discovered_pages(self, user_id):
            raise StoreReadFailed("database unreachable")

    crawl = crawl_returning([])
    result = await SyncReconciler(BrokenStore(), crawl).sync("example.com", "u1")
    assert result.errors == ["Sync failed: database unreachable"]
    assert crawl.calls == []


@pytest.mark.asyncio()
async def test_row_failures_are_collected(make_page):
    class PartialStore(InMemoryPageStore):
        async def upsert_pages(self, user_id, pages, **kwargs):
            if any(p.url.endswith("/bad") for p in pages):
                raise StoreWriteFailed("constraint violation")
            await super().upsert_pages(user_id, pages, **kwargs)

        async def update_sync_status(self, url, user_id, status, timestamp):
            if url.endswith("/gone-bad"):
                raise StoreWriteFailed("timeout")
            await super().update_sync_status(url, user_id, status, timestamp)

    store = PartialStore()
    await seed(store, make_page, {"/gone": T1, "/gone-bad": T1})
    fresh = [make_page(f"{BASE}/good"), make_page(f"{BASE}/bad")]
    result = await SyncReconciler(store, crawl_returning(fresh)).sync("example.com", "u1")

    assert result.added == 1
    assert result.removed == 1
    assert len(result.errors) == 2
    assert any("/bad" in e for e in result.errors)
    assert any("/gone-bad" in e for e in result.errors)


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "existing,fresh",
    [
        (set(), {"/a"}),
        ({"/a", "/b"}, set()),
        ({"/a", "/b", "/c"}, {"/b", "/c", "/d"}),
        ({"/a"}, {"/a"}),
        ({"/x", "/y", "/z"}, {"/a", "/b", "/c"}),
    ],
)
async def test_reconciliation_partitions_the_union(make_page, existing, fresh):
    store = InMemoryPageStore()
    await seed(store, make_page, {path: T1 for path in existing})
    # every other shared page gets a new lastmod
    changed = set(itertools.islice(sorted(existing & fresh), 0, None, 2))
    pages = [make_page(f"{BASE}{p}", last_modified=T2 if p in changed else T1) for p in sorted(fresh)]

    result = await SyncReconciler(store, crawl_returning(pages)).sync("example.com", "u1")

    assert result.errors == []
    assert result.added == len(fresh - existing)
    assert result.removed == len(existing - fresh)
    assert result.updated == len(changed)
    assert result.unchanged == len((existing & fresh) - changed)
    assert result.added + result.updated + result.removed + result.unchanged == len(existing | fresh)
