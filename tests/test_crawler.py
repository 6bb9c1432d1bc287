# File: tests/test_crawler.py
# Test-suite for the SiteSync breadth-first crawler
from __future__ import annotations

import asyncio
from typing import Dict

import pytest
from aiohttp import web

from site_sync.config import CrawlerConfig
from site_sync.crawler.crawler import AsyncCrawler, CrawlRun
from site_sync.exceptions import CrawlFatal

#: pages behind the root of the stress site
STRESS_PAGES: int = 60


async def run_crawler(config: CrawlerConfig, base: str, browser=None, **kwargs) -> CrawlRun:
    async with AsyncCrawler(config, browser=browser) as crawler:
        return await asyncio.wait_for(crawler.run(base, **kwargs), timeout=30)


def page_hits(hits: Dict[str, int]) -> Dict[str, int]:
    """Request counts without robots.txt and sitemap probes."""
    return {
        path: count
        for path, count in hits.items()
        if path != "/robots.txt" and not path.endswith(".xml")
    }


@pytest.mark.asyncio()
async def test_every_url_fetched_once(config, build_site, serve, html_page):
    hits: Dict[str, int] = {}
    routes = {
        "/": html_page("Home", "/a", "/b", "/a/", "/#top"),
        "/a": html_page("A", "/", "/b", "/c"),
        "/b": html_page("B", "/a", "/c", "/c?"),
        "/c": html_page("C", "/", "/a", "/b"),
    }
    async with serve(build_site(routes, hits)) as base:
        run = await run_crawler(config, base)

    urls = [p.url for p in run.pages]
    assert sorted(urls) == sorted([base, f"{base}/a", f"{base}/b", f"{base}/c"])
    assert len(urls) == len(set(urls))
    assert page_hits(hits) == {"/": 1, "/a": 1, "/b": 1, "/c": 1}
    assert run.state.visited == set(urls)
    assert run.state.discovered >= run.state.visited
    assert not run.state.queued


@pytest.mark.asyncio()
async def test_max_pages_is_a_hard_cap(config, build_site, serve, html_page):
    links = [f"/page{i}" for i in range(1, STRESS_PAGES)]
    routes = {"/": html_page("Root", *links)}
    for link in links:
        routes[link] = html_page(link, "/")
    async with serve(build_site(routes)) as base:
        run = await run_crawler(config, base, max_pages=7, concurrency=5)

    assert len(run.pages) == 7
    assert run.pages[0].url == base


@pytest.mark.asyncio()
async def test_large_site_is_crawled_completely(config, build_site, serve, html_page):
    links = [f"/page{i}" for i in range(1, STRESS_PAGES)]
    routes = {"/": html_page("Root", *links)}
    for link in links:
        routes[link] = html_page(link)
    async with serve(build_site(routes)) as base:
        run = await run_crawler(config, base, max_pages=500)
    assert len(run.pages) == STRESS_PAGES


@pytest.mark.asyncio()
async def test_excluded_and_binary_links_are_not_fetched(config, build_site, serve, html_page):
    hits: Dict[str, int] = {}
    routes = {
        "/": html_page("Home", "/blog", "/wp-admin/settings", "/cart", "/logo.png", "/guide.pdf"),
        "/blog": html_page("Blog"),
        "/wp-admin/settings": html_page("Admin"),
        "/cart": html_page("Cart"),
    }
    async with serve(build_site(routes, hits)) as base:
        run = await run_crawler(config, base)

    assert {p.url for p in run.pages} == {base, f"{base}/blog"}
    assert f"{base}/wp-admin/settings" in run.state.skipped
    assert f"{base}/cart" in run.state.skipped
    assert "/wp-admin/settings" not in hits
    assert "/cart" not in hits


@pytest.mark.asyncio()
async def test_custom_exclude_patterns(config, build_site, serve, html_page):
    routes = {
        "/": html_page("Home", "/docs/a", "/private/b"),
        "/docs/a": html_page("A"),
        "/private/b": html_page("B"),
    }
    cfg = config.model_copy(update={"exclude_patterns": ["/private"]})
    async with serve(build_site(routes)) as base:
        run = await run_crawler(cfg, base)
    assert {p.url for p in run.pages} == {base, f"{base}/docs/a"}


@pytest.mark.asyncio()
async def test_external_links_not_followed(config, build_site, serve, html_page):
    routes = {"/": html_page("Home", "https://external.example/page", "/local")}
    routes["/local"] = html_page("Local")
    async with serve(build_site(routes)) as base:
        run = await run_crawler(config, base)

    assert {p.url for p in run.pages} == {base, f"{base}/local"}
    home = next(p for p in run.pages if p.url == base)
    assert home.links == [f"{base}/local"]
    assert "https://external.example/page" not in run.state.discovered


@pytest.mark.asyncio()
async def test_failed_pages_recorded_and_crawl_continues(config, build_site, serve, html_page):
    async def broken(_request):
        return web.Response(status=503, text="down")

    routes = {"/": html_page("Home", "/broken", "/ok"), "/broken": broken, "/ok": html_page("OK")}
    async with serve(build_site(routes)) as base:
        run = await run_crawler(config, base)

    assert {p.url for p in run.pages} == {base, f"{base}/ok"}
    assert run.state.failed == {f"{base}/broken"}


@pytest.mark.asyncio()
async def test_sitemap_seeds_and_metadata(config, build_site, serve, html_page):
    async def sitemap(request: web.Request) -> web.Response:
        base = f"http://{request.host}"
        body = (
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            f"<url><loc>{base}/orphan</loc><lastmod>2024-03-01</lastmod>"
            "<changefreq>monthly</changefreq><priority>0.3</priority></url>"
            "</urlset>"
        )
        return web.Response(text=body, content_type="application/xml")

    routes = {
        "/": html_page("Home"),
        "/orphan": html_page("Orphan"),
        "/sitemap.xml": sitemap,
    }
    async with serve(build_site(routes)) as base:
        run = await run_crawler(config, base)

    assert run.sitemap_valid is True
    orphan = next(p for p in run.pages if p.url == f"{base}/orphan")
    assert orphan.last_modified.month == 3
    assert orphan.priority == 0.3
    assert orphan.change_frequency.value == "monthly"


@pytest.mark.asyncio()
async def test_robots_rules_respected_on_request(config, build_site, serve, html_page):
    async def robots(_request):
        return web.Response(text="User-agent: *\nDisallow: /members", content_type="text/plain")

    routes = {
        "/": html_page("Home", "/members/list", "/public"),
        "/members/list": html_page("Members"),
        "/public": html_page("Public"),
        "/robots.txt": robots,
    }
    async with serve(build_site(routes)) as base:
        lenient = await run_crawler(config, base)
        strict = await run_crawler(config.model_copy(update={"respect_robots": True}), base)

    assert f"{base}/members/list" in {p.url for p in lenient.pages}
    assert {p.url for p in strict.pages} == {base, f"{base}/public"}
    assert f"{base}/members/list" in strict.state.skipped


@pytest.mark.asyncio()
async def test_query_params_ignored_on_request(config, build_site, serve, html_page):
    routes = {
        "/": html_page("Home", "/list?page=1", "/list?page=2"),
        "/list": html_page("List"),
    }
    async with serve(build_site(routes)) as base:
        keep = await run_crawler(config, base)
        drop = await run_crawler(config.model_copy(update={"ignore_query_params": True}), base)

    assert {p.url for p in keep.pages} == {base, f"{base}/list?page=1", f"{base}/list?page=2"}
    assert {p.url for p in drop.pages} == {base, f"{base}/list"}


@pytest.mark.asyncio()
async def test_render_fallback_marks_page(config, build_site, serve, html_page, make_browser):
    async def broken(_request):
        return web.Response(status=500)

    browser = make_browser()
    routes = {"/": html_page("Home", "/app"), "/app": broken}
    cfg = config.model_copy(update={"render_fallback": True})
    async with serve(build_site(routes)) as base:
        run = await run_crawler(cfg, base, browser=browser)

    app_page = next(p for p in run.pages if p.url == f"{base}/app")
    assert app_page.used_fallback is True
    assert app_page.title == "Rendered"
    assert browser.closed is True
    assert all(p.closed for p in browser.pages)


@pytest.mark.asyncio()
async def test_browser_failure_aborts_crawl(config, build_site, serve, html_page, make_browser):
    async def broken(_request):
        return web.Response(status=500)

    browser = make_browser(launch_error=CrawlFatal("Unable to start headless browser"))
    routes = {"/": html_page("Home", "/app"), "/app": broken}
    cfg = config.model_copy(update={"render_fallback": True})
    async with serve(build_site(routes)) as base:
        with pytest.raises(CrawlFatal):
            await run_crawler(cfg, base, browser=browser)
    assert browser.closed is True


@pytest.mark.asyncio()
async def test_unreachable_site_yields_no_pages(config, unused_tcp_port):
    run = await run_crawler(config, f"http://localhost:{unused_tcp_port}")
    assert run.pages == []
    assert run.state.failed == {f"http://localhost:{unused_tcp_port}"}
    assert run.sitemap_valid is False
