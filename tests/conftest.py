# File: tests/conftest.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, List, Optional, Union

import pytest
from aiohttp import web
from playwright.async_api import Error as PlaywrightError

from site_sync.config import CrawlerConfig
from site_sync.crawler.models import PageRecord

Handler = Callable[[web.Request], "web.StreamResponse"]


# --------------------------------------------------------------------------- #
#                   Fake Playwright objects (no Chromium in tests)             #
# --------------------------------------------------------------------------- #


class FakeResponse:
    def __init__(self, headers: Optional[Dict[str, str]] = None) -> None:
        self.headers = headers or {}


class FakePage:
    """Stands in for ``playwright.async_api.Page``."""

    def __init__(
        self,
        render: Optional[Callable[[str], str]] = None,
        error: Optional[Exception] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.render = render or (
            lambda url: f"<html><head><title>Rendered</title></head><body>{url}</body></html>"
        )
        self.error = error
        self.headers = headers
        self.closed = False
        self.visited: List[str] = []
        self.navigation_timeout: Optional[float] = None
        self._current = ""

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True

    def set_default_navigation_timeout(self, timeout: float) -> None:
        self.navigation_timeout = timeout

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None):
        self.visited.append(url)
        if self.error is not None:
            raise self.error
        self._current = url
        return FakeResponse(self.headers)

    async def content(self) -> str:
        return self.render(self._current)


class FakeBrowser:
    """Stands in for :class:`site_sync.crawler.browser.BrowserManager`."""

    def __init__(
        self,
        page_factory: Callable[[], FakePage] = FakePage,
        launch_error: Optional[Exception] = None,
    ) -> None:
        self.page_factory = page_factory
        self.launch_error = launch_error
        self.pages: List[FakePage] = []
        self.closed = False

    async def new_page(self) -> FakePage:
        if self.launch_error is not None:
            raise self.launch_error
        page = self.page_factory()
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True


@pytest.fixture()
def fake_browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture()
def broken_render_browser() -> FakeBrowser:
    """Browser whose pages fail every navigation."""
    return FakeBrowser(page_factory=lambda: FakePage(error=PlaywrightError("net::ERR_FAILED")))


# --------------------------------------------------------------------------- #
#                              Local test sites                               #
# --------------------------------------------------------------------------- #


def _html_page(title: str, *links: str, body: str = "") -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return f"<html><head><title>{title}</title></head><body>{body}{anchors}</body></html>"


def _build_site(routes: Dict[str, Union[str, Handler]], hits: Optional[Dict[str, int]] = None) -> web.Application:
    """aiohttp app serving *routes*; a ``str`` value is served as ``text/html``.

    Every request is counted in *hits* by path.
    """
    counter = hits if hits is not None else {}

    @web.middleware
    async def count_hits(request: web.Request, handler):
        counter[request.path] = counter.get(request.path, 0) + 1
        return await handler(request)

    app = web.Application(middlewares=[count_hits])
    for path, value in routes.items():
        if isinstance(value, str):

            async def _static(_request, _html=value):
                return web.Response(text=_html, content_type="text/html")

            app.router.add_get(path, _static)
        else:
            app.router.add_get(path, value)
    return app


@pytest.fixture()
def serve(unused_tcp_port_factory):
    """``async with serve(app) as base_url`` runs *app* on a free local port."""

    @asynccontextmanager
    async def _serve(app: web.Application) -> AsyncIterator[str]:
        port = unused_tcp_port_factory()
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, "localhost", port)
        await site.start()
        try:
            yield f"http://localhost:{port}"
        finally:
            await runner.cleanup()

    return _serve


# --------------------------------------------------------------------------- #
#                                  Config                                     #
# --------------------------------------------------------------------------- #


@pytest.fixture()
def config() -> CrawlerConfig:
    """Fast config for local http test servers; the render tier is off."""
    return CrawlerConfig(
        scheme="http",
        user_agent="TestAgent/1.0",
        batch_delay=0,
        fetch_timeout=2,
        probe_timeout=2,
        render_fallback=False,
    )


@pytest.fixture()
def make_page() -> Callable[..., PageRecord]:
    def _make(url: str, **fields) -> PageRecord:
        fields.setdefault("domain", "example.com")
        fields.setdefault("title", url.rsplit("/", 1)[-1] or "Home")
        return PageRecord(url=url, **fields)

    return _make


@pytest.fixture()
def html_page() -> Callable[..., str]:
    """``html_page(title, *links, body="")`` → minimal HTML document."""
    return _html_page


@pytest.fixture()
def build_site() -> Callable[..., web.Application]:
    """``build_site(routes, hits=None)`` → aiohttp app; see :func:`_build_site`."""
    return _build_site


@pytest.fixture()
def make_browser() -> Callable[..., FakeBrowser]:
    """``make_browser(render=..., error=..., headers=..., launch_error=...)`` → FakeBrowser."""

    def _make(
        render: Optional[Callable[[str], str]] = None,
        error: Optional[Exception] = None,
        headers: Optional[Dict[str, str]] = None,
        launch_error: Optional[Exception] = None,
    ) -> FakeBrowser:
        return FakeBrowser(
            page_factory=lambda: FakePage(render=render, error=error, headers=headers),
            launch_error=launch_error,
        )

    return _make
