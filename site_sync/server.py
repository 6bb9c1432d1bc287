# File: site_sync/server.py
"""site_sync.server: HTTP trigger surface for crawls and sitemap syncs.

Handlers only validate the request and schedule a background job; the
caller learns the outcome later through the stored crawl summary and the
``sync_status`` of its pages.

    POST /api/crawl          {domain, userId, maxPages?, followExternalLinks?,
                              ignoreQueryParams?, excludePatterns?}
    POST /api/sitemap-sync   {domain, userId}
    GET  /api/crawl?domain=&userId=
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, List, Optional, Set

from aiohttp import web
from pydantic import BaseModel, ConfigDict, Field, field_validator

from site_sync.config import CrawlerConfig
from site_sync.engine import Engine
from site_sync.exceptions import SiteSyncError, StoreReadFailed
from site_sync.logger import logger
from site_sync.store.base import PageStore
from site_sync.utils import is_same_domain, split_domain

__all__ = ["CrawlRequest", "SyncRequest", "create_app", "ENGINE_KEY", "JOBS_KEY"]

ENGINE_KEY = web.AppKey("engine", Engine)
JOBS_KEY = web.AppKey("jobs", Set[asyncio.Task])

_ACCEPTED = {"success": True, "status": "processing"}


class SyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    domain: str = Field(min_length=1)
    user_id: str = Field(alias="userId", min_length=1)

    @field_validator("domain")
    def _valid_domain(cls, v: str) -> str:
        split_domain(v)
        return v.strip()


class CrawlRequest(SyncRequest):
    max_pages: Optional[int] = Field(None, alias="maxPages", ge=1)
    follow_external_links: Optional[bool] = Field(None, alias="followExternalLinks")
    ignore_query_params: Optional[bool] = Field(None, alias="ignoreQueryParams")
    exclude_patterns: Optional[List[str]] = Field(None, alias="excludePatterns")


def _bad_request(message: str) -> web.Response:
    return web.json_response({"success": False, "error": message}, status=400)


async def _parse(request: web.Request, model: type[SyncRequest]) -> SyncRequest:
    """Validate the JSON body; every problem surfaces as ``ValueError``."""
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValueError(f"Invalid JSON body: {exc}") from exc
    if not isinstance(body, dict):
        raise ValueError("JSON object expected")
    return model.model_validate(body)


def _schedule(app: web.Application, name: str, job: Awaitable[Any]) -> None:
    """Run *job* in the background; failures end up in the log only."""

    async def _runner() -> None:
        try:
            await job
        except SiteSyncError as exc:
            logger.error("Background job %s failed: %s", name, exc)
        except Exception:
            logger.exception("Background job %s crashed", name)
        else:
            logger.info("Background job %s finished", name)

    task = asyncio.create_task(_runner(), name=name)
    jobs = app[JOBS_KEY]
    jobs.add(task)
    task.add_done_callback(jobs.discard)


async def start_crawl(request: web.Request) -> web.Response:
    try:
        req = await _parse(request, CrawlRequest)
    except ValueError as exc:
        return _bad_request(str(exc))
    engine = request.app[ENGINE_KEY].with_overrides(
        follow_external_links=req.follow_external_links,
        ignore_query_params=req.ignore_query_params,
        exclude_patterns=req.exclude_patterns,
    )
    _schedule(
        request.app,
        f"crawl:{req.domain}:{req.user_id}",
        engine.crawl_site(req.domain, req.user_id, max_pages=req.max_pages),
    )
    return web.json_response(_ACCEPTED)


async def start_sync(request: web.Request) -> web.Response:
    try:
        req = await _parse(request, SyncRequest)
    except ValueError as exc:
        return _bad_request(str(exc))
    engine = request.app[ENGINE_KEY]
    _schedule(
        request.app,
        f"sync:{req.domain}:{req.user_id}",
        engine.sync(req.domain, req.user_id),
    )
    return web.json_response(_ACCEPTED)


async def crawl_status(request: web.Request) -> web.Response:
    domain = request.query.get("domain", "")
    user_id = request.query.get("userId", "")
    if not domain or not user_id:
        return _bad_request("domain and userId are required")
    engine = request.app[ENGINE_KEY]
    try:
        _, host = split_domain(domain, engine.config.scheme)
    except ValueError as exc:
        return _bad_request(str(exc))
    try:
        summary = await engine.store.get_crawl_summary(user_id, host)
        pages = [p for p in await engine.store.list_pages(user_id) if is_same_domain(p.url, host)]
    except StoreReadFailed as exc:
        logger.error("Error reading crawl status of %s: %s", host, exc)
        return web.json_response({"success": False, "error": str(exc)}, status=500)

    payload: dict[str, Any] = {
        "success": True,
        "domain": host,
        "storedPages": len(pages),
        "summary": None,
    }
    if summary is not None:
        payload["summary"] = {
            "pageCount": summary.page_count,
            "sitemapValid": summary.sitemap_valid,
            "failed": summary.failed,
            "updatedAt": summary.updated_at.isoformat() if summary.updated_at else None,
        }
    return web.json_response(payload)


async def _cancel_jobs(app: web.Application) -> None:
    jobs = list(app[JOBS_KEY])
    for task in jobs:
        task.cancel()
    if jobs:
        await asyncio.gather(*jobs, return_exceptions=True)
        logger.info("Cancelled %d background job(s)", len(jobs))


def create_app(config: CrawlerConfig, store: PageStore, *, engine: Optional[Engine] = None) -> web.Application:
    """Build the aiohttp application; *engine* replaces the default one in tests."""
    app = web.Application()
    app[ENGINE_KEY] = engine or Engine(config, store)
    app[JOBS_KEY] = set()
    app.router.add_post("/api/crawl", start_crawl)
    app.router.add_get("/api/crawl", crawl_status)
    app.router.add_post("/api/sitemap-sync", start_sync)
    app.on_cleanup.append(_cancel_jobs)
    return app
