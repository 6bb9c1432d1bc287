# === FILE: site_sync/parser/html_parser.py ===
"""HTML page extraction for SiteSync.

:func:`extract_page` turns the HTML of one fetched page into a
:class:`~site_sync.crawler.models.PageRecord`:

* title: ``<title>`` text, else the last path segment, else ``"Untitled Page"``.
* description: ``<meta name="description">``, falling back to ``og:description``.
* links: every ``<a href>`` resolved against the page URL, normalised, kept
  only when it is on the crawled domain; order of first appearance, no
  duplicates.
* last_modified: the sitemap ``<lastmod>`` when present, else the HTTP
  ``Last-Modified`` header.
* change_frequency / priority: from the sitemap entry only.

Markup BeautifulSoup cannot handle at all raises
:class:`~site_sync.exceptions.ExtractionFailed`; the controller then stores a
partial record instead.
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_sync.crawler.models import PageRecord, SitemapEntry
from site_sync.exceptions import ExtractionFailed
from site_sync.utils import is_same_domain, normalize_url, parse_timestamp

__all__: Sequence[str] = ("extract_page", "extract_links")

_SKIPPED_SCHEMES = ("mailto:", "javascript:", "tel:", "data:")


def _meta_content(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if not isinstance(tag, Tag):
        return None
    content = tag.get("content")
    if not isinstance(content, str):
        return None
    return content.strip() or None


def extract_links(
    soup: BeautifulSoup,
    page_url: str,
    domain: str,
    *,
    keep_query: bool = True,
    include_external: bool = False,
) -> List[str]:
    """Normalised, de-duplicated links of a parsed page; same-domain only unless *include_external*."""
    seen: set[str] = set()
    links: List[str] = []
    for tag in soup.find_all("a", href=True):
        if not isinstance(tag, Tag):
            continue
        href_val = tag.get("href")
        if not isinstance(href_val, str):
            continue
        raw = href_val.strip()
        if not raw or raw.lower().startswith(_SKIPPED_SCHEMES):
            continue
        try:
            absolute = urljoin(page_url, raw)
        except ValueError:
            continue
        normalized = normalize_url(absolute, keep_query=keep_query)
        if normalized is None or normalized in seen:
            continue
        if not include_external and not is_same_domain(normalized, domain):
            continue
        seen.add(normalized)
        links.append(normalized)
    return links


def extract_page(
    html: str,
    url: str,
    domain: str,
    sitemap_entry: Optional[SitemapEntry] = None,
    last_modified_header: Optional[str] = None,
    *,
    keep_query: bool = True,
    include_external: bool = False,
    used_fallback: bool = False,
) -> PageRecord:
    """Parse *html* fetched from *url* into a :class:`PageRecord`."""
    try:
        soup = BeautifulSoup(html, "html.parser")
    except Exception as exc:  # the stdlib parser raises assorted errors on broken markup
        raise ExtractionFailed(f"{url}: {exc}") from exc

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if isinstance(title_tag, Tag) else ""

    description = _meta_content(soup, name="description") or _meta_content(
        soup, property="og:description"
    )

    if sitemap_entry is not None and sitemap_entry.last_modified is not None:
        last_modified = sitemap_entry.last_modified
    else:
        last_modified = parse_timestamp(last_modified_header)

    return PageRecord(
        url=url,
        domain=domain,
        title=title or PageRecord.fallback_title(url),
        description=description,
        last_modified=last_modified,
        change_frequency=sitemap_entry.change_frequency if sitemap_entry else None,
        priority=sitemap_entry.priority if sitemap_entry else None,
        links=extract_links(
            soup, url, domain, keep_query=keep_query, include_external=include_external
        ),
        used_fallback=used_fallback,
    )
