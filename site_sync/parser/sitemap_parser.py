# File: site_sync/parser/sitemap_parser.py
"""site_sync.parser.sitemap_parser: классификация sitemap XML (index / urlset) и извлечение записей."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from lxml import etree

from site_sync.crawler.models import ChangeFrequency, SitemapEntry
from site_sync.utils import parse_timestamp


class SitemapKind(str, Enum):
    INDEX = "index"
    URLSET = "urlset"
    UNKNOWN = "unknown"


@dataclass
class SitemapDocument:
    """Разобранный sitemap: вложенные sitemap (index) или записи страниц (urlset)."""

    kind: SitemapKind
    sitemaps: List[str] = field(default_factory=list)
    entries: List[SitemapEntry] = field(default_factory=list)


def _text(element: etree._Element, tag: str) -> Optional[str]:
    child = element.find(f"{{*}}{tag}")
    if child is None or child.text is None:
        return None
    value = child.text.strip()
    return value or None


def _priority(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if 0.0 <= value <= 1.0 else None


def parse_sitemap(xml_content: str | bytes) -> SitemapDocument:
    """Разбирает XML sitemap и определяет его тип по корневому элементу.

    Args:
        xml_content: строка или байты с содержимым sitemap.

    Returns:
        SitemapDocument; для не-sitemap документов ``kind == UNKNOWN``.

    Пример:
    ```python
    doc = parse_sitemap(open('sitemap.xml', 'rb').read())
    if doc.kind is SitemapKind.URLSET:
        print([e.url for e in doc.entries])
    ```
    """
    data = xml_content.encode("utf-8") if isinstance(xml_content, str) else xml_content
    if not data.strip():
        return SitemapDocument(kind=SitemapKind.UNKNOWN)
    parser = etree.XMLParser(ns_clean=True, recover=True, resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError:
        return SitemapDocument(kind=SitemapKind.UNKNOWN)
    if root is None:
        return SitemapDocument(kind=SitemapKind.UNKNOWN)

    name = etree.QName(root).localname.lower()
    if name == "sitemapindex":
        locs = (_text(node, "loc") for node in root.iterfind("{*}sitemap"))
        return SitemapDocument(kind=SitemapKind.INDEX, sitemaps=[loc for loc in locs if loc])

    if name == "urlset":
        entries: List[SitemapEntry] = []
        for node in root.iterfind("{*}url"):
            loc = _text(node, "loc")
            if not loc:
                continue
            entries.append(
                SitemapEntry(
                    url=loc,
                    last_modified=parse_timestamp(_text(node, "lastmod")),
                    change_frequency=ChangeFrequency.parse(_text(node, "changefreq")),
                    priority=_priority(_text(node, "priority")),
                )
            )
        return SitemapDocument(kind=SitemapKind.URLSET, entries=entries)

    return SitemapDocument(kind=SitemapKind.UNKNOWN)


__all__ = ["SitemapKind", "SitemapDocument", "parse_sitemap"]
