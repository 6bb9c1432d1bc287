# File: site_sync/report/__init__.py
"""site_sync.report: JSON и HTML отчёты по инвентарю страниц, используемые CLI и тестами."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from site_sync.crawler.models import PageRecord

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def page_to_dict(page: PageRecord) -> Dict[str, Any]:
    """Плоское JSON-совместимое представление PageRecord."""
    return {
        "url": page.url,
        "domain": page.domain,
        "title": page.title,
        "description": page.description,
        "last_modified": page.last_modified.isoformat() if page.last_modified else None,
        "change_frequency": page.change_frequency.value if page.change_frequency else None,
        "priority": page.priority,
        "links": list(page.links),
        "used_fallback": page.used_fallback,
    }


from .html_report import render_html  # noqa: E402
from .json_report import render_json  # noqa: E402

__all__ = ["TEMPLATE_DIR", "page_to_dict", "render_json", "render_html"]
