# File: site_sync/report/html_report.py
"""site_sync.report.html_report: Генерация HTML-отчёта с помощью Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from site_sync.crawler.models import PageRecord
from site_sync.report import page_to_dict


def render_html(
    pages: Sequence[PageRecord],
    template_dir: Union[Path, str],
    output_path: Union[Path, str],
) -> Path:
    """Рендерит HTML-отчёт из шаблона report.html.j2 и сохраняет его.

    Args:
        pages: страницы, собранные обходом.
        template_dir: директория с Jinja2-шаблонами (обычно report.TEMPLATE_DIR).
        output_path: путь к итоговому HTML-файлу.

    Returns:
        Path до сохранённого HTML-файла.
    """
    template_dir = Path(template_dir)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template("report.html.j2")

    rows = [page_to_dict(p) for p in pages]
    context: dict[str, Any] = {
        "pages": rows,
        "domains": sorted({p.domain for p in pages}),
        "rendered_count": sum(1 for p in pages if p.used_fallback),
    }

    output_path.write_text(template.render(**context), encoding="utf-8")
    return output_path
