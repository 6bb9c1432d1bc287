# site_sync/report/json_report.py

"""
Генерация JSON-отчёта для проекта SiteSync.

Сериализация списка PageRecord в файл.
"""
import json
from pathlib import Path
from typing import Sequence

from site_sync.crawler.models import PageRecord
from site_sync.report import page_to_dict


def render_json(pages: Sequence[PageRecord], output_path: Path | str, *, pretty: bool = True) -> Path:
    """
    Сохраняет инвентарь страниц в формате JSON по указанному пути.

    :param pages: страницы, собранные обходом
    :param output_path: путь к JSON-файлу
    :param pretty: отступ 2 пробела
    :return: Path сохранённого файла

    Пример:
    ```python
    from site_sync.report.json_report import render_json
    report_path = render_json(run.pages, 'reports/pages.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    data = {
        'total': len(pages),
        'pages': [page_to_dict(p) for p in pages],
    }

    with output.open('w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2 if pretty else None)

    return output
