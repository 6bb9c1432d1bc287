# === FILE: site_sync/config.py ===
"""
Модуль для загрузки и валидации конфигурации SiteSync.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, List, Literal, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

__all__ = ["CrawlerConfig", "load_config", "DEFAULT_EXCLUDE_PATTERNS", "DEFAULT_SITEMAP_PATHS"]

DEFAULT_EXCLUDE_PATTERNS: List[str] = [
    "/wp-admin",
    "/wp-login",
    "/admin",
    "/cart",
    "/checkout",
    ".pdf",
    ".jpg",
    ".png",
    ".gif",
]

DEFAULT_SITEMAP_PATHS: List[str] = [
    "/sitemap.xml",
    "/sitemap_index.xml",
    "/sitemap-index.xml",
    "/wp-sitemap.xml",
    "/sitemapindex.xml",
    "/page-sitemap.xml",
]

_BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
_BROWSER_ACCEPT = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8"
)


class CrawlerConfig(BaseModel):
    """Конфигурация одного запуска обхода и синхронизации."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    scheme: Literal["https", "http"] = Field("https", description="Схема для голых доменов.")
    max_pages: int = Field(100, ge=1, description="Жесткий лимит по числу страниц.")
    concurrency: int = Field(10, ge=1, description="Размер пакета параллельных загрузок.")
    fetch_timeout: float = Field(15.0, gt=0, description="Таймаут обычного HTTP-запроса (секунд).")
    render_timeout: float = Field(25.0, gt=0, description="Таймаут навигации браузера (секунд).")
    navigation_timeout: float = Field(30.0, gt=0, description="Таймаут страницы браузера по умолчанию.")
    probe_timeout: float = Field(5.0, gt=0, description="Таймаут robots.txt и sitemap (секунд).")
    batch_delay: float = Field(0.1, ge=0, description="Пауза между пакетами (секунд).")
    user_agent: str = Field(_BROWSER_UA, min_length=1, description="User-Agent обычных запросов.")
    pool_user_agent: str = Field(
        "Mozilla/5.0 (compatible; WebsiteIndexer/1.0)",
        min_length=1,
        description="User-Agent страниц headless-браузера.",
    )
    accept_header: str = Field(_BROWSER_ACCEPT, description="Заголовок Accept.")
    follow_external_links: bool = False
    ignore_query_params: bool = False
    respect_robots: bool = False
    exclude_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    sitemap_paths: List[str] = Field(default_factory=lambda: list(DEFAULT_SITEMAP_PATHS))
    max_sitemap_depth: int = Field(3, ge=0, description="Глубина вложенных sitemap index.")
    render_fallback: bool = Field(True, description="Повтор через headless-браузер при ошибке.")
    render_suspected_spa: bool = Field(False, description="Рендерить страницы, похожие на SPA.")
    headless: bool = True
    prewarm_sessions: bool = False
    batch_size: int = Field(100, ge=1, description="Размер пакета записи в хранилище.")
    sync_max_pages: int = Field(500, ge=1, description="Лимит страниц при синхронизации.")

    @field_validator("sitemap_paths", mode="after")
    def _leading_slash(cls, v: List[str]) -> List[str]:
        return [p if p.startswith("/") else f"/{p}" for p in v]


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> CrawlerConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект CrawlerConfig.
    Без пути берёт configs/default.yaml, а при его отсутствии значения по умолчанию.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return CrawlerConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    try:
        return CrawlerConfig(**data)
    except ValidationError:
        raise
