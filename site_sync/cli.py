#!/usr/bin/env python3
"""
Точка входа SiteSync через командную строку.

Команды:
  crawl DOMAIN   Обойти сайт, сохранить страницы и вывести/сохранить отчёты
  sync DOMAIN    Сверить сохранённые страницы со свежим обходом
  serve          Запустить HTTP API (POST /api/crawl, POST /api/sitemap-sync)
  config         Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --store PATH        JSON-файл хранилища страниц (в памяти, если не указан)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stderr, если не указан)
  --log-format FORMAT Формат логирования

Пример:
  site-sync --store pages.json crawl example.com --user u1 --limit 50 --json pages.json
  site-sync --store pages.json sync example.com --user u1
"""
import sys
import asyncio
import json
from pathlib import Path

import click
from aiohttp import web

from site_sync import __version__
from site_sync.config import load_config
from site_sync.engine import run_crawl, run_sync
from site_sync.exceptions import SiteSyncError, StoreError
from site_sync.logger import configure, logger
from site_sync.report import TEMPLATE_DIR, page_to_dict
from site_sync.report.html_report import render_html
from site_sync.report.json_report import render_json
from site_sync.server import create_app
from site_sync.store import InMemoryPageStore, JsonFilePageStore

CONTEXT_SETTINGS = dict(help_option_names=["--help"])

run_app = web.run_app


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _open_store(path):
    if path is None:
        return InMemoryPageStore()
    try:
        return JsonFilePageStore(path)
    except StoreError as e:
        print_error(f'Ошибка открытия хранилища: {e}')


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteSync, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--store', '-s', 'store_path',
    default=None,
    envvar='SITE_SYNC_STORE',
    type=click.Path(dir_okay=False, path_type=Path),
    help='JSON-файл хранилища страниц (в памяти, если не указан).'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, store_path, log_level, log_file, log_format):
    """Группа команд SiteSync CLI."""
    configure(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg
    ctx.obj['store_path'] = store_path


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('domain')
@click.option('--user', '-u', 'user_id', default='local', show_default=True, help='Владелец страниц')
@click.option(
    '--limit', '-l', 'limit',
    type=click.IntRange(min=1),
    default=None,
    help='Макс. число страниц (override max_pages)'
)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт в файл'
)
@click.option(
    '--template', '-t', 'template_dir',
    default=str(TEMPLATE_DIR),
    show_default=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Папка с Jinja2-шаблонами'
)
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.pass_context
def crawl(ctx, domain, user_id, limit, json_output, html_output, template_dir, pretty):
    """Обойти DOMAIN, сохранить страницы и сгенерировать отчёты."""
    cfg = ctx.obj['config']
    if limit is not None:
        cfg = cfg.model_copy(update={'max_pages': limit})
    store = _open_store(ctx.obj['store_path'])
    logger.info("Starting crawl of %s (max %d pages)", domain, cfg.max_pages)
    try:
        run = asyncio.run(run_crawl(cfg, store, domain, user_id))
    except ValueError as e:
        print_error(f'Некорректный домен: {e}')
    except SiteSyncError as e:
        print_error(f'Ошибка при обходе: {e}')

    pages = run.pages
    logger.info(
        "Crawled %d page(s), %d failed, sitemap %s",
        len(pages),
        len(run.state.failed),
        "found" if run.sitemap_valid else "not found",
    )

    # Если не сохраняем в файл, печатаем в stdout
    if not json_output and not html_output:
        indent = 2 if pretty else None
        click.echo(json.dumps([page_to_dict(p) for p in pages], ensure_ascii=False, indent=indent))
        return

    if json_output:
        try:
            saved_json = render_json(pages, json_output, pretty=pretty)
            click.echo(f'JSON report: {saved_json}')
        except OSError as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(pages, template_dir, html_output)
            click.echo(f'HTML report: {saved_html}')
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')


@cli.command('sync', context_settings=CONTEXT_SETTINGS)
@click.argument('domain')
@click.option('--user', '-u', 'user_id', default='local', show_default=True, help='Владелец страниц')
@click.pass_context
def sync(ctx, domain, user_id):
    """Сверить сохранённые страницы DOMAIN со свежим обходом и вывести итог в JSON."""
    cfg = ctx.obj['config']
    store = _open_store(ctx.obj['store_path'])
    try:
        result = asyncio.run(run_sync(cfg, store, domain, user_id))
    except ValueError as e:
        print_error(f'Некорректный домен: {e}')
    except SiteSyncError as e:
        print_error(f'Ошибка синхронизации: {e}')
    click.echo(json.dumps(result.as_dict(), ensure_ascii=False, indent=2))
    if result.errors:
        sys.exit(1)


@cli.command('serve', context_settings=CONTEXT_SETTINGS)
@click.option('--host', default='127.0.0.1', show_default=True)
@click.option('--port', default=8080, show_default=True, type=click.IntRange(1, 65535))
@click.pass_context
def serve(ctx, host, port):
    """Запустить HTTP API синхронизации."""
    cfg = ctx.obj['config']
    store = _open_store(ctx.obj['store_path'])
    run_app(create_app(cfg, store), host=host, port=port)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


# expose these names at module level for test monkey-patching
cli.run_crawl = run_crawl
cli.run_sync = run_sync
cli.render_json = render_json
cli.render_html = render_html

if __name__ == "__main__":
    cli()
