# === FILE: site_sync/logger.py ===
"""Logging for **SiteSync**.

Every component writes to a child of the ``SiteSync`` logger
(``SiteSync.crawler``, ``SiteSync.store`` ...), so one call to
:func:`configure` controls the whole package::

      from site_sync.logger import get_logger
      log = get_logger("crawler")
      log.info("Crawl started")

Console output goes to *stderr*: ``site-sync crawl`` prints its JSON on stdout.
A file handler with rotation is added when ``log_file`` is given.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Iterable, Union

LOGGER_NAME: Final[str] = "SiteSync"
DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Библиотеки, которые слишком болтливы на INFO
_NOISY: Final[tuple[str, ...]] = ("aiohttp.access", "asyncio")

_LevelT = Union[int, str]


def _handlers(log_file: str | Path | None, fmt: str) -> Iterable[logging.Handler]:
    formatter = logging.Formatter(fmt)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    yield console
    if log_file is None:
        return
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    rotating = RotatingFileHandler(
        filename=str(log_file),
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    rotating.setFormatter(formatter)
    yield rotating


def configure(
    *,
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Install fresh handlers on the ``SiteSync`` logger and return it.

    Handlers left by a previous call are closed first, so the CLI and the
    tests may call this repeatedly.
    """
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in _handlers(log_file, log_format):
        root.addHandler(handler)
    root.propagate = False

    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root


def get_logger(component: str | None = None) -> logging.Logger:
    if not component:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{component}")


logger: logging.Logger = configure()

__all__ = ["logger", "configure", "get_logger", "LOGGER_NAME", "DEFAULT_FORMAT"]
