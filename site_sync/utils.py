# File: site_sync/utils.py
"""site_sync.utils: URL canonicalisation, domain matching and timestamp helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Collection, Iterable, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlsplit, urlunsplit

from site_sync.logger import logger

__all__: Sequence[str] = (
    "BINARY_EXTENSIONS",
    "normalize_url",
    "split_domain",
    "root_url",
    "host_of",
    "is_same_domain",
    "matches_exclude",
    "parse_timestamp",
    "remove_duplicates",
)

#: Path suffixes that never point at an HTML page.
BINARY_EXTENSIONS: Tuple[str, ...] = (
    # images
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".bmp", ".ico", ".tif", ".tiff",
    # archives
    ".zip", ".gz", ".tgz", ".tar", ".rar", ".7z", ".bz2",
    # audio / video
    ".mp3", ".wav", ".ogg", ".flac", ".m4a", ".mp4", ".avi", ".mov", ".wmv", ".mkv", ".webm",
    # documents
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
)

_HTTP_SCHEMES = ("http", "https")


def normalize_url(url: object, *, keep_query: bool = True) -> Optional[str]:
    """Canonicalise *url* or return ``None`` when it cannot name an HTML page.

    Lower-cases scheme and authority, drops the fragment and the trailing slash,
    keeps the query string unless ``keep_query`` is false. Binary assets,
    non-http(s) schemes and malformed input yield ``None``; nothing raises.
    """
    if not isinstance(url, str):
        return None
    try:
        parsed = urlsplit(url.strip())
        parsed.port  # validates the port part of the authority
    except ValueError:
        return None

    scheme = parsed.scheme.lower()
    if scheme not in _HTTP_SCHEMES or not parsed.hostname:
        return None

    path = parsed.path.rstrip("/")
    if path.lower().endswith(BINARY_EXTENSIONS):
        return None

    query = parsed.query if keep_query else ""
    return urlunsplit((scheme, parsed.netloc.lower(), path, query, ""))


def split_domain(raw: str, default_scheme: str = "https") -> Tuple[str, str]:
    """Return ``(scheme, host)`` for ``example.com``, ``https://example.com/`` and the like."""
    text = raw.strip()
    if "://" in text:
        parsed = urlsplit(text)
        scheme, host = parsed.scheme.lower(), parsed.netloc.lower()
    else:
        scheme, host = default_scheme, text.split("/", 1)[0].lower()
    if scheme not in _HTTP_SCHEMES or not host:
        raise ValueError(f"Invalid domain: {raw!r}")
    return scheme, host


def root_url(scheme: str, host: str) -> str:
    """Canonical homepage URL of a site."""
    return f"{scheme}://{host}"


def host_of(url: str) -> str:
    """Lower-cased authority of *url* (``""`` when it has none)."""
    try:
        return urlsplit(url).netloc.lower()
    except ValueError:
        return ""


def _strip_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else host


def is_same_domain(url: str, domain: str) -> bool:
    """Check that *url* lives on *domain*; ``www.`` is treated as the same site."""
    host = host_of(url)
    return bool(host) and _strip_www(host) == _strip_www(domain.lower())


def matches_exclude(url: str, patterns: Iterable[str]) -> bool:
    """True if any exclude pattern occurs in *url*."""
    return any(pattern and pattern in url for pattern in patterns)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a W3C datetime (sitemaps) or an HTTP date (headers) into aware UTC.

    Unparseable values are treated as absent.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError):
                logger.debug("Unparseable timestamp: %r", text)
                return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def remove_duplicates(urls: Collection[str]) -> List[str]:
    """Удаляет дубликаты из списка URL, сохраняя порядок."""
    unique = list(dict.fromkeys(urls))
    removed = len(urls) - len(unique)
    if removed:
        logger.debug("Removed %d duplicate URLs", removed)
    return unique
