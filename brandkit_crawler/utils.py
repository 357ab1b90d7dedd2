"""Utility helpers for URL normalization and string handling."""

from __future__ import annotations

import posixpath
import re
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")

SKIPPED_LINK_EXTENSIONS = frozenset(
    {"pdf", "jpg", "jpeg", "png", "gif", "svg", "webp", "mp4", "mp3", "zip", "doc", "docx"}
)
_WEB_SCHEMES = {"http", "https"}


def slugify(value: str, fallback: str = "page") -> str:
    """Generate a filesystem-friendly slug using ASCII characters only."""
    normalized = value.encode("ascii", "ignore").decode("ascii")
    normalized = normalized.lower()
    normalized = SLUG_PATTERN.sub("-", normalized).strip("-")
    return normalized or fallback


def normalize_url(url: str, base_url: Optional[str] = None) -> Optional[str]:
    """Resolve ``url`` against ``base_url`` and canonicalize it.

    The fragment is dropped and exactly one trailing slash is removed unless
    the path is the root. Returns ``None`` for anything that is not an
    absolute http(s) URL once resolved.
    """
    if not url or not isinstance(url, str):
        return None
    try:
        resolved = urljoin(base_url or url, url.strip())
        parts = urlsplit(resolved)
        hostname = parts.hostname
        # Accessing .port validates the netloc.
        _ = parts.port
    except ValueError:
        return None
    if parts.scheme.lower() not in _WEB_SCHEMES or not hostname:
        return None
    if any(ch.isspace() for ch in parts.netloc):
        return None

    path = parts.path or "/"
    if path != "/" and path.endswith("/"):
        path = path[:-1]
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), path, parts.query, "")
    )


def is_same_domain(url: str, base_url: str) -> bool:
    """True when hosts match or one is a subdomain of the other."""
    try:
        host = urlsplit(url).hostname
        base_host = urlsplit(base_url).hostname
    except ValueError:
        return False
    if not host or not base_host:
        return False
    return (
        host == base_host
        or host.endswith(f".{base_host}")
        or base_host.endswith(f".{host}")
    )


def has_skipped_extension(url: str) -> bool:
    """Whether the URL path points at a file type that is not a web page."""
    extension = posixpath.splitext(urlsplit(url).path)[1]
    return extension.lstrip(".").lower() in SKIPPED_LINK_EXTENSIONS


def round_half_up(value: float) -> int:
    """Round like JavaScript's Math.round for non-negative values."""
    return int(value + 0.5)
