"""
Common utilities shared across workstation_setup modules.
"""

from __future__ import annotations

import os
import re
import sys


_SLUG_RE = re.compile(r"[^A-Za-z0-9._-]+")


def is_windows() -> bool:
    """Return True when running on Windows."""
    return sys.platform == "win32"


def expand_path(path: str) -> str:
    """
    Expand ``~`` and environment variables in a path pattern.

    Both ``$VAR`` and ``%VAR%`` references are expanded on Windows;
    elsewhere only ``$VAR`` is understood by the platform.

    Args:
        path: Path or glob pattern from configuration

    Returns:
        Expanded path string (wildcards are left untouched)
    """
    return os.path.expanduser(os.path.expandvars(path))


def slugify(name: str) -> str:
    """
    Turn a display name into a filesystem-friendly token.

    Args:
        name: Display name (e.g., "Docker Desktop")

    Returns:
        Slug such as "docker-desktop", or "item" for empty input
    """
    slug = _SLUG_RE.sub("-", name.strip()).strip("-").lower()
    return slug or "item"


def truncate(text: str, limit: int = 200) -> str:
    """Shorten subprocess output for log lines and error details."""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."
