"""Utility helpers for working with files."""

from __future__ import annotations

import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

STRUCTURED_EXTENSIONS = frozenset({".pdf", ".docx"})
TEXT_EXTENSIONS = frozenset({".txt", ".md"})
SUPPORTED_EXTENSIONS = STRUCTURED_EXTENSIONS | TEXT_EXTENSIONS

_INVALID_ID_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_UNDERSCORE_RUNS = re.compile(r"_+")


def iter_document_paths(folder: Path) -> Iterator[Path]:
    """Yield supported documents directly inside `folder`, sorted by name."""
    for child in sorted(folder.iterdir()):
        if child.is_file() and child.suffix.lower() in SUPPORTED_EXTENSIONS:
            yield child


def creation_time(stat: os.stat_result) -> float:
    """Best available creation time; Linux exposes only the inode change time."""
    return getattr(stat, "st_birthtime", stat.st_ctime)


def effective_modified_at(path: Path) -> datetime:
    """Return the later of the content write time and the creation time, in UTC.

    A copied folder refreshes creation time without touching content, and an
    edited file refreshes write time, so either must mark the file as changed.
    """
    stat = path.stat()
    latest = max(stat.st_mtime, creation_time(stat))
    return datetime.fromtimestamp(latest, tz=timezone.utc)


def sanitize_document_id(name: str) -> str:
    """Restrict `name` to `[A-Za-z0-9._-]`, collapsing invalid runs into `_`."""
    sanitized = _INVALID_ID_CHARS.sub("_", name)
    sanitized = _UNDERSCORE_RUNS.sub("_", sanitized).strip("_")
    return sanitized or "document"


def format_size(size: int) -> str:
    """Human readable size, e.g. `1.5 MB`."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024:
            break
        value /= 1024
    else:
        unit = "TB"
    return f"{value:.2f}".rstrip("0").rstrip(".") + f" {unit}"
