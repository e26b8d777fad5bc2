"""Storage backend detection.

OpenCode 1.2.0 moved session storage from a tree of JSON files into a SQLite
database. Older runtimes (and caches restored from them) use the flat files.
"""

import os
import re
from pathlib import Path

from .config import get_db_path

OPENCODE_SQLITE_VERSION = "1.2.0"

_LEADING_DIGITS = re.compile(r"\d+")


def _components(version: str) -> list[int]:
    parts = []
    for raw in version.strip().lstrip("vV").split("."):
        match = _LEADING_DIGITS.match(raw)
        parts.append(int(match.group()) if match else 0)
    return parts


def compare_versions(a: str, b: str) -> int:
    """Compare two dotted versions; negative, zero or positive like ``cmp``.

    Only the first three components count and a missing one is 0, so
    ``"1.1"`` equals ``"1.1.0"``.
    """
    parts_a = _components(a)
    parts_b = _components(b)
    for i in range(3):
        left = parts_a[i] if i < len(parts_a) else 0
        right = parts_b[i] if i < len(parts_b) else 0
        if left != right:
            return left - right
    return 0


def is_sqlite_backend(version: str | None, db_path: Path | None = None) -> bool:
    """Return True if sessions live in OpenCode's SQLite database.

    A known runtime version decides on its own. Without one, the database
    file is probed; any error while probing means "not there".
    """
    if version is not None:
        return compare_versions(version, OPENCODE_SQLITE_VERSION) >= 0

    path = db_path if db_path is not None else get_db_path()
    try:
        return path.is_file() and os.access(path, os.R_OK)
    except OSError:
        return False
