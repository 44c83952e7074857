"""
Detection — host resources.
"""

from __future__ import annotations

import shutil
from pathlib import Path


def existing_ancestor(path: Path) -> Path:
    """Nearest existing directory at or above ``path``.

    The working directory usually does not exist yet during preflight;
    the volume it will live on is what matters.
    """
    current = path.expanduser().absolute()
    while not current.exists() and current != current.parent:
        current = current.parent
    return current


def disk_free_mb(path: Path) -> int:
    """Free space in MB on the volume holding ``path``.

    Raises:
        OSError: if the volume cannot be inspected.
    """
    usage = shutil.disk_usage(existing_ancestor(path))
    return usage.free // (1024 * 1024)
