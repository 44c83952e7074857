"""
Execution — configuration file writes.

Policy: configuration files are always written whole. Nothing here
appends to a config file, because appended sections accumulate across
reruns and duplicate sections break the consumers' parsers.

    user scope    temp file in the same directory, then os.replace
    system scope  staged in the build dir, then ``sudo install -D -m``

The one append-style write is the shell rc fragment, and it is
guarded by a marker line so a rerun finds it and writes nothing.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from src.core.models.action import Receipt

if TYPE_CHECKING:
    from src.core.context import RunContext

logger = logging.getLogger(__name__)


def write_atomic(path: Path, content: str, mode: int = 0o644) -> None:
    """Replace ``path`` with ``content`` in one rename.

    Raises:
        OSError: if the directory is not writable.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


def install_system_file(
    ctx: RunContext,
    action_id: str,
    dest: Path,
    content: str,
    mode: str = "0644",
) -> Receipt:
    """Overwrite a root-owned file via a staged copy and ``install``."""
    staging = ctx.config.build_dir / "staged-config"
    staged = staging / dest.name
    write_atomic(staged, content)
    return ctx.run(
        action_id,
        ["install", "-D", "-m", mode, str(staged), str(dest)],
        label=f"Write {dest}",
        sudo=True,
    )


def has_marker(path: Path, marker: str) -> bool:
    try:
        return marker in path.read_text(encoding="utf-8")
    except OSError:
        return False


def ensure_fragment(path: Path, marker: str, lines: list[str]) -> bool:
    """Append a marker-guarded block to a shell rc file, once.

    Returns:
        True if the block was written, False if the marker was present.
    """
    if has_marker(path, marker):
        return False

    existing = ""
    if path.is_file():
        existing = path.read_text(encoding="utf-8")

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        f.write(f"\n{marker}\n")
        for line in lines:
            f.write(f"{line}\n")
    logger.debug("Shell fragment written to %s", path)
    return True
