"""
Execution — directory removal for build trees.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.core.context import RunContext

logger = logging.getLogger(__name__)


def remove_tree(ctx: RunContext, path: Path, action_id: str) -> str | None:
    """Remove ``path`` recursively, retrying with ``sudo rm -rf``.

    Privileged installs can leave root-owned files in a checkout, which
    a plain ``rmtree`` cannot delete.

    Returns:
        None on success, otherwise the error of the privileged retry.
    """
    try:
        shutil.rmtree(path)
        return None
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.debug("rmtree %s failed (%s), retrying with sudo", path, e)

    receipt = ctx.run(action_id, ["rm", "-rf", str(path)], sudo=True)
    if receipt.ok:
        return None
    return receipt.error or f"rm -rf exited with code {receipt.return_code}"
