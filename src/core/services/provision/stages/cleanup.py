"""
Stage — cleanup.

Removes the build directory. The log file lives beside it, not in it,
and is never touched. Failure to clean up is a warning: the install
itself already succeeded.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.core.models.pipeline import StageResult
from src.core.services.provision.execution.filesystem import remove_tree

if TYPE_CHECKING:
    from src.core.context import RunContext

logger = logging.getLogger(__name__)

STAGE = "cleanup"


def cleanup_build_dir(ctx: RunContext) -> StageResult:
    build_dir = ctx.config.build_dir

    if ctx.config.skip_cleanup:
        logger.info("Skipping cleanup (--skip-cleanup specified)")
        logger.info("Build files remain in: %s", build_dir)
        return StageResult.skip(STAGE, "cleanup skipped", details={"build_dir": str(build_dir)})

    if not build_dir.exists():
        return StageResult.success(STAGE, "nothing to clean")

    logger.info("Cleaning up build directory...")
    warnings: list[str] = []
    error = remove_tree(ctx, build_dir, f"{STAGE}:remove")
    if error:
        message = f"Could not remove {build_dir}: {error}"
        logger.warning("%s", message)
        warnings.append(message)

    if not warnings:
        logger.info("✓ Cleanup complete")
    return StageResult.success(STAGE, "build directory removed", warnings=warnings)
