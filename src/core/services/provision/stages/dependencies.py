"""
Stage — dependency installer.

Removes distribution packages that would shadow the source builds,
installs the build and runtime dependencies in one transaction, then
probes the runtime helper binaries by path.

Flow:
    query each remove-candidate → remove present ones (non-fatal)
    → apt-get update → apt-get install (fatal) → probe helpers
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from src.core.engine.errors import StageError
from src.core.models.pipeline import StageResult
from src.core.services.provision.detection.system_deps import (
    is_installed_status,
    package_query_command,
)

if TYPE_CHECKING:
    from src.core.context import RunContext

logger = logging.getLogger(__name__)

STAGE = "dependencies"

# apt must never stop to ask a question mid-run
APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def installed_packages(ctx: RunContext, packages: list[str]) -> list[str]:
    """Subset of ``packages`` the package manager reports as installed."""
    present: list[str] = []
    for pkg in packages:
        receipt = ctx.run(f"{STAGE}:query:{pkg}", package_query_command(pkg), timeout=30)
        if receipt.ok and is_installed_status(receipt.output):
            present.append(pkg)
    return present


def remove_conflicts(ctx: RunContext, warnings: list[str]) -> list[str]:
    """Remove conflicting packages that are present. Never fatal."""
    present = installed_packages(ctx, ctx.profile.packages.remove)
    if not present:
        logger.info("No conflicting packages found")
        return []

    logger.info("Removing: %s", " ".join(present))
    receipt = ctx.run(
        f"{STAGE}:remove",
        ["apt-get", "remove", "-y", *present],
        label="Remove conflicting packages",
        sudo=True,
        env=APT_ENV,
    )
    if not receipt.ok:
        message = f"Some packages could not be removed: {receipt.error}"
        logger.warning("%s", message)
        warnings.append(message)
        return present

    receipt = ctx.run(
        f"{STAGE}:autoremove",
        ["apt-get", "autoremove", "-y"],
        label="Remove orphaned packages",
        sudo=True,
        env=APT_ENV,
    )
    if not receipt.ok:
        message = f"autoremove failed: {receipt.error}"
        logger.warning("%s", message)
        warnings.append(message)

    logger.info("✓ Removed %d conflicting packages", len(present))
    return present


def probe_runtime_helpers(ctx: RunContext) -> tuple[dict[str, str | None], list[str], list[str]]:
    """Look for each runtime helper under the configured prefixes.

    Returns:
        (found, missing_critical, missing_optional) where ``found`` maps
        every probed binary to its path (None when missing).
    """
    probes = ctx.profile.runtime_probes
    search = os.pathsep.join(probes.prefixes)
    found: dict[str, str | None] = {}
    missing_critical: list[str] = []
    missing_optional: list[str] = []

    for binary in probes.critical:
        found[binary] = ctx.which(binary, path=search)
        if found[binary] is None:
            missing_critical.append(binary)
    for binary in probes.optional:
        found[binary] = ctx.which(binary, path=search)
        if found[binary] is None:
            missing_optional.append(binary)

    return found, missing_critical, missing_optional


def install_dependencies(ctx: RunContext) -> StageResult:
    """Remove conflicts, install dependencies, probe runtime helpers."""
    warnings: list[str] = []
    removed = remove_conflicts(ctx, warnings)

    packages = ctx.profile.packages.install
    if packages:
        logger.info("Updating package index...")
        ctx.require(
            f"{STAGE}:update",
            ["apt-get", "update"],
            label="Refresh package index",
            sudo=True,
            env=APT_ENV,
            failure="Package index refresh failed",
        )
        logger.info("Installing %d packages...", len(packages))
        ctx.require(
            f"{STAGE}:install",
            ["apt-get", "install", "-y", *packages],
            label="Install build dependencies",
            sudo=True,
            env=APT_ENV,
            failure="Package installation failed",
        )
        logger.info("✓ Dependencies installed")

    found, missing_critical, missing_optional = probe_runtime_helpers(ctx)
    for binary in missing_optional:
        message = f"{binary} not found (optional runtime helper)"
        logger.warning("%s", message)
        warnings.append(message)

    details = {
        "removed": removed,
        "installed": list(packages),
        "helpers": found,
        "missing_critical": missing_critical,
        "missing_optional": missing_optional,
    }
    if missing_critical:
        raise StageError(
            f"Required runtime helpers not found: {', '.join(missing_critical)}",
            details=details,
        )

    return StageResult.success(
        STAGE, f"{len(packages)} packages installed", warnings=warnings, details=details,
    )
