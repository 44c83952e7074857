"""
Stage — toolchain installer.

Installs the compiler toolchain from the upstream distribution
archive (the distribution's own package lags behind what the source
builds need), links its binaries into a directory already on PATH, and
extends the run's search path so later stages find it.

The shell rc fragment is written on every run, including the
short-circuit path; the marker guard makes it a no-op after the first.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from src.core.engine.errors import StageError
from src.core.models.pipeline import StageResult
from src.core.services.provision.execution.config_files import ensure_fragment

if TYPE_CHECKING:
    from src.core.context import RunContext

logger = logging.getLogger(__name__)

STAGE = "toolchain"


def write_shell_profile(ctx: RunContext) -> list[str]:
    """Append the environment fragment to the operator's rc files.

    Returns:
        Paths that received the fragment on this call.
    """
    shell = ctx.profile.shell_profile
    targets = [Path(ctx.render(f)) for f in shell.files]
    targets += [p for p in (Path(ctx.render(f)) for f in shell.files_if_present) if p.is_file()]

    written: list[str] = []
    for target in targets:
        try:
            if ensure_fragment(target, shell.marker, shell.lines):
                written.append(str(target))
                logger.info("Added toolchain environment to %s", target)
        except OSError as e:
            raise StageError(f"Cannot update {target}: {e}") from e
    return written


def install_toolchain(ctx: RunContext) -> StageResult:
    """Install the pinned toolchain unless it is already present."""
    tc = ctx.profile.toolchain
    version = ctx.config.pin(tc.name) or tc.version
    root_dir = ctx.render(tc.root_dir, install_root=tc.install_root)
    ctx.extend_path(ctx.render(entry, install_root=tc.install_root) for entry in tc.path_entries)

    current = ctx.probe(tc.name, tc.binary, command=tc.version_command, pattern=tc.version_pattern)
    if current.present and current.version == version and not ctx.config.force:
        logger.info("%s %s already installed", tc.name, version)
        written = write_shell_profile(ctx)
        return StageResult.skip(
            STAGE,
            f"{tc.name} {version} already installed",
            details={"version": version, "path": current.path, "shell_profile": written},
        )
    if current.present:
        logger.info("Found %s %s, installing %s", tc.name, current.version, version)

    url = ctx.render(tc.url, version=version)
    downloads = ctx.config.build_dir / "downloads"
    downloads.mkdir(parents=True, exist_ok=True)
    archive = downloads / url.rsplit("/", 1)[-1]

    logger.info("Downloading %s %s...", tc.name, version)
    ctx.require(
        f"{STAGE}:download",
        ["curl", "-fsSL", "-o", str(archive), url],
        label=f"Download {tc.name} {version}",
        failure=f"Failed to download {url}",
    )

    ctx.require(
        f"{STAGE}:remove-old",
        ["rm", "-rf", root_dir],
        label=f"Remove previous {tc.name}",
        sudo=True,
        failure=f"Cannot remove {root_dir}",
    )
    ctx.require(
        f"{STAGE}:extract",
        ["tar", "-C", tc.install_root, "-xzf", str(archive)],
        label=f"Extract {tc.name}",
        sudo=True,
        failure=f"Failed to extract {archive.name}",
    )
    for link in tc.links:
        ctx.require(
            f"{STAGE}:link:{link}",
            ["ln", "-sf", f"{root_dir}/bin/{link}", f"{tc.link_dir}/{link}"],
            sudo=True,
            failure=f"Cannot link {link} into {tc.link_dir}",
        )
    archive.unlink(missing_ok=True)

    installed = ctx.probe(tc.name, tc.binary, command=tc.version_command, pattern=tc.version_pattern)
    if not installed.present:
        raise StageError(f"{tc.name} installation failed: {tc.binary} not found on PATH")

    warnings: list[str] = []
    if installed.version != version:
        message = f"{tc.name} on PATH reports {installed.version}, expected {version}"
        logger.warning("%s", message)
        warnings.append(message)

    written = write_shell_profile(ctx)
    logger.info("✓ %s %s installed", tc.name, installed.version)
    return StageResult.success(
        STAGE,
        f"{tc.name} {installed.version} installed",
        warnings=warnings,
        details={"version": installed.version, "path": installed.path, "shell_profile": written},
    )
