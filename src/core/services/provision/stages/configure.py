"""
Stage — configuration writer.

Materializes the engine's registry, signature-policy and per-user
configuration, grants the invoking user a subordinate id range, and
asks the service manager to reload.

Every file is written whole (see ``execution.config_files``), so a
second run produces byte-identical files. Remote payloads degrade to
their bundled fallback; the stage only fails when a file cannot be
written at all or the id grant is refused.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from src.core.engine.errors import StageError
from src.core.models.pipeline import StageResult
from src.core.models.profile import ConfigFile
from src.core.services.provision.execution.config_files import (
    install_system_file,
    write_atomic,
)

if TYPE_CHECKING:
    from src.core.context import RunContext

logger = logging.getLogger(__name__)

STAGE = "configure"

_FETCH_TIMEOUT = 30


def resolve_payload(ctx: RunContext, spec: ConfigFile, warnings: list[str]) -> tuple[str, str]:
    """Content for a config file and where it came from.

    Returns:
        (content, source) where source is "remote", "fallback" or "inline".
    """
    if spec.url is None:
        return spec.content or "", "inline"

    try:
        return ctx.fetch(spec.url, _FETCH_TIMEOUT), "remote"
    except (OSError, ValueError) as e:
        if spec.fallback is None:
            raise StageError(f"Cannot fetch {spec.url}: {e}") from e
        message = f"Failed to download {Path(spec.path).name}, using fallback"
        logger.warning("%s", message)
        logger.debug("Fetch error for %s: %s", spec.url, e)
        warnings.append(message)
        return spec.fallback, "fallback"


def write_config_file(ctx: RunContext, spec: ConfigFile, warnings: list[str]) -> dict:
    """Write one config file at its scope. Overwrites unconditionally."""
    content, source = resolve_payload(ctx, spec, warnings)
    dest = Path(ctx.render(spec.path))

    if spec.scope == "user":
        try:
            write_atomic(dest, content, int(spec.mode, 8))
        except OSError as e:
            raise StageError(f"Cannot write {dest}: {e}") from e
    else:
        receipt = install_system_file(ctx, f"{STAGE}:write:{dest.name}", dest, content, spec.mode)
        if not receipt.ok:
            raise StageError(f"Cannot write {dest}: {receipt.error}")

    logger.info("✓ Wrote %s (%s)", dest, source)
    return {"path": str(dest), "scope": spec.scope, "source": source}


def has_subordinate_ids(user: str, subuid_file: Path) -> bool:
    """True if ``subuid_file`` has an entry for ``user``."""
    try:
        lines = subuid_file.read_text(encoding="utf-8").splitlines()
    except OSError:
        return False
    return any(line.startswith(f"{user}:") for line in lines)


def grant_subordinate_ids(ctx: RunContext) -> bool:
    """Add a subuid/subgid range for the invoking user if missing.

    Returns:
        True if a range was added, False if one already existed.
    """
    user = ctx.config.user
    idmap = ctx.profile.idmap
    if has_subordinate_ids(user, Path(idmap.subuid_file)):
        logger.info("Subordinate ids already configured for %s", user)
        return False

    ctx.require(
        f"{STAGE}:subids",
        [
            "usermod",
            "--add-subuids", idmap.id_range,
            "--add-subgids", idmap.id_range,
            user,
        ],
        label=f"Grant subordinate ids to {user}",
        sudo=True,
        failure=f"Failed to add subordinate ids for {user}",
    )
    logger.info("✓ Added subordinate ids %s for %s", idmap.id_range, user)
    return True


def reload_services(ctx: RunContext, warnings: list[str]) -> None:
    """Ask system and user service managers to reload. Never fatal."""
    receipt = ctx.run(
        f"{STAGE}:daemon-reload",
        ["systemctl", "daemon-reload"],
        label="Reload system services",
        sudo=True,
    )
    if not receipt.ok:
        message = f"systemctl daemon-reload failed: {receipt.error}"
        logger.warning("%s", message)
        warnings.append(message)

    # No user session manager (e.g. over plain ssh) is normal
    receipt = ctx.run(
        f"{STAGE}:user-daemon-reload",
        ["systemctl", "--user", "daemon-reload"],
        label="Reload user services",
    )
    if not receipt.ok:
        logger.debug("User service reload skipped: %s", receipt.error)


def configure_system(ctx: RunContext) -> StageResult:
    """Write config files, grant subordinate ids, reload services."""
    warnings: list[str] = []
    written = [write_config_file(ctx, spec, warnings) for spec in ctx.profile.config_files]
    granted = grant_subordinate_ids(ctx)
    if ctx.profile.reload_services:
        reload_services(ctx, warnings)

    return StageResult.success(
        STAGE,
        f"{len(written)} config files written",
        warnings=warnings,
        details={"files": written, "subids_added": granted},
    )
