"""
Stage — source builder.

One parameterized procedure for every component built from an
upstream repository: shallow clone, optional bootstrap and configure
steps, build, then a privileged install. The same code builds the
monitor, the runtime and the engine; only the recipe differs.

Flow:
    pin satisfied? → skip
    discard old checkout → clone → version note → bootstrap
    → configure → build → sudo install (PATH preserved) → which
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from src.core.engine.errors import StageError
from src.core.models.component import SourceComponent
from src.core.models.pipeline import StageResult
from src.core.services.provision.detection.tool_version import parse_version
from src.core.services.provision.execution.filesystem import remove_tree

if TYPE_CHECKING:
    from src.core.context import RunContext

logger = logging.getLogger(__name__)


def stage_name(component: str) -> str:
    return f"build-{component}"


def _run_steps(
    ctx: RunContext,
    stage: str,
    step: str,
    commands: list[list[str]],
    cwd: Path,
    version: str | None,
) -> None:
    for index, command in enumerate(commands):
        action_id = f"{stage}:{step}" if index == 0 else f"{stage}:{step}-{index}"
        ctx.require(
            action_id,
            ctx.substitute(command, version=version),
            cwd=cwd,
            failure=f"{step.capitalize()} step failed ({' '.join(command)})",
        )


def _source_version(component: SourceComponent, src_dir: Path) -> str | None:
    if not component.version_file:
        return None
    path = src_dir / component.version_file
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return None
    return parse_version(text, component.version_file_pattern or r'"([^"]+)"')


def build_from_source(
    ctx: RunContext,
    component: SourceComponent,
    build_dir: Path,
    repo_url: str | None = None,
    build_flags: list[str] | None = None,
) -> str:
    """Clone, build and install one component.

    Args:
        ctx: Run context.
        component: The recipe.
        build_dir: Parent directory for the checkout.
        repo_url: Overrides ``component.repo``.
        build_flags: Overrides ``component.build``.

    Returns:
        Resolved path of the installed binary.

    Raises:
        StageError: on any failed step, or if the binary is not on
            PATH afterwards.
    """
    stage = stage_name(component.name)
    version = ctx.config.pin(component.name) or component.version
    repo = repo_url or component.repo
    src_dir = build_dir / component.name

    if src_dir.exists():
        logger.info("Removing previous %s checkout", component.name)
        error = remove_tree(ctx, src_dir, f"{stage}:remove-checkout")
        if error:
            raise StageError(f"Cannot remove previous checkout {src_dir}: {error}")
    build_dir.mkdir(parents=True, exist_ok=True)

    clone = ["git", "clone", "--depth", "1"]
    if component.ref:
        clone += ["--branch", ctx.render(component.ref, version=version)]
    clone += [repo, str(src_dir)]

    logger.info("Cloning %s...", repo)
    ctx.require(
        f"{stage}:clone",
        clone,
        label=f"Clone {component.name}",
        cwd=build_dir,
        failure=f"Failed to clone {repo}",
    )

    source_version = _source_version(component, src_dir)
    if source_version:
        logger.info("Building %s version: %s", component.name, source_version)

    _run_steps(ctx, stage, "bootstrap", component.bootstrap, src_dir, version)
    _run_steps(ctx, stage, "configure", component.configure, src_dir, version)

    logger.info("Building %s...", component.name)
    ctx.require(
        f"{stage}:build",
        ctx.substitute(build_flags or component.build, version=version),
        label=f"Build {component.name}",
        cwd=src_dir,
        failure=f"{component.name} build failed",
    )

    logger.info("Installing %s...", component.name)
    ctx.require(
        f"{stage}:install",
        ctx.substitute(component.install, version=version),
        label=f"Install {component.name}",
        cwd=src_dir,
        sudo=True,
        preserve_path=component.preserve_path,
        failure=f"{component.name} installation failed",
    )

    path = ctx.which(component.executable)
    if path is None:
        raise StageError(
            f"{component.name} installation failed: {component.executable} not found on PATH"
        )
    return path


def build_component(ctx: RunContext, component: SourceComponent) -> StageResult:
    """Stage action for one component, honouring an already-met pin."""
    stage = stage_name(component.name)
    pin = ctx.config.pin(component.name)

    if pin and not ctx.config.force:
        current = ctx.probe(
            component.name,
            component.executable,
            command=component.version_command,
            pattern=component.version_pattern,
        )
        if current.present and current.version == pin:
            logger.info("%s %s already installed", component.name, pin)
            return StageResult.skip(
                stage,
                f"{component.name} {pin} already installed",
                details={"path": current.path, "version": pin},
            )

    path = build_from_source(ctx, component, ctx.config.build_dir)
    record = ctx.probe(
        component.name,
        component.executable,
        command=component.version_command,
        pattern=component.version_pattern,
    )
    logger.info("✓ %s %s installed", component.name, record.version or "")
    return StageResult.success(
        stage,
        f"{component.name} installed at {path}",
        details={"path": path, "version": record.version},
    )


def component_stage(name: str) -> Callable[[RunContext], StageResult]:
    """Stage action bound to a component name, looked up at run time."""

    def action(ctx: RunContext) -> StageResult:
        component = ctx.profile.get_component(name)
        if component is None:
            raise StageError(f"No build recipe for component {name}")
        return build_component(ctx, component)

    action.__name__ = f"build_{name}"
    return action
