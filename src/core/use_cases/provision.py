"""
Provision use cases — install, preflight, verify.

The vertical slice from CLI intent to a finished report: load the
profile, resolve run options, build the run context, and hand off to
the pipeline. Logging setup and exit codes stay in the CLI.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from src.adapters.base import Adapter
from src.core.config.loader import load_pipeline_config, load_profile
from src.core.context import RunContext
from src.core.models.pipeline import PipelineConfig, PipelineReport
from src.core.models.profile import Profile
from src.core.services.provision.detection.network import fetch_text
from src.core.services.provision.pipeline import run_pipeline, run_verify
from src.core.services.provision.preflight import CheckResult, PreflightChecker

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Result of an install, preflight or verify run."""

    report: PipelineReport | None = None
    checks: list[CheckResult] = field(default_factory=list)
    profile: Profile | None = None
    config: PipelineConfig | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        if self.error:
            return False
        if self.report is not None:
            return self.report.succeeded
        return all(c.passed for c in self.checks)

    def to_dict(self) -> dict:
        result: dict = {"ok": self.ok}
        if self.error:
            result["error"] = self.error
        if self.profile:
            result["profile"] = self.profile.name
        if self.config:
            result["build_dir"] = str(self.config.build_dir)
            result["version_pins"] = self.config.pins
        if self.checks:
            result["checks"] = [c.to_dict() for c in self.checks]
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def load_run(
    profile_path: Path | None = None,
    *,
    skip_cleanup: bool = False,
    force: bool = False,
    verbose: bool = False,
    environ: Mapping[str, str] | None = None,
) -> tuple[Profile, PipelineConfig]:
    """Load the profile and resolve run options.

    Raises:
        ConfigError: if the profile or an environment override is invalid.
    """
    profile = load_profile(profile_path)
    config = load_pipeline_config(
        profile,
        skip_cleanup=skip_cleanup,
        force=force,
        verbose=verbose,
        profile_path=profile_path,
        environ=environ,
    )
    return profile, config


def _context(
    profile: Profile,
    config: PipelineConfig,
    adapter: Adapter | None,
    fetch: Callable[[str, int], str] | None,
) -> RunContext:
    if adapter is None:
        from src.adapters.shell.command import ShellCommandAdapter

        adapter = ShellCommandAdapter()
    return RunContext(config=config, profile=profile, adapter=adapter, fetch=fetch or fetch_text)


def run_install(
    profile: Profile,
    config: PipelineConfig,
    *,
    adapter: Adapter | None = None,
    preflight: PreflightChecker | None = None,
    fetch: Callable[[str, int], str] | None = None,
    keepalive_interval: float | None = None,
) -> ProvisionResult:
    """Run the full provisioning pipeline.

    The workspace (build dir, log header) must already be prepared.
    """
    ctx = _context(profile, config, adapter, fetch)
    kwargs = {} if keepalive_interval is None else {"keepalive_interval": keepalive_interval}
    report = run_pipeline(ctx, preflight=preflight, **kwargs)
    return ProvisionResult(report=report, profile=profile, config=config, error=report.error)


def run_preflight_only(
    profile: Profile,
    config: PipelineConfig,
    *,
    adapter: Adapter | None = None,
    checker: PreflightChecker | None = None,
) -> ProvisionResult:
    """Check every preflight requirement without stopping at the first failure."""
    ctx = _context(profile, config, adapter, None)
    checker = checker or PreflightChecker(ctx)
    checks = checker.run_all(stop_on_failure=False)
    return ProvisionResult(checks=checks, profile=profile, config=config)


def run_verify_only(
    profile: Profile,
    config: PipelineConfig,
    *,
    adapter: Adapter | None = None,
    log_file: Path | None = None,
) -> ProvisionResult:
    """Validate an existing installation."""
    ctx = _context(profile, config, adapter, None)
    report = run_verify(ctx, log_file=log_file)
    return ProvisionResult(report=report, profile=profile, config=config, error=report.error)
