"""
Pipeline orchestration — one end-to-end provisioning run.

Flow:
    preflight (nothing mutated yet)
    → engine already installed and not forced? → noop
    → sudo keep-alive on
    → run_stages(build_stages(profile))
    → keep-alive off (always) → elapsed time

The caller owns logging setup and the exit code; this module only
produces a PipelineReport.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from src.core.context import RunContext
from src.core.engine.errors import PreflightError
from src.core.engine.runner import log_banner, run_stages
from src.core.models.pipeline import PipelineConfig, PipelineReport, Stage, StageResult
from src.core.observability.logging_config import write_log_header
from src.core.services.provision.execution.keepalive import DEFAULT_INTERVAL, SudoKeepAlive
from src.core.services.provision.preflight import PreflightChecker
from src.core.services.provision.stages import build_stages, verify_stages

logger = logging.getLogger(__name__)


def prepare_workspace(config: PipelineConfig) -> None:
    """Create the build directory and start a fresh log file."""
    config.build_dir.mkdir(parents=True, exist_ok=True)
    write_log_header(config.log_file, config.build_dir)


def format_duration(ms: int) -> str:
    seconds = ms // 1000
    return f"{seconds // 60}m {seconds % 60}s"


def run_preflight(ctx: RunContext, checker: PreflightChecker, report: PipelineReport) -> bool:
    """Run preflight into ``report``. Returns False (and marks the report) on failure."""
    log_banner("Preflight checks")
    start = time.monotonic()
    try:
        results = checker.run_all()
    except PreflightError as e:
        report.results.append(
            StageResult.failure(
                "preflight", e.reason, details={"requirement": e.requirement},
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        )
        report.failed_stage = "preflight"
        report.error = e.reason
        logger.error("%s", e.reason)
        if report.log_file:
            logger.error("Check log file for details: %s", report.log_file)
        return False

    report.results.append(
        StageResult.success(
            "preflight",
            "All preflight checks passed",
            warnings=[w for r in results for w in r.warnings],
            details={r.requirement: r.details for r in results},
            duration_ms=int((time.monotonic() - start) * 1000),
        )
    )
    return True


def detect_existing_install(ctx: RunContext) -> str | None:
    """Version of the engine already on PATH, if any."""
    record = ctx.probe(ctx.profile.engine)
    if record.present:
        return record.version or "installed"
    return None


def run_pipeline(
    ctx: RunContext,
    *,
    preflight: PreflightChecker | None = None,
    stages: list[Stage] | None = None,
    keepalive_interval: float = DEFAULT_INTERVAL,
) -> PipelineReport:
    """Provision the host end to end.

    Args:
        ctx: Run context (config, profile, adapter).
        preflight: Checker to use; defaults to one reading the real host.
        stages: Stage list; defaults to ``build_stages(ctx.profile)``.
        keepalive_interval: Seconds between sudo refreshes.

    Returns:
        PipelineReport; ``status`` is "ok", "noop" or "failed".
    """
    start = time.monotonic()
    report = PipelineReport(log_file=str(ctx.config.log_file))

    checker = preflight or PreflightChecker(ctx)
    if not run_preflight(ctx, checker, report):
        report.duration_ms = int((time.monotonic() - start) * 1000)
        return report

    existing = detect_existing_install(ctx)
    if existing and not ctx.config.force:
        reason = f"{ctx.profile.engine} {existing} is already installed. Use --force to reinstall."
        logger.warning("%s", reason)
        report.noop = True
        report.noop_reason = reason
        report.duration_ms = int((time.monotonic() - start) * 1000)
        return report
    if existing:
        logger.info("Reinstalling over %s %s (--force)", ctx.profile.engine, existing)

    with SudoKeepAlive(ctx, interval=keepalive_interval):
        run_stages(stages if stages is not None else build_stages(ctx.profile), ctx, report)

    report.duration_ms = int((time.monotonic() - start) * 1000)
    if report.succeeded:
        logger.info("✓ Installation completed in %s", format_duration(report.duration_ms))
    return report


def run_verify(ctx: RunContext, log_file: Path | None = None) -> PipelineReport:
    """Validate an existing installation without changing anything."""
    start = time.monotonic()
    report = PipelineReport(log_file=str(log_file) if log_file else "")
    report = run_stages(verify_stages(), ctx, report)
    report.duration_ms = int((time.monotonic() - start) * 1000)
    return report
