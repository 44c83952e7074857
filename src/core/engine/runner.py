"""
Stage runner — the central orchestration loop.

Takes the fixed, ordered list of stages and runs them one by one.
Fail-fast: the first stage that raises StageError (or anything
unexpected) ends the run. Nothing is retried and nothing is skipped;
later stages depend on earlier ones having completed.

Flow:
    for stage in stages: banner → action(ctx) → result | halt
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

from src.core.engine.errors import StageError, StopPipeline
from src.core.models.pipeline import PipelineReport, Stage, StageResult

if TYPE_CHECKING:
    from src.core.context import RunContext

logger = logging.getLogger(__name__)

_BANNER = "=" * 67


def log_banner(title: str) -> None:
    """Emit a stage start marker (console and log file)."""
    logger.info("")
    logger.info(_BANNER)
    logger.info("  %s", title)
    logger.info(_BANNER)


def run_stages(
    stages: Sequence[Stage],
    ctx: RunContext,
    report: PipelineReport | None = None,
) -> PipelineReport:
    """Run stages in declared order, halting at the first failure.

    Args:
        stages: Ordered stages (ordinals must be strictly increasing).
        ctx: The run context passed to every stage action.
        report: Optional report to append to (e.g. one that already
            holds preflight results).

    Returns:
        PipelineReport. ``failed_stage`` is set when a stage failed;
        ``noop`` when a stage asked to stop early.
    """
    if report is None:
        report = PipelineReport(log_file=str(ctx.config.log_file))

    ordinals = [s.ordinal for s in stages]
    if ordinals != sorted(set(ordinals)):
        raise ValueError(f"Stage ordinals must be unique and ascending: {ordinals}")

    total = len(stages)
    for position, stage in enumerate(stages, start=1):
        log_banner(f"Step {position}/{total}: {stage.label}")
        start = time.monotonic()

        try:
            result = stage.action(ctx)
        except StopPipeline as stop:
            elapsed = int((time.monotonic() - start) * 1000)
            report.results.append(
                StageResult.skip(stage.name, stop.reason, duration_ms=elapsed)
            )
            report.noop = True
            report.noop_reason = stop.reason
            logger.warning("%s", stop.reason)
            return report
        except StageError as e:
            return _fail(report, stage, e.reason, start, details=e.details)
        except Exception as e:
            logger.debug("Unexpected error in stage %s", stage.name, exc_info=True)
            return _fail(report, stage, f"Unexpected error: {e}", start)

        if result is None:
            result = StageResult.success(stage.name)
        result.duration_ms = int((time.monotonic() - start) * 1000)
        report.results.append(result)

        if result.status == "failed":
            # Stages normally raise, but a returned failure is honoured too
            return _fail(report, stage, result.message or "stage reported failure", start, record=False)

    return report


def _fail(
    report: PipelineReport,
    stage: Stage,
    reason: str,
    start: float,
    record: bool = True,
    details: dict | None = None,
) -> PipelineReport:
    if record:
        report.results.append(
            StageResult.failure(
                stage.name,
                reason,
                duration_ms=int((time.monotonic() - start) * 1000),
                details=details or {},
            )
        )
    report.failed_stage = stage.name
    report.error = reason
    logger.error("%s", reason)
    if report.log_file:
        logger.error("Check log file for details: %s", report.log_file)
    return report
