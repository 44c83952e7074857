"""
Stage — installation validator.

Checks every expected component, not just the first that is missing:
required ones count as errors, optional ones as warnings. A container
smoke test runs last; its failure is a warning because a fresh
install often needs a new login session before rootless containers
work.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.core.engine.errors import StageError
from src.core.models.component import ComponentRecord
from src.core.models.pipeline import StageResult

if TYPE_CHECKING:
    from src.core.context import RunContext

logger = logging.getLogger(__name__)

STAGE = "validate"


def log_version_table(records: list[ComponentRecord]) -> None:
    logger.info("Installed versions:")
    width = max((len(r.name) for r in records), default=0)
    for record in records:
        version = record.version or ("not found" if not record.present else "unknown")
        logger.info("  %-*s  %s", width, record.name, version)


def smoke_test(ctx: RunContext, warnings: list[str]) -> bool:
    """Run the configured container smoke test. Never fatal."""
    command = ctx.profile.smoke_test
    if not command:
        return True
    logger.info("Testing container execution...")
    receipt = ctx.run(f"{STAGE}:smoke", ctx.substitute(command), label="Container smoke test", timeout=300)
    if receipt.ok:
        logger.info("✓ Container test passed")
        return True
    message = "Container test failed - check configuration"
    logger.warning("%s", message)
    logger.debug("Smoke test error: %s", receipt.error)
    warnings.append(message)
    return False


def verify_installation(ctx: RunContext) -> StageResult:
    """Probe every verify target, then run the smoke test.

    Raises:
        StageError: if any required component is missing. The message
            carries the total error count.
    """
    warnings: list[str] = []
    records: list[ComponentRecord] = []
    missing: list[str] = []

    for target in ctx.profile.verify:
        record = ctx.probe(
            target.name,
            target.executable,
            required=target.required,
            command=target.version_command,
            pattern=target.version_pattern,
        )
        records.append(record)
        if record.present:
            logger.info("✓ %s: %s", target.name, record.version or record.path)
            continue
        if target.required:
            logger.error("%s not found", target.name)
            missing.append(target.name)
        else:
            message = f"{target.name} not found (optional)"
            logger.warning("%s", message)
            warnings.append(message)

    log_version_table(records)
    details = {
        "components": {r.name: r.version for r in records},
        "missing": missing,
        "errors": len(missing),
    }

    if missing:
        raise StageError(
            f"Installation verification failed with {len(missing)} errors", details=details,
        )

    details["smoke_test"] = smoke_test(ctx, warnings)
    return StageResult.success(STAGE, "All verifications passed", warnings=warnings, details=details)
