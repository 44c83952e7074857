"""
Preflight checks — is this host fit to be provisioned?

Runs before anything is mutated. Each requirement is checked
independently and yields a CheckResult; ``run_all`` stops at the first
failure and raises PreflightError so the pipeline never starts.

Requirements, in order:
    os         /etc/os-release identity matches the profile
    arch       CPU architecture is one the profile supports
    privilege  root, or sudo is usable (this may prime sudo's cache)
    disk       enough free space on the working volume
    network    at least one endpoint answers (tried in order)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.core.context import RunContext
from src.core.engine.errors import PreflightError
from src.core.services.provision.detection.network import (
    check_endpoint_reachable,
    first_reachable,
)
from src.core.services.provision.detection.platform import (
    OS_RELEASE_PATH,
    machine,
    normalize_arch,
    read_os_release,
)
from src.core.services.provision.detection.resources import disk_free_mb

logger = logging.getLogger(__name__)

REQUIREMENTS: tuple[str, ...] = ("os", "arch", "privilege", "disk", "network")


@dataclass
class CheckResult:
    """Outcome of one preflight requirement."""

    requirement: str
    passed: bool
    reason: str = ""
    warnings: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "requirement": self.requirement,
            "passed": self.passed,
            "reason": self.reason,
            "warnings": self.warnings,
            "details": self.details,
        }


class PreflightChecker:
    """Validate environment preconditions.

    The host probes are injectable so the checker can be exercised
    against a fake host; the defaults read the real one.
    """

    def __init__(
        self,
        ctx: RunContext,
        *,
        os_release_path: Path = OS_RELEASE_PATH,
        machine_name: str | None = None,
        disk_free: Callable[[Path], int] = disk_free_mb,
        probe: Callable[[str, int], dict] = check_endpoint_reachable,
        is_root: bool | None = None,
    ):
        self._ctx = ctx
        self._os_release_path = os_release_path
        self._machine = machine_name
        self._disk_free = disk_free
        self._probe = probe
        self._is_root = os.geteuid() == 0 if is_root is None else is_root

    def check(self, requirement: str) -> CheckResult:
        """Check a single requirement by name."""
        handler = getattr(self, f"_check_{requirement}", None)
        if handler is None:
            raise ValueError(f"Unknown preflight requirement: {requirement}")
        result: CheckResult = handler()
        if result.passed:
            logger.info("✓ Preflight %s: %s", requirement, result.reason)
        for warning in result.warnings:
            logger.warning("%s", warning)
        return result

    def run_all(self, stop_on_failure: bool = True) -> list[CheckResult]:
        """Check every requirement in order.

        Raises:
            PreflightError: on the first failure, when ``stop_on_failure``.
        """
        results: list[CheckResult] = []
        for requirement in REQUIREMENTS:
            result = self.check(requirement)
            results.append(result)
            if not result.passed:
                if stop_on_failure:
                    raise PreflightError(requirement, result.reason)
                logger.error("Preflight %s: %s", requirement, result.reason)
        return results

    # ── Individual checks ───────────────────────────────────────

    def _check_os(self) -> CheckResult:
        expected = self._ctx.profile.os
        fields = read_os_release(self._os_release_path)
        if fields is None:
            return CheckResult(
                "os", False,
                f"Cannot determine OS version. {self._os_release_path} not found.",
            )

        os_id = fields.get("ID", "")
        version_id = fields.get("VERSION_ID", "")
        details = {"id": os_id, "version_id": version_id}

        if os_id != expected.id:
            return CheckResult(
                "os", False,
                f"This installer is designed for {expected.id}. Detected: {os_id or 'unknown'}",
                details=details,
            )

        warnings: list[str] = []
        if expected.version_id and version_id != expected.version_id:
            message = (
                f"Tested on {expected.id} {expected.version_id}. Detected: {version_id or 'unknown'}"
            )
            if expected.strict_version:
                return CheckResult("os", False, message, details=details)
            warnings.append(f"{message} — continuing anyway, but issues may occur")

        return CheckResult(
            "os", True, f"{os_id} {version_id}".strip(), warnings=warnings, details=details,
        )

    def _check_arch(self) -> CheckResult:
        raw = (self._machine or machine()).lower()
        accepted = [a.lower() for a in self._ctx.profile.architectures]
        if raw in accepted or normalize_arch(raw) in accepted:
            return CheckResult("arch", True, raw, details={"machine": raw})
        return CheckResult(
            "arch", False,
            f"Unsupported architecture {raw}. Supported: {', '.join(accepted)}",
            details={"machine": raw},
        )

    def _check_privilege(self) -> CheckResult:
        if self._is_root:
            return CheckResult("privilege", True, "running as root")
        receipt = self._ctx.run("preflight:sudo", ["sudo", "-v"], label="Validate sudo")
        if receipt.ok:
            return CheckResult("privilege", True, "sudo available")
        return CheckResult(
            "privilege", False,
            "This installer requires sudo privileges.",
            details={"error": receipt.error},
        )

    def _check_disk(self) -> CheckResult:
        required = self._ctx.profile.min_disk_mb
        work_dir = self._ctx.config.work_dir
        try:
            free = self._disk_free(work_dir)
        except OSError as e:
            return CheckResult("disk", False, f"Cannot check disk space at {work_dir}: {e}")
        details = {"free_mb": free, "required_mb": required, "path": str(work_dir)}
        if free < required:
            return CheckResult(
                "disk", False,
                f"Insufficient disk space. Need at least {required}MB, have {free}MB",
                details=details,
            )
        return CheckResult("disk", True, f"{free}MB available", details=details)

    def _check_network(self) -> CheckResult:
        endpoints = self._ctx.profile.endpoints
        if not endpoints:
            return CheckResult("network", True, "no endpoints to probe")
        result = first_reachable(
            endpoints, timeout=self._ctx.profile.probe_timeout, probe=self._probe,
        )
        if result.get("reachable"):
            return CheckResult(
                "network", True, f"{result['url']} reachable", details=result,
            )
        return CheckResult(
            "network", False,
            "No internet connectivity. Cannot proceed.",
            details=result,
        )
