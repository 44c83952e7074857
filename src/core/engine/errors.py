"""
Pipeline error taxonomy.

    PreflightError  — environment unsuitable; nothing has been mutated.
    StageError      — a required step failed; the pipeline halts.
    StopPipeline    — intentional early exit (e.g. already installed).

Non-fatal problems are not exceptions: they are logged as warnings
and carried on the StageResult.
"""

from __future__ import annotations

from typing import Any


class PreflightError(Exception):
    """Raised when a preflight requirement is not met."""

    def __init__(self, requirement: str, reason: str):
        super().__init__(reason)
        self.requirement = requirement
        self.reason = reason


class StageError(Exception):
    """Raised by a stage action when a required step fails."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None):
        super().__init__(reason)
        self.reason = reason
        self.details = details or {}


class StopPipeline(Exception):
    """Raised to end the run early without failure."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
