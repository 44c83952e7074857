"""
Pipeline models — configuration, stages, and results.

PipelineConfig is built once at startup and frozen. Stages are
declared in code (see ``build_stages``) and never computed at runtime.
StageResult / PipelineReport mirror the Receipt / ExecutionReport
pair used for individual commands.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from src.core.context import RunContext


LOG_FILE_PREFIX = "install"


def _timestamp() -> str:
    return datetime.now(UTC).strftime("%Y%m%d-%H%M%S")


class PipelineConfig(BaseModel):
    """Operator-supplied options, resolved once and read-only afterwards."""

    model_config = ConfigDict(frozen=True)

    skip_cleanup: bool = False
    force: bool = False
    verbose: bool = False

    # (component, version) pairs, sorted; accepts a mapping on input
    version_pins: tuple[tuple[str, str], ...] = ()

    work_dir: Path
    user: str = "root"
    home: Path = Path("/root")
    profile_path: Path | None = None
    started_at: str = Field(default_factory=_timestamp)

    @field_validator("version_pins", mode="before")
    @classmethod
    def _pins_from_mapping(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return tuple(sorted(v.items()))
        return v

    @property
    def build_dir(self) -> Path:
        """Transient build artifacts (checkouts, downloads). Removed by cleanup."""
        return self.work_dir / "build"

    @property
    def log_file(self) -> Path:
        """Persistent execution log. Lives outside ``build_dir`` so it survives cleanup."""
        return self.work_dir / f"{LOG_FILE_PREFIX}-{self.started_at}.log"

    @property
    def verify_log_file(self) -> Path:
        """Log for a read-only verify run, beside the install logs."""
        return self.work_dir / f"verify-{self.started_at}.log"

    def pin(self, component: str) -> str | None:
        """Pinned version for a component, if any."""
        return self.pins.get(component)

    @property
    def pins(self) -> dict[str, str]:
        """A copy of the pins as a dict."""
        return dict(self.version_pins)


@dataclass(frozen=True)
class Stage:
    """A named unit of work in the pipeline."""

    name: str
    label: str
    ordinal: int
    action: Callable[[RunContext], StageResult]


class StageResult(BaseModel):
    """Outcome of a single stage."""

    name: str
    status: Literal["ok", "skipped", "failed"] = "ok"
    message: str = ""
    warnings: list[str] = Field(default_factory=list)
    duration_ms: int = 0
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    @classmethod
    def success(cls, name: str, message: str = "", **kwargs: Any) -> StageResult:
        return cls(name=name, status="ok", message=message, **kwargs)

    @classmethod
    def skip(cls, name: str, message: str = "", **kwargs: Any) -> StageResult:
        return cls(name=name, status="skipped", message=message, **kwargs)

    @classmethod
    def failure(cls, name: str, message: str, **kwargs: Any) -> StageResult:
        return cls(name=name, status="failed", message=message, **kwargs)


class PipelineReport(BaseModel):
    """Result of a whole pipeline run."""

    results: list[StageResult] = Field(default_factory=list)
    failed_stage: str | None = None
    error: str | None = None
    noop: bool = False
    noop_reason: str = ""
    log_file: str = ""
    duration_ms: int = 0

    @property
    def status(self) -> str:
        if self.failed_stage is not None:
            return "failed"
        if self.noop:
            return "noop"
        return "ok"

    @property
    def succeeded(self) -> bool:
        return self.failed_stage is None

    @property
    def stages_run(self) -> list[str]:
        return [r.name for r in self.results]

    @property
    def warnings(self) -> list[str]:
        return [w for r in self.results for w in r.warnings]

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "failed_stage": self.failed_stage,
            "error": self.error,
            "noop_reason": self.noop_reason or None,
            "log_file": self.log_file,
            "duration_ms": self.duration_ms,
            "warnings": self.warnings,
            "stages": [r.model_dump(mode="json") for r in self.results],
        }
