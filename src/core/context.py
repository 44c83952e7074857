"""
Run context — everything a stage needs for one pipeline run.

Holds the frozen PipelineConfig, the loaded Profile, and the host
Adapter. The only thing that changes during a run is the search path
(extended once the toolchain is unpacked), and that lives here rather
than in ``os.environ``.

Every host command a stage issues goes through ``run``/``require`` so
that it is logged, validated, and dispatched through the adapter.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from src.adapters.base import Adapter, ExecutionContext
from src.core.engine.errors import StageError
from src.core.models.action import Action, Receipt
from src.core.models.component import ComponentRecord
from src.core.models.pipeline import PipelineConfig
from src.core.models.profile import Profile
from src.core.services.provision.detection.network import fetch_text
from src.core.services.provision.detection.platform import normalize_arch
from src.core.services.provision.detection.tool_version import (
    UNKNOWN_VERSION,
    parse_version,
    version_command_for,
)

logger = logging.getLogger(__name__)


def _initial_search_path() -> list[str]:
    return [p for p in os.environ.get("PATH", "").split(os.pathsep) if p]


@dataclass
class RunContext:
    """Per-run state shared by all stages."""

    config: PipelineConfig
    profile: Profile
    adapter: Adapter
    fetch: Callable[[str, int], str] = fetch_text
    search_path: list[str] = field(default_factory=_initial_search_path)

    # ── Search path ─────────────────────────────────────────────

    @property
    def path_string(self) -> str:
        return os.pathsep.join(self.search_path)

    def extend_path(self, entries: Iterable[str]) -> None:
        """Prepend entries to the search path, skipping ones already present."""
        for entry in reversed(list(entries)):
            if entry in self.search_path:
                continue
            self.search_path.insert(0, entry)
            logger.debug("PATH += %s", entry)

    def which(self, binary: str, path: str | None = None) -> str | None:
        """Resolve a binary on the run's search path (or an explicit one)."""
        return self.adapter.which(binary, path=path or self.path_string)

    # ── Placeholders ────────────────────────────────────────────

    def variables(self, **extra: str) -> dict[str, str]:
        """Standard ``{var}`` substitutions for recipe commands and paths."""
        values = {
            "user": self.config.user,
            "home": str(self.config.home),
            "arch": normalize_arch(),
            "nproc": str(os.cpu_count() or 1),
            "build_dir": str(self.config.build_dir),
            "work_dir": str(self.config.work_dir),
        }
        values.update({k: str(v) for k, v in extra.items() if v is not None})
        return values

    def render(self, text: str, **extra: str) -> str:
        """Replace ``{key}`` tokens in a string; unknown tokens are left alone."""
        for key, value in self.variables(**extra).items():
            text = text.replace(f"{{{key}}}", value)
        if text.startswith("~"):
            text = str(self.config.home) + text[1:]
        return text

    def substitute(self, command: list[str], **extra: str) -> list[str]:
        """Render every token of an argv list."""
        return [self.render(token, **extra) for token in command]

    # ── Command execution ───────────────────────────────────────

    def run(
        self,
        action_id: str,
        command: list[str],
        *,
        label: str = "",
        sudo: bool = False,
        preserve_path: bool = False,
        env: dict[str, str] | None = None,
        cwd: str | os.PathLike | None = None,
        timeout: int | None = None,
        binary: str | None = None,
    ) -> Receipt:
        """Dispatch one command through the adapter. Never raises."""
        params: dict[str, Any] = {
            "command": list(command),
            "sudo": sudo,
            "preserve_path": preserve_path,
        }
        if env:
            params["env"] = dict(env)
        if timeout is not None:
            params["timeout"] = timeout
        if binary:
            params["binary"] = binary

        action = Action(id=action_id, name=label, adapter=self.adapter.name, params=params)
        context = ExecutionContext(
            action=action,
            cwd=str(cwd) if cwd is not None else None,
            search_path=self.path_string,
        )

        try:
            is_valid, error_msg = self.adapter.validate(context)
        except Exception as e:
            is_valid, error_msg = False, str(e)
        if not is_valid:
            return Receipt.failure(
                adapter=self.adapter.name,
                action_id=action_id,
                error=f"Validation failed: {error_msg}",
            )

        try:
            receipt = self.adapter.execute(context)
        except Exception as e:
            # Adapters should never raise
            logger.error("Adapter %s raised during %s: %s", self.adapter.name, action_id, e)
            receipt = Receipt.failure(
                adapter=self.adapter.name,
                action_id=action_id,
                error=f"Unexpected error: {e}",
            )

        marker = "✓" if receipt.ok else "✗"
        logger.debug("%s %s (%dms)", marker, action_id, receipt.duration_ms)
        return receipt

    def require(self, action_id: str, command: list[str], *, failure: str, **kwargs: Any) -> Receipt:
        """Like ``run``, but a failed command raises StageError."""
        receipt = self.run(action_id, command, **kwargs)
        if not receipt.ok:
            detail = (receipt.error or "").strip().splitlines()
            reason = f"{failure}: {detail[-1]}" if detail else failure
            raise StageError(reason)
        return receipt

    # ── Component probes ────────────────────────────────────────

    def probe(
        self,
        name: str,
        binary: str | None = None,
        *,
        required: bool = True,
        command: list[str] | None = None,
        pattern: str = "",
    ) -> ComponentRecord:
        """Locate a component and ask it for its version."""
        binary = binary or name
        record = ComponentRecord(name=name, binary=binary, required=required)
        record.path = self.which(binary)
        if record.path is None:
            return record

        cmd, regex = version_command_for(name, binary, command, pattern)
        receipt = self.run(f"probe:{name}", cmd, label=f"{name} version", binary=binary, timeout=10)
        text = receipt.output + "\n" + str(receipt.metadata.get("stderr", ""))
        if receipt.ok:
            record.version = parse_version(text, regex) or UNKNOWN_VERSION
        else:
            logger.debug("%s found at %s but version probe failed: %s", name, record.path, receipt.error)
        return record
