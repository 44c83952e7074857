"""
Action and Receipt models — the command execution contract.

An Action is one command the pipeline wants run on the host.
A Receipt is what came back. Stages send Actions, adapters return
Receipts. Never exceptions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """A single host command requested by a stage.

    Params understood by the shell adapter:
        command (list[str]): argv to execute.
        sudo (bool): run with elevated privileges.
        preserve_path (bool): carry the caller's PATH through sudo.
        env (dict[str, str]): extra environment for the command.
        timeout (int | None): seconds before the command is killed.
        binary (str): the binary whose version this action probes.
    """

    id: str                         # "<stage>:<step>", e.g. "build-crun:clone"
    name: str = ""                  # human-readable label
    adapter: str = "shell"
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def command(self) -> list[str]:
        return list(self.params.get("command", []))


class Receipt(BaseModel):
    """Result of running an Action.

    Adapters never raise; failures are captured here together with
    the tail of stderr so the caller can surface a reason.
    """

    adapter: str
    action_id: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    return_code: int | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the command succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the command failed."""
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="failed",
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        adapter: str,
        action_id: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a skip receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="skipped",
            output=reason,
            **kwargs,
        )
