"""
Shell command adapter — run host commands and capture their output.

The SINGLE PLACE where ``subprocess.run`` is called by the pipeline.
Sudo handling, environment, and output capture are centralised here.
Command output is logged at DEBUG so it lands in the persistent log
file without cluttering the console.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from pathlib import Path

from src.adapters.base import Adapter, ExecutionContext
from src.core.models.action import Receipt

logger = logging.getLogger(__name__)

# Keep receipts small; the full output is already in the log file.
_TAIL_CHARS = 2000


def _is_root() -> bool:
    return os.geteuid() == 0


def build_argv(
    command: list[str],
    *,
    sudo: bool = False,
    env: dict[str, str] | None = None,
) -> list[str]:
    """Wrap a command with sudo and an explicit environment when needed.

    sudo resets the environment (notably PATH), so variables that must
    survive elevation are passed through ``env K=V`` after ``sudo``.
    When already root no prefix is added; the environment is then
    handed to ``subprocess.run`` directly.
    """
    if not sudo or _is_root():
        return list(command)
    prefix = ["sudo"]
    if env:
        prefix += ["env"] + [f"{key}={value}" for key, value in env.items()]
    return prefix + list(command)


class ShellCommandAdapter(Adapter):
    """Execute host commands and capture output.

    Action params:
        command (list[str]): argv to execute (required).
        sudo (bool): elevate with sudo unless already root.
        preserve_path (bool): pass the pipeline's PATH through sudo.
        env (dict): extra environment variables.
        timeout (int | None): seconds; None means no limit.
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.action.params.get("command")
        if not command:
            return False, "Missing required param: 'command'"
        if not isinstance(command, list):
            return False, "Param 'command' must be an argv list"

        if context.cwd and not Path(context.cwd).is_dir():
            return False, f"Working directory does not exist: {context.cwd}"

        return True, ""

    def which(self, binary: str, path: str | None = None) -> str | None:
        return shutil.which(binary, path=path)

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        command: list[str] = list(params["command"])
        sudo = bool(params.get("sudo", False))
        timeout = params.get("timeout")

        extra_env: dict[str, str] = dict(params.get("env") or {})
        if params.get("preserve_path") and context.search_path:
            extra_env["PATH"] = context.search_path

        env = os.environ.copy()
        if context.search_path:
            env["PATH"] = context.search_path
        env.update(extra_env)

        argv = build_argv(command, sudo=sudo, env=extra_env)
        logger.debug("$ %s%s", " ".join(argv), f"  (cwd={context.cwd})" if context.cwd else "")
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                cwd=context.cwd,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=env,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": argv, "timeout": timeout},
            )
        except FileNotFoundError:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command not found: {argv[0]}",
                return_code=127,
                metadata={"command": argv},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command execution error: {e}",
                metadata={"command": argv},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = result.stdout or ""
        stderr = result.stderr or ""
        for line in (stdout + stderr).splitlines():
            logger.debug("  │ %s", line)

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=stdout.strip()[-_TAIL_CHARS:],
                duration_ms=elapsed_ms,
                return_code=0,
                metadata={"command": argv, "stderr": stderr.strip()[-_TAIL_CHARS:]},
            )

        tail = stderr.strip()[-_TAIL_CHARS:]
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=tail or f"Command exited with code {result.returncode}",
            output=stdout.strip()[-_TAIL_CHARS:],
            duration_ms=elapsed_ms,
            return_code=result.returncode,
            metadata={"command": argv},
        )
