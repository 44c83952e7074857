"""
Mock adapter — test double for the host.

Simulates a machine without touching it: every action succeeds unless
configured otherwise, binaries "exist" only when declared, and a
successful action can be configured to make a binary appear (the way
``make install`` would).
"""

from __future__ import annotations

import threading

from src.adapters.base import Adapter, ExecutionContext
from src.core.models.action import Action, Receipt


class MockAdapter(Adapter):
    """Universal mock adapter for testing.

    Args:
        adapter_name: Name reported in receipts.
        available: Value returned by ``is_available``.
        default_output: Output of actions with no configured response.
        binaries: Binaries present on the fake host, mapped to the text
            their version command prints.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
        binaries: dict[str, str] | None = None,
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._binaries: dict[str, str] = dict(binaries or {})
        self._responses: dict[str, Receipt] = {}
        self._provides: dict[str, tuple[str, str]] = {}
        self._call_log: list[ExecutionContext] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times execute has been called."""
        return len(self._call_log)

    @property
    def actions(self) -> list[Action]:
        return [ctx.action for ctx in self._call_log]

    @property
    def action_ids(self) -> list[str]:
        return [ctx.action.id for ctx in self._call_log]

    @property
    def binaries(self) -> dict[str, str]:
        return self._binaries

    def calls_for(self, prefix: str) -> list[Action]:
        """Actions whose id starts with ``prefix``."""
        return [a for a in self.actions if a.id.startswith(prefix)]

    def is_available(self) -> bool:
        return self._available

    def add_binary(self, binary: str, version_output: str = "") -> None:
        """Make a binary present on the fake host."""
        self._binaries[binary] = version_output or f"{binary} version 0.0.0"

    def remove_binary(self, binary: str) -> None:
        self._binaries.pop(binary, None)

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        """Set a custom response for a specific action ID."""
        self._responses[action_id] = receipt

    def set_output(self, action_id: str, output: str) -> None:
        """Make a specific action succeed with the given output."""
        self._responses[action_id] = Receipt.success(
            adapter=self._name, action_id=action_id, output=output,
        )

    def set_failure(
        self, action_id: str, error: str = "Mock failure", return_code: int = 1,
    ) -> None:
        """Configure a specific action to fail."""
        self._responses[action_id] = Receipt.failure(
            adapter=self._name,
            action_id=action_id,
            error=error,
            return_code=return_code,
        )

    def provide(self, action_id: str, binary: str, version_output: str = "") -> None:
        """When ``action_id`` succeeds, ``binary`` becomes present."""
        self._provides[action_id] = (binary, version_output)

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.action.params.get("command"):
            return False, "Missing required param: 'command'"
        return True, ""

    def which(self, binary: str, path: str | None = None) -> str | None:
        if binary not in self._binaries:
            return None
        first_dir = (path or "/usr/bin").split(":")[0] or "/usr/bin"
        return f"{first_dir}/{binary}"

    def execute(self, context: ExecutionContext) -> Receipt:
        with self._lock:
            self._call_log.append(context)
        action = context.action

        receipt = self._responses.get(action.id)
        if receipt is None:
            receipt = self._default_receipt(action)

        if receipt.ok and action.id in self._provides:
            binary, version_output = self._provides[action.id]
            self.add_binary(binary, version_output)

        return receipt

    def _default_receipt(self, action: Action) -> Receipt:
        # Version probes answer from the fake host's binaries
        binary = action.params.get("binary")
        if binary:
            if binary not in self._binaries:
                return Receipt.failure(
                    adapter=self._name,
                    action_id=action.id,
                    error=f"Command not found: {binary}",
                    return_code=127,
                )
            return Receipt.success(
                adapter=self._name,
                action_id=action.id,
                output=self._binaries[binary],
                return_code=0,
            )

        return Receipt.success(
            adapter=self._name,
            action_id=action.id,
            output=self._default_output,
            return_code=0,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call log and custom responses."""
        self._call_log.clear()
        self._responses.clear()
        self._provides.clear()
