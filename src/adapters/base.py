"""
Adapter base — the contract between stages and the host.

Stages never call ``subprocess`` or probe the search path directly;
they go through an Adapter. That keeps every side effect in one place
and lets tests swap the host for a MockAdapter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from src.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to run an action.

    ``search_path`` is the pipeline's current PATH. It grows during the
    run (e.g. after the toolchain is unpacked), so it travels with each
    action instead of living in ``os.environ``.
    """

    action: Action
    cwd: str | None = None
    search_path: str | None = None


class Adapter(ABC):
    """Abstract base class for host adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g. 'shell', 'mock')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter can run commands at all. Never raises."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt.

        MUST never raise exceptions. All failures are captured
        in the Receipt with status='failed'.
        """

    @abstractmethod
    def which(self, binary: str, path: str | None = None) -> str | None:
        """Resolve ``binary`` on ``path`` (os.pathsep-joined), or None."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
