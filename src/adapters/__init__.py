"""Adapters — the host boundary.

Public re-exports for convenient access.
"""

from src.adapters.base import Adapter, ExecutionContext
from src.adapters.mock import MockAdapter
from src.adapters.shell.command import ShellCommandAdapter

__all__ = [
    "Adapter",
    "ExecutionContext",
    "MockAdapter",
    "ShellCommandAdapter",
]
