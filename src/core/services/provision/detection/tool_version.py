"""
Detection — tool version parsing.

Known version commands for the stack, and the regex-based parser
that turns their output into a version string.
"""

from __future__ import annotations

import re

VERSION_COMMANDS: dict[str, tuple[list[str], str]] = {
    "go":       (["go", "version"],          r"go(\d+\.\d+(?:\.\d+)?)"),
    "crun":     (["crun", "--version"],      r"crun version\s+(\S+)"),
    "conmon":   (["conmon", "--version"],    r"conmon version\s+(\S+)"),
    "podman":   (["podman", "--version"],    r"podman version\s+(\S+)"),
    "pasta":    (["pasta", "--version"],     r"pasta\s+(\S+)"),
    "netavark": (["netavark", "--version"],  r"netavark\s+(\S+)"),
    "git":      (["git", "--version"],       r"git version\s+(\d+\.\d+\.\d+)"),
}

# Reported when a binary runs but its output does not match the pattern
UNKNOWN_VERSION = "installed"


def version_command_for(
    name: str,
    binary: str,
    command: list[str] | None = None,
    pattern: str = "",
) -> tuple[list[str], str]:
    """Resolve the version command and pattern for a component.

    Explicit values win; otherwise the static table is used; otherwise
    ``<binary> --version`` with a generic semver-ish pattern.
    """
    default_cmd, default_pattern = VERSION_COMMANDS.get(
        name, ([binary, "--version"], r"(\d+\.\d+(?:\.\d+)?)")
    )
    return (list(command) if command else default_cmd, pattern or default_pattern)


def parse_version(output: str, pattern: str) -> str | None:
    """Extract a version string from command output, or None."""
    match = re.search(pattern, output)
    if match:
        return match.group(1)
    return None
