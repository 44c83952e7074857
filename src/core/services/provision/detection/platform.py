"""
Detection — platform identity.

Read-only probes: ``/etc/os-release`` parsing and CPU architecture
normalisation.
"""

from __future__ import annotations

import platform
from pathlib import Path

OS_RELEASE_PATH = Path("/etc/os-release")

# uname machine → distribution archive naming
_ARCH_MAP = {"x86_64": "amd64", "aarch64": "arm64", "armv7l": "armv6l"}


def read_os_release(path: Path = OS_RELEASE_PATH) -> dict[str, str] | None:
    """Parse an os-release file into a dict.

    Returns:
        ``{"ID": "ubuntu", "VERSION_ID": "24.04", ...}`` or None if the
        file does not exist or cannot be read.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return None

    fields: dict[str, str] = {}
    for line in raw.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        fields[key.strip()] = value.strip().strip('"').strip("'")
    return fields


def machine() -> str:
    """Raw CPU architecture as reported by uname (e.g. ``x86_64``)."""
    return platform.machine().lower()


def normalize_arch(raw: str | None = None) -> str:
    """Map uname naming to archive naming (``x86_64`` → ``amd64``)."""
    raw = (raw or machine()).lower()
    return _ARCH_MAP.get(raw, raw)
