"""
Bundled data — provisioning profiles shipped with the package.

Profiles live in ``src/core/data/profiles/<name>.yml``. The default
targets Ubuntu 24.04; operators can point ``--profile`` at their own
file instead.

Usage::

    from src.core.data import bundled_profile_path, list_profiles

    path = bundled_profile_path()          # default profile
    names = list_profiles()                # ["ubuntu-24.04"]
"""

from __future__ import annotations

from pathlib import Path

_DATA_DIR = Path(__file__).parent
PROFILES_DIR = _DATA_DIR / "profiles"

DEFAULT_PROFILE = "ubuntu-24.04"


def bundled_profile_path(name: str = DEFAULT_PROFILE) -> Path:
    """Path of a bundled profile (which may not exist)."""
    return PROFILES_DIR / f"{name}.yml"


def list_profiles() -> list[str]:
    """Names of all bundled profiles, sorted."""
    if not PROFILES_DIR.is_dir():
        return []
    return sorted(p.stem for p in PROFILES_DIR.glob("*.yml"))
