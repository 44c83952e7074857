"""
Detection — system package state.

Builds the dpkg query for a package and interprets its output. The
query itself is run through the adapter so it can be simulated.
"""

from __future__ import annotations

_INSTALLED_MARKER = "install ok installed"


def package_query_command(pkg: str) -> list[str]:
    """argv that reports a package's install status on Debian/Ubuntu."""
    return ["dpkg-query", "-W", "-f=${Status}", pkg]


def is_installed_status(output: str) -> bool:
    """True when dpkg-query output reports the package as installed.

    Packages that were removed but not purged report
    ``deinstall ok config-files`` and count as absent.
    """
    return _INSTALLED_MARKER in output
