"""
Logging configuration — central setup for the CLI.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Two sinks:
    console  — colored level tags ([INFO] [OK] [WARN] [ERROR]) on stderr
    log file — the persistent execution log, always at DEBUG with full
               timestamps; also receives every command's output

Console level precedence:
    CLI flag  >  PODPROV_LOG_LEVEL env var  >  INFO (default)
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

import click

# ── Format strings ──────────────────────────────────────────────

_FMT_CONSOLE = "%(message)s"

# DEBUG console: include the emitting module
_FMT_CONSOLE_DEBUG = "%(name)s:%(lineno)d — %(message)s"

# File output: always full detail
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# Messages starting with this marker are rendered as [OK]
SUCCESS_MARKER = "✓"

_LEVEL_TAGS: dict[int, tuple[str, str]] = {
    logging.DEBUG: ("[DEBUG]", "bright_black"),
    logging.INFO: ("[INFO]", "blue"),
    logging.WARNING: ("[WARN]", "yellow"),
    logging.ERROR: ("[ERROR]", "red"),
    logging.CRITICAL: ("[ERROR]", "red"),
}

# Third-party loggers that are noisy at INFO/DEBUG
_NOISY_LOGGERS = ("urllib3", "charset_normalizer")


def level_tag(record: logging.LogRecord) -> tuple[str, str]:
    """Console tag and color for a record."""
    if record.levelno == logging.INFO and str(record.msg).startswith(SUCCESS_MARKER):
        return "[OK]", "green"
    return _LEVEL_TAGS.get(record.levelno, ("[INFO]", "blue"))


class ConsoleFormatter(logging.Formatter):
    """Prefix each line with a colored level tag."""

    def __init__(self, fmt: str = _FMT_CONSOLE, color: bool = True):
        super().__init__(fmt)
        self._color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        tag, fg = level_tag(record)
        if message.startswith(SUCCESS_MARKER):
            message = message[len(SUCCESS_MARKER):].lstrip()
        if self._color:
            tag = click.style(tag, fg=fg, bold=record.levelno >= logging.ERROR)
        return f"{tag} {message}"


class FileFormatter(logging.Formatter):
    """Full-detail format with the same level tag the console shows."""

    def __init__(self) -> None:
        super().__init__(_FMT_FILE, datefmt=_DATEFMT_FILE)

    def format(self, record: logging.LogRecord) -> str:
        tag, _ = level_tag(record)
        return f"{super().format(record)} {tag}"


def setup_logging(
    level: str = "INFO",
    log_file: str | Path | None = None,
    log_file_level: str | None = "DEBUG",
    quiet_third_party: bool = True,
    color: bool | None = None,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to the persistent log file (appended to).
        log_file_level: Level for the log file. Defaults to DEBUG so the
            file always holds command output.
        quiet_third_party: If True, keep noisy third-party loggers at
            WARNING unless the console is at DEBUG.
        color: Force colored tags on/off. Defaults to "stderr is a tty".
    """
    numeric_level = _parse_level(level)
    if color is None:
        color = sys.stderr.isatty()

    # ── Console handler (stderr) ────────────────────────────────
    fmt = _FMT_CONSOLE_DEBUG if numeric_level <= logging.DEBUG else _FMT_CONSOLE
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(ConsoleFormatter(fmt, color=color))

    # ── Root logger ─────────────────────────────────────────────
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.addHandler(console)

    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(FileFormatter())
        root.addHandler(fh)

    root.setLevel(effective_level)

    # ── Third-party noise control ───────────────────────────────
    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False


def write_log_header(log_file: Path, build_dir: Path, title: str = "Podman Installation Log") -> None:
    """Start a fresh log file with a header block.

    Overwrites any file at that path; the timestamped name makes
    collisions a same-second rerun, which should start clean anyway.
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)
    header = (
        f"=== {title} ===\n"
        f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"Build directory: {build_dir}\n"
        "\n"
    )
    log_file.write_text(header, encoding="utf-8")


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.INFO
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.INFO
    return numeric
