"""
Configuration loader — profile YAML and run options into domain models.

Two inputs:
    profile     YAML file (bundled default or ``--profile PATH``),
                validated into a Profile
    run config  CLI flags + environment, frozen into a PipelineConfig

Environment variables:
    GO_VERSION   toolchain version pin (overrides the profile)
    BUILD_DIR    working directory (default ./podman-build)
"""

from __future__ import annotations

import getpass
import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import ValidationError

from src.core.data import bundled_profile_path
from src.core.models.pipeline import PipelineConfig
from src.core.models.profile import Profile

logger = logging.getLogger(__name__)

DEFAULT_WORK_DIR = "podman-build"

ENV_TOOLCHAIN_VERSION = "GO_VERSION"
ENV_WORK_DIR = "BUILD_DIR"


class ConfigError(Exception):
    """Raised when a profile or run option is invalid or missing."""


def load_profile(path: Path | None = None) -> Profile:
    """Load and validate a provisioning profile.

    Args:
        path: Profile YAML. If None, the bundled default is used.

    Returns:
        Validated Profile model.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = bundled_profile_path()

    if not path.is_file():
        raise ConfigError(f"Profile not found: {path}")

    logger.debug("Loading profile from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "profile" key or be flat
    profile_data = data.get("profile", data)

    try:
        profile = Profile.model_validate(profile_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid profile {path}: {e}") from e

    names = [c.name for c in profile.components]
    if len(names) != len(set(names)):
        raise ConfigError(f"Duplicate component names in {path}: {names}")

    logger.debug(
        "Loaded profile '%s' (%d components, %d packages)",
        profile.name, len(profile.components), len(profile.packages.install),
    )
    return profile


def _invoking_user(environ: Mapping[str, str]) -> str:
    user = environ.get("USER")
    if user:
        return user
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "root"


def load_pipeline_config(
    profile: Profile,
    *,
    skip_cleanup: bool = False,
    force: bool = False,
    verbose: bool = False,
    profile_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> PipelineConfig:
    """Resolve CLI flags and environment into a frozen PipelineConfig."""
    env = os.environ if environ is None else environ

    pins = profile.default_pins()
    toolchain_pin = env.get(ENV_TOOLCHAIN_VERSION, "").strip()
    if toolchain_pin:
        pins[profile.toolchain.name] = toolchain_pin

    work_dir = Path(env.get(ENV_WORK_DIR) or DEFAULT_WORK_DIR).expanduser()
    if not work_dir.is_absolute():
        work_dir = Path.cwd() / work_dir

    home = Path(env.get("HOME") or Path.home())

    try:
        return PipelineConfig(
            skip_cleanup=skip_cleanup,
            force=force,
            verbose=verbose,
            version_pins=pins,
            work_dir=work_dir,
            user=_invoking_user(env),
            home=home,
            profile_path=profile_path,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid run configuration: {e}") from e
