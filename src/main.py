"""
Podman provisioner — CLI entrypoint.

Usage:
    python -m src.main --help
    python -m src.main install [--force] [--skip-cleanup]
    python -m src.main preflight
    python -m src.main verify

Exit codes:
    0    success, or nothing to do (already installed)
    1    a preflight check or stage failed
    2    usage or profile error
    130  interrupted
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Callable
from pathlib import Path

import click

from src import __version__
from src.core.config.loader import ConfigError
from src.core.observability.logging_config import setup_logging, write_log_header

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def _configure_logging(verbose: bool, log_file: Path | None = None) -> None:
    if verbose:
        level = "DEBUG"
    else:
        level = os.environ.get("PODPROV_LOG_LEVEL", "INFO")
    setup_logging(level=level, log_file=log_file, quiet_third_party=not verbose)


def _common_options(func: Callable) -> Callable:
    """--profile, --verbose and --json, shared by every command."""
    func = click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")(func)
    func = click.option("--verbose", "-v", is_flag=True, help="Show every command and its output.")(func)
    func = click.option(
        "--profile",
        "profile_path",
        type=click.Path(exists=False, dir_okay=False),
        default=None,
        help="Provisioning profile YAML (default: bundled ubuntu-24.04).",
    )(func)
    return func


def _load(profile_path: str | None, **options: bool):
    from src.core.use_cases.provision import load_run

    try:
        return load_run(Path(profile_path) if profile_path else None, **options)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(EXIT_USAGE)


@click.group()
@click.version_option(version=__version__, prog_name="podman-provision")
def cli() -> None:
    """Build and configure podman, crun and conmon from source."""


@cli.command()
@click.option("--skip-cleanup", is_flag=True, help="Keep the build directory afterwards.")
@click.option("--force", is_flag=True, help="Reinstall even if podman is already present.")
@_common_options
def install(
    skip_cleanup: bool,
    force: bool,
    profile_path: str | None,
    verbose: bool,
    as_json: bool,
) -> None:
    """Install the container stack.

    Examples:

        podman-provision install

        podman-provision install --force --skip-cleanup

        GO_VERSION=1.23.5 BUILD_DIR=/tmp/pb podman-provision install
    """
    from src.core.services.provision.pipeline import prepare_workspace
    from src.core.use_cases.provision import run_install

    profile, config = _load(profile_path, skip_cleanup=skip_cleanup, force=force, verbose=verbose)

    try:
        prepare_workspace(config)
    except OSError as e:
        click.secho(f"❌ Cannot prepare {config.work_dir}: {e}", fg="red", err=True)
        sys.exit(EXIT_FAILED)

    _configure_logging(verbose, log_file=config.log_file)

    try:
        result = run_install(profile, config)
    except KeyboardInterrupt:
        click.secho("\n❌ Interrupted — system may be partially modified", fg="red", err=True)
        click.echo(f"   Log file: {config.log_file}", err=True)
        sys.exit(EXIT_INTERRUPTED)

    report = result.report
    assert report is not None

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(EXIT_OK if result.ok else EXIT_FAILED)

    if report.noop:
        click.secho(f"\n⚠️  {report.noop_reason}", fg="yellow")
        sys.exit(EXIT_OK)

    if not report.succeeded:
        click.secho(f"\n❌ Installation failed at {report.failed_stage}: {report.error}", fg="red", bold=True)
        click.echo(f"   Log file: {report.log_file}")
        sys.exit(EXIT_FAILED)

    _print_summary(result)


def _print_summary(result) -> None:
    report = result.report
    versions: dict = {}
    for stage in report.results:
        if stage.name == "validate":
            versions = stage.details.get("components", {})

    click.secho("\n✅ Installation complete!", fg="green", bold=True)
    if versions:
        click.echo()
        width = max(len(name) for name in versions)
        for name, version in versions.items():
            click.echo(f"   {name:<{width}}  {version or 'not found'}")

    if report.warnings:
        click.echo()
        click.secho(f"⚠️  {len(report.warnings)} warnings:", fg="yellow")
        for warning in report.warnings:
            click.echo(f"   • {warning}")

    click.echo()
    click.secho("   Next steps:", fg="white", bold=True)
    click.echo("     1. Log out and back in (or run: source ~/.bashrc)")
    click.echo("     2. Test podman: podman run --rm hello-world")
    click.echo("     3. Check podman info: podman info")
    if result.config.skip_cleanup:
        click.echo(f"\n   Build files kept in: {result.config.build_dir}")
    click.echo(f"   Log file: {report.log_file}")

    seconds = report.duration_ms // 1000
    click.echo(f"   Installation completed in {seconds // 60}m {seconds % 60}s")
    click.echo()


@cli.command()
@_common_options
def preflight(profile_path: str | None, verbose: bool, as_json: bool) -> None:
    """Check whether this host can be provisioned (changes nothing)."""
    from src.core.use_cases.provision import run_preflight_only

    profile, config = _load(profile_path, verbose=verbose)
    _configure_logging(verbose)
    result = run_preflight_only(profile, config)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(EXIT_OK if result.ok else EXIT_FAILED)

    click.secho(f"\n🔎 Preflight — {profile.name}", fg="cyan", bold=True)
    for check in result.checks:
        if check.passed:
            click.secho(f"   ✓ {check.requirement:<10}", fg="green", nl=False)
        else:
            click.secho(f"   ✗ {check.requirement:<10}", fg="red", nl=False)
        click.echo(f" {check.reason}")
        for warning in check.warnings:
            click.secho(f"     ⚠️  {warning}", fg="yellow")
    click.echo()

    sys.exit(EXIT_OK if result.ok else EXIT_FAILED)


@cli.command()
@_common_options
def verify(profile_path: str | None, verbose: bool, as_json: bool) -> None:
    """Verify an existing installation (changes nothing)."""
    from src.core.use_cases.provision import run_verify_only

    profile, config = _load(profile_path, verbose=verbose)
    log_file = config.verify_log_file
    write_log_header(log_file, config.build_dir, title="Podman Verification Log")
    _configure_logging(verbose, log_file)
    result = run_verify_only(profile, config, log_file=log_file)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(EXIT_OK if result.ok else EXIT_FAILED)

    if result.ok:
        click.secho("\n✅ All verifications passed", fg="green", bold=True)
        sys.exit(EXIT_OK)

    click.secho(f"\n❌ {result.error}", fg="red", bold=True)
    click.echo(f"   Log file: {log_file}")
    sys.exit(EXIT_FAILED)


if __name__ == "__main__":
    cli()
