"""
Tests for CLI commands — install, preflight, verify, and global options.
"""

import json
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from src.core.models.pipeline import PipelineReport, StageResult
from src.core.services.provision.preflight import CheckResult
from src.core.use_cases.provision import ProvisionResult
from src.main import cli


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    """Keep the CLI from reconfiguring the test process's root logger."""
    monkeypatch.setattr("src.main.setup_logging", lambda **kwargs: None)


@pytest.fixture
def env(tmp_path: Path) -> dict[str, str]:
    return {"BUILD_DIR": str(tmp_path / "pb"), "USER": "tester", "HOME": str(tmp_path)}


def _fake_install(report: PipelineReport):
    def run_install(profile, config, **kwargs):
        report.log_file = str(config.log_file)
        return ProvisionResult(report=report, profile=profile, config=config, error=report.error)

    return run_install


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "install" in result.output
        assert "preflight" in result.output
        assert "verify" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_unknown_option_is_usage_error(self):
        result = CliRunner().invoke(cli, ["install", "--frobnicate"])
        assert result.exit_code == 2


class TestInstallCommand:
    def test_success(self, monkeypatch, env):
        report = PipelineReport(
            results=[
                StageResult.success("validate", details={"components": {"podman": "5.3.1"}}),
            ],
            duration_ms=125_000,
        )
        monkeypatch.setattr("src.core.use_cases.provision.run_install", _fake_install(report))
        result = CliRunner().invoke(cli, ["install"], env=env)
        assert result.exit_code == 0, result.output
        assert "Installation complete" in result.output
        assert "podman" in result.output and "5.3.1" in result.output
        assert "Installation completed in 2m 5s" in result.output
        assert "Next steps" in result.output

    def test_workspace_and_log_header_created(self, monkeypatch, env):
        monkeypatch.setattr(
            "src.core.use_cases.provision.run_install", _fake_install(PipelineReport()),
        )
        CliRunner().invoke(cli, ["install"], env=env)
        work_dir = Path(env["BUILD_DIR"])
        assert (work_dir / "build").is_dir()
        logs = list(work_dir.glob("install-*.log"))
        assert len(logs) == 1
        assert logs[0].read_text().startswith("=== Podman Installation Log ===")

    def test_flags_reach_config(self, monkeypatch, env):
        seen = {}

        def run_install(profile, config, **kwargs):
            seen["config"] = config
            return ProvisionResult(report=PipelineReport(), profile=profile, config=config)

        monkeypatch.setattr("src.core.use_cases.provision.run_install", run_install)
        CliRunner().invoke(
            cli, ["install", "--force", "--skip-cleanup"], env={**env, "GO_VERSION": "1.24.0"},
        )
        config = seen["config"]
        assert config.force and config.skip_cleanup
        assert config.pin("go") == "1.24.0"

    def test_noop_exits_zero(self, monkeypatch, env):
        report = PipelineReport(noop=True, noop_reason="podman 5.0.2 is already installed. Use --force to reinstall.")
        monkeypatch.setattr("src.core.use_cases.provision.run_install", _fake_install(report))
        result = CliRunner().invoke(cli, ["install"], env=env)
        assert result.exit_code == 0
        assert "already installed" in result.output

    def test_failure_exits_one_with_log_pointer(self, monkeypatch, env):
        report = PipelineReport(failed_stage="dependencies", error="Package installation failed")
        monkeypatch.setattr("src.core.use_cases.provision.run_install", _fake_install(report))
        result = CliRunner().invoke(cli, ["install"], env=env)
        assert result.exit_code == 1
        assert "dependencies" in result.output
        assert "Log file:" in result.output

    def test_interrupt_exits_130(self, monkeypatch, env):
        def interrupted(profile, config, **kwargs):
            raise KeyboardInterrupt

        monkeypatch.setattr("src.core.use_cases.provision.run_install", interrupted)
        result = CliRunner().invoke(cli, ["install"], env=env)
        assert result.exit_code == 130

    def test_json_output(self, monkeypatch, env):
        report = PipelineReport(results=[StageResult.success("preflight")])
        monkeypatch.setattr("src.core.use_cases.provision.run_install", _fake_install(report))
        result = CliRunner().invoke(cli, ["install", "--json"], env=env)
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["ok"] is True
        assert data["report"]["status"] == "ok"
        assert data["profile"] == "ubuntu-24.04"

    def test_bad_profile_is_usage_error(self, tmp_path: Path, env):
        profile = tmp_path / "broken.yml"
        profile.write_text(textwrap.dedent("""\
            name: broken
            min_disk_mb: lots
        """))
        result = CliRunner().invoke(cli, ["install", "--profile", str(profile)], env=env)
        assert result.exit_code == 2

    def test_missing_profile_is_usage_error(self, tmp_path: Path, env):
        result = CliRunner().invoke(cli, ["install", "--profile", str(tmp_path / "nope.yml")], env=env)
        assert result.exit_code == 2


class TestPreflightCommand:
    def _fake(self, checks):
        def run_preflight_only(profile, config, **kwargs):
            return ProvisionResult(checks=checks, profile=profile, config=config)

        return run_preflight_only

    def test_all_pass(self, monkeypatch, env):
        checks = [CheckResult("os", True, "ubuntu 24.04"), CheckResult("disk", True, "9000MB available")]
        monkeypatch.setattr("src.core.use_cases.provision.run_preflight_only", self._fake(checks))
        result = CliRunner().invoke(cli, ["preflight"], env=env)
        assert result.exit_code == 0
        assert "ubuntu 24.04" in result.output

    def test_failure_exits_one(self, monkeypatch, env):
        checks = [
            CheckResult("os", True, "ubuntu 24.04"),
            CheckResult("disk", False, "Insufficient disk space. Need at least 2048MB, have 10MB"),
        ]
        monkeypatch.setattr("src.core.use_cases.provision.run_preflight_only", self._fake(checks))
        result = CliRunner().invoke(cli, ["preflight"], env=env)
        assert result.exit_code == 1
        assert "Insufficient disk space" in result.output

    def test_json(self, monkeypatch, env):
        checks = [CheckResult("os", True, "ubuntu 24.04")]
        monkeypatch.setattr("src.core.use_cases.provision.run_preflight_only", self._fake(checks))
        result = CliRunner().invoke(cli, ["preflight", "--json"], env=env)
        data = json.loads(result.stdout)
        assert data["checks"][0]["requirement"] == "os"


class TestVerifyCommand:
    def test_failure(self, monkeypatch, env, tmp_path):
        def run_verify_only(profile, config, **kwargs):
            report = PipelineReport(
                failed_stage="validate", error="Installation verification failed with 2 errors",
            )
            return ProvisionResult(report=report, profile=profile, config=config, error=report.error)

        monkeypatch.setattr("src.core.use_cases.provision.run_verify_only", run_verify_only)
        result = CliRunner().invoke(cli, ["verify"], env=env)
        assert result.exit_code == 1
        assert "2 errors" in result.output
        assert "Log file:" in result.output
        logs = list((tmp_path / "pb").glob("verify-*.log"))
        assert len(logs) == 1
        assert logs[0].read_text().startswith("=== Podman Verification Log ===")

    def test_success(self, monkeypatch, env):
        def run_verify_only(profile, config, **kwargs):
            return ProvisionResult(report=PipelineReport(), profile=profile, config=config)

        monkeypatch.setattr("src.core.use_cases.provision.run_verify_only", run_verify_only)
        result = CliRunner().invoke(cli, ["verify"], env=env)
        assert result.exit_code == 0
        assert "All verifications passed" in result.output
