"""
End-to-end pipeline scenarios against a mock host.
"""

import json
import logging

from src.core.models.pipeline import PipelineConfig
from src.core.services.provision.pipeline import (
    detect_existing_install,
    format_duration,
    prepare_workspace,
    run_pipeline,
    run_verify,
)


class TestPrepareWorkspace:
    def test_creates_build_dir_and_log_header(self, config):
        prepare_workspace(config)
        assert config.build_dir.is_dir()
        header = config.log_file.read_text()
        assert header.startswith("=== Podman Installation Log ===")
        assert f"Build directory: {config.build_dir}" in header


class TestRunPipeline:
    def test_fresh_host_full_success(self, ctx, host, checker, config):
        prepare_workspace(config)
        report = run_pipeline(ctx, preflight=checker)
        assert report.status == "ok", report.error
        assert report.stages_run == [
            "preflight",
            "dependencies",
            "toolchain",
            "build-conmon",
            "build-crun",
            "build-podman",
            "configure",
            "validate",
            "cleanup",
        ]
        assert not config.build_dir.exists()
        assert config.log_file.exists()

    def test_already_installed_is_noop(self, ctx, host, checker):
        host.add_binary("podman", "podman version 5.0.2")
        report = run_pipeline(ctx, preflight=checker)
        assert report.status == "noop"
        assert "already installed" in report.noop_reason
        assert "--force" in report.noop_reason
        assert report.stages_run == ["preflight"]
        assert host.calls_for("dependencies:") == []

    def test_force_reinstalls_over_existing(self, ctx, host, checker_factory, config):
        ctx.config = PipelineConfig(**{**config.model_dump(), "force": True})
        host.add_binary("podman", "podman version 5.0.2")
        report = run_pipeline(ctx, preflight=checker_factory())
        assert report.status == "ok", report.error
        assert host.calls_for("build-podman:install")

    def test_preflight_failure_mutates_nothing(self, ctx, host, checker_factory):
        checker = checker_factory(disk_free=lambda path: 100)
        report = run_pipeline(ctx, preflight=checker)
        assert report.status == "failed"
        assert report.failed_stage == "preflight"
        assert report.error.startswith("Insufficient disk space")
        assert host.calls_for("dependencies:") == []
        assert host.calls_for("probe:") == []

    def test_package_install_failure_halts(self, ctx, host, checker, caplog):
        host.set_failure("dependencies:install", error="E: Unable to locate package libfoo-dev")
        with caplog.at_level(logging.ERROR):
            report = run_pipeline(ctx, preflight=checker)
        assert report.failed_stage == "dependencies"
        assert report.stages_run == ["preflight", "dependencies"]
        assert host.calls_for("toolchain:") == []
        assert host.calls_for("build-") == []
        assert f"Check log file for details: {ctx.config.log_file}" in caplog.text

    def test_build_failure_stops_later_components(self, ctx, host, checker):
        host.set_failure("build-crun:build", error="make: *** [Makefile:42] Error 1")
        report = run_pipeline(ctx, preflight=checker)
        assert report.failed_stage == "build-crun"
        assert host.calls_for("build-conmon:install")
        assert host.calls_for("build-podman:") == []
        assert host.calls_for("configure:") == []

    def test_smoke_test_failure_still_succeeds(self, ctx, host, checker):
        host.set_failure("validate:smoke", error="Error: cannot set up namespace")
        report = run_pipeline(ctx, preflight=checker)
        assert report.status == "ok", report.error
        assert "Container test failed - check configuration" in report.warnings

    def test_network_degradation_still_succeeds(self, ctx, checker):
        def offline(url, timeout):
            raise OSError("Temporary failure in name resolution")

        ctx.fetch = offline
        report = run_pipeline(ctx, preflight=checker)
        assert report.status == "ok", report.error
        assert any("using fallback" in w for w in report.warnings)

    def test_skip_cleanup_keeps_build_dir(self, ctx, checker, config):
        ctx.config = PipelineConfig(**{**config.model_dump(), "skip_cleanup": True})
        prepare_workspace(ctx.config)
        report = run_pipeline(ctx, preflight=checker)
        assert report.succeeded
        assert ctx.config.build_dir.exists()

    def test_rerun_after_success_is_noop(self, ctx, host, checker):
        assert run_pipeline(ctx, preflight=checker).status == "ok"
        assert run_pipeline(ctx, preflight=checker).status == "noop"

    def test_completion_time_logged(self, ctx, checker, caplog):
        with caplog.at_level(logging.INFO):
            run_pipeline(ctx, preflight=checker)
        assert "Installation completed in" in caplog.text

    def test_to_dict_is_serializable(self, ctx, checker):
        report = run_pipeline(ctx, preflight=checker)
        data = json.loads(json.dumps(report.to_dict()))
        assert data["status"] == "ok"
        assert data["stages"][0]["name"] == "preflight"


class TestRunVerify:
    def test_verify_missing_everything(self, ctx):
        report = run_verify(ctx)
        assert report.failed_stage == "validate"
        assert "4 errors" in report.error

    def test_verify_failure_points_at_log(self, ctx, config, caplog):
        with caplog.at_level(logging.ERROR):
            report = run_verify(ctx, log_file=config.verify_log_file)
        assert report.log_file == str(config.verify_log_file)
        assert f"Check log file for details: {config.verify_log_file}" in caplog.text

    def test_verify_installed(self, ctx, host):
        for binary, output in {
            "go": "go version go1.23.5 linux/amd64",
            "crun": "crun version 1.19.1",
            "conmon": "conmon version 2.1.12",
            "podman": "podman version 5.3.1",
        }.items():
            host.add_binary(binary, output)
        assert run_verify(ctx).succeeded


class TestHelpers:
    def test_detect_existing_install(self, ctx, host):
        assert detect_existing_install(ctx) is None
        host.add_binary("podman", "podman version 5.3.1")
        assert detect_existing_install(ctx) == "5.3.1"

    def test_format_duration(self):
        assert format_duration(0) == "0m 0s"
        assert format_duration(754_321) == "12m 34s"
