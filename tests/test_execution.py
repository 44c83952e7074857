"""
Tests for host writes — atomic config files, shell fragments, sudo keep-alive.
"""

import stat
import threading
import time
from pathlib import Path

from src.core.services.provision.execution.config_files import (
    ensure_fragment,
    has_marker,
    install_system_file,
    write_atomic,
)
from src.core.services.provision.execution.keepalive import SudoKeepAlive

MARKER = "# Go configuration (podman installer)"
LINES = ["export PATH=/usr/local/go/bin:$PATH", "export GOPATH=$HOME/go"]


class TestWriteAtomic:
    def test_creates_parents(self, tmp_path: Path):
        target = tmp_path / "a" / "b" / "containers.conf"
        write_atomic(target, "[engine]\n")
        assert target.read_text() == "[engine]\n"

    def test_replaces_whole_file(self, tmp_path: Path):
        target = tmp_path / "containers.conf"
        target.write_text("old content that is longer than the new one\n")
        write_atomic(target, "new\n")
        assert target.read_text() == "new\n"

    def test_mode(self, tmp_path: Path):
        target = tmp_path / "policy.json"
        write_atomic(target, "{}", mode=0o600)
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_no_temp_files_left(self, tmp_path: Path):
        write_atomic(tmp_path / "x.conf", "x")
        assert [p.name for p in tmp_path.iterdir()] == ["x.conf"]


class TestInstallSystemFile:
    def test_staged_then_installed(self, ctx, host, config):
        receipt = install_system_file(
            ctx, "configure:write:registries.conf",
            Path("/etc/containers/registries.conf"), "content\n", "0644",
        )
        assert receipt.ok
        staged = config.build_dir / "staged-config" / "registries.conf"
        assert staged.read_text() == "content\n"
        action = host.actions[-1]
        assert action.command == [
            "install", "-D", "-m", "0644", str(staged), "/etc/containers/registries.conf",
        ]
        assert action.params["sudo"] is True


class TestShellFragment:
    def test_appends_once(self, tmp_path: Path):
        rc = tmp_path / ".bashrc"
        rc.write_text("alias ll='ls -l'")
        assert ensure_fragment(rc, MARKER, LINES) is True
        assert ensure_fragment(rc, MARKER, LINES) is False
        text = rc.read_text()
        assert text.count(MARKER) == 1
        assert text.startswith("alias ll='ls -l'\n")
        assert text.endswith("export GOPATH=$HOME/go\n")

    def test_creates_missing_file(self, tmp_path: Path):
        rc = tmp_path / ".bashrc"
        assert ensure_fragment(rc, MARKER, LINES)
        assert has_marker(rc, MARKER)

    def test_has_marker_missing_file(self, tmp_path: Path):
        assert not has_marker(tmp_path / "nope", MARKER)


class TestSudoKeepAlive:
    def test_root_starts_no_thread(self, ctx):
        keepalive = SudoKeepAlive(ctx, interval=0.01, is_root=True)
        with keepalive:
            assert not keepalive.running

    def test_refreshes_until_stopped(self, ctx, host):
        keepalive = SudoKeepAlive(ctx, interval=0.01, is_root=False)
        with keepalive:
            deadline = time.monotonic() + 2
            while keepalive.refreshes < 2 and time.monotonic() < deadline:
                time.sleep(0.01)
        assert not keepalive.running
        assert keepalive.refreshes >= 2
        refresh = host.calls_for("keepalive:sudo")[0]
        assert refresh.command == ["sudo", "-n", "-v"]

    def test_stopped_on_exception(self, ctx):
        keepalive = SudoKeepAlive(ctx, interval=0.01, is_root=False)
        try:
            with keepalive:
                raise KeyboardInterrupt
        except KeyboardInterrupt:
            pass
        assert not keepalive.running

    def test_failed_refresh_does_not_stop(self, ctx, host):
        host.set_failure("keepalive:sudo", error="a password is required")
        keepalive = SudoKeepAlive(ctx, interval=0.01, is_root=False)
        with keepalive:
            deadline = time.monotonic() + 2
            while keepalive.refreshes < 2 and time.monotonic() < deadline:
                time.sleep(0.01)
        assert keepalive.refreshes >= 2

    def test_stop_waits_for_refresh_in_flight(self, ctx, host, monkeypatch):
        entered = threading.Event()
        original_run = ctx.run

        def slow_run(action_id, command, **kwargs):
            entered.set()
            time.sleep(0.3)
            return original_run(action_id, command, **kwargs)

        monkeypatch.setattr(ctx, "run", slow_run)
        keepalive = SudoKeepAlive(ctx, interval=0.01, is_root=False)
        keepalive.start()
        thread = keepalive._thread
        assert entered.wait(2)
        keepalive.stop()
        assert not thread.is_alive()
        assert host.calls_for("keepalive:sudo")
