"""
Tests for configuration — profile loading and run option resolution.
"""

import textwrap
from pathlib import Path

import pytest

from src.core.config.loader import ConfigError, load_pipeline_config, load_profile
from src.core.data import DEFAULT_PROFILE, bundled_profile_path, list_profiles


class TestBundledProfile:
    def test_listed(self):
        assert DEFAULT_PROFILE in list_profiles()
        assert bundled_profile_path().is_file()

    def test_loads(self):
        profile = load_profile()
        assert profile.name == "ubuntu-24.04"
        assert profile.os.id == "ubuntu"
        assert profile.os.version_id == "24.04"
        assert profile.min_disk_mb == 2048
        assert profile.endpoints == ["https://go.dev"]
        assert profile.toolchain.version == "1.23.5"

    def test_components_in_build_order(self):
        profile = load_profile()
        assert [c.name for c in profile.components] == ["conmon", "crun", "podman"]

    def test_conflicting_packages(self):
        profile = load_profile()
        assert "containers-common" in profile.packages.remove
        assert "golang-github-containers-image" in profile.packages.remove

    def test_config_files(self):
        profile = load_profile()
        by_name = {Path(c.path).name: c for c in profile.config_files}
        assert by_name["registries.conf"].scope == "system"
        assert by_name["policy.json"].fallback is not None
        assert by_name["containers.conf"].scope == "user"
        assert 'runtime = "crun"' in by_name["containers.conf"].content

    def test_verify_targets(self):
        profile = load_profile()
        required = {t.name: t.required for t in profile.verify}
        assert required == {"go": True, "crun": True, "conmon": True, "podman": True, "pasta": False}


class TestLoadProfile:
    def _write(self, tmp_path: Path, content: str) -> Path:
        path = tmp_path / "profile.yml"
        path.write_text(textwrap.dedent(content))
        return path

    def test_flat_profile(self, tmp_path: Path):
        path = self._write(tmp_path, """\
            name: minimal
            min_disk_mb: 512
            components:
              - name: conmon
                repo: https://github.com/containers/conmon.git
        """)
        profile = load_profile(path)
        assert profile.name == "minimal"
        assert profile.min_disk_mb == 512
        assert profile.toolchain.name == "go"

    def test_wrapped_profile(self, tmp_path: Path):
        path = self._write(tmp_path, """\
            profile:
              name: wrapped
        """)
        assert load_profile(path).name == "wrapped"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_profile(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = self._write(tmp_path, "name: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_profile(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = self._write(tmp_path, "- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_profile(path)

    def test_schema_error(self, tmp_path: Path):
        path = self._write(tmp_path, """\
            name: bad
            min_disk_mb: lots
        """)
        with pytest.raises(ConfigError, match="Invalid profile"):
            load_profile(path)

    def test_duplicate_components(self, tmp_path: Path):
        path = self._write(tmp_path, """\
            components:
              - name: crun
                repo: a
              - name: crun
                repo: b
        """)
        with pytest.raises(ConfigError, match="Duplicate"):
            load_profile(path)


class TestLoadPipelineConfig:
    def test_defaults(self, profile, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        config = load_pipeline_config(profile, environ={"USER": "alice", "HOME": "/home/alice"})
        assert config.work_dir == tmp_path / "podman-build"
        assert config.user == "alice"
        assert config.home == Path("/home/alice")
        assert config.pin("go") == "1.23.5"
        assert not config.force

    def test_env_overrides(self, profile, tmp_path):
        config = load_pipeline_config(
            profile,
            force=True,
            skip_cleanup=True,
            environ={"GO_VERSION": "1.24.1", "BUILD_DIR": str(tmp_path / "pb"), "USER": "bob"},
        )
        assert config.pin("go") == "1.24.1"
        assert config.work_dir == tmp_path / "pb"
        assert config.force and config.skip_cleanup

    def test_relative_build_dir(self, profile, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        config = load_pipeline_config(profile, environ={"BUILD_DIR": "out", "USER": "x"})
        assert config.work_dir == tmp_path / "out"

    def test_blank_go_version_ignored(self, profile, tmp_path):
        config = load_pipeline_config(
            profile, environ={"GO_VERSION": "  ", "BUILD_DIR": str(tmp_path), "USER": "x"},
        )
        assert config.pin("go") == "1.23.5"
