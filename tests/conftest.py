"""
Shared test fixtures and configuration.

The pipeline never touches the real host in these tests: commands go
to a MockAdapter, the home and working directories live under
``tmp_path``, and preflight probes are replaced with fakes.
"""

from pathlib import Path

import pytest

from src.adapters.mock import MockAdapter
from src.core.config.loader import load_profile
from src.core.context import RunContext
from src.core.models.pipeline import PipelineConfig
from src.core.models.profile import IdMapping, Profile
from src.core.services.provision.preflight import PreflightChecker

GO_VERSION_OUTPUT = "go version go1.23.5 linux/amd64"
CONMON_VERSION_OUTPUT = "conmon version 2.1.12\ncommit: 0123abc"
CRUN_VERSION_OUTPUT = "crun version 1.19.1\ncommit: db31c42"
PODMAN_VERSION_OUTPUT = "podman version 5.3.1"

UBUNTU_2404 = 'PRETTY_NAME="Ubuntu 24.04.1 LTS"\nID=ubuntu\nVERSION_ID="24.04"\n'


def fake_fetch(url: str, timeout: int = 30) -> str:
    return f"# fetched from {url}\n"


def failing_fetch(url: str, timeout: int = 30) -> str:
    raise OSError("Network is unreachable")


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """An empty home directory for the invoking user."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def os_release(tmp_path: Path) -> Path:
    path = tmp_path / "os-release"
    path.write_text(UBUNTU_2404)
    return path


@pytest.fixture
def profile(tmp_path: Path) -> Profile:
    """The bundled profile, with the subuid file redirected."""
    return load_profile().model_copy(
        update={"idmap": IdMapping(subuid_file=str(tmp_path / "subuid"))}
    )


@pytest.fixture
def config(tmp_path: Path, home: Path) -> PipelineConfig:
    return PipelineConfig(
        work_dir=tmp_path / "work",
        user="tester",
        home=home,
        version_pins={"go": "1.23.5"},
        started_at="20250101-120000",
    )


@pytest.fixture
def host() -> MockAdapter:
    """A fresh host: runtime helpers present, no toolchain, nothing built.

    Each install step makes its binary appear, the way the real
    install would.
    """
    mock = MockAdapter(binaries={"newuidmap": "", "newgidmap": "", "iptables": "iptables v1.8.10"})
    mock.provide("toolchain:extract", "go", GO_VERSION_OUTPUT)
    mock.provide("build-conmon:install", "conmon", CONMON_VERSION_OUTPUT)
    mock.provide("build-crun:install", "crun", CRUN_VERSION_OUTPUT)
    mock.provide("build-podman:install", "podman", PODMAN_VERSION_OUTPUT)
    return mock


@pytest.fixture
def ctx(config: PipelineConfig, profile: Profile, host: MockAdapter) -> RunContext:
    return RunContext(
        config=config,
        profile=profile,
        adapter=host,
        fetch=fake_fetch,
        search_path=["/usr/bin", "/bin"],
    )


def make_checker(ctx: RunContext, os_release: Path, **overrides) -> PreflightChecker:
    """A PreflightChecker against a healthy fake host, with overrides."""
    kwargs = {
        "os_release_path": os_release,
        "machine_name": "x86_64",
        "disk_free": lambda path: 50_000,
        "probe": lambda url, timeout: {"reachable": True, "url": url, "status": 200},
        "is_root": False,
    }
    kwargs.update(overrides)
    return PreflightChecker(ctx, **kwargs)


@pytest.fixture
def checker(ctx: RunContext, os_release: Path) -> PreflightChecker:
    return make_checker(ctx, os_release)


@pytest.fixture
def checker_factory(ctx: RunContext, os_release: Path):
    """Build a checker with some probes overridden."""

    def factory(**overrides) -> PreflightChecker:
        return make_checker(ctx, os_release, **overrides)

    return factory
