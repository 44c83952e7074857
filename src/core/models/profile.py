"""
Provisioning profile — the data half of the installer.

Package lists, endpoints, recipes and fallback payloads are not logic;
they are loaded from a YAML profile (a bundled default for Ubuntu
24.04, or an operator-supplied file) and validated here.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from src.core.models.component import SourceComponent


class OsIdentity(BaseModel):
    """Expected ``/etc/os-release`` identity."""

    id: str = "ubuntu"
    version_id: str | None = "24.04"
    strict_version: bool = False  # mismatch: fail if True, warn otherwise


class PackageSet(BaseModel):
    remove: list[str] = Field(default_factory=list)
    install: list[str] = Field(default_factory=list)


class RuntimeProbes(BaseModel):
    """Binaries probed by path after package installation."""

    prefixes: list[str] = Field(
        default_factory=lambda: [
            "/usr/bin",
            "/usr/sbin",
            "/usr/local/bin",
            "/usr/local/sbin",
            "/usr/libexec/podman",
            "/usr/lib/podman",
        ]
    )
    critical: list[str] = Field(default_factory=list)
    optional: list[str] = Field(default_factory=list)


class Toolchain(BaseModel):
    """A toolchain installed from a distribution archive."""

    name: str = "go"
    binary: str = "go"
    version: str = "1.23.5"
    url: str = "https://go.dev/dl/go{version}.linux-{arch}.tar.gz"
    install_root: str = "/usr/local"
    root_dir: str = "{install_root}/go"     # what the archive unpacks to
    links: list[str] = Field(default_factory=lambda: ["go", "gofmt"])
    link_dir: str = "/usr/local/bin"
    path_entries: list[str] = Field(
        default_factory=lambda: ["{install_root}/go/bin", "{home}/go/bin"]
    )
    version_command: list[str] = Field(default_factory=lambda: ["go", "version"])
    version_pattern: str = r"go(\d+\.\d+(?:\.\d+)?)"


class ShellProfile(BaseModel):
    """Marker-guarded fragment appended to the operator's shell rc files."""

    marker: str = "# Go configuration (podman installer)"
    files: list[str] = Field(default_factory=lambda: ["~/.bashrc"])
    files_if_present: list[str] = Field(default_factory=lambda: ["~/.zshrc"])
    lines: list[str] = Field(
        default_factory=lambda: [
            "export PATH=/usr/local/go/bin:$PATH",
            "export GOPATH=$HOME/go",
            "export PATH=$GOPATH/bin:$PATH",
        ]
    )


class ConfigFile(BaseModel):
    """A configuration file materialized by the configure stage."""

    path: str
    scope: Literal["system", "user"] = "system"
    url: str | None = None
    content: str | None = None      # inline payload (used when no url)
    fallback: str | None = None     # written when the url cannot be fetched
    mode: str = "0644"

    @field_validator("mode")
    @classmethod
    def _octal_mode(cls, value: str) -> str:
        int(value, 8)
        return value

    @model_validator(mode="after")
    def _has_payload(self) -> ConfigFile:
        if self.url is None and self.content is None:
            raise ValueError(f"config file {self.path}: needs a url or inline content")
        return self


class IdMapping(BaseModel):
    """Subordinate uid/gid range granted to the invoking user."""

    start: int = 100000
    count: int = 65536
    subuid_file: str = "/etc/subuid"

    @property
    def id_range(self) -> str:
        return f"{self.start}-{self.start + self.count - 1}"


class VerifyTarget(BaseModel):
    """A component checked by the validator."""

    name: str
    binary: str = ""
    required: bool = True
    version_command: list[str] = Field(default_factory=list)
    version_pattern: str = ""

    @property
    def executable(self) -> str:
        return self.binary or self.name


class Profile(BaseModel):
    """Everything distribution- and stack-specific the pipeline needs."""

    name: str = "default"
    description: str = ""

    os: OsIdentity = Field(default_factory=OsIdentity)
    architectures: list[str] = Field(default_factory=lambda: ["x86_64", "amd64"])
    min_disk_mb: int = 2048
    endpoints: list[str] = Field(default_factory=lambda: ["https://go.dev"])
    probe_timeout: int = 5

    packages: PackageSet = Field(default_factory=PackageSet)
    runtime_probes: RuntimeProbes = Field(default_factory=RuntimeProbes)

    toolchain: Toolchain = Field(default_factory=Toolchain)
    shell_profile: ShellProfile = Field(default_factory=ShellProfile)
    components: list[SourceComponent] = Field(default_factory=list)

    # component whose presence means "already installed"
    engine: str = "podman"

    config_files: list[ConfigFile] = Field(default_factory=list)
    idmap: IdMapping = Field(default_factory=IdMapping)
    reload_services: bool = True

    verify: list[VerifyTarget] = Field(default_factory=list)
    smoke_test: list[str] = Field(default_factory=list)

    def get_component(self, name: str) -> SourceComponent | None:
        """Look up a source component by name."""
        for comp in self.components:
            if comp.name == name:
                return comp
        return None

    def default_pins(self) -> dict[str, str]:
        """Version pins declared by the profile itself."""
        pins = {self.toolchain.name: self.toolchain.version}
        for comp in self.components:
            if comp.version:
                pins[comp.name] = comp.version
        return pins
