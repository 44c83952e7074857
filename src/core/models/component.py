"""
Component models — what gets built, and what was found on the host.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class SourceComponent(BaseModel):
    """A component built from an upstream git repository.

    Command lists may contain ``{version}``, ``{build_dir}``, ``{home}``
    and ``{nproc}`` placeholders; they are substituted before running.
    """

    name: str
    binary: str = ""
    repo: str
    ref: str | None = None          # branch/tag, may contain {version}
    version: str | None = None      # default pin (env/profile may override)

    bootstrap: list[list[str]] = Field(default_factory=list)
    configure: list[list[str]] = Field(default_factory=list)
    build: list[str] = Field(default_factory=lambda: ["make"])
    install: list[str] = Field(default_factory=lambda: ["make", "install"])
    preserve_path: bool = True

    version_command: list[str] = Field(default_factory=list)
    version_pattern: str = ""
    version_file: str | None = None   # file in the checkout holding the version
    version_file_pattern: str = ""

    @property
    def executable(self) -> str:
        return self.binary or self.name


class ComponentRecord(BaseModel):
    """A component as detected on the host. Transient; never persisted."""

    name: str
    binary: str
    required: bool = True
    path: str | None = None
    version: str | None = None

    @property
    def present(self) -> bool:
        return self.path is not None
