"""
Pipeline stages, and the fixed order they run in.

Each stage is a plain function ``(RunContext) -> StageResult`` that
raises StageError to halt the pipeline.
"""

from __future__ import annotations

from src.core.models.pipeline import Stage
from src.core.models.profile import Profile
from src.core.services.provision.stages.cleanup import cleanup_build_dir
from src.core.services.provision.stages.configure import configure_system
from src.core.services.provision.stages.dependencies import install_dependencies
from src.core.services.provision.stages.source_build import component_stage, stage_name
from src.core.services.provision.stages.toolchain import install_toolchain
from src.core.services.provision.stages.validate import verify_installation


def build_stages(profile: Profile) -> list[Stage]:
    """The ordered stage list for a profile.

    dependencies → toolchain → one build per component (in profile
    order) → configure → validate → cleanup.
    """
    stages = [
        Stage("dependencies", "Removing conflicting packages and installing dependencies", 1, install_dependencies),
        Stage("toolchain", f"Installing {profile.toolchain.name} toolchain", 2, install_toolchain),
    ]
    for component in profile.components:
        stages.append(
            Stage(
                stage_name(component.name),
                f"Building {component.name} from source",
                len(stages) + 1,
                component_stage(component.name),
            )
        )
    stages += [
        Stage("configure", "Configuring container runtime", len(stages) + 1, configure_system),
        Stage("validate", "Verifying installation", len(stages) + 2, verify_installation),
        Stage("cleanup", "Cleaning up", len(stages) + 3, cleanup_build_dir),
    ]
    return stages


def verify_stages() -> list[Stage]:
    """Stand-alone verification (the ``verify`` command)."""
    return [Stage("validate", "Verifying installation", 1, verify_installation)]


__all__ = ["build_stages", "verify_stages"]
