"""
Domain models — Pydantic types for the provisioner.

All models are re-exported here for convenient access:

    from src.core.models import PipelineConfig, Profile, Receipt, StageResult
"""

from src.core.models.action import Action, Receipt
from src.core.models.component import ComponentRecord, SourceComponent
from src.core.models.pipeline import PipelineConfig, PipelineReport, Stage, StageResult
from src.core.models.profile import (
    ConfigFile,
    IdMapping,
    OsIdentity,
    PackageSet,
    Profile,
    RuntimeProbes,
    ShellProfile,
    Toolchain,
    VerifyTarget,
)

__all__ = [
    # action.py
    "Action",
    # component.py
    "ComponentRecord",
    # profile.py
    "ConfigFile",
    "IdMapping",
    "OsIdentity",
    "PackageSet",
    # pipeline.py
    "PipelineConfig",
    "PipelineReport",
    "Profile",
    "Receipt",
    "RuntimeProbes",
    "ShellProfile",
    "SourceComponent",
    "Stage",
    "StageResult",
    "Toolchain",
    "VerifyTarget",
]
