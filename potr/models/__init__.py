"""potr data models — Pydantic v2, frozen (immutable)."""

from potr.models.engine import PrivilegeMode
from potr.models.project import ProjectConfig, ProjectConfigError
from potr.models.verification import (
    MetadataSnapshot,
    VerificationResult,
    VerificationStatus,
)

__all__ = [
    # engine
    "PrivilegeMode",
    # project
    "ProjectConfig",
    "ProjectConfigError",
    # verification
    "MetadataSnapshot",
    "VerificationResult",
    "VerificationStatus",
]
