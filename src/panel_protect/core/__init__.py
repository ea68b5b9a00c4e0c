"""
Panel Protect Core Module.

Provides foundational types and the exception hierarchy.
"""

__all__ = [
    "Anchor",
    "AnchorPosition",
    "ArtifactKind",
    "BackupRecord",
    "FailurePolicy",
    "InsertSide",
    "PatchResult",
    "StepOutcome",
    "StepResult",
    "StepStatus",
    "TargetArtifact",
    # Exceptions
    "PanelProtectError",
    "PreconditionError",
    "ArtifactMissingError",
    "AnchorNotFoundError",
    "ExternalCommandError",
    "ConfigurationError",
    "InstallationError",
]

from panel_protect.core.exceptions import (
    AnchorNotFoundError,
    ArtifactMissingError,
    ConfigurationError,
    ExternalCommandError,
    InstallationError,
    PanelProtectError,
    PreconditionError,
)
from panel_protect.core.models import (
    Anchor,
    AnchorPosition,
    ArtifactKind,
    BackupRecord,
    FailurePolicy,
    InsertSide,
    PatchResult,
    StepOutcome,
    StepResult,
    StepStatus,
    TargetArtifact,
)
