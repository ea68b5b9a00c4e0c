"""
Core data models for Panel Protect.

Artifacts, anchors, backups and step outcomes shared by the patchers and
the orchestrator.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class ArtifactKind(Enum):
    """Kinds of target artifacts the installer touches."""

    APPLICATION_ROOT = "application_root"
    CONTROLLER = "controller"
    ROUTE_REGISTRY = "route_registry"
    HOOK_REGISTRY = "hook_registry"
    TEMPLATE = "template"
    MIGRATION_DIR = "migration_dir"
    SOURCE_FILE = "source_file"


@dataclass(frozen=True)
class TargetArtifact:
    """A file or directory the installer may read or mutate."""

    path: Path
    kind: ArtifactKind = ArtifactKind.SOURCE_FILE
    required: bool = False

    def exists(self) -> bool:
        """Return True if the artifact is present on disk."""
        return self.path.exists()


class AnchorPosition(Enum):
    """Which matching line(s) an anchor selects."""

    FIRST = "first-occurrence"
    LAST = "last-occurrence"
    EVERY = "every-occurrence"


class InsertSide(Enum):
    """Where a block goes relative to the anchor line."""

    BEFORE = "before"
    AFTER = "after"


@dataclass(frozen=True)
class Anchor:
    """
    A line pattern plus a position rule.

    ``pattern`` is a literal substring unless ``regex`` is set, in which
    case it is searched with ``re.search`` on each line.
    """

    pattern: str
    position: AnchorPosition = AnchorPosition.FIRST
    side: InsertSide = InsertSide.AFTER
    regex: bool = False

    def matches(self, line: str) -> bool:
        """Return True if a single line contains the anchor."""
        if self.regex:
            return re.search(self.pattern, line) is not None
        return self.pattern in line

    def describe(self) -> str:
        """Short human-readable form for log messages."""
        return f"{self.side.value} {self.position.value} of {self.pattern!r}"


class FailurePolicy(Enum):
    """How the orchestrator reacts when a step does not succeed."""

    FATAL = "fatal"
    WARN_CONTINUE = "warn-continue"
    SKIP_IF_MISSING = "skip-if-missing"


class StepStatus(Enum):
    """Outcome of a single installation step."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    NOOP = "noop"
    SKIPPED = "skipped"
    WARNING = "warning"
    FAILED = "failed"


@dataclass
class PatchResult:
    """Result of applying one patch to one artifact."""

    artifact: Path
    marker: str
    applied: bool = False
    already_applied: bool = False
    anchor_found: bool = True
    drift: bool = False
    dry_run: bool = False
    message: str = ""
    warnings: list[str] = field(default_factory=list)
    new_content: str | None = None


class BackupRecord(BaseModel):
    """A pre-mutation copy of one artifact."""

    original_path: str
    backup_path: str
    timestamp: str
    succeeded: bool = True
    error: str | None = None


class StepOutcome(BaseModel):
    """What a step action reports back to the orchestrator."""

    status: StepStatus = StepStatus.SUCCEEDED
    message: str = ""
    warnings: list[str] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def noop(cls, message: str, **data: Any) -> "StepOutcome":
        """Outcome for a step whose effect already exists."""
        return cls(status=StepStatus.NOOP, message=message, data=data)

    @classmethod
    def warning(cls, message: str, **data: Any) -> "StepOutcome":
        """Outcome for a step that could not do its work but may be skipped."""
        return cls(status=StepStatus.WARNING, message=message, warnings=[message], data=data)

    @classmethod
    def from_patch(cls, result: PatchResult) -> "StepOutcome":
        """Translate a patcher result into a step outcome."""
        data = {"artifact": str(result.artifact), "applied": result.applied}
        if result.already_applied:
            return cls(status=StepStatus.NOOP, message=result.message, data=data)
        if not result.anchor_found or result.drift:
            return cls(
                status=StepStatus.WARNING,
                message=result.message,
                warnings=result.warnings or [result.message],
                data=data,
            )
        return cls(
            status=StepStatus.SUCCEEDED,
            message=result.message,
            warnings=result.warnings,
            data=data,
        )


class StepResult(BaseModel):
    """Record of one executed (or skipped) step in a run."""

    step_name: str
    phase: str
    policy: str
    status: StepStatus
    message: str = ""
    warnings: list[str] = Field(default_factory=list)
    error_type: str | None = None
    execution_time_ms: float | None = None
    timestamp: str = Field(default_factory=lambda: _iso_timestamp())

    def is_success(self) -> bool:
        """Return True if the step left its effect in place."""
        return self.status in (StepStatus.SUCCEEDED, StepStatus.NOOP)


def _iso_timestamp() -> str:
    """Return current ISO8601 timestamp in UTC."""
    from datetime import datetime, timezone

    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
