"""
Orchestrator Core - staged installation with per-step failure policy.

Runs an ordered plan of installation steps through a fixed state machine:

    IDLE -> VALIDATING -> BACKING_UP -> MIGRATING -> PATCHING_REGISTRIES
         -> PATCHING_TEMPLATE -> REFRESHING -> RESTARTING_SERVICES -> DONE

``FAILED`` is terminal and reachable from any step whose policy is FATAL.
Each step runs exactly once per invocation; there is no resume, a new
invocation starts from IDLE and relies on every step detecting its own
prior effect.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable

from panel_protect.backup.store import BackupStore
from panel_protect.config import InstallerSettings, TargetVariant
from panel_protect.core.exceptions import (
    ArtifactMissingError,
    InstallationError,
    PanelProtectError,
    format_exception,
)
from panel_protect.core.models import FailurePolicy, StepOutcome, StepResult, StepStatus
from panel_protect.external.services import Collaborators
from panel_protect.migrations.generator import SchemaMigrationGenerator
from panel_protect.patching.base import FilePatcher
from panel_protect.patching.registry import RegistryPatcher
from panel_protect.patching.template import TemplatePatcher
from panel_protect.state.manifest import ManifestStore

logger = logging.getLogger(__name__)


class InstallState(Enum):
    """States of an installation run."""

    IDLE = "idle"
    VALIDATING = "validating"
    BACKING_UP = "backing-up"
    MIGRATING = "migrating"
    PATCHING_REGISTRIES = "patching-registries"
    PATCHING_TEMPLATE = "patching-template"
    REFRESHING = "refreshing"
    RESTARTING_SERVICES = "restarting-services"
    DONE = "done"
    FAILED = "failed"


PHASE_ORDER = [
    InstallState.IDLE,
    InstallState.VALIDATING,
    InstallState.BACKING_UP,
    InstallState.MIGRATING,
    InstallState.PATCHING_REGISTRIES,
    InstallState.PATCHING_TEMPLATE,
    InstallState.REFRESHING,
    InstallState.RESTARTING_SERVICES,
    InstallState.DONE,
]


@dataclass
class RunContext:
    """Mutable state shared by the steps of one run."""

    settings: InstallerSettings
    collaborators: Collaborators
    backup_store: BackupStore
    manifest: ManifestStore | None = None
    dry_run: bool = False
    force: bool = False
    backup_database: bool = True
    variant: TargetVariant | None = None
    data: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.file_patcher = FilePatcher(
            backup_store=self.backup_store,
            manifest=self.manifest,
            dry_run=self.dry_run,
            force=self.force,
        )
        self.registry_patcher = RegistryPatcher(self.file_patcher)
        self.template_patcher = TemplatePatcher(self.file_patcher)
        self.migration_generator = SchemaMigrationGenerator()

    @classmethod
    def build(
        cls,
        settings: InstallerSettings,
        collaborators: Collaborators | None = None,
        *,
        dry_run: bool = False,
        force: bool = False,
        backup_database: bool | None = None,
        started_at: datetime | None = None,
    ) -> "RunContext":
        """Create a context with a fresh backup store and the persistent manifest."""
        return cls(
            settings=settings,
            collaborators=collaborators or Collaborators.from_settings(settings),
            backup_store=BackupStore(settings.backup_root, settings.panel_path, started_at),
            manifest=ManifestStore(settings.state_dir, settings.panel_path),
            dry_run=dry_run,
            force=force,
            backup_database=settings.backup_database if backup_database is None else backup_database,
        )

    def path(self, key: str) -> Path:
        """Absolute path of a configured artifact (a ``TargetPaths`` field name)."""
        return self.settings.artifact(key).path


@dataclass
class InstallationStep:
    """A single step of an installation plan."""

    name: str
    phase: InstallState
    action: Callable[[RunContext], StepOutcome]
    failure_policy: FailurePolicy = FailurePolicy.WARN_CONTINUE
    required_path: Callable[[RunContext], Path] | None = None
    # Checked before the action when the policy is SKIP_IF_MISSING
    description: str = ""


@dataclass
class InstallPlan:
    """Ordered steps of an installation."""

    name: str
    description: str
    steps: list[InstallationStep]

    def validate(self) -> None:
        """
        Check the plan can be run by the state machine.

        Raises:
            InstallationError: If the plan is empty, has duplicate step
                names, or goes backwards through the phases
        """
        if not self.steps:
            raise InstallationError(f"Plan '{self.name}' has no steps defined")

        seen = set()
        last_index = 0
        for step in self.steps:
            if step.name in seen:
                raise InstallationError(f"Duplicate step name '{step.name}'", step_name=step.name)
            seen.add(step.name)

            if step.phase not in PHASE_ORDER[1:-1]:
                raise InstallationError(
                    f"Step '{step.name}' uses non-working phase {step.phase.value}",
                    step_name=step.name,
                )
            index = PHASE_ORDER.index(step.phase)
            if index < last_index:
                raise InstallationError(
                    f"Step '{step.name}' runs in {step.phase.value} after a later phase",
                    step_name=step.name,
                )
            last_index = index

    @classmethod
    def install_plan(cls) -> "InstallPlan":
        """The full menu protection installation."""
        from panel_protect.orchestrator import steps

        return cls(
            name="install",
            description="Install the Proteksi Menu feature",
            steps=steps.install_steps(),
        )


@dataclass
class InstallResult:
    """Result of running an installation plan."""

    plan_name: str
    state: InstallState = InstallState.IDLE
    results: list[StepResult] = field(default_factory=list)
    state_history: list[InstallState] = field(default_factory=lambda: [InstallState.IDLE])
    variant: TargetVariant | None = None
    backup_dir: str | None = None
    dry_run: bool = False
    failed_step: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == InstallState.DONE

    @property
    def warnings(self) -> list[str]:
        return [w for r in self.results for w in r.warnings]

    def result_for(self, step_name: str) -> StepResult | None:
        for step_result in self.results:
            if step_result.step_name == step_name:
                return step_result
        return None


class InstallationOrchestrator:
    """
    Sequences installation steps and applies their failure policies.

    - WARN_CONTINUE: a failing step is logged and the run advances
    - SKIP_IF_MISSING: the step is a no-op when its artifact is absent;
      any other failure is treated like WARN_CONTINUE
    - FATAL: a failing step halts the run in FAILED with the partial log
    """

    def execute(
        self,
        plan: InstallPlan,
        context: RunContext,
        on_step_complete: Callable[[StepResult], None] | None = None,
    ) -> InstallResult:
        """
        Execute an installation plan.

        Args:
            plan: Plan to execute
            context: Shared run state and collaborators
            on_step_complete: Optional callback after each step

        Returns:
            InstallResult with final state and per-step results

        Raises:
            InstallationError: If the plan itself is invalid
        """
        plan.validate()

        result = InstallResult(
            plan_name=plan.name,
            backup_dir=str(context.backup_store.backup_dir),
            dry_run=context.dry_run,
        )

        for step in plan.steps:
            self._advance_to(result, step.phase)

            step_result = self._run_step(step, context)
            result.results.append(step_result)
            result.variant = context.variant

            if on_step_complete:
                on_step_complete(step_result)

            if step_result.status == StepStatus.FAILED:
                result.failed_step = step.name
                result.error = step_result.message
                self._transition(result, InstallState.FAILED)
                return result

        self._advance_to(result, InstallState.DONE)
        return result

    def _transition(self, result: InstallResult, state: InstallState) -> None:
        logger.debug(f"State {result.state.value} -> {state.value}")
        result.state = state
        result.state_history.append(state)

    def _advance_to(self, result: InstallResult, target: InstallState) -> None:
        """Walk forward through every phase up to ``target``."""
        current = PHASE_ORDER.index(result.state)
        goal = PHASE_ORDER.index(target)
        for state in PHASE_ORDER[current + 1:goal + 1]:
            self._transition(result, state)

    def _run_step(self, step: InstallationStep, context: RunContext) -> StepResult:
        """Run one step and fold its outcome through the failure policy."""
        policy = step.failure_policy
        start = time.perf_counter()
        error_type = None
        logger.debug(f"Step {step.name}: {step.description or step.name}")

        if policy == FailurePolicy.SKIP_IF_MISSING and step.required_path is not None:
            required = step.required_path(context)
            if not required.exists():
                message = f"{required} not found, skipping {step.name}"
                logger.warning(message)
                return self._step_result(
                    step, StepOutcome(status=StepStatus.SKIPPED, message=message, warnings=[message]), start
                )

        try:
            outcome = step.action(context)
        except ArtifactMissingError as e:
            outcome = StepOutcome(status=StepStatus.SKIPPED, message=format_exception(e))
            error_type = type(e).__name__
            if policy == FailurePolicy.FATAL:
                outcome.status = StepStatus.FAILED
        except PanelProtectError as e:
            outcome = StepOutcome(status=StepStatus.FAILED, message=format_exception(e))
            error_type = type(e).__name__
        except Exception as e:
            # Unexpected errors still go through the step's policy
            outcome = StepOutcome(status=StepStatus.FAILED, message=f"Unexpected error: {e}")
            error_type = type(e).__name__

        if outcome.status == StepStatus.FAILED and policy != FailurePolicy.FATAL:
            outcome.status = StepStatus.WARNING

        if outcome.status == StepStatus.FAILED:
            logger.error(outcome.message)
        elif outcome.status in (StepStatus.SKIPPED, StepStatus.WARNING) and error_type:
            logger.warning(outcome.message)

        if outcome.status in (StepStatus.SKIPPED, StepStatus.WARNING) and not outcome.warnings:
            outcome.warnings = [outcome.message]

        return self._step_result(step, outcome, start, error_type)

    @staticmethod
    def _step_result(
        step: InstallationStep,
        outcome: StepOutcome,
        start: float,
        error_type: str | None = None,
    ) -> StepResult:
        return StepResult(
            step_name=step.name,
            phase=step.phase.value,
            policy=step.failure_policy.value,
            status=outcome.status,
            message=outcome.message,
            warnings=outcome.warnings,
            error_type=error_type,
            execution_time_ms=(time.perf_counter() - start) * 1000,
        )

    def summary(self, result: InstallResult) -> str:
        """Generate a human-readable summary of an installation run."""
        lines = [
            f"Plan: {result.plan_name}{' (dry run)' if result.dry_run else ''}",
            f"State: {result.state.value}",
            f"Steps: {len(result.results)}",
        ]
        if result.variant is not None:
            lines.append(f"Layout: {result.variant.value}")

        for i, step_result in enumerate(result.results):
            status_symbol = "✓" if step_result.is_success() else "✗"
            lines.append(
                f"  [{i+1}] {status_symbol} {step_result.step_name}: {step_result.status.value}"
            )
            if step_result.message:
                lines.append(f"      {step_result.message}")

        if result.failed_step:
            lines.append(f"Failed at: {result.failed_step}")
        if result.backup_dir:
            lines.append(f"Backup location: {result.backup_dir}")
        return "\n".join(lines)
