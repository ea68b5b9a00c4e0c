"""Tests for core data models and exceptions."""

import json
from pathlib import Path

from panel_protect.core.exceptions import (
    ConfigurationError,
    ExternalCommandError,
    PanelProtectError,
    PreconditionError,
    format_exception,
)
from panel_protect.core.models import (
    Anchor,
    AnchorPosition,
    FailurePolicy,
    InsertSide,
    PatchResult,
    StepOutcome,
    StepResult,
    StepStatus,
)


class TestFailurePolicy:
    """Tests for FailurePolicy enum."""

    def test_all_policies_defined(self) -> None:
        """Verify all expected policies are defined."""
        expected = {"fatal", "warn-continue", "skip-if-missing"}
        assert {p.value for p in FailurePolicy} == expected


class TestAnchor:
    """Tests for Anchor."""

    def test_defaults(self) -> None:
        anchor = Anchor("</form>")
        assert anchor.position == AnchorPosition.FIRST
        assert anchor.side == InsertSide.AFTER
        assert anchor.matches("  </form>\n") is True
        assert anchor.matches("<form>") is False

    def test_describe(self) -> None:
        anchor = Anchor("</form>", AnchorPosition.LAST, InsertSide.BEFORE)
        assert anchor.describe() == "before last-occurrence of '</form>'"


class TestStepOutcome:
    """Tests for translating patch results into step outcomes."""

    def test_already_applied_is_noop(self) -> None:
        result = PatchResult(artifact=Path("Kernel.php"), marker="k", already_applied=True)
        assert StepOutcome.from_patch(result).status == StepStatus.NOOP

    def test_missing_anchor_is_warning(self) -> None:
        result = PatchResult(
            artifact=Path("Kernel.php"), marker="k", anchor_found=False, message="anchor missing"
        )
        outcome = StepOutcome.from_patch(result)
        assert outcome.status == StepStatus.WARNING
        assert outcome.warnings == ["anchor missing"]

    def test_applied_is_success(self) -> None:
        result = PatchResult(artifact=Path("Kernel.php"), marker="k", applied=True)
        outcome = StepOutcome.from_patch(result)
        assert outcome.status == StepStatus.SUCCEEDED
        assert outcome.data["applied"] is True


class TestStepResult:
    """Tests for StepResult model."""

    def test_serialization(self) -> None:
        result = StepResult(
            step_name="register_middleware",
            phase="patching-registries",
            policy="skip-if-missing",
            status=StepStatus.NOOP,
        )
        data = json.loads(result.model_dump_json())
        assert data["status"] == "noop"
        assert data["timestamp"].endswith("Z")
        assert result.is_success() is True

    def test_warning_is_not_success(self) -> None:
        result = StepResult(step_name="x", phase="refreshing", policy="warn-continue", status=StepStatus.WARNING)
        assert result.is_success() is False


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_details_in_str(self) -> None:
        error = PreconditionError("This command must be run as root!", check="privilege")
        assert str(error) == "This command must be run as root! (check=privilege)"
        assert isinstance(error, PanelProtectError)

    def test_external_command_error(self) -> None:
        error = ExternalCommandError("failed", command=["php", "artisan", "migrate"], returncode=1)
        assert error.to_dict() == {
            "error_type": "ExternalCommandError",
            "message": "failed",
            "details": {"command": "php artisan migrate", "returncode": 1},
        }

    def test_configuration_error_fields(self) -> None:
        error = ConfigurationError("bad", config_file="/etc/pp.yaml", config_key="variant")
        assert error.config_key == "variant"
        assert error.details["config_file"] == "/etc/pp.yaml"

    def test_format_exception(self) -> None:
        assert format_exception(ValueError("nope")) == "ValueError: nope"
        assert format_exception(PanelProtectError("plain")) == "plain"
