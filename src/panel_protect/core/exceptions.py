"""
Panel Protect Exception Hierarchy.

Defines the custom exceptions raised while installing a feature into a
target application. Each class maps to one failure category of the
installer; the orchestrator decides from the step's failure policy whether
a given error stops the run.
"""

from typing import Any


class PanelProtectError(Exception):
    """
    Base exception for all Panel Protect errors.

    All custom exceptions inherit from this class, allowing
    generic catch blocks and consistent error handling.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        """
        Initialize a PanelProtectError.

        Args:
            message: Human-readable error message
            details: Optional structured data for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation with details."""
        base = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{base} ({details_str})"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class PreconditionError(PanelProtectError):
    """
    Raised when the environment cannot be installed into.

    Covers missing administrator privilege and a missing application
    root. Always fatal: nothing has been mutated when it is raised.
    """

    def __init__(
        self,
        message: str,
        *,
        check: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if check:
            details["check"] = check

        super().__init__(message, details=details)
        self.check = check


class ArtifactMissingError(PanelProtectError):
    """Raised when an optional target artifact does not exist."""

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if path:
            details["path"] = path

        super().__init__(message, details=details)
        self.path = path


class AnchorNotFoundError(PanelProtectError):
    """
    Raised when an anchor pattern is absent from an artifact.

    The artifact is left untouched. Patchers normally report this through
    ``PatchResult.anchor_found`` instead of raising; the exception exists
    for callers that want a hard failure.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        pattern: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if path:
            details["path"] = path
        if pattern:
            details["pattern"] = pattern

        super().__init__(message, details=details)
        self.path = path
        self.pattern = pattern


class ExternalCommandError(PanelProtectError):
    """
    Errors from external process collaborators.

    Raised when:
    - A command exits with a non-zero status
    - A command exceeds its timeout
    - The executable cannot be found
    """

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        returncode: int | None = None,
        timed_out: bool = False,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize an ExternalCommandError.

        Args:
            message: Human-readable error message
            command: The argv that was executed
            returncode: Exit status, None if the process never ran
            timed_out: True if the process was killed on timeout
            details: Optional structured data for debugging
        """
        details = details or {}
        if command:
            details["command"] = " ".join(command)
        if returncode is not None:
            details["returncode"] = returncode
        if timed_out:
            details["timed_out"] = True

        super().__init__(message, details=details)
        self.command = command or []
        self.returncode = returncode
        self.timed_out = timed_out


class ConfigurationError(PanelProtectError):
    """
    Errors in configuration loading or validation.

    Raised when:
    - Configuration files are missing or malformed
    - Environment variables hold invalid values
    - Configuration values are invalid
    """

    def __init__(
        self,
        message: str,
        *,
        config_file: str | None = None,
        env_var: str | None = None,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize a ConfigurationError.

        Args:
            message: Human-readable error message
            config_file: Path to configuration file if applicable
            env_var: Environment variable name if applicable
            config_key: Configuration key if applicable
            details: Optional structured data for debugging
        """
        details = details or {}
        if config_file:
            details["config_file"] = config_file
        if env_var:
            details["env_var"] = env_var
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, details=details)
        self.config_file = config_file
        self.env_var = env_var
        self.config_key = config_key


class InstallationError(PanelProtectError):
    """
    Errors during orchestration.

    Raised when the step sequence itself is invalid (no steps, duplicate
    step names) rather than when a single step fails.
    """

    def __init__(
        self,
        message: str,
        *,
        step_name: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if step_name:
            details["step_name"] = step_name

        super().__init__(message, details=details)
        self.step_name = step_name


def format_exception(error: Exception) -> str:
    """
    Format an exception for user-friendly display.

    Args:
        error: The exception to format

    Returns:
        Formatted error message string
    """
    if isinstance(error, PanelProtectError):
        return str(error)
    return f"{error.__class__.__name__}: {error}"
