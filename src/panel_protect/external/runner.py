"""
Command Runner - blocking external process execution.

Every external collaborator goes through ``CommandRunner.run``. Commands run
with ``shell=False``, block until exit, and are bounded by a timeout; a
timed out or missing executable is reported as a failed ``CommandResult``
rather than an exception.
"""

import logging
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from panel_protect.core.exceptions import ExternalCommandError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one external command."""

    argv: list[str]
    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    execution_time_ms: float | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def command(self) -> str:
        return " ".join(self.argv)

    def describe_failure(self) -> str:
        """One-line reason for a failed command."""
        if self.timed_out:
            return f"`{self.command}` timed out"
        detail = self.stderr.strip().splitlines()[-1] if self.stderr.strip() else ""
        reason = f"`{self.command}` exited with status {self.returncode}"
        return f"{reason}: {detail}" if detail else reason

    def raise_for_status(self, message: str | None = None) -> None:
        """Raise ExternalCommandError unless the command succeeded."""
        if self.ok:
            return
        raise ExternalCommandError(
            message or self.describe_failure(),
            command=self.argv,
            returncode=self.returncode,
            timed_out=self.timed_out,
        )


class CommandRunner:
    """Runs external commands; substituted by a fake in tests."""

    def __init__(self, default_timeout: float | None = 300.0):
        self._default_timeout = default_timeout

    def which(self, name: str) -> str | None:
        """Return the resolved executable path, or None if not on PATH."""
        return shutil.which(name)

    def run(
        self,
        argv: list[str],
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
        stdout_path: Path | None = None,
    ) -> CommandResult:
        """
        Run a command to completion.

        Args:
            argv: Executable and arguments
            cwd: Working directory
            timeout: Seconds before the process is killed (default: runner default)
            stdout_path: Write the command's stdout to this file instead of capturing it

        Returns:
            CommandResult; never raises for command failures
        """
        timeout = self._default_timeout if timeout is None else timeout
        logger.debug(f"Running: {' '.join(argv)}")
        start = time.perf_counter()

        try:
            if stdout_path is not None:
                with open(stdout_path, "wb") as out:
                    proc = subprocess.run(
                        argv,
                        cwd=cwd,
                        stdout=out,
                        stderr=subprocess.PIPE,
                        timeout=timeout,
                        shell=False,
                    )
                stdout = ""
            else:
                proc = subprocess.run(
                    argv,
                    cwd=cwd,
                    capture_output=True,
                    timeout=timeout,
                    shell=False,
                )
                stdout = proc.stdout.decode(errors="replace")
        except FileNotFoundError as e:
            return CommandResult(argv=argv, returncode=127, stderr=str(e))
        except subprocess.TimeoutExpired:
            return CommandResult(
                argv=argv,
                returncode=None,
                timed_out=True,
                execution_time_ms=(time.perf_counter() - start) * 1000,
            )

        return CommandResult(
            argv=argv,
            returncode=proc.returncode,
            stdout=stdout,
            stderr=(proc.stderr or b"").decode(errors="replace"),
            execution_time_ms=(time.perf_counter() - start) * 1000,
        )
