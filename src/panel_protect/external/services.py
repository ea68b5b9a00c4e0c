"""
External collaborators of the installer.

Thin wrappers over ``CommandRunner`` for everything the installer does not
own: privilege probing, the application's migration runner and cache
commands, the database dump utility, file ownership, and the service
manager. Each one reports failures through ``CommandResult`` and leaves the
failure policy to the orchestrator.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from panel_protect.config import InstallerSettings
from panel_protect.external.runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)


class PrivilegeChecker:
    """Answers whether the process runs with administrator privilege."""

    def __init__(self, geteuid: Callable[[], int] | None = None):
        self._geteuid = geteuid or getattr(os, "geteuid", None)

    def is_privileged(self) -> bool:
        if self._geteuid is None:
            return False
        return self._geteuid() == 0


class ArtisanRunner:
    """The application's own migration runner and cache toolchain."""

    CACHE_COMMANDS = ("config:clear", "config:cache", "route:clear", "view:clear")

    def __init__(
        self,
        runner: CommandRunner,
        panel_path: Path,
        php_binary: str = "php",
        migrate_timeout: float = 600,
        cache_timeout: float = 120,
    ):
        self._runner = runner
        self._panel_path = panel_path
        self._php = php_binary
        self._migrate_timeout = migrate_timeout
        self._cache_timeout = cache_timeout

    def available(self) -> bool:
        return self._runner.which(self._php) is not None

    def _artisan(self, *args: str, timeout: float) -> CommandResult:
        return self._runner.run(
            [self._php, "artisan", *args], cwd=self._panel_path, timeout=timeout
        )

    def migrate(self) -> CommandResult:
        """Run pending migrations non-interactively."""
        return self._artisan("migrate", "--force", timeout=self._migrate_timeout)

    def refresh_caches(self) -> list[CommandResult]:
        """Clear and rebuild configuration, route and view caches."""
        return [self._artisan(command, timeout=self._cache_timeout) for command in self.CACHE_COMMANDS]


class DatabaseDumper:
    """Privileged full-database dump; prompts for the password on the terminal."""

    def __init__(
        self,
        runner: CommandRunner,
        user: str = "root",
        binary: str = "mysqldump",
        timeout: float = 1800,
    ):
        self._runner = runner
        self._user = user
        self._binary = binary
        self._timeout = timeout

    def available(self) -> bool:
        return self._runner.which(self._binary) is not None

    def dump(self, database: str, target: Path) -> bool:
        """Dump ``database`` into ``target``. Returns False on any failure."""
        if not self.available():
            logger.warning(f"{self._binary} not found, continuing without a database backup")
            return False

        result = self._runner.run(
            [self._binary, "-u", self._user, "-p", database],
            timeout=self._timeout,
            stdout_path=target,
        )
        if not result.ok:
            logger.warning(
                f"Database backup failed, continuing without it (check {self._binary} credentials): "
                f"{result.describe_failure()}"
            )
            target.unlink(missing_ok=True)
            return False
        return True


class PermissionFixer:
    """Restores ownership and modes on the application tree after patching."""

    def __init__(self, runner: CommandRunner, timeout: float = 900, probe_timeout: float = 10):
        self._runner = runner
        self._timeout = timeout
        self._probe_timeout = probe_timeout

    def user_exists(self, user: str) -> bool:
        return self._runner.run(["id", user], timeout=self._probe_timeout).ok

    def fix(self, panel_path: Path, storage_path: Path, user: str) -> list[CommandResult]:
        """chown the tree to ``user`` (when it exists), then chmod 755."""
        results = []
        if self.user_exists(user):
            results.append(
                self._runner.run(
                    ["chown", "-R", f"{user}:{user}", str(panel_path)], timeout=self._timeout
                )
            )
        else:
            logger.debug(f"User {user} does not exist, leaving ownership unchanged")
        results.append(self._runner.run(["chmod", "-R", "755", str(panel_path)], timeout=self._timeout))
        if storage_path.is_dir():
            results.append(
                self._runner.run(["chmod", "-R", "755", str(storage_path)], timeout=self._timeout)
            )
        return results


class ServiceManager:
    """Background worker and front-end server control through systemctl."""

    def __init__(self, runner: CommandRunner, systemctl: str = "systemctl", timeout: float = 60):
        self._runner = runner
        self._systemctl = systemctl
        self._timeout = timeout

    def unit_exists(self, unit: str) -> bool:
        result = self._runner.run(
            [self._systemctl, "list-units", "--type=service", "--all"], timeout=self._timeout
        )
        return result.ok and unit in result.stdout

    def restart(self, unit: str) -> CommandResult:
        return self._runner.run([self._systemctl, "restart", unit], timeout=self._timeout)

    def reload_first(self, units: list[str]) -> str | None:
        """Reload the first unit that accepts a reload. Returns its name."""
        for unit in units:
            if self._runner.run([self._systemctl, "reload", unit], timeout=self._timeout).ok:
                return unit
        return None


@dataclass
class Collaborators:
    """Bundle of external collaborators handed to the orchestrator."""

    privileges: PrivilegeChecker
    artisan: ArtisanRunner
    dumper: DatabaseDumper
    permissions: PermissionFixer
    services: ServiceManager

    @classmethod
    def from_settings(
        cls, settings: InstallerSettings, runner: CommandRunner | None = None
    ) -> "Collaborators":
        """Build the real collaborators for the configured application."""
        runner = runner or CommandRunner()
        timeouts = settings.timeouts
        return cls(
            privileges=PrivilegeChecker(),
            artisan=ArtisanRunner(
                runner,
                settings.panel_path,
                php_binary=settings.php_binary,
                migrate_timeout=timeouts.migrate,
                cache_timeout=timeouts.cache,
            ),
            dumper=DatabaseDumper(runner, user=settings.db_user, timeout=timeouts.dump),
            permissions=PermissionFixer(
                runner, timeout=timeouts.permissions, probe_timeout=timeouts.probe
            ),
            services=ServiceManager(runner, timeout=timeouts.service),
        )
