"""Tests for the external command collaborators."""

from pathlib import Path

from panel_protect.config import CommandTimeouts, InstallerSettings
from panel_protect.external.services import Collaborators

from conftest import FakeCommandRunner


class TestPermissionFixer:
    """Tests for ownership and mode restoration."""

    def test_user_check_uses_configured_timeout(self, panel_dir: Path) -> None:
        settings = InstallerSettings(panel_path=panel_dir, timeouts=CommandTimeouts(probe=3, permissions=42))
        fake = FakeCommandRunner()

        Collaborators.from_settings(settings, fake).permissions.fix(
            panel_dir, panel_dir / "storage", "www-data"
        )

        assert fake.timeouts["id www-data"] == 3
        assert fake.timeouts[f"chown -R www-data:www-data {panel_dir}"] == 42
        assert f"chmod -R 755 {panel_dir}" in fake.commands

    def test_missing_user_keeps_ownership(self, panel_dir: Path) -> None:
        fake = FakeCommandRunner(failures={"id ": 1})

        Collaborators.from_settings(InstallerSettings(panel_path=panel_dir), fake).permissions.fix(
            panel_dir, panel_dir / "storage", "www-data"
        )

        assert not any(command.startswith("chown") for command in fake.commands)
