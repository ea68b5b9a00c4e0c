"""Tests for configuration loading."""

from pathlib import Path

import pytest

from panel_protect.config import InstallerSettings, TargetVariant, load_settings
from panel_protect.core.exceptions import ConfigurationError
from panel_protect.core.models import ArtifactKind


class TestInstallerSettings:
    """Tests for InstallerSettings defaults and helpers."""

    def test_defaults(self) -> None:
        settings = InstallerSettings()
        assert settings.panel_path == Path("/var/www/pterodactyl")
        assert settings.backup_root == Path("/root")
        assert settings.variant == TargetVariant.AUTO
        assert settings.web_servers == ["nginx", "apache2"]

    def test_artifact_paths(self) -> None:
        settings = InstallerSettings(panel_path=Path("/srv/panel"))

        kernel = settings.artifact("kernel")

        assert kernel.path == Path("/srv/panel/app/Http/Kernel.php")
        assert kernel.kind == ArtifactKind.HOOK_REGISTRY
        assert settings.artifact("routes").kind == ArtifactKind.ROUTE_REGISTRY

    def test_backup_targets(self) -> None:
        settings = InstallerSettings(panel_path=Path("/srv/panel"))
        targets = settings.backup_targets()
        assert Path("/srv/panel/routes/admin.php") in targets
        assert len(targets) == 5


class TestLoadSettings:
    """Tests for layered settings resolution."""

    def test_yaml_file(self, temp_dir: Path) -> None:
        config = temp_dir / "panel-protect.yaml"
        config.write_text(
            "panel_path: /opt/panel\n"
            "web_servers: [nginx]\n"
            "paths:\n"
            "  routes: routes/custom.php\n"
        )

        settings = load_settings(config)

        assert settings.panel_path == Path("/opt/panel")
        assert settings.web_servers == ["nginx"]
        assert settings.paths.routes == "routes/custom.php"
        assert settings.paths.kernel == "app/Http/Kernel.php"

    def test_env_overrides_file(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config = temp_dir / "panel-protect.yaml"
        config.write_text("panel_path: /opt/panel\n")
        monkeypatch.setenv("PP_PANEL_PATH", "/env/panel")
        monkeypatch.setenv("PP_WEB_SERVERS", "caddy, nginx")
        monkeypatch.setenv("PP_BACKUP_DATABASE", "false")

        settings = load_settings(config)

        assert settings.panel_path == Path("/env/panel")
        assert settings.web_servers == ["caddy", "nginx"]
        assert settings.backup_database is False

    def test_config_from_env_var(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config = temp_dir / "c.yaml"
        config.write_text("variant: dedicated_endpoint\n")
        monkeypatch.setenv("PP_CONFIG", str(config))

        assert load_settings().variant == TargetVariant.DEDICATED_ENDPOINT

    def test_overrides_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PP_PANEL_PATH", "/env/panel")

        settings = load_settings(overrides={"panel_path": Path("/cli/panel"), "state_dir": None})

        assert settings.panel_path == Path("/cli/panel")
        assert settings.state_dir == Path("/var/lib/panel-protect")

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found") as exc_info:
            load_settings(temp_dir / "missing.yaml")
        assert exc_info.value.config_file == str(temp_dir / "missing.yaml")

    def test_malformed_yaml(self, temp_dir: Path) -> None:
        config = temp_dir / "bad.yaml"
        config.write_text("panel_path: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Malformed YAML"):
            load_settings(config)

    def test_non_mapping(self, temp_dir: Path) -> None:
        config = temp_dir / "list.yaml"
        config.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_settings(config)

    def test_unknown_key(self, temp_dir: Path) -> None:
        config = temp_dir / "extra.yaml"
        config.write_text("unknown_option: 1\n")
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(config)
        assert exc_info.value.config_key == "unknown_option"
        assert exc_info.value.env_var is None

    def test_invalid_variant(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PP_VARIANT", "sideways")
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()
        assert exc_info.value.config_key == "variant"
        assert exc_info.value.env_var == "PP_VARIANT"
        assert exc_info.value.details["env_var"] == "PP_VARIANT"

    def test_invalid_override_is_not_blamed_on_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PP_VARIANT", "sideways")
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(overrides={"variant": "upside-down"})
        assert exc_info.value.config_key == "variant"
        assert exc_info.value.env_var is None
