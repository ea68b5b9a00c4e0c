"""
Installer configuration.

Settings are resolved in layers, later layers winning:

1. Defaults below (a stock Pterodactyl install under /var/www/pterodactyl)
2. A YAML file (``--config`` or ``PP_CONFIG``)
3. ``PP_*`` environment variables
4. Command-line overrides

Artifact paths are relative to ``panel_path``.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from panel_protect.core.exceptions import ConfigurationError
from panel_protect.core.models import ArtifactKind, TargetArtifact

CONFIG_ENV_VAR = "PP_CONFIG"

# env var -> settings key
ENV_OVERRIDES = {
    "PP_PANEL_PATH": "panel_path",
    "PP_BACKUP_ROOT": "backup_root",
    "PP_STATE_DIR": "state_dir",
    "PP_VARIANT": "variant",
    "PP_DATABASE_NAME": "database_name",
    "PP_DB_USER": "db_user",
    "PP_BACKUP_DATABASE": "backup_database",
    "PP_FIX_PERMISSIONS": "fix_permissions",
    "PP_WEB_USER": "web_user",
    "PP_WORKER_SERVICE": "worker_service",
    "PP_WEB_SERVERS": "web_servers",
    "PP_PHP_BINARY": "php_binary",
}


class TargetVariant(str, Enum):
    """Shape of the target application the installer patches."""

    AUTO = "auto"
    SETTINGS_VIEW = "settings_view"
    DEDICATED_ENDPOINT = "dedicated_endpoint"


class TargetPaths(BaseModel):
    """Artifact locations relative to the application root."""

    settings_controller: str = "app/Http/Controllers/Admin/Settings/IndexController.php"
    servers_controller: str = "app/Http/Controllers/Admin/ServersController.php"
    routes: str = "routes/admin.php"
    kernel: str = "app/Http/Kernel.php"
    settings_view: str = "resources/views/admin/settings/index.blade.php"
    middleware_dir: str = "app/Http/Middleware"
    migrations_dir: str = "database/migrations"
    storage_dir: str = "storage"

    model_config = {"extra": "forbid"}


class CommandTimeouts(BaseModel):
    """Upper bounds, in seconds, for external commands."""

    probe: float = 10
    migrate: float = 600
    cache: float = 120
    dump: float = 1800
    permissions: float = 900
    service: float = 60

    model_config = {"extra": "forbid"}


class InstallerSettings(BaseModel):
    """Complete installer configuration."""

    panel_path: Path = Path("/var/www/pterodactyl")
    backup_root: Path = Path("/root")
    state_dir: Path = Path("/var/lib/panel-protect")
    variant: TargetVariant = TargetVariant.AUTO

    database_name: str = "pterodactyl"
    db_user: str = "root"
    backup_database: bool = True

    fix_permissions: bool = True
    web_user: str = "www-data"
    worker_service: str = "pteroq"
    web_servers: list[str] = Field(default_factory=lambda: ["nginx", "apache2"])
    php_binary: str = "php"

    paths: TargetPaths = Field(default_factory=TargetPaths)
    timeouts: CommandTimeouts = Field(default_factory=CommandTimeouts)

    model_config = {"extra": "forbid"}

    def resolve(self, relative: str) -> Path:
        """Absolute path of an artifact under the application root."""
        return self.panel_path / relative

    def application_root(self) -> TargetArtifact:
        return TargetArtifact(self.panel_path, ArtifactKind.APPLICATION_ROOT, required=True)

    def artifact(self, key: str) -> TargetArtifact:
        """Return the TargetArtifact for a ``TargetPaths`` field name."""
        kinds = {
            "settings_controller": ArtifactKind.CONTROLLER,
            "servers_controller": ArtifactKind.CONTROLLER,
            "routes": ArtifactKind.ROUTE_REGISTRY,
            "kernel": ArtifactKind.HOOK_REGISTRY,
            "settings_view": ArtifactKind.TEMPLATE,
            "migrations_dir": ArtifactKind.MIGRATION_DIR,
        }
        return TargetArtifact(
            self.resolve(getattr(self.paths, key)),
            kinds.get(key, ArtifactKind.SOURCE_FILE),
        )

    def backup_targets(self) -> list[Path]:
        """Files copied into the backup directory before any mutation."""
        return [
            self.resolve(self.paths.settings_controller),
            self.resolve(self.paths.routes),
            self.resolve(self.paths.kernel),
            self.resolve(self.paths.settings_view),
            self.resolve(self.paths.servers_controller),
        ]


def _read_yaml(config_file: Path) -> dict[str, Any]:
    if not config_file.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {config_file}", config_file=str(config_file)
        )
    try:
        data = yaml.safe_load(config_file.read_text())
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Malformed YAML in configuration file: {e}", config_file=str(config_file)
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Configuration file must contain a mapping", config_file=str(config_file)
        )
    return data


def _read_env() -> dict[str, Any]:
    values: dict[str, Any] = {}
    for env_var, key in ENV_OVERRIDES.items():
        raw = os.getenv(env_var)
        if raw is None or raw == "":
            continue
        if key == "web_servers":
            values[key] = [item.strip() for item in raw.split(",") if item.strip()]
        else:
            values[key] = raw
    return values


def load_settings(
    config_file: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> InstallerSettings:
    """
    Build InstallerSettings from file, environment and overrides.

    Raises:
        ConfigurationError: If the file is unreadable or a value is invalid
    """
    if config_file is None and os.getenv(CONFIG_ENV_VAR):
        config_file = Path(os.environ[CONFIG_ENV_VAR])

    data: dict[str, Any] = {}
    if config_file is not None:
        data.update(_read_yaml(config_file))
    env_values = _read_env()
    data.update(env_values)
    explicit = {k: v for k, v in (overrides or {}).items() if v is not None}
    data.update(explicit)
    env_keys = {
        key: env_var
        for env_var, key in ENV_OVERRIDES.items()
        if key in env_values and key not in explicit
    }

    try:
        return InstallerSettings(**data)
    except ValidationError as e:
        first = e.errors()[0]
        loc = first.get("loc", ())
        key = ".".join(str(part) for part in loc)
        env_var = env_keys.get(str(loc[0])) if loc else None
        raise ConfigurationError(
            f"Invalid configuration value: {first.get('msg', 'invalid')}",
            config_file=str(config_file) if config_file else None,
            env_var=env_var,
            config_key=key or None,
        ) from e
