"""
Panel Protect CLI - Command-line interface.

Install the menu protection feature into a Pterodactyl panel, or print the
manual restoration steps.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from typer.core import TyperGroup

from panel_protect.backup.store import BackupStore
from panel_protect.config import InstallerSettings, load_settings
from panel_protect.core.exceptions import ConfigurationError
from panel_protect.core.models import StepStatus
from panel_protect.external.services import Collaborators
from panel_protect.feature import menu_protection as feature
from panel_protect.logs import SUCCESS, configure_logging
from panel_protect.migrations.generator import SchemaMigrationGenerator
from panel_protect.orchestrator.core import (
    InstallationOrchestrator,
    InstallPlan,
    InstallResult,
    RunContext,
)
from panel_protect.state.manifest import ManifestStore

logger = logging.getLogger("panel_protect.cli")

console = Console()
err_console = Console(stderr=True)

USAGE = """[blue]Pterodactyl Menu Protection Installer[/blue]
Usage: panel-protect \\[option]

Options:
  install     - Install menu protection feature
  uninstall   - Uninstall menu protection feature
  help        - Show this help message

Examples:
  panel-protect install    # Install the feature
  panel-protect help       # Show help"""


def _invalid_command(ctx: typer.Context) -> None:
    err_console.print("[red]\\[ERROR][/red] Invalid command!")
    err_console.print()
    err_console.print(USAGE)
    ctx.exit(1)


class InstallerGroup(TyperGroup):
    """Command group reporting unknown commands or options with the usage text and status 1."""

    def parse_args(self, ctx: typer.Context, args: list[str]) -> list[str]:
        if args and args[0].startswith("-") and args[0] not in ctx.help_option_names:
            _invalid_command(ctx)
        return super().parse_args(ctx, args)

    def resolve_command(self, ctx: typer.Context, args: list[str]):
        if args and not ctx.resilient_parsing and self.get_command(ctx, args[0]) is None:
            _invalid_command(ctx)
        return super().resolve_command(ctx, args)


app = typer.Typer(
    name="panel-protect",
    help="Panel Protect - Pterodactyl Menu Protection Installer",
    cls=InstallerGroup,
    invoke_without_command=True,
    no_args_is_help=False,
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def main_callback(ctx: typer.Context):
    """Pterodactyl Menu Protection Installer."""
    if ctx.invoked_subcommand is None:
        _invalid_command(ctx)


def _load(config: Optional[Path], panel_path: Optional[Path]) -> InstallerSettings:
    try:
        return load_settings(config, {"panel_path": panel_path})
    except ConfigurationError as e:
        logger.error(str(e))
        raise typer.Exit(1)


def _print_result(result: InstallResult) -> None:
    table = Table(title="Installation Steps")
    table.add_column("Step", style="cyan")
    table.add_column("Phase")
    table.add_column("Policy", style="dim")
    table.add_column("Status")
    table.add_column("Detail")

    styles = {
        StepStatus.SUCCEEDED: "green",
        StepStatus.NOOP: "green",
        StepStatus.SKIPPED: "yellow",
        StepStatus.WARNING: "yellow",
        StepStatus.FAILED: "red",
    }
    for step_result in result.results:
        style = styles.get(step_result.status, "white")
        table.add_row(
            step_result.step_name,
            step_result.phase,
            step_result.policy,
            f"[{style}]{step_result.status.value}[/{style}]",
            escape(step_result.message),
        )

    console.print()
    console.print(table)


@app.command()
def install(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML configuration file"),
    panel_path: Optional[Path] = typer.Option(
        None, "--panel-path", "-p", help="Pterodactyl installation directory"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would change"),
    skip_db_backup: bool = typer.Option(False, "--skip-db-backup", help="Do not dump the database"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Re-apply patches the manifest reports as drifted"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
):
    """Install menu protection feature."""
    configure_logging(verbose, console)
    settings = _load(config, panel_path)

    console.print(
        Panel.fit(
            f"[bold blue]Panel Protect[/bold blue]\n"
            f"Feature: {feature.FEATURE_TITLE}\n"
            f"Panel: {settings.panel_path}\n"
            f"Mode: {'dry run' if dry_run else 'live'}",
        )
    )
    logger.info(f"Starting installation of the {feature.FEATURE_TITLE} feature...")

    context = RunContext.build(
        settings,
        Collaborators.from_settings(settings),
        dry_run=dry_run,
        force=force,
        backup_database=False if skip_db_backup else None,
    )
    orchestrator = InstallationOrchestrator()
    result = orchestrator.execute(InstallPlan.install_plan(), context)

    _print_result(result)
    logger.debug(orchestrator.summary(result))

    if not result.succeeded:
        logger.error(f"Installation stopped at step '{result.failed_step}': {result.error}")
        raise typer.Exit(1)

    if dry_run:
        logger.info("Dry run finished; no files were changed")
        return

    logger.log(SUCCESS, f"Installation of {feature.FEATURE_TITLE} finished!")
    logger.info(f"Backup location: {result.backup_dir}")
    logger.info("How to use:")
    for i, usage_step in enumerate(feature.USAGE_STEPS, start=1):
        logger.info(f"   {i}. {usage_step}")


@app.command()
def uninstall(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML configuration file"),
    panel_path: Optional[Path] = typer.Option(
        None, "--panel-path", "-p", help="Pterodactyl installation directory"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
):
    """Uninstall menu protection feature (prints manual restore steps)."""
    configure_logging(verbose, console)
    settings = _load(config, panel_path)

    if not Collaborators.from_settings(settings).privileges.is_privileged():
        logger.error("This command must be run as root!")
        raise typer.Exit(1)

    logger.warning("Automatic uninstall is not implemented.")

    backups = BackupStore.list_backups(settings.backup_root)
    if not backups:
        logger.info(f"No backups found under {settings.backup_root}")
    else:
        table = Table(title=f"Backups ({len(backups)})")
        table.add_column("Directory", style="cyan")
        table.add_column("Files", justify="right")
        for backup_dir in backups:
            files = [p for p in backup_dir.rglob("*") if p.is_file()]
            table.add_row(str(backup_dir), str(len(files)))
        console.print(table)
        logger.info(f"You can restore manually from the backup at: {backups[0]}")

    manifest = ManifestStore(settings.state_dir, settings.panel_path)
    entries = manifest.entries()
    if entries:
        patched = Table(title="Patched Artifacts")
        patched.add_column("Artifact", style="cyan")
        patched.add_column("Patch")
        patched.add_column("Applied", style="dim")
        patched.add_column("Present")
        for entry in entries:
            artifact = Path(entry.artifact)
            if not artifact.is_file():
                present = "[yellow]file missing[/yellow]"
            elif manifest.drifted(artifact, artifact.read_text(encoding="utf-8", errors="replace")):
                present = "[yellow]marker removed[/yellow]"
            else:
                present = "[green]yes[/green]"
            patched.add_row(entry.artifact, entry.patch_name, entry.applied_at[:19], present)
        console.print(patched)

    commands = _restore_commands(settings, backups[0] if backups else None, entries)
    if commands:
        console.print("\n[bold]Manual restore:[/bold]")
        for command in commands:
            console.print(f"  {command}", highlight=False, markup=False, soft_wrap=True)


def _restore_commands(settings: InstallerSettings, latest: Optional[Path], entries: list) -> list[str]:
    """Shell commands an administrator can run to undo the installation."""
    commands = []
    restored = set()
    for entry in entries:
        if entry.backup_path and entry.artifact not in restored:
            commands.append(f"cp '{entry.backup_path}' '{entry.artifact}'")
            restored.add(entry.artifact)

    if latest is not None:
        for backup_file in sorted(p for p in latest.rglob("*") if p.is_file()):
            if backup_file.name == BackupStore.DUMP_FILENAME:
                continue
            original = settings.panel_path / backup_file.relative_to(latest)
            if str(original) not in restored:
                commands.append(f"cp '{backup_file}' '{original}'")
                restored.add(str(original))

    middleware = settings.resolve(settings.paths.middleware_dir) / feature.MIDDLEWARE_FILENAME
    commands.append(f"rm -f '{middleware}'")

    # --path takes one literal file; the shell does not expand a glob after "="
    migration = SchemaMigrationGenerator.find_existing(
        settings.resolve(settings.paths.migrations_dir), feature.MIGRATION_NAME
    )
    if migration is not None:
        commands.append(
            f"cd '{settings.panel_path}' && php artisan migrate:rollback "
            f"--path={migration.relative_to(settings.panel_path)}"
        )
    commands.append(f"rm -f '{settings.state_dir / ManifestStore.MANIFEST_FILE}'")
    return commands


@app.command("help")
def help_command():
    """Show this help message."""
    console.print(USAGE)


@app.command()
def version():
    """Show Panel Protect version."""
    from panel_protect import __version__

    console.print(f"Panel Protect v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
