"""
Installation steps for the menu protection feature.

Every step detects whether its effect already exists before acting, so the
whole plan can be re-run safely. Steps raise ``PanelProtectError``
subclasses for failures and leave the consequence to the step's declared
failure policy.
"""

import logging

from panel_protect.config import TargetVariant
from panel_protect.core.exceptions import ExternalCommandError, PreconditionError
from panel_protect.core.models import FailurePolicy, StepOutcome, StepStatus
from panel_protect.feature import menu_protection as feature
from panel_protect.logs import SUCCESS
from panel_protect.orchestrator.core import InstallationStep, InstallState, RunContext
from panel_protect.patching.base import read_artifact
from panel_protect.patching.detector import find_applied
from panel_protect.patching.registry import ROUTE_TABLE_CLOSING

logger = logging.getLogger(__name__)


# Validating

def check_privileges(ctx: RunContext) -> StepOutcome:
    if not ctx.collaborators.privileges.is_privileged():
        raise PreconditionError("This command must be run as root!", check="privilege")
    return StepOutcome(message="Running with administrator privilege")


def check_application_root(ctx: RunContext) -> StepOutcome:
    root = ctx.settings.application_root()
    if not root.path.is_dir():
        raise PreconditionError(
            f"Pterodactyl directory not found at {root.path}. "
            "If the panel lives elsewhere, set panel_path (--panel-path or PP_PANEL_PATH)",
            check="application_root",
        )
    return StepOutcome(message=f"Application root found at {root.path}")


def resolve_variant(ctx: RunContext) -> TargetVariant:
    """
    Decide which application layout to patch.

    A settings view that already holds a form gets the fields added to that
    form and reuses its endpoint; otherwise the feature brings its own form,
    route and controller method.
    """
    configured = ctx.settings.variant
    if configured != TargetVariant.AUTO:
        return configured

    # An earlier dedicated install adds its own form to the view
    routes = ctx.path("routes")
    if routes.is_file() and find_applied(read_artifact(routes), [feature.ROUTE_NAME]):
        return TargetVariant.DEDICATED_ENDPOINT

    view = ctx.path("settings_view")
    if view.is_file() and "</form>" in read_artifact(view):
        return TargetVariant.SETTINGS_VIEW
    return TargetVariant.DEDICATED_ENDPOINT


def detect_variant(ctx: RunContext) -> StepOutcome:
    ctx.variant = resolve_variant(ctx)
    source = "configured" if ctx.settings.variant != TargetVariant.AUTO else "detected"
    message = f"Target layout {source}: {ctx.variant.value}"
    logger.info(message)
    return StepOutcome(message=message, data={"variant": ctx.variant.value})


# Backing up

def backup_files(ctx: RunContext) -> StepOutcome:
    targets = [path for path in ctx.settings.backup_targets() if path.exists()]
    backup_dir = ctx.backup_store.backup_dir
    if ctx.dry_run:
        return StepOutcome.noop(f"Would back up {len(targets)} files to {backup_dir}")

    logger.info(f"Creating file backup in {backup_dir}...")
    records = ctx.backup_store.backup_many(targets)
    failed = [r for r in records if not r.succeeded]
    if failed:
        return StepOutcome.warning(
            f"Backed up {len(records) - len(failed)} of {len(records)} files; "
            f"no safety copy for: {', '.join(r.original_path for r in failed)}"
        )

    message = f"Backed up {len(records)} files to {backup_dir}"
    logger.log(SUCCESS, message)
    return StepOutcome(message=message, data={"backup_dir": str(backup_dir)})


def backup_database(ctx: RunContext) -> StepOutcome:
    database = ctx.settings.database_name
    if not ctx.backup_database:
        return StepOutcome.noop("Database backup disabled")
    if ctx.dry_run:
        return StepOutcome.noop(f"Would dump database '{database}'")

    logger.info(f"Creating database backup of '{database}'...")
    dump_path = ctx.backup_store.dump_database(ctx.collaborators.dumper, database)
    if dump_path is None:
        return StepOutcome.warning("Database backup failed, continuing without it")

    message = f"Database backup written to {dump_path}"
    logger.log(SUCCESS, message)
    return StepOutcome(message=message)


# Migrating

def generate_migration(ctx: RunContext) -> StepOutcome:
    directory = ctx.path("migrations_dir")
    existing = ctx.migration_generator.find_existing(directory, feature.MIGRATION_NAME)
    if existing is not None:
        logger.info(f"Migration already present: {existing.name}")
        return StepOutcome.noop(f"Migration already present: {existing.name}")

    unit = ctx.migration_generator.generate(
        feature.MIGRATION_FIELDS, table=feature.MIGRATION_TABLE, name=feature.MIGRATION_NAME
    )
    if ctx.dry_run:
        return StepOutcome(message=f"Would create migration {unit.filename}")

    path = ctx.migration_generator.write(unit, directory)
    ctx.data["migration_path"] = str(path)
    logger.log(SUCCESS, f"Migration file created: {path}")
    return StepOutcome(message=f"Migration file created: {path.name}")


def run_migrations(ctx: RunContext) -> StepOutcome:
    artisan = ctx.collaborators.artisan
    if ctx.dry_run:
        return StepOutcome.noop("Would run php artisan migrate --force")
    if not artisan.available():
        message = "PHP not found in PATH; run `php artisan migrate --force` manually"
        logger.warning(message)
        return StepOutcome.warning(message)

    logger.info("Running pending migrations...")
    result = artisan.migrate()
    result.raise_for_status(f"php artisan migrate failed (check the migration): {result.describe_failure()}")
    logger.log(SUCCESS, "Migrations applied")
    return StepOutcome(message="Migrations applied")


# Patching registries

def register_route(ctx: RunContext) -> StepOutcome:
    routes = ctx.path("routes")
    present = find_applied(read_artifact(routes), list(feature.ROUTE_MARKERS))
    if present:
        message = f"Menu protection route already exists in {routes.name}"
        logger.info(message)
        return StepOutcome.noop(message)

    if ctx.variant != TargetVariant.DEDICATED_ENDPOINT:
        message = "No route added; the settings view submits to the existing 'admin.settings' route"
        logger.info(message)
        return StepOutcome.noop(message)

    result = ctx.registry_patcher.register(
        routes,
        feature.ROUTE_ENTRY,
        ROUTE_TABLE_CLOSING,
        marker=feature.ROUTE_NAME,
        name="menu protection route",
    )
    return StepOutcome.from_patch(result)


def add_controller_method(ctx: RunContext) -> StepOutcome:
    if ctx.variant != TargetVariant.DEDICATED_ENDPOINT:
        return StepOutcome.noop("Existing settings controller handles the section")

    patch = feature.controller_patch()
    return StepOutcome.from_patch(
        ctx.file_patcher.apply_patch(ctx.path("settings_controller"), patch)
    )


def create_middleware(ctx: RunContext) -> StepOutcome:
    directory = ctx.path("middleware_dir")
    target = directory / feature.MIDDLEWARE_FILENAME
    if target.exists():
        message = "Middleware CheckServerOwnership already exists"
        logger.info(message)
        return StepOutcome.noop(message)
    if ctx.dry_run:
        return StepOutcome(message=f"Would create {target}")

    directory.mkdir(parents=True, exist_ok=True)
    target.write_text(feature.MIDDLEWARE_SOURCE, encoding="utf-8")
    if ctx.manifest is not None:
        ctx.manifest.record("middleware file", target, "class CheckServerOwnership")
    logger.log(SUCCESS, f"Middleware created: {target}")
    return StepOutcome(message=f"Middleware created: {target.name}")


def register_middleware(ctx: RunContext) -> StepOutcome:
    result = ctx.registry_patcher.register_hook(
        ctx.path("kernel"), feature.KERNEL_ENTRY, feature.HOOK_KEY
    )
    return StepOutcome.from_patch(result)


# Patching template

def patch_settings_view(ctx: RunContext) -> StepOutcome:
    patch = feature.view_patch(dedicated_endpoint=ctx.variant == TargetVariant.DEDICATED_ENDPOINT)
    result = ctx.template_patcher.inject(
        ctx.path("settings_view"),
        patch.block,
        marker=patch.marker,
        anchor=patch.anchor,
        name=patch.name,
    )
    return StepOutcome.from_patch(result)


# Refreshing

def refresh_caches(ctx: RunContext) -> StepOutcome:
    artisan = ctx.collaborators.artisan
    if ctx.dry_run:
        return StepOutcome.noop("Would clear and rebuild application caches")
    if not artisan.available():
        message = "PHP not found in PATH, skipping artisan cache commands"
        logger.warning(message)
        return StepOutcome.warning(message)

    logger.info("Refreshing application caches...")
    failures = [r.describe_failure() for r in artisan.refresh_caches() if not r.ok]
    if failures:
        for failure in failures:
            logger.warning(failure)
        return StepOutcome(status=StepStatus.WARNING, message="Some cache commands failed", warnings=failures)
    return StepOutcome(message="Caches refreshed")


def fix_permissions(ctx: RunContext) -> StepOutcome:
    settings = ctx.settings
    if not settings.fix_permissions:
        return StepOutcome.noop("Permission fix disabled")
    if ctx.dry_run:
        return StepOutcome.noop(f"Would reset ownership to {settings.web_user} and modes to 755")

    results = ctx.collaborators.permissions.fix(
        settings.panel_path, ctx.path("storage_dir"), settings.web_user
    )
    failures = [r.describe_failure() for r in results if not r.ok]
    if failures:
        for failure in failures:
            logger.warning(failure)
        return StepOutcome(status=StepStatus.WARNING, message="Could not fix all permissions", warnings=failures)
    return StepOutcome(message="Permissions updated")


# Restarting services

def restart_worker(ctx: RunContext) -> StepOutcome:
    unit = ctx.settings.worker_service
    services = ctx.collaborators.services
    if ctx.dry_run:
        return StepOutcome.noop(f"Would restart {unit}")
    if not services.unit_exists(unit):
        return StepOutcome.noop(f"Service {unit} not installed")

    result = services.restart(unit)
    if not result.ok:
        raise ExternalCommandError(
            f"Could not restart {unit}",
            command=result.argv,
            returncode=result.returncode,
            timed_out=result.timed_out,
        )
    logger.log(SUCCESS, f"Restarted {unit}")
    return StepOutcome(message=f"Restarted {unit}")


def reload_web_server(ctx: RunContext) -> StepOutcome:
    candidates = ctx.settings.web_servers
    if ctx.dry_run:
        return StepOutcome.noop(f"Would reload one of: {', '.join(candidates)}")

    reloaded = ctx.collaborators.services.reload_first(candidates)
    if reloaded is None:
        message = f"Could not reload any web server ({', '.join(candidates)})"
        logger.warning(message)
        return StepOutcome.warning(message)
    logger.log(SUCCESS, f"Reloaded {reloaded}")
    return StepOutcome(message=f"Reloaded {reloaded}")


def install_steps() -> list[InstallationStep]:
    """Step sequence for ``install``, in execution order."""
    return [
        InstallationStep(
            name="check_privileges",
            phase=InstallState.VALIDATING,
            action=check_privileges,
            failure_policy=FailurePolicy.FATAL,
            description="Require administrator privilege",
        ),
        InstallationStep(
            name="check_application_root",
            phase=InstallState.VALIDATING,
            action=check_application_root,
            failure_policy=FailurePolicy.FATAL,
            description="Require the application root",
        ),
        InstallationStep(
            name="detect_variant",
            phase=InstallState.VALIDATING,
            action=detect_variant,
            failure_policy=FailurePolicy.FATAL,
            description="Pick the target layout",
        ),
        InstallationStep(
            name="backup_files",
            phase=InstallState.BACKING_UP,
            action=backup_files,
            failure_policy=FailurePolicy.WARN_CONTINUE,
            description="Copy target artifacts into the backup directory",
        ),
        InstallationStep(
            name="backup_database",
            phase=InstallState.BACKING_UP,
            action=backup_database,
            failure_policy=FailurePolicy.WARN_CONTINUE,
            description="Dump the application database",
        ),
        InstallationStep(
            name="generate_migration",
            phase=InstallState.MIGRATING,
            action=generate_migration,
            failure_policy=FailurePolicy.SKIP_IF_MISSING,
            required_path=lambda ctx: ctx.path("migrations_dir"),
            description="Write the schema migration unit",
        ),
        InstallationStep(
            name="run_migrations",
            phase=InstallState.MIGRATING,
            action=run_migrations,
            failure_policy=FailurePolicy.FATAL,
            description="Run pending migrations",
        ),
        InstallationStep(
            name="register_route",
            phase=InstallState.PATCHING_REGISTRIES,
            action=register_route,
            failure_policy=FailurePolicy.SKIP_IF_MISSING,
            required_path=lambda ctx: ctx.path("routes"),
            description="Wire the endpoint in the route table",
        ),
        InstallationStep(
            name="add_controller_method",
            phase=InstallState.PATCHING_REGISTRIES,
            action=add_controller_method,
            failure_policy=FailurePolicy.SKIP_IF_MISSING,
            required_path=lambda ctx: ctx.path("settings_controller"),
            description="Add the controller method behind the endpoint",
        ),
        InstallationStep(
            name="create_middleware",
            phase=InstallState.PATCHING_REGISTRIES,
            action=create_middleware,
            failure_policy=FailurePolicy.WARN_CONTINUE,
            description="Create the ownership-check middleware",
        ),
        InstallationStep(
            name="register_middleware",
            phase=InstallState.PATCHING_REGISTRIES,
            action=register_middleware,
            failure_policy=FailurePolicy.SKIP_IF_MISSING,
            required_path=lambda ctx: ctx.path("kernel"),
            description="Register the middleware alias",
        ),
        InstallationStep(
            name="patch_settings_view",
            phase=InstallState.PATCHING_TEMPLATE,
            action=patch_settings_view,
            failure_policy=FailurePolicy.SKIP_IF_MISSING,
            required_path=lambda ctx: ctx.path("settings_view"),
            description="Inject the settings section",
        ),
        InstallationStep(
            name="refresh_caches",
            phase=InstallState.REFRESHING,
            action=refresh_caches,
            failure_policy=FailurePolicy.WARN_CONTINUE,
            description="Clear and rebuild application caches",
        ),
        InstallationStep(
            name="fix_permissions",
            phase=InstallState.REFRESHING,
            action=fix_permissions,
            failure_policy=FailurePolicy.WARN_CONTINUE,
            description="Reset ownership and modes",
        ),
        InstallationStep(
            name="restart_worker",
            phase=InstallState.RESTARTING_SERVICES,
            action=restart_worker,
            failure_policy=FailurePolicy.WARN_CONTINUE,
            description="Restart the queue worker",
        ),
        InstallationStep(
            name="reload_web_server",
            phase=InstallState.RESTARTING_SERVICES,
            action=reload_web_server,
            failure_policy=FailurePolicy.WARN_CONTINUE,
            description="Reload the front-end server",
        ),
    ]
