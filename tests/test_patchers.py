"""Tests for the file, registry and template patchers."""

from pathlib import Path

import pytest

from panel_protect.backup.store import BackupStore
from panel_protect.core.exceptions import AnchorNotFoundError, ArtifactMissingError
from panel_protect.feature import menu_protection as feature
from panel_protect.patching.base import FilePatcher
from panel_protect.patching.registry import RegistryPatcher
from panel_protect.patching.template import TemplatePatcher
from panel_protect.state.manifest import ManifestStore


@pytest.fixture
def backup_store(temp_dir: Path, panel_dir: Path) -> BackupStore:
    return BackupStore(temp_dir / "backups", panel_dir)


@pytest.fixture
def manifest(temp_dir: Path, panel_dir: Path) -> ManifestStore:
    return ManifestStore(temp_dir / "state", panel_dir)


@pytest.fixture
def file_patcher(backup_store: BackupStore, manifest: ManifestStore) -> FilePatcher:
    return FilePatcher(backup_store=backup_store, manifest=manifest)


class TestRegistryPatcher:
    """Tests for hook list and route table registration."""

    def test_hook_inserted_after_opening_bracket(self, panel_dir: Path, file_patcher: FilePatcher) -> None:
        """The hook entry lands right after the routeMiddleware opening line."""
        kernel = panel_dir / "app/Http/Kernel.php"
        result = RegistryPatcher(file_patcher).register_hook(kernel, feature.KERNEL_ENTRY, feature.HOOK_KEY)

        assert result.applied is True
        lines = kernel.read_text().splitlines()
        opening = lines.index("    protected $routeMiddleware = [")
        assert lines[opening + 1] == feature.KERNEL_ENTRY
        assert "server.ownership" not in "\n".join(lines[:opening])

    def test_hook_registration_is_idempotent(self, panel_dir: Path, file_patcher: FilePatcher) -> None:
        """A second registration leaves the kernel byte-for-byte unchanged."""
        kernel = panel_dir / "app/Http/Kernel.php"
        patcher = RegistryPatcher(file_patcher)
        patcher.register_hook(kernel, feature.KERNEL_ENTRY, feature.HOOK_KEY)
        after_first = kernel.read_bytes()

        result = patcher.register_hook(kernel, feature.KERNEL_ENTRY, feature.HOOK_KEY)

        assert result.already_applied is True
        assert result.applied is False
        assert kernel.read_bytes() == after_first
        assert kernel.read_text().count("server.ownership") == 1

    def test_route_inserted_before_last_closing(self, panel_dir: Path, file_patcher: FilePatcher) -> None:
        """The route entry goes right above the final group closing."""
        routes = panel_dir / "routes/admin.php"
        result = RegistryPatcher(file_patcher).register_route(routes, feature.ROUTE_ENTRY, feature.ROUTE_NAME)

        assert result.applied is True
        lines = routes.read_text().splitlines()
        assert lines[-1] == "});"
        assert lines[-2] == feature.ROUTE_ENTRY

    def test_missing_anchor_leaves_file_unchanged(self, temp_dir: Path, file_patcher: FilePatcher) -> None:
        """A registry without the anchor is reported, not modified."""
        kernel = temp_dir / "Kernel.php"
        kernel.write_text("<?php\nclass Kernel {}\n")

        result = RegistryPatcher(file_patcher).register_hook(kernel, feature.KERNEL_ENTRY, feature.HOOK_KEY)

        assert result.applied is False
        assert result.anchor_found is False
        assert result.warnings
        assert kernel.read_text() == "<?php\nclass Kernel {}\n"

    def test_missing_registry_raises(self, temp_dir: Path, file_patcher: FilePatcher) -> None:
        with pytest.raises(ArtifactMissingError):
            RegistryPatcher(file_patcher).register_hook(
                temp_dir / "nope.php", feature.KERNEL_ENTRY, feature.HOOK_KEY
            )


class TestTemplatePatcher:
    """Tests for template section injection."""

    def test_section_injected_before_last_form_closing(
        self, panel_dir: Path, file_patcher: FilePatcher
    ) -> None:
        view = panel_dir / "resources/views/admin/settings/index.blade.php"
        result = TemplatePatcher(file_patcher).inject(
            view, feature.SETTINGS_VIEW_BLOCK, marker=feature.FEATURE_TITLE
        )

        assert result.applied is True
        content = view.read_text()
        assert content.index(feature.FEATURE_TITLE) < content.rindex("</form>")
        assert content.count(feature.FEATURE_TITLE) == feature.SETTINGS_VIEW_BLOCK.count(feature.FEATURE_TITLE)

    def test_second_injection_is_noop(self, panel_dir: Path, file_patcher: FilePatcher) -> None:
        view = panel_dir / "resources/views/admin/settings/index.blade.php"
        patcher = TemplatePatcher(file_patcher)
        patcher.inject(view, feature.SETTINGS_VIEW_BLOCK, marker=feature.FEATURE_TITLE)
        after_first = view.read_bytes()

        result = patcher.inject(view, feature.SETTINGS_VIEW_BLOCK, marker=feature.FEATURE_TITLE)

        assert result.already_applied is True
        assert view.read_bytes() == after_first


class TestFilePatcher:
    """Tests for the shared read/detect/apply/write cycle."""

    def test_backup_taken_before_write(
        self, panel_dir: Path, file_patcher: FilePatcher, backup_store: BackupStore
    ) -> None:
        """The backup holds the pre-patch content."""
        kernel = panel_dir / "app/Http/Kernel.php"
        original = kernel.read_bytes()

        file_patcher.apply_patch(kernel, feature.kernel_patch())

        record = backup_store.record_for(kernel)
        assert record is not None and record.succeeded
        assert Path(record.backup_path).read_bytes() == original
        assert Path(record.backup_path) == backup_store.backup_dir / "app/Http/Kernel.php"

    def test_applied_patch_recorded_in_manifest(
        self, panel_dir: Path, file_patcher: FilePatcher, manifest: ManifestStore
    ) -> None:
        kernel = panel_dir / "app/Http/Kernel.php"
        file_patcher.apply_patch(kernel, feature.kernel_patch())

        entry = manifest.get(kernel, feature.HOOK_KEY)
        assert entry is not None
        assert entry.backup_path is not None

    def test_drift_is_not_reapplied(
        self, panel_dir: Path, file_patcher: FilePatcher, manifest: ManifestStore
    ) -> None:
        """A recorded patch whose marker was removed by hand is reported as drift."""
        kernel = panel_dir / "app/Http/Kernel.php"
        original = kernel.read_text()
        file_patcher.apply_patch(kernel, feature.kernel_patch())
        edited = original + "// local change\n"
        kernel.write_text(edited)

        result = file_patcher.apply_patch(kernel, feature.kernel_patch())

        assert result.drift is True
        assert result.applied is False
        assert kernel.read_text() == edited

    def test_restored_backup_is_patched_again(
        self, panel_dir: Path, file_patcher: FilePatcher, manifest: ManifestStore
    ) -> None:
        """An artifact copied back from its backup is not drift."""
        kernel = panel_dir / "app/Http/Kernel.php"
        file_patcher.apply_patch(kernel, feature.kernel_patch())
        entry = manifest.get(kernel, feature.HOOK_KEY)
        kernel.write_bytes(Path(entry.backup_path).read_bytes())

        result = file_patcher.apply_patch(kernel, feature.kernel_patch())

        assert result.drift is False
        assert result.applied is True
        assert kernel.read_text().count(feature.HOOK_KEY) == 1

    def test_force_reapplies_drifted_patch(
        self, panel_dir: Path, backup_store: BackupStore, manifest: ManifestStore
    ) -> None:
        kernel = panel_dir / "app/Http/Kernel.php"
        original = kernel.read_text()
        FilePatcher(backup_store, manifest).apply_patch(kernel, feature.kernel_patch())
        kernel.write_text(original + "// local change\n")

        result = FilePatcher(backup_store, manifest, force=True).apply_patch(kernel, feature.kernel_patch())

        assert result.applied is True
        assert feature.HOOK_KEY in kernel.read_text()

    def test_dry_run_does_not_write(self, temp_dir: Path, panel_dir: Path) -> None:
        kernel = panel_dir / "app/Http/Kernel.php"
        original = kernel.read_bytes()
        store = BackupStore(temp_dir / "backups", panel_dir)

        result = FilePatcher(store, dry_run=True).apply_patch(kernel, feature.kernel_patch())

        assert result.applied is True
        assert result.dry_run is True
        assert feature.HOOK_KEY in result.new_content
        assert kernel.read_bytes() == original
        assert not store.backup_dir.exists()

    def test_file_mode_preserved(self, panel_dir: Path, file_patcher: FilePatcher) -> None:
        kernel = panel_dir / "app/Http/Kernel.php"
        kernel.chmod(0o640)

        file_patcher.apply_patch(kernel, feature.kernel_patch())

        assert kernel.stat().st_mode & 0o777 == 0o640

    def test_strict_patcher_raises_on_missing_anchor(self, temp_dir: Path) -> None:
        kernel = temp_dir / "Kernel.php"
        kernel.write_text("<?php\nclass Kernel {}\n")

        with pytest.raises(AnchorNotFoundError) as exc_info:
            FilePatcher(strict=True).apply_patch(kernel, feature.kernel_patch())

        assert exc_info.value.path == str(kernel)
        assert kernel.read_text() == "<?php\nclass Kernel {}\n"
