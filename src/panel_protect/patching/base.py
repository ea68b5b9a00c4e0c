"""
Patch definitions and the shared read/detect/apply/write cycle.

Every artifact kind is modelled behind ``ArtifactPatch`` with two
operations, ``detect(content)`` and ``apply(content)``. The textual
implementation here splices a block at an anchor; a structural patcher can
subclass it without the orchestrator noticing.
"""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from panel_protect.backup.store import BackupStore
from panel_protect.core.exceptions import AnchorNotFoundError, ArtifactMissingError
from panel_protect.core.models import Anchor, PatchResult
from panel_protect.logs import SUCCESS
from panel_protect.patching.anchor import insert
from panel_protect.patching.detector import already_applied
from panel_protect.state.manifest import ManifestStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactPatch:
    """A block of content plus its marker and anchor rule."""

    name: str
    marker: str
    anchor: Anchor
    block: str

    def detect(self, content: str) -> bool:
        """Return True if the patch is already present in ``content``."""
        return already_applied(content, self.marker)

    def apply(self, content: str) -> tuple[str, bool]:
        """Return (new_content, applied); unchanged content when the anchor is absent."""
        return insert(content, self.anchor, self.block)


def read_artifact(path: Path) -> str:
    """Read an artifact as text, keeping its line endings intact."""
    with open(path, encoding="utf-8", newline="") as handle:
        return handle.read()


def write_artifact(path: Path, content: str) -> None:
    """
    Replace an artifact's content.

    Writes to a sibling temporary file first and renames it over the
    original, keeping the original's permission bits.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".new", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        if path.exists():
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class FilePatcher:
    """
    Applies ``ArtifactPatch`` objects to files on disk.

    Order for every artifact:
    1. Detector check (already applied -> no-op)
    2. Manifest drift check (a file restored from its backup is patched again)
    3. Anchor insertion in memory (anchor missing -> unchanged, warning)
    4. Backup of the original, once per run
    5. Write
    """

    def __init__(
        self,
        backup_store: BackupStore | None = None,
        manifest: ManifestStore | None = None,
        dry_run: bool = False,
        force: bool = False,
        strict: bool = False,
    ):
        """
        Initialize the patcher.

        Args:
            backup_store: Receives a copy of each artifact before its first write
            manifest: Records applied patches; consulted for drift
            dry_run: Compute results without writing
            force: Re-apply even when the manifest reports drift
            strict: Raise AnchorNotFoundError instead of reporting a missing anchor
        """
        self._backup_store = backup_store
        self._manifest = manifest
        self._dry_run = dry_run
        self._force = force
        self._strict = strict

    def apply_patch(self, path: Path, patch: ArtifactPatch) -> PatchResult:
        """
        Apply one patch to one file.

        Raises:
            ArtifactMissingError: If the file does not exist
            AnchorNotFoundError: If the anchor is absent and the patcher is strict
        """
        if not path.is_file():
            raise ArtifactMissingError(f"Artifact not found: {path}", path=str(path))

        content = read_artifact(path)
        result = PatchResult(artifact=path, marker=patch.marker, dry_run=self._dry_run)

        if patch.detect(content):
            result.already_applied = True
            result.message = f"{patch.name}: already present in {path.name}"
            logger.info(result.message)
            if self._manifest is not None and not self._dry_run:
                if not self._manifest.is_recorded(path, patch.marker):
                    self._manifest.record(patch.name, path, patch.marker, patch.block)
            return result

        if (
            self._manifest is not None
            and self._manifest.is_recorded(path, patch.marker)
            and not self._manifest.restored(path, patch.marker, content)
            and not self._force
        ):
            result.drift = True
            result.message = (
                f"{patch.name}: manifest records this patch on {path.name} but its marker "
                f"{patch.marker!r} is missing; not re-applying (use --force to override)"
            )
            result.warnings.append(result.message)
            logger.warning(result.message)
            return result

        new_content, applied = patch.apply(content)
        if not applied:
            if self._strict:
                raise AnchorNotFoundError(
                    f"{patch.name}: anchor not found in {path.name}",
                    path=str(path),
                    pattern=patch.anchor.pattern,
                )
            result.anchor_found = False
            result.message = (
                f"{patch.name}: anchor {patch.anchor.describe()} not found in {path.name}; "
                "file left unchanged"
            )
            result.warnings.append(result.message)
            logger.warning(result.message)
            return result

        result.applied = True
        result.new_content = new_content

        if self._dry_run:
            result.message = f"{patch.name}: would patch {path.name}"
            logger.info(result.message)
            return result

        backup_path = None
        if self._backup_store is not None:
            record = self._backup_store.backup(path)
            backup_path = record.backup_path if record.succeeded else None

        write_artifact(path, new_content)
        if self._manifest is not None:
            self._manifest.record(patch.name, path, patch.marker, patch.block, backup_path)

        result.message = f"{patch.name}: patched {path.name}"
        logger.log(SUCCESS, result.message)
        return result
