"""
Manifest Store - persistent record of applied patches.

Idempotency is decided by scanning artifact content for markers; the
manifest is a second opinion. When the manifest says a patch was applied
but its marker is gone from the artifact, the content was edited by hand
and re-applying would likely duplicate the feature, so the patch is
reported as drift instead. An artifact whose content equals the backup
taken before the patch was restored on purpose and is patched again.

Stored as a single JSON file:
- <state_dir>/manifest.json
"""

import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class AppliedPatch(BaseModel):
    """Record of one patch applied to one artifact."""

    patch_name: str
    artifact: str
    marker: str
    block_sha256: str = ""
    applied_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    backup_path: str | None = None


class Manifest(BaseModel):
    """All patches applied to one application root."""

    version: str = "1.0"
    panel_path: str = ""
    patches: list[AppliedPatch] = Field(default_factory=list)
    updated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class ManifestStore:
    """
    Manager for the applied-patch manifest.

    Nothing is written to disk until the first ``record()``.
    """

    MANIFEST_FILE = "manifest.json"

    def __init__(self, state_dir: Path | None = None, panel_path: Path | None = None):
        """Initialize manifest store with storage directory."""
        self._state_dir = state_dir or Path("/var/lib/panel-protect")
        self._manifest_file = self._state_dir / self.MANIFEST_FILE
        self._panel_path = panel_path
        self._manifest = self._load()

    @property
    def path(self) -> Path:
        """Location of the manifest file."""
        return self._manifest_file

    def _load(self) -> Manifest:
        """Load manifest from disk or create an empty one."""
        if self._manifest_file.exists():
            try:
                data = json.loads(self._manifest_file.read_text())
                return Manifest(**data)
            except (json.JSONDecodeError, ValueError) as e:
                logger.warning(f"Ignoring unreadable manifest {self._manifest_file}: {e}")
        return Manifest(panel_path=str(self._panel_path) if self._panel_path else "")

    def _save(self) -> None:
        """Save manifest to disk."""
        self._state_dir.mkdir(parents=True, exist_ok=True)
        self._manifest.updated_at = datetime.now(timezone.utc).isoformat()
        self._manifest_file.write_text(self._manifest.model_dump_json(indent=2))

    def entries(self, artifact: Path | None = None) -> list[AppliedPatch]:
        """List recorded patches, optionally for a single artifact."""
        if artifact is None:
            return list(self._manifest.patches)
        return [p for p in self._manifest.patches if p.artifact == str(artifact)]

    def get(self, artifact: Path, marker: str) -> AppliedPatch | None:
        """Return the record for a patch on an artifact, if any."""
        for entry in self._manifest.patches:
            if entry.artifact == str(artifact) and entry.marker == marker:
                return entry
        return None

    def is_recorded(self, artifact: Path, marker: str) -> bool:
        """Return True if the manifest claims the patch was applied."""
        return self.get(artifact, marker) is not None

    def record(
        self,
        patch_name: str,
        artifact: Path,
        marker: str,
        block: str = "",
        backup_path: str | None = None,
    ) -> AppliedPatch:
        """Record (or refresh) an applied patch and persist the manifest."""
        entry = AppliedPatch(
            patch_name=patch_name,
            artifact=str(artifact),
            marker=marker,
            block_sha256=hashlib.sha256(block.encode()).hexdigest() if block else "",
            backup_path=backup_path,
        )
        self._manifest.patches = [
            p
            for p in self._manifest.patches
            if not (p.artifact == entry.artifact and p.marker == entry.marker)
        ]
        self._manifest.patches.append(entry)
        self._save()
        return entry

    def drifted(self, artifact: Path, content: str) -> list[AppliedPatch]:
        """Return recorded patches whose marker is missing from ``content``."""
        return [p for p in self.entries(artifact) if p.marker not in content]

    def restored(self, artifact: Path, marker: str, content: str) -> bool:
        """Return True if ``content`` matches the backup taken before the recorded patch."""
        entry = self.get(artifact, marker)
        if entry is None or not entry.backup_path:
            return False
        backup = Path(entry.backup_path)
        if not backup.is_file():
            return False
        with open(backup, encoding="utf-8", errors="replace", newline="") as handle:
            return handle.read() == content
