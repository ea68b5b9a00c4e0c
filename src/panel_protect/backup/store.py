"""
Backup Store - pre-mutation copies of target artifacts.

Each run gets one directory named after its start time:

    <backup_root>/pterodactyl_backup_<YYYYmmdd_HHMMSS>/
        app/Http/Kernel.php
        routes/admin.php
        ...
        pterodactyl_backup.sql      (optional database dump)

Artifacts under the application root keep their relative path so that two
files with the same name never collide. Backups are never pruned and
originals are never deleted.
"""

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from panel_protect.core.models import BackupRecord

if TYPE_CHECKING:
    from panel_protect.external.services import DatabaseDumper

logger = logging.getLogger(__name__)


class BackupStore:
    """
    Owner of all backup copies for one installer run.

    ``backup()`` is idempotent within a run: only the first call for a given
    artifact copies it. Copy failures are logged as warnings and recorded,
    never raised, so the run proceeds without a safety copy for that file.
    """

    DIR_PREFIX = "pterodactyl_backup_"
    TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
    DUMP_FILENAME = "pterodactyl_backup.sql"

    def __init__(
        self,
        backup_root: Path,
        panel_path: Path | None = None,
        started_at: datetime | None = None,
    ):
        """
        Initialize the store.

        Args:
            backup_root: Parent directory for timestamped backup directories
            panel_path: Application root; files below it keep relative paths
            started_at: Run start time (default: now)
        """
        self._backup_root = backup_root
        self._panel_path = panel_path
        self._started_at = started_at or datetime.now()
        self._records: dict[Path, BackupRecord] = {}

    @property
    def backup_dir(self) -> Path:
        """Directory receiving this run's copies."""
        stamp = self._started_at.strftime(self.TIMESTAMP_FORMAT)
        return self._backup_root / f"{self.DIR_PREFIX}{stamp}"

    @property
    def records(self) -> list[BackupRecord]:
        """All records created so far, in creation order."""
        return list(self._records.values())

    def record_for(self, path: Path) -> BackupRecord | None:
        """Return the record for an artifact, if it was backed up this run."""
        return self._records.get(self._key(path))

    def _key(self, path: Path) -> Path:
        return path.absolute()

    def _destination(self, path: Path) -> Path:
        if self._panel_path is not None:
            try:
                return self.backup_dir / path.absolute().relative_to(self._panel_path.absolute())
            except ValueError:
                pass
        return self.backup_dir / path.name

    def backup(self, path: Path) -> BackupRecord:
        """
        Copy an artifact into the backup directory once per run.

        Returns:
            The (possibly pre-existing) BackupRecord for this artifact
        """
        key = self._key(path)
        existing = self._records.get(key)
        if existing is not None:
            return existing

        destination = self._destination(path)
        timestamp = datetime.now().isoformat(timespec="seconds")

        if destination.exists():
            # A run started in the same second already holds the older copy
            logger.debug(f"Keeping existing backup {destination}")
            record = BackupRecord(
                original_path=str(path), backup_path=str(destination), timestamp=timestamp
            )
            self._records[key] = record
            return record

        try:
            if not path.is_file():
                raise FileNotFoundError(f"No such file: {path}")
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, destination)
        except OSError as e:
            logger.warning(f"Could not back up {path}: {e}; continuing without a safety copy")
            record = BackupRecord(
                original_path=str(path),
                backup_path=str(destination),
                timestamp=timestamp,
                succeeded=False,
                error=str(e),
            )
        else:
            logger.debug(f"Backed up {path} -> {destination}")
            record = BackupRecord(
                original_path=str(path),
                backup_path=str(destination),
                timestamp=timestamp,
            )

        self._records[key] = record
        return record

    def backup_many(self, paths: list[Path]) -> list[BackupRecord]:
        """Back up several artifacts, skipping ones that are absent."""
        records = []
        for path in paths:
            if not path.exists():
                logger.debug(f"Skipping backup of missing artifact {path}")
                continue
            records.append(self.backup(path))
        return records

    def dump_database(self, dumper: "DatabaseDumper", database: str) -> Path | None:
        """
        Write a full database dump into the backup directory.

        Returns:
            Path of the dump file, or None when the dump failed
        """
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        target = self.backup_dir / self.DUMP_FILENAME
        if dumper.dump(database, target):
            return target
        return None

    @classmethod
    def list_backups(cls, backup_root: Path) -> list[Path]:
        """Return existing backup directories under ``backup_root``, newest first."""
        if not backup_root.is_dir():
            return []
        found = [
            entry
            for entry in backup_root.iterdir()
            if entry.is_dir() and entry.name.startswith(cls.DIR_PREFIX)
        ]
        # Timestamp suffix sorts lexicographically
        return sorted(found, key=lambda p: p.name, reverse=True)
