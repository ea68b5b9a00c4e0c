"""
Panel Protect Backup Module.

Pre-mutation copies of target artifacts and the optional database dump.
"""

__all__ = ["BackupStore"]

from panel_protect.backup.store import BackupStore
