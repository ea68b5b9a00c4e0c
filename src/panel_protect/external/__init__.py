"""
Panel Protect External Module.

Process-level collaborators: migration runner, caches, database dump,
permissions and services.
"""

__all__ = [
    "ArtisanRunner",
    "Collaborators",
    "CommandResult",
    "CommandRunner",
    "DatabaseDumper",
    "PermissionFixer",
    "PrivilegeChecker",
    "ServiceManager",
]

from panel_protect.external.runner import CommandResult, CommandRunner
from panel_protect.external.services import (
    ArtisanRunner,
    Collaborators,
    DatabaseDumper,
    PermissionFixer,
    PrivilegeChecker,
    ServiceManager,
)
