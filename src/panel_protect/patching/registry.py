"""
Registry Patcher - add entries to route tables and hook lists.

Two registries with opposite anchor semantics:

- Hook list (middleware aliases): the entry goes right after the list's
  opening bracket, first occurrence.
- Route table: the entry goes right before the table's closing marker,
  last occurrence.

Each entry carries its own marker (the hook key or the route name) so a
second registration is a no-op.
"""

from pathlib import Path

from panel_protect.core.models import Anchor, AnchorPosition, InsertSide, PatchResult
from panel_protect.patching.base import ArtifactPatch, FilePatcher

# Pterodactyl 1.x names the array $routeMiddleware, newer Laravel $middlewareAliases
HOOK_LIST_OPENING = Anchor(
    pattern=r"protected \$(routeMiddleware|middlewareAliases)\s*=\s*\[",
    position=AnchorPosition.FIRST,
    side=InsertSide.AFTER,
    regex=True,
)

ROUTE_TABLE_CLOSING = Anchor(
    pattern=r"^\s*\}\);\s*$",
    position=AnchorPosition.LAST,
    side=InsertSide.BEFORE,
    regex=True,
)


class RegistryPatcher:
    """Registers entries in structured registries through anchor insertion."""

    def __init__(self, file_patcher: FilePatcher | None = None):
        self._file_patcher = file_patcher or FilePatcher()

    def register(
        self,
        registry_artifact: Path,
        entry: str,
        anchor: Anchor,
        marker: str,
        name: str = "registry entry",
    ) -> PatchResult:
        """
        Insert ``entry`` into a registry unless ``marker`` is already present.

        Raises:
            ArtifactMissingError: If the registry file does not exist
        """
        patch = ArtifactPatch(name=name, marker=marker, anchor=anchor, block=entry)
        return self._file_patcher.apply_patch(registry_artifact, patch)

    def register_hook(self, hook_list: Path, entry: str, key: str) -> PatchResult:
        """Register a request-handling hook keyed by ``key``."""
        return self.register(
            hook_list, entry, HOOK_LIST_OPENING, marker=key, name=f"hook {key}"
        )

    def register_route(self, route_table: Path, entry: str, route_name: str) -> PatchResult:
        """Register a route named ``route_name``."""
        return self.register(
            route_table, entry, ROUTE_TABLE_CLOSING, marker=route_name, name=f"route {route_name}"
        )
