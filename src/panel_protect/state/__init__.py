"""
Panel Protect State Module.

Persistent manifest of applied patches.
"""

__all__ = ["AppliedPatch", "Manifest", "ManifestStore"]

from panel_protect.state.manifest import AppliedPatch, Manifest, ManifestStore
