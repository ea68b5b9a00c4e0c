"""
Panel Protect Patching Module.

Idempotent, anchor-based insertion into existing source artifacts.
"""

__all__ = [
    "ArtifactPatch",
    "FilePatcher",
    "RegistryPatcher",
    "TemplatePatcher",
    "already_applied",
    "insert",
]

from panel_protect.patching.anchor import insert
from panel_protect.patching.base import ArtifactPatch, FilePatcher
from panel_protect.patching.detector import already_applied
from panel_protect.patching.registry import RegistryPatcher
from panel_protect.patching.template import TemplatePatcher
