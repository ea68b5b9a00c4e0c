"""
Panel Protect - idempotent feature installer for Pterodactyl panels.

Installs the "Proteksi Menu" access restriction by patching the panel's
source in place: a schema migration, a middleware registration, a settings
section and, where needed, a dedicated endpoint. Every step is safe to
re-run.
"""

__version__ = "0.1.0"

__all__ = []
