"""
Panel Protect Migrations Module.

Generates idempotent schema migration units for the target application.
"""

__all__ = [
    "FieldSpec",
    "InMemorySchema",
    "MigrationUnit",
    "SchemaInspector",
    "SchemaMigrationGenerator",
]

from panel_protect.migrations.generator import (
    FieldSpec,
    InMemorySchema,
    MigrationUnit,
    SchemaInspector,
    SchemaMigrationGenerator,
)
