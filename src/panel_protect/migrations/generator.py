"""
Schema Migration Generator - idempotent add-column units.

Produces a ``MigrationUnit`` describing optional fields to add to a table,
and materializes it as a timestamp-named Laravel migration consumed by the
application's own ``artisan migrate``. Both directions are guarded:

- up: skip when the table is missing, add each field only if absent
- down: skip when the table is missing, drop each field only if present

The same guarded semantics are available in Python through
``MigrationUnit.up(schema)`` / ``down(schema)`` against a
``SchemaInspector``, which is what the tests and dry runs use.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)

_COLUMN_TYPES = {"boolean", "text", "string", "integer", "bigInteger", "json", "timestamp"}


@dataclass(frozen=True)
class FieldSpec:
    """One optional field to add to a table."""

    name: str
    type: str = "string"
    nullable: bool = True
    default: Any = None

    def __post_init__(self) -> None:
        if self.type not in _COLUMN_TYPES:
            raise ValueError(f"Unsupported column type {self.type!r} for field {self.name!r}")
        if not self.name.isidentifier():
            raise ValueError(f"Invalid field name: {self.name!r}")

    def blueprint(self) -> str:
        """Laravel Blueprint call creating this column."""
        call = f"$table->{self.type}('{self.name}')"
        if self.nullable:
            call += "->nullable()"
        if self.default is not None:
            call += f"->default({_php_literal(self.default)})"
        return call


def _php_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class SchemaInspector(ABC):
    """
    Minimal schema interface the migration unit needs.

    Mirrors Laravel's ``Schema::hasTable`` / ``Schema::hasColumn`` plus the
    two mutations a unit performs.
    """

    @abstractmethod
    def has_table(self, table: str) -> bool:
        """Return True if the table exists."""
        pass

    @abstractmethod
    def has_column(self, table: str, column: str) -> bool:
        """Return True if the table has the column."""
        pass

    @abstractmethod
    def add_column(self, table: str, field: FieldSpec) -> None:
        """Add a column described by ``field``."""
        pass

    @abstractmethod
    def drop_column(self, table: str, column: str) -> None:
        """Drop a column."""
        pass


class InMemorySchema(SchemaInspector):
    """Dictionary-backed schema; table name -> column name -> FieldSpec."""

    def __init__(self, tables: dict[str, list[str]] | None = None):
        self.tables: dict[str, dict[str, FieldSpec | None]] = {
            table: {column: None for column in columns}
            for table, columns in (tables or {}).items()
        }

    def has_table(self, table: str) -> bool:
        return table in self.tables

    def has_column(self, table: str, column: str) -> bool:
        return column in self.tables.get(table, {})

    def add_column(self, table: str, field: FieldSpec) -> None:
        if field.name in self.tables[table]:
            raise ValueError(f"Duplicate column {field.name!r} on {table!r}")
        self.tables[table][field.name] = field

    def drop_column(self, table: str, column: str) -> None:
        del self.tables[table][column]

    def columns(self, table: str) -> list[str]:
        return list(self.tables.get(table, {}))


@dataclass(frozen=True)
class MigrationUnit:
    """A versioned, idempotent schema change."""

    identifier: str
    name: str
    table: str
    fields: tuple[FieldSpec, ...]

    @property
    def filename(self) -> str:
        return f"{self.identifier}_{self.name}.php"

    @property
    def class_name(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))

    def up(self, schema: SchemaInspector) -> list[str]:
        """Add every field that is not present yet. Returns the added names."""
        if not schema.has_table(self.table):
            return []
        added = []
        for field in self.fields:
            if not schema.has_column(self.table, field.name):
                schema.add_column(self.table, field)
                added.append(field.name)
        return added

    def down(self, schema: SchemaInspector) -> list[str]:
        """Drop every field that is present. Returns the dropped names."""
        if not schema.has_table(self.table):
            return []
        dropped = []
        for field in self.fields:
            if schema.has_column(self.table, field.name):
                schema.drop_column(self.table, field.name)
                dropped.append(field.name)
        return dropped

    def render(self) -> str:
        """Render the unit as a Laravel migration class."""
        add_lines = []
        drop_lines = []
        for field in self.fields:
            add_lines.append(
                f"            if (!Schema::hasColumn('{self.table}', '{field.name}')) {{\n"
                f"                {field.blueprint()};\n"
                f"            }}"
            )
            drop_lines.append(
                f"            if (Schema::hasColumn('{self.table}', '{field.name}')) {{\n"
                f"                $table->dropColumn('{field.name}');\n"
                f"            }}"
            )

        return _MIGRATION_TEMPLATE.format(
            class_name=self.class_name,
            table=self.table,
            add_columns="\n".join(add_lines),
            drop_columns="\n".join(drop_lines),
        )


_MIGRATION_TEMPLATE = """<?php

use Illuminate\\Database\\Migrations\\Migration;
use Illuminate\\Database\\Schema\\Blueprint;
use Illuminate\\Support\\Facades\\Schema;

class {class_name} extends Migration
{{
    public function up()
    {{
        if (!Schema::hasTable('{table}')) {{
            return;
        }}

        Schema::table('{table}', function (Blueprint $table) {{
{add_columns}
        }});
    }}

    public function down()
    {{
        if (!Schema::hasTable('{table}')) {{
            return;
        }}

        Schema::table('{table}', function (Blueprint $table) {{
{drop_columns}
        }});
    }}
}}
"""


class SchemaMigrationGenerator:
    """
    Creates uniquely named migration units.

    Identifiers follow Laravel's ``YYYY_MM_DD_HHMMSS`` prefix and are
    strictly increasing within one generator, even when two units are
    generated in the same second.
    """

    IDENTIFIER_FORMAT = "%Y_%m_%d_%H%M%S"

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or datetime.now
        self._last: datetime | None = None

    def _next_timestamp(self) -> datetime:
        now = self._clock().replace(microsecond=0)
        if self._last is not None and now <= self._last:
            now = self._last + timedelta(seconds=1)
        self._last = now
        return now

    def generate(
        self,
        fields: list[FieldSpec],
        table: str = "settings",
        name: str = "add_menu_protection_settings",
    ) -> MigrationUnit:
        """Build a new unit adding ``fields`` to ``table``."""
        if not fields:
            raise ValueError("A migration unit needs at least one field")
        identifier = self._next_timestamp().strftime(self.IDENTIFIER_FORMAT)
        return MigrationUnit(identifier=identifier, name=name, table=table, fields=tuple(fields))

    @staticmethod
    def find_existing(directory: Path, name: str) -> Path | None:
        """Return an already materialized migration with this name, if any."""
        if not directory.is_dir():
            return None
        matches = sorted(directory.glob(f"*_{name}.php"))
        return matches[0] if matches else None

    def write(self, unit: MigrationUnit, directory: Path) -> Path:
        """Materialize ``unit`` in ``directory`` and return the file path."""
        target = directory / unit.filename
        target.write_text(unit.render(), encoding="utf-8")
        logger.debug(f"Wrote migration {target}")
        return target
