"""Comparison of two schema snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqio.metadata import Schema, Table


@dataclass(frozen=True)
class SchemaChange:
    """One schema difference."""

    type: str
    table: str
    name: str = ""
    detail: str = ""


@dataclass
class SchemaDiff:
    """All differences between two schemas."""

    changes: list[SchemaChange] = field(default_factory=list)


def _diff_columns(old: Table, new: Table) -> list[SchemaChange]:
    old_columns = {column.name: column for column in old.columns}
    new_columns = {column.name: column for column in new.columns}
    changes = [
        SchemaChange("drop_column", old.name, name)
        for name in old_columns
        if name not in new_columns
    ]
    for name, column in new_columns.items():
        previous = old_columns.get(name)
        if previous is None:
            changes.append(SchemaChange("add_column", new.name, name, column.type))
        elif (column.type, column.nullable, column.default) != (previous.type, previous.nullable, previous.default):
            changes.append(SchemaChange("change_column", new.name, name, f"{previous.type} -> {column.type}"))
    return changes


def _diff_indexes(old: Table, new: Table) -> list[SchemaChange]:
    old_indexes = {index.name: index for index in old.indexes}
    new_indexes = {index.name: index for index in new.indexes}
    changes = [
        SchemaChange("drop_index", old.name, name)
        for name in old_indexes
        if name not in new_indexes
    ]
    changes.extend(
        SchemaChange("add_index", new.name, name, "[" + " ".join(index.columns) + "]")
        for name, index in new_indexes.items()
        if name not in old_indexes
    )
    return changes


def diff_schemas(from_schema: Schema, to_schema: Schema) -> SchemaDiff:
    """Report table, column and index additions, removals and changes."""
    old_tables = {table.name: table for table in from_schema.tables}
    new_tables = {table.name: table for table in to_schema.tables}
    changes = [SchemaChange("drop_table", name) for name in old_tables if name not in new_tables]
    for name, table in new_tables.items():
        previous = old_tables.get(name)
        if previous is None:
            changes.append(SchemaChange("add_table", name))
            continue
        changes.extend(_diff_columns(previous, table))
        changes.extend(_diff_indexes(previous, table))
    return SchemaDiff(changes)