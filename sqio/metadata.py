"""Schema metadata served from an in-memory schema, with SQL completion."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_SQL_KEYWORDS = (
    "SELECT", "FROM", "WHERE", "JOIN", "LEFT JOIN", "INNER JOIN", "GROUP BY",
    "ORDER BY", "LIMIT", "INSERT", "UPDATE", "DELETE", "CREATE TABLE",
    "ALTER TABLE", "DROP TABLE", "EXPLAIN",
)

_TOKEN_SEPARATORS = re.compile(r"[ \t\n\r,()]+")


class TableNotFoundError(LookupError):
    """The requested table is not part of the schema."""

    def __init__(self, table: str) -> None:
        super().__init__(f"table not found: {table}")
        self.table = table


@dataclass
class Column:
    """One table column and its common relational constraints."""

    name: str
    type: str = ""
    nullable: bool = False
    primary: bool = False
    unique: bool = False
    default: str = ""
    references: str = ""


@dataclass
class Index:
    """One table index."""

    name: str
    columns: list[str] = field(default_factory=list)
    unique: bool = False
    primary: bool = False


@dataclass
class Table:
    """One table or view."""

    name: str
    columns: list[Column] = field(default_factory=list)
    indexes: list[Index] = field(default_factory=list)
    ddl: str = ""
    schema: str = ""


@dataclass
class Schema:
    """Database metadata: an optional schema name and its tables."""

    name: str = ""
    tables: list[Table] = field(default_factory=list)


@dataclass(frozen=True)
class Completion:
    """One SQL completion candidate."""

    value: str
    kind: str
    table: str = ""


def _completion_token(prefix: str) -> str:
    fields = [part for part in _TOKEN_SEPARATORS.split(prefix) if part]
    return fields[-1] if fields else ""


def _completion_matches(value: str, token_lower: str) -> bool:
    return not token_lower or value.lower().startswith(token_lower)


class MetadataService:
    """Serves table, column, index and DDL metadata for a schema."""

    def __init__(self, schema: Schema) -> None:
        self._schema = schema

    @classmethod
    def default(cls) -> MetadataService:
        """Return a service over the built-in sample schema."""
        return cls(
            Schema(
                tables=[
                    Table(
                        name="users",
                        columns=[
                            Column("id", "integer", primary=True),
                            Column("name", "text"),
                            Column("email", "text", nullable=True),
                        ],
                        indexes=[Index("users_pkey", ["id"], unique=True, primary=True)],
                        ddl="CREATE TABLE users (id integer primary key, name text not null, email text);",
                    ),
                    Table(
                        name="posts",
                        columns=[
                            Column("id", "integer", primary=True),
                            Column("user_id", "integer"),
                            Column("title", "text"),
                        ],
                        indexes=[Index("posts_pkey", ["id"], unique=True, primary=True)],
                        ddl="CREATE TABLE posts (id integer primary key, user_id integer not null, title text not null);",
                    ),
                ]
            )
        )

    def _find(self, table_name: str) -> Table:
        for table in self._schema.tables:
            if table.name == table_name:
                return table
        raise TableNotFoundError(table_name)

    def schema(self) -> Schema:
        """Return the complete schema."""
        return self._schema

    def tables(self) -> list[Table]:
        """Return all known tables."""
        return list(self._schema.tables)

    def columns(self, table_name: str) -> list[Column]:
        """Return the columns of table_name."""
        return self._find(table_name).columns

    def ddl(self, table_name: str) -> str:
        """Return the CREATE TABLE statement of table_name."""
        return self._find(table_name).ddl

    def indexes(self, table_name: str) -> list[Index]:
        """Return the indexes of table_name."""
        return self._find(table_name).indexes

    def schemas(self) -> list[str]:
        """Return the schema names; an unnamed schema is called "default"."""
        return [self._schema.name or "default"]

    def mermaid_er(self) -> str:
        """Render the schema as a Mermaid ER diagram."""
        parts = ["erDiagram\n"]
        for table in self._schema.tables:
            parts.append(f"  {table.name} {{\n")
            for column in table.columns:
                suffix = " PK" if column.primary else ""
                parts.append(f"    {column.type} {column.name}{suffix}\n")
            parts.append("  }\n")
        return "".join(parts)

    def complete(self, prefix: str, table_name: str = "") -> list[Completion]:
        """Return keyword, table and column candidates for the last word of prefix."""
        token_lower = _completion_token(prefix).lower()
        candidates = [
            Completion(keyword, "keyword")
            for keyword in _SQL_KEYWORDS
            if _completion_matches(keyword, token_lower)
        ]
        for table in self._schema.tables:
            if not table_name and _completion_matches(table.name, token_lower):
                candidates.append(Completion(table.name, "table"))
            if table_name and table.name != table_name:
                continue
            candidates.extend(
                Completion(column.name, "column", table.name)
                for column in table.columns
                if _completion_matches(column.name, token_lower)
            )
        return sorted(candidates, key=lambda c: (c.kind, c.table, c.value))