"""Detection of destructive and mutating SQL statements."""

from __future__ import annotations

from dataclasses import dataclass

from sqio.query import has_token, has_token_sequence, statements, tokens

_READ_PREFIXES = frozenset({"select", "with", "show", "describe", "explain", "pragma"})


@dataclass(frozen=True)
class Danger:
    """A SQL pattern unsafe enough to block in guarded execution modes."""

    kind: str
    message: str


def dangerous(sql: str) -> Danger | None:
    """Return the first destructive statement found in sql, or None."""
    for statement in statements(sql):
        toks = tokens(statement)
        if not toks:
            continue
        if toks[0] == "truncate":
            return Danger("truncate", "TRUNCATE is dangerous")
        if has_token_sequence(toks, "drop", "database"):
            return Danger("drop_database", "DROP DATABASE is dangerous")
        if has_token_sequence(toks, "delete", "from") and not has_token(toks, "where"):
            return Danger("delete_without_where", "DELETE without WHERE is dangerous")
        if toks[0] == "update" and not has_token(toks, "where"):
            return Danger("update_without_where", "UPDATE without WHERE is dangerous")
    return None


def mutating(sql: str) -> bool:
    """Report whether any statement may change database state."""
    for statement in statements(sql):
        toks = tokens(statement)
        if toks and toks[0] not in _READ_PREFIXES:
            return True
    return False