"""SQL safety, style and dialect checks."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqio import dbdriver
from sqio.query import (
    analysis_text,
    commentless_text,
    has_token,
    has_token_sequence,
    statements_with_line,
    tokens,
)

_IGNORE_PREFIX = "-- sqio:ignore "
_CASE_KEYWORDS = ("select", "from", "where", "insert", "update", "delete", "join", "returning", "limit")
_SEVERITY_RANK = {"error": 3, "warning": 2, "info": 1}


@dataclass(frozen=True)
class Issue:
    """One lint finding."""

    line: int
    rule: str
    severity: str
    message: str


@dataclass
class LintResult:
    """The complete lint response for one SQL input."""

    issues: list[Issue] = field(default_factory=list)


@dataclass
class LintOptions:
    """Which rules are enabled, disabled, or filtered out by severity."""

    dialect: str = ""
    level: str = "warning"
    enable: list[str] = field(default_factory=list)
    disable: list[str] = field(default_factory=list)


def _severity_rank(severity: str) -> int:
    return _SEVERITY_RANK.get(severity.lower(), 2)


def _has_implicit_join(line: str) -> bool:
    from_idx = 0 if line.startswith("from ") else line.find(" from ")
    if from_idx < 0:
        return False
    tail = line[from_idx:]
    where_idx = tail.find(" where ")
    if where_idx >= 0:
        tail = tail[:where_idx]
    return "," in tail


def _has_cartesian_join(line: str) -> bool:
    return " join " in line and " on " not in line and " using " not in line


def _has_not_in_null(text: str) -> bool:
    if " not in " not in text:
        return False
    return any(marker in text for marker in ("(null", ", null", " null,", " null)"))


def _has_limit_without_order(text: str) -> bool:
    return " limit " in text and " order by " not in text


def _has_mysql_limit_offset(text: str) -> bool:
    idx = text.rfind(" limit ")
    if idx < 0:
        return False
    tail = text[idx + len(" limit "):]
    space = tail.find(" ")
    if space >= 0:
        tail = tail[:space]
    return "," in tail


def _has_lowercase_keyword(line: str) -> bool:
    return any(keyword in line for keyword in _CASE_KEYWORDS)


def _postgres_issues(normalized: str, commentless: str, line: int) -> list[Issue]:
    issues = []
    if "`" in commentless:
        issues.append(Issue(line, "postgres-backtick-identifier", "error",
                            "PostgreSQL uses double quotes for identifiers, not backticks"))
    if _has_mysql_limit_offset(normalized):
        issues.append(Issue(line, "postgres-limit-offset", "error",
                            "PostgreSQL uses LIMIT n OFFSET m instead of LIMIT m,n"))
    return issues


def _mysql_issues(normalized: str, line: int) -> list[Issue]:
    issues = []
    if " ilike " in normalized:
        issues.append(Issue(line, "mysql-ilike", "error", "MySQL does not support ILIKE"))
    if " returning " in normalized:
        issues.append(Issue(line, "mysql-returning", "warning",
                            "RETURNING support is not portable across MySQL versions"))
    return issues


def _sqlite_issues(normalized: str, line: int) -> list[Issue]:
    issues = []
    if " for update" in normalized:
        issues.append(Issue(line, "sqlite-for-update", "error", "SQLite does not support FOR UPDATE"))
    if " ilike " in normalized:
        issues.append(Issue(line, "sqlite-ilike", "error", "SQLite does not support ILIKE"))
    return issues


def _sqlserver_issues(normalized: str, commentless: str, toks: list[str], line: int) -> list[Issue]:
    issues = []
    if "`" in commentless:
        issues.append(Issue(line, "sqlserver-backtick-identifier", "error",
                            "SQL Server uses brackets or double quotes for identifiers, not backticks"))
    if has_token(toks, "limit"):
        issues.append(Issue(line, "sqlserver-limit", "error",
                            "SQL Server uses TOP or OFFSET/FETCH instead of LIMIT"))
    if " ilike " in normalized:
        issues.append(Issue(line, "sqlserver-ilike", "error", "SQL Server does not support ILIKE"))
    if " returning " in normalized:
        issues.append(Issue(line, "sqlserver-returning", "error",
                            "SQL Server uses OUTPUT instead of RETURNING"))
    return issues


def _oracle_issues(normalized: str, commentless: str, toks: list[str], line: int) -> list[Issue]:
    issues = []
    if "`" in commentless:
        issues.append(Issue(line, "oracle-backtick-identifier", "error",
                            "Oracle uses double quotes for identifiers, not backticks"))
    if has_token(toks, "limit"):
        issues.append(Issue(line, "oracle-limit", "error",
                            "Oracle uses FETCH FIRST or ROWNUM instead of LIMIT"))
    if " ilike " in normalized:
        issues.append(Issue(line, "oracle-ilike", "error", "Oracle does not support ILIKE"))
    return issues


def _duckdb_issues(normalized: str, toks: list[str], line: int) -> list[Issue]:
    issues = []
    if " for update" in normalized:
        issues.append(Issue(line, "duckdb-for-update", "error", "DuckDB does not support FOR UPDATE"))
    if toks and toks[0] == "show" and has_token(toks, "tables"):
        issues.append(Issue(line, "duckdb-show-tables", "warning",
                            "Prefer information_schema or duckdb_tables() for portable DuckDB table metadata"))
    return issues


def _clickhouse_issues(normalized: str, toks: list[str], line: int) -> list[Issue]:
    issues = []
    if has_token(toks, "returning"):
        issues.append(Issue(line, "clickhouse-returning", "error", "ClickHouse does not support RETURNING"))
    if " for update" in normalized:
        issues.append(Issue(line, "clickhouse-for-update", "error", "ClickHouse does not support FOR UPDATE"))
    if toks and toks[0] in ("update", "delete"):
        issues.append(Issue(line, "clickhouse-mutation", "warning",
                            "ClickHouse mutations use ALTER TABLE ... UPDATE/DELETE"))
    return issues


def _dialect_issues(dialect: str, normalized: str, commentless: str, toks: list[str], line: int) -> list[Issue]:
    if dbdriver.is_postgres_family(dialect):
        return _postgres_issues(normalized, commentless, line)
    if dbdriver.is_mysql_family(dialect):
        return _mysql_issues(normalized, line)
    if dbdriver.is_sqlite(dialect):
        return _sqlite_issues(normalized, line)
    if dbdriver.is_sql_server(dialect):
        return _sqlserver_issues(normalized, commentless, toks, line)
    if dialect.lower() == dbdriver.ORACLE:
        return _oracle_issues(normalized, commentless, toks, line)
    if dialect.lower() == dbdriver.DUCKDB:
        return _duckdb_issues(normalized, toks, line)
    if dbdriver.is_clickhouse(dialect):
        return _clickhouse_issues(normalized, toks, line)
    return []


def lint(sql: str, options: LintOptions | None = None) -> LintResult:
    """Analyze SQL and return style, safety and performance findings.

    Comments and string literals are ignored by checks that only concern
    executable SQL.
    """
    options = options or LintOptions()
    disabled = set(options.disable)
    enabled = set(options.enable)
    ignored: set[str] = set()
    minimum = _severity_rank(options.level)
    issues: list[Issue] = []

    def add(issue: Issue) -> None:
        if issue.rule in ignored or issue.rule in disabled:
            return
        if _severity_rank(issue.severity) < minimum:
            return
        issues.append(issue)

    analysis_lines = analysis_text(sql).split("\n")
    for number, (raw, analysis_line) in enumerate(zip(sql.split("\n"), analysis_lines), start=1):
        raw_normalized = raw.strip().lower()
        if raw_normalized.startswith(_IGNORE_PREFIX):
            ignored.add(raw_normalized[len(_IGNORE_PREFIX):].strip())
            continue
        normalized = analysis_line.strip().lower()
        if "select *" in normalized:
            add(Issue(number, "select-star", "warning", "avoid SELECT *"))
        if normalized.count(" or ") >= 3:
            add(Issue(number, "or-abuse", "warning", "many OR conditions can be hard to optimize"))
        if _has_implicit_join(normalized):
            add(Issue(number, "implicit-join", "warning", "avoid comma-style implicit joins"))
        if _has_cartesian_join(normalized):
            add(Issue(number, "cartesian-join", "error", "JOIN without ON/USING may create a cartesian product"))
        if ("keyword-case" in enabled or options.dialect) and _has_lowercase_keyword(analysis_line):
            add(Issue(number, "keyword-case", "info", "SQL keywords should use configured case"))

    for statement in statements_with_line(sql):
        toks = tokens(statement.sql)
        line = statement.line
        normalized = " ".join(analysis_text(statement.sql).split()).lower()
        commentless = " ".join(commentless_text(statement.sql).split()).lower()
        if has_token_sequence(toks, "delete", "from") and not has_token(toks, "where"):
            add(Issue(line, "delete-without-where", "error", "DELETE without WHERE"))
        if toks and toks[0] == "update" and not has_token(toks, "where"):
            add(Issue(line, "update-without-where", "error", "UPDATE without WHERE"))
        if toks and toks[0] == "truncate":
            add(Issue(line, "truncate", "error", "TRUNCATE is dangerous"))
        if has_token_sequence(toks, "drop", "database"):
            add(Issue(line, "drop-database", "error", "DROP DATABASE is dangerous"))
        if _has_not_in_null(normalized):
            add(Issue(line, "not-in-null", "error", "NOT IN with NULL never matches as expected"))
        if _has_limit_without_order(normalized):
            add(Issue(line, "limit-without-order", "warning", "LIMIT without ORDER BY is nondeterministic"))
        if " like '%" in commentless:
            add(Issue(line, "leading-wildcard-like", "warning", "leading wildcard LIKE can prevent index use"))
        for issue in _dialect_issues(options.dialect, normalized, commentless, toks, line):
            add(issue)

    return LintResult(issues)