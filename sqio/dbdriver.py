"""Database driver names, aliases and small classification helpers."""

from __future__ import annotations

SQLITE = "sqlite"
SQLITE3 = "sqlite3"
DUCKDB = "duckdb"
POSTGRES = "postgres"
POSTGRESQL = "postgresql"
PGX = "pgx"
COCKROACH = "cockroach"
COCKROACHDB = "cockroachdb"
MYSQL = "mysql"
MARIADB = "mariadb"
TIDB = "tidb"
SQLSERVER = "sqlserver"
MSSQL = "mssql"
ORACLE = "oracle"
CLICKHOUSE = "clickhouse"
CH = "ch"

_ALIASES: dict[str, str] = {
    SQLITE: SQLITE,
    SQLITE3: SQLITE,
    DUCKDB: DUCKDB,
    POSTGRES: PGX,
    POSTGRESQL: PGX,
    PGX: PGX,
    COCKROACH: PGX,
    COCKROACHDB: PGX,
    MYSQL: MYSQL,
    MARIADB: MYSQL,
    TIDB: MYSQL,
    SQLSERVER: SQLSERVER,
    MSSQL: SQLSERVER,
    ORACLE: ORACLE,
    CLICKHOUSE: CLICKHOUSE,
    CH: CLICKHOUSE,
}


def normalize(driver: str) -> str | None:
    """Map a user-facing driver alias onto its canonical driver name, or None."""
    return _ALIASES.get(driver.lower())


def supported(driver: str) -> bool:
    """Report whether driver is an accepted driver name or alias."""
    return normalize(driver) is not None


def is_sqlite(driver: str) -> bool:
    return normalize(driver) == SQLITE


def is_postgres_family(driver: str) -> bool:
    return normalize(driver) == PGX


def is_mysql_family(driver: str) -> bool:
    return normalize(driver) == MYSQL


def is_sql_server(driver: str) -> bool:
    return normalize(driver) == SQLSERVER


def is_clickhouse(driver: str) -> bool:
    return normalize(driver) == CLICKHOUSE


def family_name(driver: str) -> str:
    """Return the user-facing family name used in diagnostics."""
    normalized = normalize(driver)
    if normalized is None:
        return driver.lower()
    if normalized == PGX:
        return POSTGRES
    return normalized


def default_port(driver: str) -> int:
    """Return the conventional TCP port for networked drivers, or 0."""
    if is_postgres_family(driver):
        return 5432
    if is_mysql_family(driver):
        return 3306
    if is_sql_server(driver):
        return 1433
    if driver.lower() == ORACLE:
        return 1521
    if is_clickhouse(driver):
        return 9000
    return 0