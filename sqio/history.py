"""Persistent history of executed SQL statements in a local SQLite database."""

from __future__ import annotations

import dataclasses
import datetime
import os
import re
import sqlite3
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

_COLUMNS = "id, sql, connection, elapsed_ms, executed_at, tags, favorite, success, error, row_count, driver"

_CREATE_TABLE = """create table if not exists history (
id integer primary key autoincrement,
sql text not null,
connection text not null,
elapsed_ms integer not null,
executed_at text not null,
tags text not null default '',
favorite integer not null default 0
)"""

_ADDED_COLUMNS = {
    "success": "alter table history add column success integer not null default 1",
    "error": "alter table history add column error text not null default ''",
    "row_count": "alter table history add column row_count integer not null default 0",
    "driver": "alter table history add column driver text not null default ''",
}

_TIMESTAMP = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$")


class HistoryNotFoundError(LookupError):
    """The requested history entry does not exist."""


@dataclass
class Entry:
    """One executed SQL statement persisted in history."""

    id: int = 0
    sql: str = ""
    connection: str = ""
    elapsed_ms: int = 0
    executed_at: datetime.datetime | None = None
    tags: str = ""
    favorite: bool = False
    success: bool = False
    error: str = ""
    row_count: int = 0
    driver: str = ""


@dataclass
class ListOptions:
    """Filters applied to history entries listed newest first."""

    limit: int = 0
    search: str = ""
    connection: str = ""
    favorite: bool = False
    tags: str = ""


def default_path() -> str:
    """Return the conventional per-user history database path."""
    try:
        home = Path.home()
    except (RuntimeError, KeyError):
        return os.path.join(tempfile.gettempdir(), "sqio", "history.db")
    return str(home / ".local" / "share" / "sqio" / "history.db")


def _format_time(moment: datetime.datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=datetime.timezone.utc)
    offset = moment.utcoffset() or datetime.timedelta(0)
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")
    fraction = f"{moment.microsecond:06d}".rstrip("0")
    if fraction:
        text += "." + fraction
    if not offset:
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}:{mins:02d}"


def _parse_time(text: str) -> datetime.datetime | None:
    match = _TIMESTAMP.match(text or "")
    if not match:
        return None
    base, fraction, zone = match.groups()
    micro = (fraction or "")[:6].ljust(6, "0")
    zone = "+00:00" if zone == "Z" else zone
    try:
        return datetime.datetime.fromisoformat(f"{base}.{micro}{zone}")
    except ValueError:
        return None


def _row_to_entry(row: tuple) -> Entry:
    return Entry(
        id=row[0],
        sql=row[1],
        connection=row[2],
        elapsed_ms=row[3],
        executed_at=_parse_time(row[4]),
        tags=row[5],
        favorite=bool(row[6]),
        success=bool(row[7]),
        error=row[8],
        row_count=row[9],
        driver=row[10],
    )


def _where(options: ListOptions) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    args: list[Any] = []
    if options.search:
        clauses.append("sql like ?")
        args.append(f"%{options.search}%")
    if options.connection:
        clauses.append("connection = ?")
        args.append(options.connection)
    if options.favorite:
        clauses.append("favorite = 1")
    if options.tags:
        clauses.append("tags like ?")
        args.append(f"%{options.tags}%")
    if not clauses:
        return "", args
    return " where " + " and ".join(clauses), args


class HistoryStore:
    """A SQLite-backed history database at a specific path."""

    def __init__(self, path: str | None = None) -> None:
        self.path = path or os.environ.get("SQIO_HISTORY_PATH") or default_path()

    @contextmanager
    def _open(self) -> Iterator[sqlite3.Connection]:
        Path(self.path).parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path)
        try:
            conn.execute(_CREATE_TABLE)
            existing = {row[1] for row in conn.execute("pragma table_info(history)")}
            for name, statement in _ADDED_COLUMNS.items():
                if name not in existing:
                    conn.execute(statement)
            conn.commit()
            yield conn
            conn.commit()
        finally:
            conn.close()

    def append(self, entry: Entry) -> None:
        """Insert entry, stamping the current UTC time when none is set."""
        entry = dataclasses.replace(entry)
        if entry.executed_at is None:
            entry.executed_at = datetime.datetime.now(datetime.timezone.utc)
        if not entry.success and not entry.error:
            entry.success = True
        with self._open() as conn:
            conn.execute(
                "insert into history (sql, connection, elapsed_ms, executed_at, tags, favorite, "
                "success, error, row_count, driver) values (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.sql,
                    entry.connection,
                    entry.elapsed_ms,
                    _format_time(entry.executed_at),
                    entry.tags,
                    int(entry.favorite),
                    int(entry.success),
                    entry.error,
                    entry.row_count,
                    entry.driver,
                ),
            )

    def list(self, limit: int = 0) -> list[Entry]:
        """Return recent entries newest first; a non-positive limit means 100."""
        return self.list_with_options(ListOptions(limit=limit))

    def list_with_options(self, options: ListOptions | None = None) -> list[Entry]:
        """Return recent entries matching options, newest first."""
        options = options or ListOptions()
        limit = options.limit if options.limit > 0 else 100
        where, args = _where(options)
        with self._open() as conn:
            rows = conn.execute(
                f"select {_COLUMNS} from history{where} order by id desc limit ?",
                (*args, limit),
            ).fetchall()
        return [_row_to_entry(row) for row in rows]

    def get(self, entry_id: int) -> Entry:
        """Return one entry by id."""
        with self._open() as conn:
            row = conn.execute(f"select {_COLUMNS} from history where id = ?", (entry_id,)).fetchone()
        if row is None:
            raise HistoryNotFoundError(f"history entry not found: {entry_id}")
        return _row_to_entry(row)

    def set_favorite(self, entry_id: int, favorite: bool) -> None:
        """Update the favorite flag of one entry."""
        self._update("update history set favorite = ? where id = ?", int(favorite), entry_id)

    def set_tags(self, entry_id: int, tags: str) -> None:
        """Update the free-form tag string of one entry."""
        self._update("update history set tags = ? where id = ?", tags, entry_id)

    def _update(self, statement: str, *args: Any) -> None:
        with self._open() as conn:
            cursor = conn.execute(statement, args)
            if cursor.rowcount == 0:
                raise HistoryNotFoundError("history entry not found")