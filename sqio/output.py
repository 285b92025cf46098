"""Serialization of query results into CLI-friendly formats."""

from __future__ import annotations

import base64
import csv
import datetime
import json
from dataclasses import dataclass, field
from typing import IO, Any, Callable, Sequence

import yaml


class UnsupportedFormatError(ValueError):
    """The requested output format is not known."""

    def __init__(self, format: str) -> None:
        super().__init__(f"unsupported format: {format}")
        self.format = format


class OutputLimitExceeded(OSError):
    """Output grew beyond the configured size limit."""

    def __init__(self) -> None:
        super().__init__("output exceeded max bytes")


@dataclass
class Result:
    """A database execution payload; columns are empty for non-row statements."""

    columns: list[str] = field(default_factory=list)
    rows: list[list[Any]] = field(default_factory=list)
    row_count: int = 0
    elapsed_ms: int = 0


class LimitWriter:
    """Wraps a stream and fails once more than limit units have been written.

    A non-positive limit disables the guard.
    """

    def __init__(self, stream: IO, limit: int = 0) -> None:
        self.stream = stream
        self.limit = limit
        self._written = 0

    def write(self, data):
        if self.limit <= 0:
            return self.stream.write(data)
        remaining = self.limit - self._written
        if remaining <= 0:
            raise OutputLimitExceeded()
        chunk = data[:remaining]
        count = self.stream.write(chunk)
        self._written += len(chunk) if count is None else count
        if len(data) > remaining:
            raise OutputLimitExceeded()
        return count


def _cell_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "[" + " ".join(str(b) for b in bytes(value)) + "]"
    return str(value)


def _markdown_cell(value: Any) -> str:
    text = _cell_string(value).replace("\\", "\\\\").replace("|", "\\|")
    return text.replace("\r\n", "<br>").replace("\n", "<br>").replace("\r", "<br>")


def _markdown_row(values: Sequence[str]) -> str:
    return "| " + " | ".join(values) + " |\n"


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    return str(value)


def _json_indented(value: Any, prefix: str = "") -> str:
    text = json.dumps(value, indent=2, ensure_ascii=False, default=_json_default)
    return text.replace("\n", "\n" + prefix)


def _json_line(columns: Sequence[str], row: Sequence[Any]) -> str:
    obj = dict(zip(columns, row))
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False, default=_json_default) + "\n"


def _yaml_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str, bytes, datetime.date)):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    return str(value)


def _yaml_document(result: Result) -> str:
    data = {
        "columns": list(result.columns),
        "rows": [[_yaml_value(v) for v in row] for row in result.rows],
        "row_count": result.row_count,
        "elapsed_ms": result.elapsed_ms,
    }
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)


def _summary(result: Result) -> str:
    return f"OK ({result.row_count} rows, {result.elapsed_ms} ms)\n"


class StreamWriter:
    """Renders rows incrementally instead of holding the full result set."""

    def __init__(
        self,
        stream: IO,
        format: str,
        columns: Sequence[str],
        elapsed_ms: Callable[[], int] | None = None,
    ) -> None:
        self._stream = stream
        self._format = format.lower()
        self._columns = list(columns)
        self._elapsed_ms = elapsed_ms
        self._rows: list[list[Any]] = []
        self._count = 0
        self._csv = None
        fmt = self._format
        if fmt in ("", "table"):
            stream.write("\t".join(self._columns) + "\n")
        elif fmt == "json":
            header = _json_indented(self._columns, "  ")
            stream.write(f'{{\n  "columns": {header},\n  "rows": [')
        elif fmt == "jsonl":
            pass
        elif fmt in ("csv", "tsv"):
            self._csv = csv.writer(stream, delimiter="\t" if fmt == "tsv" else ",", lineterminator="\n")
            self._csv.writerow(self._columns)
        elif fmt == "markdown":
            stream.write(_markdown_row(self._columns))
            stream.write(_markdown_row(["---"] * len(self._columns)))
        elif fmt != "yaml":
            raise UnsupportedFormatError(format)

    def write_row(self, row: Sequence[Any]) -> None:
        """Write one result row."""
        fmt = self._format
        if fmt in ("", "table"):
            self._stream.write("\t".join(_cell_string(v) for v in row) + "\n")
        elif fmt == "json":
            if self._count > 0:
                self._stream.write(",")
            self._stream.write("\n    " + _json_indented(list(row), "    "))
        elif fmt == "jsonl":
            self._stream.write(_json_line(self._columns, row))
        elif fmt in ("csv", "tsv"):
            self._csv.writerow([_cell_string(v) for v in row])
        elif fmt == "markdown":
            self._stream.write(_markdown_row([_markdown_cell(v) for v in row]))
        elif fmt == "yaml":
            self._rows.append(list(row))
        self._count += 1

    def row_count(self) -> int:
        """Return how many rows have been written so far."""
        return self._count

    def close(self) -> Result:
        """Finish the output and return the result summary."""
        elapsed = self._elapsed_ms() if self._elapsed_ms is not None else 0
        result = Result(columns=self._columns, row_count=self._count, elapsed_ms=elapsed)
        if self._format == "json":
            self._stream.write(
                f'\n  ],\n  "row_count": {result.row_count},\n  "elapsed_ms": {result.elapsed_ms}\n}}\n'
            )
        elif self._format == "yaml":
            result.rows = self._rows
            self._stream.write(_yaml_document(result))
        return result


def _result_dict(result: Result) -> dict[str, Any]:
    return {
        "columns": list(result.columns),
        "rows": [list(row) for row in result.rows],
        "row_count": result.row_count,
        "elapsed_ms": result.elapsed_ms,
    }


def write_result(stream: IO, format: str, result: Result) -> None:
    """Render result to stream; an empty format means "table"."""
    fmt = format.lower()
    if fmt in ("", "table"):
        if not result.columns:
            stream.write(_summary(result))
            return
        stream.write("\t".join(result.columns) + "\n")
        for row in result.rows:
            stream.write("\t".join(_cell_string(v) for v in row) + "\n")
    elif fmt == "json":
        stream.write(_json_indented(_result_dict(result)) + "\n")
    elif fmt == "yaml":
        stream.write(_yaml_document(result))
    elif fmt == "markdown":
        if not result.columns:
            stream.write(_summary(result))
            return
        stream.write(_markdown_row(result.columns))
        stream.write(_markdown_row(["---"] * len(result.columns)))
        for row in result.rows:
            stream.write(_markdown_row([_markdown_cell(v) for v in row]))
    elif fmt == "jsonl":
        for row in result.rows:
            stream.write(_json_line(result.columns, row))
    elif fmt in ("csv", "tsv"):
        writer = csv.writer(stream, delimiter="\t" if fmt == "tsv" else ",", lineterminator="\n")
        writer.writerow(result.columns)
        writer.writerows([_cell_string(v) for v in row] for row in result.rows)
    else:
        raise UnsupportedFormatError(format)