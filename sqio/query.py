"""Reading, splitting, scrubbing and tokenizing SQL input."""

from __future__ import annotations

import os
import stat
import sys
from dataclasses import dataclass
from enum import Enum, auto
from itertools import groupby
from pathlib import Path
from typing import IO, Iterable


class MultipleInputsError(ValueError):
    """SQL was supplied through more than one source at once."""

    def __init__(self) -> None:
        super().__init__("specify only one of --sql, --file, or stdin")


@dataclass
class Source:
    """The mutually exclusive places SQL can be read from."""

    sql: str = ""
    file: str = ""
    stream: IO | None = None


@dataclass(frozen=True)
class Statement:
    """One SQL statement and the one-based line where it starts."""

    sql: str
    line: int


def _stdin_has_data() -> bool:
    try:
        mode = os.fstat(sys.stdin.fileno()).st_mode
    except (OSError, ValueError, AttributeError):
        return False
    return not stat.S_ISCHR(mode)


def _has_input(stream: IO | None) -> bool:
    if stream is None:
        return False
    if stream is not sys.stdin:
        return True
    return _stdin_has_data()


def read(source: Source) -> str:
    """Load SQL from source, rejecting ambiguous input combinations."""
    has_stream = _has_input(source.stream)
    if sum((bool(source.sql), bool(source.file), has_stream)) > 1:
        raise MultipleInputsError()
    if source.sql:
        return source.sql
    if source.file:
        return Path(source.file).read_bytes().decode("utf-8", errors="replace")
    if has_stream:
        data = source.stream.read()
        if isinstance(data, bytes):
            return data.decode("utf-8", errors="replace")
        return data
    return ""


class _State(Enum):
    NORMAL = auto()
    SINGLE_QUOTE = auto()
    DOUBLE_QUOTE = auto()
    BACKTICK = auto()
    LINE_COMMENT = auto()
    BLOCK_COMMENT = auto()


_OPENERS = {"'": _State.SINGLE_QUOTE, '"': _State.DOUBLE_QUOTE, "`": _State.BACKTICK}
_DOUBLING_QUOTES = {_State.SINGLE_QUOTE: "'", _State.DOUBLE_QUOTE: '"'}
# Scrubbed characters become spaces, except newlines which keep line structure.
_KEEP_NEWLINE = {"\n": "\n"}


def statements(sql: str) -> list[str]:
    """Split SQL into executable statements without line metadata."""
    return [statement.sql for statement in statements_with_line(sql)]


def _leading_newlines(text: str) -> int:
    count = 0
    for ch in text:
        if ch == "\n":
            count += 1
        elif ch not in " \t\r":
            break
    return count


def _append_statement(result: list[Statement], raw: str, start_line: int) -> None:
    text = raw.strip()
    if text:
        result.append(Statement(text, start_line + _leading_newlines(raw)))


def statements_with_line(sql: str) -> list[Statement]:
    """Split SQL on semicolons outside quotes and comments, keeping start lines."""
    result: list[Statement] = []
    start = 0
    start_line = 1
    line = 1
    state = _State.NORMAL
    size = len(sql)
    i = 0
    while i < size:
        ch = sql[i]
        nxt = sql[i + 1] if i + 1 < size else ""
        if ch == "\n":
            line += 1
        if state is _State.NORMAL:
            if ch in _OPENERS:
                state = _OPENERS[ch]
            elif ch == "-" and nxt == "-":
                state = _State.LINE_COMMENT
                i += 1
            elif ch == "/" and nxt == "*":
                state = _State.BLOCK_COMMENT
                i += 1
            elif ch == ";":
                _append_statement(result, sql[start:i], start_line)
                start = i + 1
                start_line = line
        elif state in _DOUBLING_QUOTES:
            if ch == _DOUBLING_QUOTES[state]:
                if nxt == ch:
                    i += 1
                else:
                    state = _State.NORMAL
        elif state is _State.BACKTICK:
            if ch == "`":
                state = _State.NORMAL
        elif state is _State.LINE_COMMENT:
            if ch == "\n":
                state = _State.NORMAL
        elif state is _State.BLOCK_COMMENT:
            if ch == "*" and nxt == "/":
                state = _State.NORMAL
                i += 1
        i += 1
    _append_statement(result, sql[start:], start_line)
    return result


def _scrub(sql: str, scrub_literals: bool) -> str:
    def literal(ch: str) -> str:
        return _KEEP_NEWLINE.get(ch, " ") if scrub_literals else ch

    out: list[str] = []
    state = _State.NORMAL
    size = len(sql)
    i = 0
    while i < size:
        ch = sql[i]
        nxt = sql[i + 1] if i + 1 < size else ""
        if state is _State.NORMAL:
            if ch in _OPENERS:
                state = _OPENERS[ch]
                out.append(literal(ch))
            elif ch == "-" and nxt == "-":
                state = _State.LINE_COMMENT
                out.append("  ")
                i += 1
            elif ch == "/" and nxt == "*":
                state = _State.BLOCK_COMMENT
                out.append("  ")
                i += 1
            else:
                out.append(ch)
        elif state in _DOUBLING_QUOTES:
            out.append(literal(ch))
            if ch == _DOUBLING_QUOTES[state]:
                if nxt == ch:
                    i += 1
                    out.append(literal(nxt))
                else:
                    state = _State.NORMAL
        elif state is _State.BACKTICK:
            out.append(literal(ch))
            if ch == "`":
                state = _State.NORMAL
        elif state is _State.LINE_COMMENT:
            out.append(_KEEP_NEWLINE.get(ch, " "))
            if ch == "\n":
                state = _State.NORMAL
        elif state is _State.BLOCK_COMMENT:
            out.append(_KEEP_NEWLINE.get(ch, " "))
            if ch == "*" and nxt == "/":
                state = _State.NORMAL
                i += 1
                out.append(" ")
        i += 1
    return "".join(out)


def analysis_text(sql: str) -> str:
    """Return SQL with comments and literals blanked, keeping length and lines."""
    return _scrub(sql, True)


def commentless_text(sql: str) -> str:
    """Return SQL with comments blanked but literal contents kept."""
    return _scrub(sql, False)


_PUNCTUATION = frozenset("(),.*=<>+-/")


def _is_token_char(ch: str) -> bool:
    return ch == "_" or ch.isalpha() or ch.isdecimal()


def tokens(sql: str) -> list[str]:
    """Return lowercase SQL tokens with comments and literal contents removed."""
    result: list[str] = []
    for is_word, group in groupby(analysis_text(sql), key=_is_token_char):
        if is_word:
            result.append("".join(group).lower())
        else:
            result.extend(ch for ch in group if ch in _PUNCTUATION)
    return result


def has_token(tokens: Iterable[str], token: str) -> bool:
    """Report whether token appears among tokens (case-insensitive on token)."""
    return token.lower() in tokens


def has_token_sequence(tokens: Iterable[str], *args: str) -> bool:
    """Report whether the words in args appear consecutively in tokens."""
    items = list(tokens)
    wanted = [word.lower() for word in args]
    width = len(wanted)
    if width == 0 or len(items) < width:
        return False
    return any(items[start:start + width] == wanted for start in range(len(items) - width + 1))