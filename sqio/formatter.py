"""A conservative SQL formatter that never rewrites comments or literals."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator

_KEYWORDS = frozenset(
    {
        "select", "from", "where", "insert", "into", "values", "update", "set", "delete",
        "join", "left", "right", "inner", "outer", "on", "group", "by", "order", "limit",
        "having", "returning", "create", "table", "alter", "drop", "and", "or", "as",
        "distinct", "union", "all", "offset", "fetch", "for", "ilike", "with", "case",
        "when", "then", "else", "end",
    }
)

_CLAUSE_STARTERS = frozenset({"from", "where", "having", "limit", "offset", "returning", "union"})
_NO_SPACE_BEFORE = frozenset({",", ")", ";", "."})


@dataclass
class FormatOptions:
    """Formatting settings; dialect and line_width are accepted but not yet used."""

    dialect: str = ""
    indent: int = 0
    keyword_case: str = ""
    identifier_case: str = ""
    line_width: int = 0


class _Kind(Enum):
    WORD = auto()
    PUNCT = auto()
    LITERAL = auto()
    COMMENT = auto()


@dataclass(frozen=True)
class _Token:
    kind: _Kind
    text: str


def _is_word_char(ch: str) -> bool:
    return ch == "_" or ch.isalpha() or ch.isdecimal()


def _read_quoted(sql: str, start: int, quote: str) -> tuple[str, int]:
    size = len(sql)
    i = start + 1
    while i < size:
        if sql[i] == quote:
            if quote in "'\"" and i + 1 < size and sql[i + 1] == quote:
                i += 2
                continue
            return sql[start:i + 1], i + 1
        i += 1
    return sql[start:], size


def _lex(sql: str) -> Iterator[_Token]:
    size = len(sql)
    i = 0
    while i < size:
        ch = sql[i]
        if ch.isspace():
            i += 1
        elif _is_word_char(ch):
            start = i
            i += 1
            while i < size and _is_word_char(sql[i]):
                i += 1
            yield _Token(_Kind.WORD, sql[start:i])
        elif ch in "'\"`":
            text, i = _read_quoted(sql, i, ch)
            yield _Token(_Kind.LITERAL, text)
        elif sql.startswith("--", i):
            end = sql.find("\n", i + 2)
            end = size if end < 0 else end
            yield _Token(_Kind.COMMENT, sql[i:end].strip())
            i = end
        elif sql.startswith("/*", i):
            close = sql.find("*/", i + 2)
            # An unterminated comment stops one character short of the end.
            end = close + 2 if close >= 0 else max(i + 2, size - 1)
            yield _Token(_Kind.COMMENT, sql[i:end].strip())
            i = end
        else:
            yield _Token(_Kind.PUNCT, ch)
            i += 1


def _apply_case(text: str, mode: str) -> str:
    mode = mode.lower()
    if mode == "upper":
        return text.upper()
    if mode == "lower":
        return text.lower()
    return text


def _format_token(token: _Token, options: FormatOptions) -> str:
    if token.kind is not _Kind.WORD:
        return token.text
    if token.text.lower() in _KEYWORDS:
        return _apply_case(token.text, options.keyword_case)
    if options.identifier_case:
        return _apply_case(token.text, options.identifier_case)
    return token.text


def _starts_clause(tokens: list[_Token], index: int) -> bool:
    token = tokens[index]
    if token.kind is not _Kind.WORD:
        return False
    word = token.text.lower()
    if word in _CLAUSE_STARTERS:
        return True
    if word in ("group", "order"):
        return index + 1 < len(tokens) and tokens[index + 1].text.lower() == "by"
    return False


def _needs_space_before(current: str, token: _Token) -> bool:
    if not current or token.text in _NO_SPACE_BEFORE:
        return False
    return not current.endswith(("(", "."))


def _render(tokens: list[_Token], options: FormatOptions) -> str:
    indent = options.indent if options.indent > 0 else 2
    lines: list[str] = []
    current = ""
    depth = 0

    def flush() -> None:
        nonlocal current
        line = current.strip()
        current = ""
        if line:
            lines.append(line)

    for index, token in enumerate(tokens):
        if token.kind is _Kind.COMMENT:
            flush()
            lines.append(token.text)
            continue
        if _starts_clause(tokens, index) and current.strip():
            flush()
        text = _format_token(token, options)
        if token.text == ")" and depth > 0:
            depth -= 1
        trimmed = current.rstrip(" ")
        separator = " " if _needs_space_before(trimmed, token) else ""
        trailing = " " if token.kind in (_Kind.WORD, _Kind.LITERAL) or token.text == "," else ""
        current = trimmed + separator + text + trailing
        if token.text == "(":
            depth += 1
        if token.text == "," and depth == 0:
            flush()
    flush()

    pad = " " * indent
    rendered = lines[:1]
    for line in lines[1:]:
        stripped = line.strip()
        rendered.append(pad + stripped if stripped and not stripped.startswith("--") else line)
    return "\n".join(rendered)


def format_sql(sql: str, options: FormatOptions | None = None) -> str:
    """Return sql laid out one clause per line with keyword case normalized."""
    options = options or FormatOptions()
    formatted = _render(list(_lex(sql.strip())), options)
    if formatted and not formatted.endswith("\n"):
        formatted += "\n"
    return formatted