import io
import sys

import pytest

from sqio.query import (
    MultipleInputsError,
    Source,
    Statement,
    analysis_text,
    commentless_text,
    has_token,
    has_token_sequence,
    read,
    statements,
    statements_with_line,
    tokens,
)


def test_read_sql():
    assert read(Source(sql="select 1")) == "select 1"


def test_statements():
    assert statements("select 1; select 2;") == ["select 1", "select 2"]


def test_statements_ignore_semicolon_in_literal_and_comment():
    got = statements("select ';' as value; -- ;\nselect 'ok;still ok';")
    assert len(got) == 2
    assert got[0] == "select ';' as value"


def test_statements_ignore_semicolon_in_quoted_identifiers_and_block_comments():
    got = statements("select `a;b` from t; /* ; */\nselect \"c;d\" from t;")
    assert len(got) == 2
    assert got[1].endswith('select "c;d" from t')


def test_statements_with_line():
    got = statements_with_line("\nselect 1;\n\n-- comment\nselect 2;")
    assert len(got) == 2
    assert got[0] == Statement("select 1", 2)
    assert got[1].line == 4


def test_statements_empty_input():
    assert statements("  ;  ; ") == []


def test_read_multiple_inputs():
    with pytest.raises(MultipleInputsError):
        read(Source(sql="select 1", file="query.sql", stream=io.StringIO("select 2")))


def test_read_file_and_reader(tmp_path):
    path = tmp_path / "query.sql"
    path.write_text("select 1")
    assert read(Source(file=str(path))) == "select 1"
    assert read(Source(stream=io.StringIO("select 2"))) == "select 2"
    assert read(Source(stream=io.BytesIO(b"select 3"))) == "select 3"


def test_read_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read(Source(file=str(tmp_path / "missing.sql")))


def test_read_no_input():
    assert read(Source()) == ""


def test_file_backed_stdin_has_data(tmp_path, monkeypatch):
    path = tmp_path / "stdin.sql"
    path.write_text("select 1")
    with open(path) as handle:
        monkeypatch.setattr(sys, "stdin", handle)
        assert read(Source(stream=sys.stdin)) == "select 1"


def test_commentless_text_preserves_literal():
    got = commentless_text("select 'a*b' /* hidden */")
    assert "'a*b'" in got
    assert "hidden" not in got


def test_analysis_text_scrubs_quoted_text_and_comments():
    sql = "select 'delete' as x, \"update\" as y, `drop` as z -- truncate\nfrom t /* drop database x */"
    got = analysis_text(sql)
    for hidden in ["delete", "update", "drop", "truncate", "database"]:
        assert hidden not in got.lower()
    assert got.count("\n") == 1
    assert len(got) == len(sql)


def test_analysis_text_keeps_executable_text():
    assert analysis_text("select id -- note") == "select id        "


def test_tokens():
    toks = tokens("select id from users where name = 'drop database prod'")
    assert has_token_sequence(toks, "select", "id", "from", "users")
    assert has_token(toks, "where")
    assert not has_token(toks, "drop")
    assert not has_token(toks, "database")


def test_tokens_punctuation_and_case():
    assert tokens("SELECT count(*) FROM t") == ["select", "count", "(", "*", ")", "from", "t"]


def test_has_token_sequence_edge_cases():
    assert not has_token_sequence(["select"])
    assert not has_token_sequence(["select"], "select", "id")
    assert has_token_sequence(["delete", "from", "x"], "DELETE", "From")
    assert not has_token_sequence(["delete", "x", "from"], "delete", "from")