import os

import pytest

from sqio.picker import pick, sql_files


def test_sql_files(tmp_path):
    (tmp_path / "a.sql").write_text("select 1")
    (tmp_path / "b.txt").write_text("select 2")
    files = sql_files(str(tmp_path))
    assert [os.path.basename(f) for f in files] == ["a.sql"]


def test_pick_fallback(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path))
    assert pick(["a.sql", "b.sql"]) == "a.sql"


def test_pick_empty():
    with pytest.raises(ValueError):
        pick([])


def test_sql_files_skips_hidden_directories_and_sorts(tmp_path):
    hidden = tmp_path / ".hidden"
    hidden.mkdir()
    (hidden / "hidden.sql").write_text("select 0")
    (tmp_path / "b.SQL").write_text("select 2")
    (tmp_path / "a.sql").write_text("select 1")
    files = sql_files(str(tmp_path))
    assert [os.path.basename(f) for f in files] == ["a.sql", "b.SQL"]


def test_sql_files_recurses_into_subdirectories(tmp_path):
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "c.sql").write_text("select 3")
    assert sql_files(str(tmp_path)) == [str(sub / "c.sql")]


def test_sql_files_missing_root(tmp_path):
    with pytest.raises(FileNotFoundError):
        sql_files(str(tmp_path / "missing"))


def test_pick_uses_fzf_selection(tmp_path, monkeypatch):
    fzf = tmp_path / "fzf"
    fzf.write_text("#!/bin/sh\nprintf 'b.sql\\n'\n")
    fzf.chmod(0o755)
    monkeypatch.setenv("PATH", str(tmp_path))
    assert pick(["a.sql", "b.sql"]) == "b.sql"


def test_pick_falls_back_when_fzf_fails(tmp_path, monkeypatch):
    fzf = tmp_path / "fzf"
    fzf.write_text("#!/bin/sh\nexit 130\n")
    fzf.chmod(0o755)
    monkeypatch.setenv("PATH", str(tmp_path))
    assert pick(["a.sql", "b.sql"]) == "a.sql"