# sqio

`sqio` is a Python library of SQL tools for use from your own code. It has these parts:

- reading SQL and splitting it into statements, with a line number for each
- spotting destructive or mutating statements
- linting SQL for safety, style and dialect problems
- formatting SQL
- writing query results as table, CSV, TSV, JSON, JSON Lines, Markdown or YAML
- keeping a local history of executed statements
- browsing schema metadata, completing names and comparing two schemas

## What it does not do

The package does not connect to databases or run SQL. The results it writes are ones your code supplies. Its metadata service works on a schema held in memory, not on a live database.

It has no command-line program and no interactive screen.

## Installation

```
pip install .
```

To install pytest as well, use `pip install ".[test]"`.

## Reading, splitting and checking SQL

`sqio.query.read` takes a `Source` and returns the SQL text from it. A `Source` holds one of three things:

- `sql`, a string;
- `file`, a path;
- `stream`, a readable stream.

If more than one is given, `read` raises `MultipleInputsError`. If none is given, it returns an empty string.

`statements_with_line` splits SQL on semicolons. It ignores semicolons inside string literals, quoted identifiers and comments. Each `Statement` it returns holds the statement text (`sql`) and the line it starts on (`line`). `statements` returns the texts alone.

`tokens` returns the lowercase words and punctuation of the SQL. Comments and the contents of literals are left out. `has_token` and `has_token_sequence` search a list of tokens. To get the SQL with comments and literals blanked out, use `analysis_text`. To blank out comments only, use `commentless_text`.

`sqio.safety.dangerous` returns a `Danger` for the first destructive statement it finds, or `None` if there is none. The `Danger` has two fields:

- `kind`, which is one of `truncate`, `drop_database`, `delete_without_where` or `update_without_where`;
- `message`.

`mutating` returns true when any statement starts with something other than `select`, `with`, `show`, `describe`, `explain` or `pragma`.

```python
from sqio.query import statements_with_line, tokens, has_token
from sqio.safety import dangerous, mutating

for stmt in statements_with_line("select 1;\n\ndelete from users;"):
    print(stmt.line, stmt.sql)

danger = dangerous("delete from users /* where id = 1 */")
if danger is not None:
    print(danger.kind, danger.message)   # delete_without_where ...

print(mutating("insert into users (name) values ('a')"))  # True
print(has_token(tokens("select id from users where id = 1"), "where"))  # True
```

## Driver names

`sqio.dbdriver` maps driver aliases to canonical names. For example, `normalize("mariadb")` returns `"mysql"`. It returns `None` for drivers it does not know.

The module has these other helpers:

- `supported`
- `is_sqlite`
- `is_postgres_family`
- `is_mysql_family`
- `is_sql_server`
- `is_clickhouse`
- `family_name`
- `default_port`

## Linting

```python
from sqio.linter import lint, LintOptions

result = lint("select * from users limit 10", LintOptions(dialect="postgres", level="info"))
for issue in result.issues:
    print(issue.line, issue.severity, issue.rule, issue.message)
```

`LintOptions` has these fields:

- `level` is the lowest severity that is reported: `info`, `warning` (the default) or `error`.
- `disable` lists rules to turn off. A comment line such as `-- sqio:ignore select-star` turns a rule off for everything that follows it.
- `enable` can hold `keyword-case`, which turns on the keyword case check. Setting a dialect also turns that check on.
- `dialect` adds checks for one database: postgres, mysql, sqlite, sqlserver, oracle, duckdb or clickhouse. Their aliases are accepted too.

## Formatting

```python
from sqio.formatter import format_sql, FormatOptions

print(format_sql("select id, name from users where id = 1", FormatOptions(keyword_case="upper", indent=4)))
```

Clauses such as `FROM`, `WHERE` and `ORDER BY` each begin a new indented line. Top-level commas end a line.

`keyword_case` and `identifier_case` can be `upper` or `lower`. Any other value leaves the case as it is. The indent is 2 unless you set another. Literals and comments are never changed.

## Writing results

```python
import sys
from sqio.output import Result, StreamWriter, write_result

write_result(sys.stdout, "markdown", Result(columns=["id"], rows=[[1]], row_count=1))

writer = StreamWriter(sys.stdout, "jsonl", ["id", "name"], None)
writer.write_row([1, "alice"])
summary = writer.close()
```

The formats are:

- `table` (this is also what an empty format string gives)
- `csv`
- `tsv`
- `json`
- `jsonl`
- `markdown`
- `yaml`

Any other format raises `UnsupportedFormatError`. In table or Markdown format, a `Result` with no columns is written as `OK (N rows, M ms)`.

`StreamWriter` writes each row as soon as it gets it. The exception is YAML, which is written when `close` is called. `close` returns a `Result` summary.

`LimitWriter(stream, limit)` wraps a stream. It writes up to `limit` characters, or bytes for a binary stream, then raises `OutputLimitExceeded`. A limit of zero or less means there is no limit.

## History

History is kept in an SQLite database. Its location is the first of these that is available:

1. the path passed to `HistoryStore`;
2. the `SQIO_HISTORY_PATH` environment variable;
3. `~/.local/share/sqio/history.db`.

```python
from sqio.history import HistoryStore, Entry, ListOptions

store = HistoryStore(None)
store.append(Entry(sql="select 1", connection="local", elapsed_ms=3))
for entry in store.list_with_options(ListOptions(search="select", limit=20)):
    print(entry.id, entry.executed_at, entry.sql)
```

Entries are listed newest first. If the limit is zero or less, up to 100 entries are returned.

You can fetch or change one entry by its id with `get`, `set_favorite` and `set_tags`. These raise `HistoryNotFoundError` when no entry has that id.

## Metadata, completion and schema diffs

```python
from sqio.metadata import MetadataService
from sqio.schema_diff import diff_schemas

service = MetadataService.default()
print(service.mermaid_er())
print([c.value for c in service.complete("select na", "users")])

changes = diff_schemas(service.schema(), service.schema()).changes
```

You can build a `MetadataService` from your own `Schema`, or use `MetadataService.default()` for a small sample schema. `columns`, `ddl` and `indexes` raise `TableNotFoundError` for a table that is not in the schema.

`diff_schemas` reports each difference as a `SchemaChange`. Its type is one of:

- `add_table`
- `drop_table`
- `add_column`
- `drop_column`
- `change_column`
- `add_index`
- `drop_index`

## Other helpers

- `sqio.editor.edit` opens SQL in your editor and returns the edited text. The editor is the first of these that is set: `DBTUI_EDITOR`, `VISUAL`, `EDITOR`. If none is set it uses `vi`.
- `sqio.picker.sql_files` returns the `.sql` files under a directory, sorted. It skips hidden directories.
- `sqio.picker.pick` lets you choose an item with `fzf` when `fzf` is installed. Otherwise it returns the first item.
- `sqio.plugin.list_plugins` finds executable `sqio-plugin-*` files on a search path, which is `PATH` unless you give another.
- `sqio.plugin.run_plugin` runs one plugin. `validate_name` rejects plugin names that are unsafe.
- `sqio.secret.resolve` expands secret references. Plain values come back unchanged. The reference forms are:
  - `env:NAME`
  - `file:PATH`
  - `op:REF`
  - `aws-sm:ID`
  - `gcloud-secret:ID`

  The last three run the `op`, `aws` and `gcloud` command-line tools.
- `sqio.secret.decrypt_age` decrypts age-encrypted values, armored or raw, with the X25519 identities in a key file.