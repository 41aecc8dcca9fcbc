"""Parsing of `lando db-cli` text output.

`db-cli` proxies to the engine's own client, so the shape depends on the
service: mysql in batch mode prints tab-separated rows, mysql attached to a
TTY prints boxed tables, and psql prints aligned columns with a row-count
footer.
"""

from __future__ import annotations

import re
from typing import Any

_PSQL_RULE_RE = re.compile(r"^-+(\+-+)*$")
_FOOTER_RE = re.compile(
    r"^(\(\d+ rows?\)|\d+ rows? in set.*|Empty set.*|Query OK.*|Rows matched:.*)$"
)
_COMMAND_TAG_RE = re.compile(
    r"^(INSERT \d+ \d+|UPDATE \d+|DELETE \d+|SELECT \d+|MERGE \d+|COPY \d+|"
    r"CREATE \w+|DROP \w+|ALTER \w+|TRUNCATE TABLE|SET|BEGIN|COMMIT|ROLLBACK|"
    r"VACUUM|ANALYZE|REINDEX)$"
)

_ROWS_AFFECTED_PATTERNS = [
    re.compile(r"(\d+) rows? affected"),
    re.compile(r"^\((\d+) rows?\)$", re.MULTILINE),
    re.compile(r"(\d+) rows? in set"),
    re.compile(r"^(?:INSERT \d+|UPDATE|DELETE|SELECT|MERGE|COPY) (\d+)$", re.MULTILINE),
]

NULL_MARKER = "NULL"

# mysql --batch writes these characters inside a cell as backslash escapes.
_BATCH_ESCAPE_RE = re.compile(r"\\(.)")
_BATCH_ESCAPES = {"t": "\t", "n": "\n", "0": "\0", "\\": "\\"}


def _unescape_batch(value: str | None) -> str | None:
    if value is None:
        return None
    return _BATCH_ESCAPE_RE.sub(lambda m: _BATCH_ESCAPES.get(m.group(1), m.group(0)), value)


def _cell(value: str) -> str | None:
    value = value.strip()
    return None if value == NULL_MARKER else value


def _is_noise(line: str) -> bool:
    return bool(_FOOTER_RE.match(line) or _COMMAND_TAG_RE.match(line))


def _zip_row(columns: list[str], cells: list[str]) -> dict[str, Any]:
    padded = cells + [NULL_MARKER] * (len(columns) - len(cells))
    return {col: _cell(value) for col, value in zip(columns, padded)}


def _parse_boxed(lines: list[str]) -> tuple[list[str], list[dict[str, Any]]]:
    data = [line.strip() for line in lines if line.strip().startswith("|")]
    if not data:
        return [], []
    split = [line.strip("|").split("|") for line in data]
    columns = [c.strip() for c in split[0]]
    return columns, [_zip_row(columns, cells) for cells in split[1:]]


def _parse_psql(lines: list[str], rule_index: int) -> tuple[list[str], list[dict[str, Any]]]:
    columns = [c.strip() for c in lines[rule_index - 1].split("|")]
    rows = [
        _zip_row(columns, line.split("|"))
        for line in lines[rule_index + 1 :]
        if not _is_noise(line.strip())
    ]
    return columns, rows


def _parse_tab_separated(lines: list[str]) -> tuple[list[str], list[dict[str, Any]]]:
    columns = [c.strip() for c in lines[0].split("\t")]
    rows = []
    for line in lines[1:]:
        row = _zip_row(columns, line.split("\t"))
        rows.append({col: _unescape_batch(value) for col, value in row.items()})
    return columns, rows


def parse_tabular(text: str) -> tuple[list[str], list[dict[str, Any]]]:
    """Return (columns, rows) for a db-cli result; ([], []) for statements
    that produce no result set."""
    lines = [line.rstrip("\r") for line in text.splitlines() if line.strip()]
    if not lines:
        return [], []

    if any(line.lstrip().startswith("+-") for line in lines):
        return _parse_boxed(lines)

    for i, line in enumerate(lines[1:], start=1):
        if _PSQL_RULE_RE.match(line.strip()):
            return _parse_psql(lines, i)

    lines = [line for line in lines if not _is_noise(line.strip())]
    if not lines:
        return [], []
    return _parse_tab_separated(lines)


def extract_rows_affected(text: str) -> int | None:
    if "Empty set" in text:
        return 0
    for pattern in _ROWS_AFFECTED_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


def parse_table_names(text: str) -> list[str]:
    """Names from a table listing: the first column of every row."""
    columns, rows = parse_tabular(text)
    if not columns:
        return []
    first = columns[0]
    return [str(row[first]) for row in rows if row.get(first)]
