"""
Simplified CSV parser for spreadsheet exports.

Splits on commas only. Quoted fields and escaped delimiters are not
supported, so a literal comma inside a cell shifts the remaining cells.
Every blank line is dropped before the header is picked.
"""

from __future__ import annotations

import re

from sheet_tracker.errors import MalformedInput
from sheet_tracker.models import RawTable, placeholder_header

DELIMITER = ","
LINE_BREAK_RE = re.compile(r"\r?\n")


def split_lines(text: str) -> list[str]:
    text = text.lstrip("\ufeff")
    lines = [line.rstrip("\r") for line in LINE_BREAK_RE.split(text)]
    return [line for line in lines if line.strip()]


def split_fields(line: str) -> list[str]:
    return [field.strip() for field in line.split(DELIMITER)]


def _free_name(name: str, taken: set[str]) -> str:
    if name not in taken:
        return name
    suffix = 2
    while f"{name}_{suffix}" in taken:
        suffix += 1
    return f"{name}_{suffix}"


def resolve_headers(cells: list[str]) -> tuple[tuple[str, ...], frozenset[int]]:
    """Replace blank header cells with placeholders and suffix repeated names.

    Every emitted name, placeholders included, is unique.
    """
    headers: list[str] = []
    blank: set[int] = set()
    taken: set[str] = set()
    for index, cell in enumerate(cells):
        if not cell:
            blank.add(index)
        name = _free_name(cell or placeholder_header(index), taken)
        taken.add(name)
        headers.append(name)
    return tuple(headers), frozenset(blank)


def parse_csv(text: str, *, strict: bool = False) -> RawTable:
    lines = split_lines(text or "")
    if len(lines) < 2:
        if strict:
            raise MalformedInput(len(lines))
        return RawTable.empty()

    headers, blank = resolve_headers(split_fields(lines[0]))
    rows = []
    for line in lines[1:]:
        values = split_fields(line)
        # zip stops at the shorter side: short rows leave trailing keys absent.
        rows.append(dict(zip(headers, values)))
    return RawTable(headers=headers, rows=tuple(rows), blank_header_indexes=blank)
