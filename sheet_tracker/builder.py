"""
Build the category -> country -> unit -> step hierarchy from a RawTable.

Two sheet layouts are supported, chosen per deployment:

  long  one row per (category, country, content type, step); the layout
        the tracker sheet uses from now on
  wide  one row per (country, category, model) with one column per process
        step; the legacy rollout sheet

Both layouts go through the same fold: rows are fed one at a time into a
GroupingAccumulator, which is frozen into an immutable ProjectData at the end.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from functools import reduce
from typing import Callable, Mapping, Sequence

from sheet_tracker.columns import classify_headers, find_metadata, process_step_names
from sheet_tracker.models import (
    ENGLISH,
    BuildNotes,
    CategoryGroup,
    CountryGroup,
    ProjectData,
    RawTable,
    StatusVocabulary,
    StepRecord,
    Unit,
)

DEFAULT_TOTAL_MODELS = 200
UNKNOWN_COUNTRY = "Unknown Country"
UNKNOWN_CATEGORY = "Uncategorized"
UNKNOWN_MODEL = "Unknown Model"
UNKNOWN_CONTENT = "Unknown Content"

LONG_COLUMNS = {
    "category": "category",
    "totalmodels": "total_models",
    "country": "country",
    "contenttype": "content_type",
    "stepname": "step_name",
    "status": "status",
    "targetdate": "target_date",
}
HEADER_KEY_RE = re.compile(r"[\s_\-]+")


class TableShape(str, Enum):
    LONG = "long"
    WIDE = "wide"


@dataclass
class _UnitSlot:
    name: str
    wbs_level: str | None = None
    steps: list[StepRecord] = field(default_factory=list)


@dataclass
class _CountrySlot:
    name: str
    units: list[_UnitSlot] = field(default_factory=list)
    by_name: dict[str, _UnitSlot] = field(default_factory=dict)


@dataclass
class _CategorySlot:
    category: str
    total_models: int
    countries: dict[str, _CountrySlot] = field(default_factory=dict)


@dataclass
class GroupingAccumulator:
    """Intermediate grouping state threaded through the row fold."""

    categories: dict[str, _CategorySlot] = field(default_factory=dict)
    step_names: list[str] = field(default_factory=list)
    rows_skipped: int = 0
    defaults_applied: int = 0

    def country(self, category: str, total_models: int, country: str) -> _CountrySlot:
        slot = self.categories.get(category)
        if slot is None:
            # First occurrence of a category fixes its model count.
            slot = _CategorySlot(category, total_models)
            self.categories[category] = slot
        country_slot = slot.countries.get(country)
        if country_slot is None:
            country_slot = _CountrySlot(country)
            slot.countries[country] = country_slot
        return country_slot

    def note_step_name(self, name: str) -> None:
        if name not in self.step_names:
            self.step_names.append(name)

    def freeze(
        self,
        *,
        shape: TableShape,
        process_steps: Sequence[str],
        step_order: Callable[[list[StepRecord]], list[StepRecord]] | None = None,
    ) -> ProjectData:
        categories = []
        for slot in self.categories.values():
            countries = []
            for country in slot.countries.values():
                units = []
                for unit in country.units:
                    steps = step_order(unit.steps) if step_order else unit.steps
                    units.append(Unit(name=unit.name, steps=tuple(steps), wbs_level=unit.wbs_level))
                countries.append(CountryGroup(name=country.name, units=tuple(units)))
            categories.append(
                CategoryGroup(category=slot.category, total_models=slot.total_models, countries=tuple(countries))
            )
        return ProjectData(
            categories=tuple(categories),
            process_steps=tuple(process_steps),
            shape=shape.value,
            notes=BuildNotes(rows_skipped=self.rows_skipped, defaults_applied=self.defaults_applied),
        )


def parse_total_models(raw: str | None, default: int = DEFAULT_TOTAL_MODELS) -> tuple[int, bool]:
    """Return (value, used_default). Blank, non-integer and negative cells fall back."""
    text = (raw or "").strip()
    if not text:
        return default, True
    try:
        value = int(text)
    except ValueError:
        return default, True
    if value < 0:
        return default, True
    return value, False


def header_key(header: str) -> str:
    return HEADER_KEY_RE.sub("", header).lower()


def long_column_map(headers: Sequence[str]) -> dict[str, str]:
    """Map logical long-layout fields to the header names the sheet actually uses."""
    mapping: dict[str, str] = {}
    for header in headers:
        field_name = LONG_COLUMNS.get(header_key(header))
        if field_name and field_name not in mapping:
            mapping[field_name] = header
    return mapping


def _cell(row: Mapping[str, str], header: str | None) -> str:
    if header is None:
        return ""
    return (row.get(header) or "").strip()


def fold_rows(rows: Sequence[Mapping[str, str]], step, accumulator: GroupingAccumulator) -> GroupingAccumulator:
    return reduce(step, rows, accumulator)


def canonical_sorter(canonical_steps: Sequence[str]) -> Callable[[list[StepRecord]], list[StepRecord]]:
    rank = {name: index for index, name in enumerate(canonical_steps)}
    tail = len(rank)

    def order(steps: list[StepRecord]) -> list[StepRecord]:
        # sorted() is stable, so non-canonical steps keep their encounter order.
        return sorted(steps, key=lambda step: rank.get(step.name, tail))

    return order


def build_long(
    table: RawTable,
    *,
    vocabulary: StatusVocabulary = ENGLISH,
    canonical_steps: Sequence[str] = (),
    default_total_models: int = DEFAULT_TOTAL_MODELS,
) -> ProjectData:
    columns = long_column_map(table.headers)

    def ingest(acc: GroupingAccumulator, row: Mapping[str, str]) -> GroupingAccumulator:
        category = _cell(row, columns.get("category"))
        if not category:
            acc.rows_skipped += 1
            return acc
        total_header = columns.get("total_models")
        total_models, defaulted = parse_total_models(_cell(row, total_header), default_total_models)
        if defaulted and total_header is not None and category not in acc.categories:
            acc.defaults_applied += 1
        country = acc.country(category, total_models, _cell(row, columns.get("country")) or UNKNOWN_COUNTRY)

        content = _cell(row, columns.get("content_type")) or UNKNOWN_CONTENT
        unit = country.by_name.get(content)
        if unit is None:
            unit = _UnitSlot(content)
            country.by_name[content] = unit
            country.units.append(unit)

        step_name = _cell(row, columns.get("step_name"))
        raw_status = _cell(row, columns.get("status"))
        unit.steps.append(
            StepRecord(
                name=step_name,
                status=vocabulary.normalize(raw_status),
                raw_status=raw_status,
                target_date=_cell(row, columns.get("target_date")) or None,
            )
        )
        if step_name:
            acc.note_step_name(step_name)
        return acc

    acc = fold_rows(table.rows, ingest, GroupingAccumulator())
    present = set(acc.step_names)
    process_steps = [name for name in canonical_steps if name in present]
    process_steps += [name for name in acc.step_names if name not in canonical_steps]
    return acc.freeze(
        shape=TableShape.LONG,
        process_steps=process_steps,
        step_order=canonical_sorter(canonical_steps),
    )


def build_wide(
    table: RawTable,
    *,
    vocabulary: StatusVocabulary = ENGLISH,
    default_total_models: int = DEFAULT_TOTAL_MODELS,
) -> ProjectData:
    roles = classify_headers(table)
    steps = process_step_names(roles)
    headers = list(table.headers) + [None, None, None]
    country_header, category_header, model_header = headers[0], headers[1], headers[2]
    total_header = find_metadata(roles, "total_models")
    wbs_header = find_metadata(roles, "wbs_level")

    def ingest(acc: GroupingAccumulator, row: Mapping[str, str]) -> GroupingAccumulator:
        category = _cell(row, category_header) or UNKNOWN_CATEGORY
        total_models, defaulted = parse_total_models(_cell(row, total_header), default_total_models)
        if defaulted and total_header is not None and category not in acc.categories:
            acc.defaults_applied += 1
        country = acc.country(category, total_models, _cell(row, country_header) or UNKNOWN_COUNTRY)

        wbs_level = _cell(row, wbs_header) if wbs_header is not None else vocabulary.not_started
        unit = _UnitSlot(_cell(row, model_header) or UNKNOWN_MODEL, wbs_level=wbs_level)
        for name in steps:
            raw_status = _cell(row, name)
            unit.steps.append(StepRecord(name=name, status=vocabulary.normalize(raw_status), raw_status=raw_status))
        country.units.append(unit)
        return acc

    acc = fold_rows(table.rows, ingest, GroupingAccumulator(step_names=list(steps)))
    return acc.freeze(shape=TableShape.WIDE, process_steps=steps)


def build_project(
    table: RawTable,
    shape: TableShape | str = TableShape.LONG,
    *,
    vocabulary: StatusVocabulary = ENGLISH,
    canonical_steps: Sequence[str] = (),
    default_total_models: int = DEFAULT_TOTAL_MODELS,
) -> ProjectData:
    shape = TableShape(shape)
    if table.is_empty:
        return ProjectData(shape=shape.value)
    if shape is TableShape.WIDE:
        return build_wide(table, vocabulary=vocabulary, default_total_models=default_total_models)
    return build_long(
        table,
        vocabulary=vocabulary,
        canonical_steps=canonical_steps,
        default_total_models=default_total_models,
    )
