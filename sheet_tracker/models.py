"""
Data model for the rollout tracker.

A RawTable is what the parser hands over. ProjectData is the finished,
immutable hierarchy: category -> country -> unit -> step. Units are models
for wide sheets and content types for long sheets.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Mapping

PLACEHOLDER_PREFIX = "column_"


def placeholder_header(index: int) -> str:
    return f"{PLACEHOLDER_PREFIX}{index}"


@dataclass(frozen=True)
class RawTable:
    headers: tuple[str, ...]
    rows: tuple[Mapping[str, str], ...]
    blank_header_indexes: frozenset[int] = frozenset()

    @classmethod
    def empty(cls) -> "RawTable":
        return cls(headers=(), rows=())

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def is_placeholder(self, index: int) -> bool:
        return index in self.blank_header_indexes


class StepStatus(str, Enum):
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    NOT_STARTED = "not_started"


@dataclass(frozen=True)
class StatusVocabulary:
    """Exact wire strings one deployment uses for the three statuses."""

    name: str
    completed: str
    in_progress: str
    not_started: str

    def normalize(self, raw: str | None) -> StepStatus:
        text = (raw or "").strip()
        if text == self.completed:
            return StepStatus.COMPLETED
        if text == self.in_progress:
            return StepStatus.IN_PROGRESS
        # Blank and unrecognised values both count as not started.
        return StepStatus.NOT_STARTED

    def label(self, status: StepStatus) -> str:
        return {
            StepStatus.COMPLETED: self.completed,
            StepStatus.IN_PROGRESS: self.in_progress,
            StepStatus.NOT_STARTED: self.not_started,
        }[status]


ENGLISH = StatusVocabulary("english", "Completed", "In Progress", "Not Started")
KOREAN = StatusVocabulary("korean", "완료", "진행중", "미진행")

VOCABULARIES = {vocabulary.name: vocabulary for vocabulary in (ENGLISH, KOREAN)}


@dataclass(frozen=True)
class StepRecord:
    name: str
    status: StepStatus
    raw_status: str = ""
    target_date: str | None = None


@dataclass(frozen=True)
class Unit:
    name: str
    steps: tuple[StepRecord, ...]
    wbs_level: str | None = None


@dataclass(frozen=True)
class CountryGroup:
    name: str
    units: tuple[Unit, ...]


@dataclass(frozen=True)
class CategoryGroup:
    category: str
    total_models: int
    countries: tuple[CountryGroup, ...]


@dataclass(frozen=True)
class BuildNotes:
    rows_skipped: int = 0
    defaults_applied: int = 0


@dataclass(frozen=True)
class ProjectData:
    categories: tuple[CategoryGroup, ...] = ()
    process_steps: tuple[str, ...] = ()
    shape: str = "long"
    notes: BuildNotes = field(default_factory=BuildNotes)

    @property
    def is_empty(self) -> bool:
        return not self.categories


def iter_steps(node: ProjectData | CategoryGroup | CountryGroup | Unit) -> Iterator[StepRecord]:
    if isinstance(node, Unit):
        yield from node.steps
    elif isinstance(node, CountryGroup):
        for unit in node.units:
            yield from unit.steps
    elif isinstance(node, CategoryGroup):
        for country in node.countries:
            yield from iter_steps(country)
    else:
        for category in node.categories:
            yield from iter_steps(category)


def iter_units(project: ProjectData) -> Iterator[tuple[CategoryGroup, CountryGroup, Unit]]:
    for category in project.categories:
        for country in category.countries:
            for unit in country.units:
                yield category, country, unit


def count_completed(steps: Iterable[StepRecord]) -> int:
    return sum(1 for step in steps if step.status is StepStatus.COMPLETED)
