"""
Completion metrics for a ProjectData tree.

Percentages use round-half-up on exact integer arithmetic, so 1/2 -> 50,
1/3 -> 33, 2/3 -> 67 and 1/8 -> 13 on every interpreter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sheet_tracker.models import (
    CategoryGroup,
    CountryGroup,
    ProjectData,
    StepRecord,
    Unit,
    count_completed,
    iter_steps,
)

DEFAULT_TARGET_CATEGORIES = 5
DEFAULT_TARGET_COUNTRIES = 32
DEFAULT_TARGET_MODELS = 440


def percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def progress(steps: Iterable[StepRecord]) -> int:
    steps = list(steps)
    return percent(count_completed(steps), len(steps))


@dataclass(frozen=True)
class Targets:
    categories: int = DEFAULT_TARGET_CATEGORIES
    countries: int = DEFAULT_TARGET_COUNTRIES
    models: int = DEFAULT_TARGET_MODELS


@dataclass(frozen=True)
class UnitProgress:
    name: str
    wbs_level: str | None
    completed: int
    total: int
    progress: int


@dataclass(frozen=True)
class CountryProgress:
    name: str
    completed: int
    total: int
    progress: int
    units: tuple[UnitProgress, ...]


@dataclass(frozen=True)
class CategoryProgress:
    category: str
    total_models: int
    completed: int
    total: int
    progress: int
    countries: tuple[CountryProgress, ...]


@dataclass(frozen=True)
class Coverage:
    value: int
    target: int
    progress: int


@dataclass(frozen=True)
class ProgressSummary:
    overall_progress: int
    completed_steps: int
    total_steps: int
    category_count: int
    country_count: int
    total_models: int
    categories: tuple[CategoryProgress, ...]
    category_coverage: Coverage
    country_coverage: Coverage
    model_coverage: Coverage


def _counts(node: Unit | CountryGroup | CategoryGroup | ProjectData) -> tuple[int, int]:
    steps = list(iter_steps(node))
    return count_completed(steps), len(steps)


def unit_progress(unit: Unit) -> UnitProgress:
    completed, total = _counts(unit)
    return UnitProgress(unit.name, unit.wbs_level, completed, total, percent(completed, total))


def country_progress(country: CountryGroup) -> CountryProgress:
    completed, total = _counts(country)
    return CountryProgress(
        name=country.name,
        completed=completed,
        total=total,
        progress=percent(completed, total),
        units=tuple(unit_progress(unit) for unit in country.units),
    )


def category_progress(category: CategoryGroup) -> CategoryProgress:
    completed, total = _counts(category)
    return CategoryProgress(
        category=category.category,
        total_models=category.total_models,
        completed=completed,
        total=total,
        progress=percent(completed, total),
        countries=tuple(country_progress(country) for country in category.countries),
    )


def distinct_countries(project: ProjectData) -> set[str]:
    return {country.name for category in project.categories for country in category.countries}


def total_model_count(project: ProjectData) -> int:
    models_by_category: dict[str, int] = {}
    for category in project.categories:
        models_by_category.setdefault(category.category, category.total_models)
    return sum(models_by_category.values())


def coverage(value: int, target: int) -> Coverage:
    return Coverage(value=value, target=target, progress=percent(value, target))


def summarize(project: ProjectData, targets: Targets | None = None) -> ProgressSummary:
    targets = targets or Targets()
    completed, total = _counts(project)
    category_count = len({category.category for category in project.categories})
    country_count = len(distinct_countries(project))
    models = total_model_count(project)
    return ProgressSummary(
        overall_progress=percent(completed, total),
        completed_steps=completed,
        total_steps=total,
        category_count=category_count,
        country_count=country_count,
        total_models=models,
        categories=tuple(category_progress(category) for category in project.categories),
        category_coverage=coverage(category_count, targets.categories),
        country_coverage=coverage(country_count, targets.countries),
        model_coverage=coverage(models, targets.models),
    )
