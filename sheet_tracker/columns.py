"""
Column-role classification for wide (one row per model) sheets.

Every header is tagged either Metadata(kind) or ProcessStep(name). The
first three columns are always country, category and model whatever their
header text says; other headers are matched by substring against a fixed
list of metadata fragments, and anything left over is a process step.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from sheet_tracker.models import RawTable

POSITIONAL_KINDS = ("country", "category", "model")

# Order matters: "TotalModels" would otherwise match the "Model" fragment.
METADATA_FRAGMENTS: list[tuple[str, tuple[str, ...]]] = [
    ("total_models", ("TotalModels",)),
    ("wbs_level", ("WBS Level",)),
    ("gallery", ("Gallery",)),
    ("dimension", ("Dimension",)),
    ("install_video", ("Install Video",)),
    ("faq", ("FAQ",)),
    ("remarks", ("비고", "Remarks")),
    ("country", ("TR", "Country")),
    ("category", ("제품군", "Category")),
    ("model", ("제품명", "Model")),
]


@dataclass(frozen=True)
class Metadata:
    kind: str
    header: str


@dataclass(frozen=True)
class ProcessStep:
    name: str


ColumnRole = Union[Metadata, ProcessStep]


def metadata_kind(header: str) -> str | None:
    for kind, fragments in METADATA_FRAGMENTS:
        if any(fragment in header for fragment in fragments):
            return kind
    return None


def classify_header(index: int, header: str, *, placeholder: bool = False) -> ColumnRole:
    if index < len(POSITIONAL_KINDS):
        return Metadata(POSITIONAL_KINDS[index], header)
    if placeholder or not header:
        return Metadata("unnamed", header)
    kind = metadata_kind(header)
    if kind is not None:
        return Metadata(kind, header)
    return ProcessStep(header)


def classify_headers(table: RawTable) -> list[ColumnRole]:
    return [
        classify_header(index, header, placeholder=table.is_placeholder(index))
        for index, header in enumerate(table.headers)
    ]


def process_step_names(roles: list[ColumnRole]) -> list[str]:
    return [role.name for role in roles if isinstance(role, ProcessStep)]


def find_metadata(roles: list[ColumnRole], kind: str, *, skip_positional: bool = True) -> str | None:
    """Header of the first non-positional column tagged with `kind`, if any."""
    start = len(POSITIONAL_KINDS) if skip_positional else 0
    for role in roles[start:]:
        if isinstance(role, Metadata) and role.kind == kind:
            return role.header
    return None


def describe_roles(roles: list[ColumnRole]) -> list[dict[str, str]]:
    described = []
    for index, role in enumerate(roles):
        if isinstance(role, ProcessStep):
            described.append({"index": str(index), "header": role.name, "role": "step"})
        else:
            described.append({"index": str(index), "header": role.header, "role": role.kind})
    return described
