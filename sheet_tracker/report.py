"""
Render a Dashboard for people and machines.

  dashboard_to_dict   versioned JSON payload
  render_text         plain-text summary for the terminal
  steps_frame         one row per step (pandas), used for CSV export
  country_grid        one row per unit, one column per process step
  export_workbook     3-sheet .xlsx: Summary / Units / Steps
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from sheet_tracker import __version__ as TOOL_VERSION
from sheet_tracker.contracts import build_contract, build_run_summary
from sheet_tracker.models import CountryGroup, StatusVocabulary, StepRecord, StepStatus, iter_units
from sheet_tracker.pipeline import Dashboard
from sheet_tracker.progress import Coverage

STATUS_ICONS = {
    StepStatus.COMPLETED: "✅",
    StepStatus.IN_PROGRESS: "🔄",
    StepStatus.NOT_STARTED: "⚪",
}
STATUS_FILLS = {
    StepStatus.COMPLETED: PatternFill("solid", fgColor="C6EFCE"),
    StepStatus.IN_PROGRESS: PatternFill("solid", fgColor="DDEBF7"),
}
STEP_COLUMNS = ["Category", "Country", "Unit", "WBS Level", "Step", "Status", "Raw Status", "Target Date"]


def _coverage_dict(item: Coverage) -> dict[str, int]:
    return {"value": item.value, "target": item.target, "progress": item.progress}


def dashboard_to_dict(dashboard: Dashboard, *, source: str, vocabulary: StatusVocabulary) -> dict[str, Any]:
    project = dashboard.project
    summary = dashboard.summary
    contract = build_contract("sheet_tracker.dashboard")
    categories = []
    for category, category_progress in zip(project.categories, summary.categories):
        countries = []
        for country, country_progress in zip(category.countries, category_progress.countries):
            units = []
            for unit, unit_progress in zip(country.units, country_progress.units):
                units.append(
                    {
                        "name": unit.name,
                        "wbs_level": unit.wbs_level,
                        "progress": unit_progress.progress,
                        "steps": [
                            {
                                "name": step.name,
                                "status": vocabulary.label(step.status),
                                "target_date": step.target_date,
                            }
                            for step in unit.steps
                        ],
                    }
                )
            countries.append({"name": country.name, "progress": country_progress.progress, "units": units})
        categories.append(
            {
                "category": category.category,
                "total_models": category.total_models,
                "progress": category_progress.progress,
                "completed_steps": category_progress.completed,
                "total_steps": category_progress.total,
                "countries": countries,
            }
        )
    warnings = []
    if project.notes.rows_skipped:
        warnings.append(f"{project.notes.rows_skipped} row(s) without a category were skipped")
    if project.notes.defaults_applied:
        warnings.append(f"{project.notes.defaults_applied} unreadable TotalModels value(s) defaulted")
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "loaded_at": dashboard.loaded_at.replace(microsecond=0).isoformat(),
        "process_steps": list(project.process_steps),
        "summary": {
            "overall_progress": summary.overall_progress,
            "completed_steps": summary.completed_steps,
            "total_steps": summary.total_steps,
            "category_count": summary.category_count,
            "country_count": summary.country_count,
            "total_models": summary.total_models,
            "coverage": {
                "categories": _coverage_dict(summary.category_coverage),
                "countries": _coverage_dict(summary.country_coverage),
                "models": _coverage_dict(summary.model_coverage),
            },
        },
        "categories": categories,
        "run_summary": build_run_summary(
            command="summary",
            source=source,
            shape=project.shape,
            warnings=warnings,
            metrics={
                "overall_progress": summary.overall_progress,
                "total_steps": summary.total_steps,
                "rows_skipped": project.notes.rows_skipped,
                "defaults_applied": project.notes.defaults_applied,
            },
        ),
    }


def progress_bar(value: int, width: int = 20) -> str:
    filled = min(width, max(0, round(value * width / 100)))
    return "#" * filled + "-" * (width - filled)


def render_text(dashboard: Dashboard) -> str:
    summary = dashboard.summary
    lines = [
        "sheet-tracker summary",
        f"Overall progress: {summary.overall_progress}% ({summary.completed_steps} / {summary.total_steps} steps)",
        f"Categories: {summary.category_count} / {summary.category_coverage.target}",
        f"Countries: {summary.country_count} / {summary.country_coverage.target}",
        f"Models: {summary.total_models} / {summary.model_coverage.target}",
    ]
    if not summary.categories:
        lines.append("No rows loaded.")
        return "\n".join(lines) + "\n"
    lines.append("")
    for category in summary.categories:
        lines.append(
            f"{category.category} ({category.total_models} models)  "
            f"[{progress_bar(category.progress)}] {category.progress}%"
        )
        for country in category.countries:
            lines.append(f"  {country.name}: {country.progress}% ({country.completed}/{country.total})")
    return "\n".join(lines) + "\n"


def steps_frame(dashboard: Dashboard, vocabulary: StatusVocabulary) -> pd.DataFrame:
    records = []
    for category, country, unit in iter_units(dashboard.project):
        for step in unit.steps:
            records.append(
                {
                    "Category": category.category,
                    "Country": country.name,
                    "Unit": unit.name,
                    "WBS Level": unit.wbs_level or "",
                    "Step": step.name,
                    "Status": vocabulary.label(step.status),
                    "Raw Status": step.raw_status,
                    "Target Date": step.target_date or "",
                }
            )
    return pd.DataFrame.from_records(records, columns=STEP_COLUMNS)


def units_frame(dashboard: Dashboard) -> pd.DataFrame:
    records = []
    for category in dashboard.summary.categories:
        for country in category.countries:
            for unit in country.units:
                records.append(
                    {
                        "Category": category.category,
                        "Country": country.name,
                        "Unit": unit.name,
                        "WBS Level": unit.wbs_level or "",
                        "Completed": unit.completed,
                        "Steps": unit.total,
                        "Progress %": unit.progress,
                    }
                )
    return pd.DataFrame.from_records(
        records,
        columns=["Category", "Country", "Unit", "WBS Level", "Completed", "Steps", "Progress %"],
    )


def country_grid(country: CountryGroup, process_steps: tuple[str, ...], *, icons: bool = True) -> pd.DataFrame:
    """Unit x step grid for one country.

    Steps missing on a unit are left blank; a repeated step name shows its first row.
    """
    records = []
    for unit in country.units:
        record: dict[str, str] = {"Name": unit.name}
        if unit.wbs_level is not None:
            record["WBS Level"] = unit.wbs_level
        by_name: dict[str, StepRecord] = {}
        for step in unit.steps:
            by_name.setdefault(step.name, step)
        for name in process_steps:
            step = by_name.get(name)
            if step is None:
                record[name] = ""
            else:
                record[name] = STATUS_ICONS[step.status] if icons else step.status.value
        records.append(record)
    return pd.DataFrame.from_records(records)


def _infer_col_widths(rows: list[list[Any]], min_width: int = 10, max_width: int = 48) -> list[int]:
    if not rows:
        return []
    widths = [min_width] * len(rows[0])
    for row in rows:
        for index, value in enumerate(row):
            widths[index] = max(widths[index], min(max_width, len(str(value)) + 2))
    return widths


def _style_sheet(ws, rows: list[list[Any]], header_color: str) -> None:
    fill = PatternFill("solid", fgColor=header_color)
    font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center")
    ws.freeze_panes = "A2"
    for index, width in enumerate(_infer_col_widths(rows), start=1):
        ws.column_dimensions[get_column_letter(index)].width = width


def _append_frame(ws, frame: pd.DataFrame) -> list[list[Any]]:
    rows = [list(frame.columns)] + frame.astype(object).values.tolist()
    for row in rows:
        ws.append(row)
    return rows


def export_workbook(dashboard: Dashboard, output_path: Path, vocabulary: StatusVocabulary) -> Path:
    summary = dashboard.summary
    wb = openpyxl.Workbook()

    ws_summary = wb.active
    ws_summary.title = "Summary"
    summary_rows: list[list[Any]] = [
        ["Metric", "Value", "Target", "Progress %"],
        ["Steps completed", summary.completed_steps, summary.total_steps, summary.overall_progress],
        ["Categories", summary.category_count, summary.category_coverage.target, summary.category_coverage.progress],
        ["Countries", summary.country_count, summary.country_coverage.target, summary.country_coverage.progress],
        ["Models", summary.total_models, summary.model_coverage.target, summary.model_coverage.progress],
    ]
    for category in summary.categories:
        summary_rows.append([f"Category: {category.category}", category.completed, category.total, category.progress])
    for row in summary_rows:
        ws_summary.append(row)
    _style_sheet(ws_summary, summary_rows, "305496")

    ws_units = wb.create_sheet("Units")
    _style_sheet(ws_units, _append_frame(ws_units, units_frame(dashboard)), "4CAF50")

    ws_steps = wb.create_sheet("Steps")
    frame = steps_frame(dashboard, vocabulary)
    step_rows = _append_frame(ws_steps, frame)
    status_col = STEP_COLUMNS.index("Status") + 1
    steps = [step for _, _, unit in iter_units(dashboard.project) for step in unit.steps]
    for row_number, step in enumerate(steps, start=2):
        fill = STATUS_FILLS.get(step.status)
        if fill is not None:
            ws_steps.cell(row_number, status_col).fill = fill
    _style_sheet(ws_steps, step_rows, "7F7F7F")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    return output_path


def export_csv(dashboard: Dashboard, output_path: Path, vocabulary: StatusVocabulary) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    steps_frame(dashboard, vocabulary).to_csv(output_path, index=False, encoding="utf-8")
    return output_path
