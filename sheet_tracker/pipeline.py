"""
Text -> RawTable -> ProjectData -> ProgressSummary, plus reload bookkeeping.

build_dashboard is pure and synchronous. reload wraps it with the fetch step
and never lets a failed load replace the snapshot that is already shown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable

from sheet_tracker.builder import build_project
from sheet_tracker.config import TrackerConfig
from sheet_tracker.errors import TrackerError, TransportFailure
from sheet_tracker.models import ProjectData
from sheet_tracker.parser import parse_csv
from sheet_tracker.progress import ProgressSummary, summarize
from sheet_tracker.sources import load_text

logger = logging.getLogger("sheet_tracker.pipeline")


@dataclass(frozen=True)
class Dashboard:
    project: ProjectData
    summary: ProgressSummary
    loaded_at: datetime


@dataclass(frozen=True)
class DashboardState:
    dashboard: Dashboard | None = None
    error: str | None = None

    @property
    def has_data(self) -> bool:
        return self.dashboard is not None


def build_dashboard(text: str, config: TrackerConfig, *, strict: bool = False) -> Dashboard:
    table = parse_csv(text, strict=strict)
    project = build_project(
        table,
        config.table_shape,
        vocabulary=config.status_vocabulary,
        canonical_steps=config.canonical_steps,
        default_total_models=config.default_total_models,
    )
    return Dashboard(
        project=project,
        summary=summarize(project, config.targets),
        loaded_at=datetime.now(timezone.utc),
    )


def source_loader(config: TrackerConfig) -> Callable[[], str]:
    def load() -> str:
        if not config.source:
            raise TrackerError("No sheet source configured. Set 'source' or SHEET_TRACKER_SOURCE.")
        return load_text(
            config.source,
            proxy_url=config.proxy_url,
            timeout=config.timeout_seconds,
            max_bytes=config.max_bytes,
        )

    return load


def reload(state: DashboardState, config: TrackerConfig, load: Callable[[], str] | None = None) -> DashboardState:
    """Return the next state. On failure the previous dashboard is kept as-is."""
    load = load or source_loader(config)
    try:
        text = load()
    except TransportFailure as exc:
        logger.warning("Sheet fetch failed: %s", exc)
        return replace(state, error=f"Failed to load data: {exc}")
    except (TrackerError, OSError) as exc:
        logger.warning("Sheet source unavailable: %s", exc)
        return replace(state, error=f"Failed to load data: {exc}")

    try:
        dashboard = build_dashboard(text, config)
    except Exception as exc:
        logger.exception("Transforming the sheet failed")
        return replace(state, error=f"Failed to load data: {exc}")

    notes = dashboard.project.notes
    if notes.rows_skipped or notes.defaults_applied:
        logger.info(
            "Loaded with %d skipped row(s) and %d defaulted model count(s)",
            notes.rows_skipped,
            notes.defaults_applied,
        )
    return DashboardState(dashboard=dashboard, error=None)
