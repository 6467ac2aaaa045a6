#!/usr/bin/env python3
from __future__ import annotations

import os
import sys
from pathlib import Path

import streamlit as st

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sheet_tracker.config import ENV_KEYS, ENV_PREFIX, TrackerConfig, from_mapping, load_config
from sheet_tracker.errors import ConfigError
from sheet_tracker.models import ProjectData
from sheet_tracker.pipeline import DashboardState, reload
from sheet_tracker.progress import CategoryProgress, Coverage
from sheet_tracker.report import country_grid

PAGE_TITLE = "Rollout progress"


def secret_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key in ENV_KEYS:
        try:
            value = st.secrets.get(ENV_PREFIX + key.upper(), "")
        except FileNotFoundError:
            value = ""
        if value:
            overrides[key] = str(value)
    return overrides


@st.cache_resource(show_spinner=False)
def app_config() -> TrackerConfig:
    # Environment wins over secrets, matching the CLI.
    config = load_config()
    secrets = {key: value for key, value in secret_overrides().items() if not _env_set(key)}
    return from_mapping(secrets, config)


def _env_set(key: str) -> bool:
    return bool(os.environ.get(ENV_PREFIX + key.upper()))


def ensure_state(config: TrackerConfig) -> None:
    if "tracker_state" not in st.session_state:
        with st.spinner("Loading the shared sheet..."):
            st.session_state["tracker_state"] = reload(DashboardState(), config)


def render_summary_card(column, title: str, value: int, total, progress: int) -> None:
    with column:
        with st.container(border=True):
            st.caption(title)
            st.markdown(f"### {value} / {total}")
            st.progress(min(100, max(0, progress)) / 100, text=f"{progress}% complete")


def render_summary_cards(state: DashboardState) -> None:
    summary = state.dashboard.summary
    cols = st.columns(4)
    render_summary_card(
        cols[0],
        "Overall progress",
        summary.completed_steps,
        summary.total_steps if summary.total_steps else "...",
        summary.overall_progress,
    )
    coverages: list[tuple[str, int, Coverage]] = [
        ("Product categories", summary.category_count, summary.category_coverage),
        ("Countries", summary.country_count, summary.country_coverage),
        ("Target models", summary.total_models, summary.model_coverage),
    ]
    for column, (title, value, coverage) in zip(cols[1:], coverages):
        render_summary_card(column, title, value, coverage.target, coverage.progress)


def render_category(project: ProjectData, index: int, category: CategoryProgress) -> None:
    group = project.categories[index]
    label = f"{category.category} ({category.total_models} models) · {category.progress}%"
    with st.expander(label, expanded=True):
        st.progress(category.progress / 100)
        for country, country_progress in zip(group.countries, category.countries):
            st.markdown(f"**{country.name}** · {country_progress.progress}%")
            grid = country_grid(country, project.process_steps)
            st.dataframe(grid, width="stretch", hide_index=True)


def render_error(message: str) -> None:
    st.error(message)
    st.info(
        "Check that the sheet URL is correct and that it is shared as "
        "'anyone with the link can view' (or published to the web as CSV)."
    )


def main() -> None:
    st.set_page_config(page_title=PAGE_TITLE, page_icon="📊", layout="wide")
    try:
        config = app_config()
    except ConfigError as exc:
        render_error(str(exc))
        return

    ensure_state(config)
    state: DashboardState = st.session_state["tracker_state"]

    header, action = st.columns([5, 1])
    header.title(PAGE_TITLE)
    if action.button("Reload", width="stretch"):
        with st.spinner("Reloading..."):
            st.session_state["tracker_state"] = reload(state, config)
        st.rerun()

    if state.error and not state.has_data:
        render_error(state.error)
        return
    if state.error:
        st.warning(f"{state.error} Showing the last successful load.")

    render_summary_cards(state)
    dashboard = state.dashboard
    if dashboard.project.is_empty:
        st.info("The sheet has no data rows yet.")
    for index, category in enumerate(dashboard.summary.categories):
        render_category(dashboard.project, index, category)

    st.caption(f"Last updated: {dashboard.loaded_at.astimezone().strftime('%Y-%m-%d %H:%M:%S')}")


if __name__ == "__main__":
    main()
