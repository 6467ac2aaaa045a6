from __future__ import annotations

import copy
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from sheet_tracker.builder import (
    DEFAULT_TOTAL_MODELS,
    TableShape,
    build_project,
    long_column_map,
    parse_total_models,
)
from sheet_tracker.config import DEFAULT_CANONICAL_STEPS
from sheet_tracker.models import KOREAN, StepStatus, iter_steps
from sheet_tracker.parser import parse_csv

SAMPLE_DIR = ROOT / "sample-data"
LONG_HEADER = "Category,TotalModels,Country,ContentType,StepName,Status,TargetDate\n"


def build_long(text: str, **kwargs):
    return build_project(parse_csv(text), TableShape.LONG, canonical_steps=DEFAULT_CANONICAL_STEPS, **kwargs)


class LongShapeTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.table = parse_csv((SAMPLE_DIR / "rollout_long.csv").read_text(encoding="utf-8"))
        cls.project = build_project(cls.table, "long", canonical_steps=DEFAULT_CANONICAL_STEPS)

    def test_tv_uk_gallery_scenario(self):
        project = build_long(
            LONG_HEADER
            + "TV,200,UK,Gallery,Asset Collection,Completed,2025-07-09\n"
            + "TV,200,UK,Gallery,Content Creation,In Progress,2025-07-14"
        )

        self.assertEqual(len(project.categories), 1)
        category = project.categories[0]
        self.assertEqual(category.category, "TV")
        self.assertEqual(category.total_models, 200)
        self.assertEqual([country.name for country in category.countries], ["UK"])
        unit = category.countries[0].units[0]
        self.assertEqual(unit.name, "Gallery")
        self.assertIsNone(unit.wbs_level)
        self.assertEqual([step.name for step in unit.steps], ["Asset Collection", "Content Creation"])
        self.assertEqual([step.status for step in unit.steps], [StepStatus.COMPLETED, StepStatus.IN_PROGRESS])
        self.assertEqual(unit.steps[0].target_date, "2025-07-09")

    def test_grouping_follows_first_insertion_order(self):
        self.assertEqual([category.category for category in self.project.categories], ["TV", "Monitor", "Refrigerator"])
        tv = self.project.categories[0]
        self.assertEqual([country.name for country in tv.countries], ["UK", "DE"])
        self.assertEqual([unit.name for unit in tv.countries[0].units], ["Gallery", "FAQ"])

    def test_first_occurrence_fixes_total_models(self):
        totals = {category.category: category.total_models for category in self.project.categories}

        self.assertEqual(totals, {"TV": 200, "Monitor": DEFAULT_TOTAL_MODELS, "Refrigerator": 80})

    def test_rows_without_category_are_skipped(self):
        self.assertEqual(self.project.notes.rows_skipped, 1)
        self.assertEqual(sum(1 for _ in iter_steps(self.project)), len(self.table.rows) - 1)

    def test_unparseable_total_models_is_counted_as_a_default(self):
        self.assertEqual(self.project.notes.defaults_applied, 1)

    def test_steps_follow_canonical_order_with_extras_last(self):
        tv = self.project.categories[0]
        uk_faq = tv.countries[0].units[1]
        de_gallery = tv.countries[1].units[0]

        self.assertEqual([step.name for step in uk_faq.steps], ["Asset Collection", "Publishing"])
        self.assertEqual(
            [step.name for step in de_gallery.steps],
            ["Asset Collection", "Content Creation", "Legal Sign-off"],
        )

    def test_unknown_status_is_not_started(self):
        de_gallery = self.project.categories[0].countries[1].units[0]
        content = [step for step in de_gallery.steps if step.name == "Content Creation"][0]

        self.assertEqual(content.status, StepStatus.NOT_STARTED)
        self.assertEqual(content.raw_status, "Unknown")

    def test_blank_target_date_is_none(self):
        de_gallery = self.project.categories[0].countries[1].units[0]
        legal = [step for step in de_gallery.steps if step.name == "Legal Sign-off"][0]

        self.assertIsNone(legal.target_date)

    def test_process_steps_are_canonical_then_extras(self):
        self.assertEqual(
            self.project.process_steps,
            ("Asset Collection", "Content Creation", "Internal Review", "Publishing", "Legal Sign-off"),
        )

    def test_round_trip_keeps_one_step_per_row(self):
        text = LONG_HEADER + "".join(
            "TV,200,UK,Gallery,Asset Collection,Completed,\n" for _ in range(5)
        )
        project = build_long(text)

        self.assertEqual(sum(1 for _ in iter_steps(project)), 5)

    def test_repeated_pair_reuses_groups(self):
        project = build_long(
            LONG_HEADER
            + "TV,200,UK,Gallery,Asset Collection,Completed,\n"
            + "TV,200,UK,FAQ,Asset Collection,Completed,\n"
            + "TV,200,US,FAQ,Asset Collection,Completed,\n"
        )

        self.assertEqual(len(project.categories), 1)
        self.assertEqual([country.name for country in project.categories[0].countries], ["UK", "US"])

    def test_input_table_is_not_mutated(self):
        before = copy.deepcopy(self.table)
        build_project(self.table, "long", canonical_steps=DEFAULT_CANONICAL_STEPS)

        self.assertEqual(self.table, before)

    def test_header_names_are_matched_loosely(self):
        columns = long_column_map(["category", "Total Models", "country", "Content_Type", "Step Name", "STATUS"])

        self.assertEqual(columns["total_models"], "Total Models")
        self.assertEqual(columns["content_type"], "Content_Type")
        self.assertEqual(columns["step_name"], "Step Name")
        self.assertNotIn("target_date", columns)

    def test_header_only_input_builds_empty_project(self):
        project = build_long(LONG_HEADER)

        self.assertTrue(project.is_empty)
        self.assertEqual(project.process_steps, ())


class WideShapeTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.table = parse_csv((SAMPLE_DIR / "rollout_wide.csv").read_text(encoding="utf-8"))
        cls.project = build_project(cls.table, TableShape.WIDE, vocabulary=KOREAN)

    def test_step_columns_exclude_metadata_and_blank_headers(self):
        self.assertEqual(self.project.process_steps, ("Asset Collection", "Content Creation", "Publishing"))
        self.assertEqual(self.project.shape, "wide")

    def test_positional_columns_give_country_category_model(self):
        tv = self.project.categories[0]

        self.assertEqual(tv.category, "TV")
        self.assertEqual([country.name for country in tv.countries], ["UK", "DE"])
        self.assertEqual([unit.name for unit in tv.countries[0].units], ["OLED65C4", "OLED55C4"])

    def test_each_row_yields_one_step_per_step_column(self):
        self.assertEqual(sum(1 for _ in iter_steps(self.project)), len(self.table.rows) * 3)

    def test_statuses_use_the_configured_vocabulary(self):
        first = self.project.categories[0].countries[0].units[0]

        self.assertEqual(
            [step.status for step in first.steps],
            [StepStatus.COMPLETED, StepStatus.IN_PROGRESS, StepStatus.NOT_STARTED],
        )

    def test_blank_step_cells_are_not_started(self):
        qned = self.project.categories[0].countries[1].units[0]

        self.assertEqual(
            [step.status for step in qned.steps],
            [StepStatus.IN_PROGRESS, StepStatus.NOT_STARTED, StepStatus.NOT_STARTED],
        )

    def test_wbs_level_is_verbatim_or_not_started_label(self):
        units = self.project.categories[0].countries[0].units

        self.assertEqual(units[0].wbs_level, "Level 2")
        self.assertEqual(units[1].wbs_level, "")

    def test_repeated_step_headers_keep_every_column(self):
        project = build_project(
            parse_csv("TR,Cat,Model,Step,Step_2,Step\nUK,TV,A,Completed,In Progress,Completed\n"),
            "wide",
        )
        steps = project.categories[0].countries[0].units[0].steps

        self.assertEqual(project.process_steps, ("Step", "Step_2", "Step_3"))
        self.assertEqual(
            [step.status for step in steps],
            [StepStatus.COMPLETED, StepStatus.IN_PROGRESS, StepStatus.COMPLETED],
        )

    def test_total_models_parsed_or_defaulted(self):
        totals = {category.category: category.total_models for category in self.project.categories}

        self.assertEqual(totals, {"TV": 150, "Monitor": 200})
        self.assertEqual(self.project.notes.defaults_applied, 1)

    def test_missing_optional_columns_use_defaults(self):
        project = build_project(parse_csv("Country,Category,Model,QA\nUK,,,Completed\n"), "wide")
        category = project.categories[0]

        self.assertEqual(category.category, "Uncategorized")
        self.assertEqual(category.total_models, DEFAULT_TOTAL_MODELS)
        unit = category.countries[0].units[0]
        self.assertEqual(unit.name, "Unknown Model")
        self.assertEqual(unit.wbs_level, "Not Started")
        self.assertEqual(unit.steps[0].status, StepStatus.COMPLETED)
        self.assertEqual(project.notes.defaults_applied, 0)

    def test_short_rows_default_trailing_steps(self):
        project = build_project(parse_csv("TR,Cat,Model,QA,Publishing\nUK,TV,A,Completed\n"), "wide")
        steps = project.categories[0].countries[0].units[0].steps

        self.assertEqual([step.status for step in steps], [StepStatus.COMPLETED, StepStatus.NOT_STARTED])


class TotalModelsParsingTests(unittest.TestCase):
    def test_integer_text_is_used(self):
        self.assertEqual(parse_total_models("120"), (120, False))
        self.assertEqual(parse_total_models(" 0 "), (0, False))

    def test_garbage_blank_and_negative_fall_back(self):
        self.assertEqual(parse_total_models("abc"), (200, True))
        self.assertEqual(parse_total_models(""), (200, True))
        self.assertEqual(parse_total_models(None), (200, True))
        self.assertEqual(parse_total_models("-4"), (200, True))
        self.assertEqual(parse_total_models("12.5", default=7), (7, True))


if __name__ == "__main__":
    unittest.main()
