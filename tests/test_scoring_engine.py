import unittest
from datetime import datetime

from app.audit.scoring_engine import (
    ItemInput,
    OccurrenceInput,
    OptionInput,
    ResponseInput,
    build_scoring_config,
    calculate_score,
    classify,
)
from app.core.errors import ValidationError


TYPE_ID = "type-conf"
OPTIONS = [
    OptionInput(option_id="conforme", response_type_id=TYPE_ID, weight=1.0, conformity="conforming"),
    OptionInput(option_id="parcial", response_type_id=TYPE_ID, weight=0.5, conformity="partial"),
    OptionInput(option_id="nao-conforme", response_type_id=TYPE_ID, weight=0.0, conformity="non_conforming"),
    OptionInput(option_id="na", response_type_id=TYPE_ID, weight=None, conformity="na"),
]
FIXED_TIME = datetime(2026, 10, 1, 12, 0, 0)


def _items(count, weights=None):
    weights = weights or [1.0] * count
    return [ItemInput(item_id=f"item-{idx}", weight=weights[idx], response_type_id=TYPE_ID) for idx in range(count)]


def _responses(option_ids):
    return [
        ResponseInput(session_item_id=f"item-{idx}", option_id=option_id)
        for idx, option_id in enumerate(option_ids)
        if option_id is not None
    ]


def _scenario_answers():
    return ["conforme"] * 7 + ["nao-conforme"] * 2 + ["na"]


class SimpleMethodTests(unittest.TestCase):
    def test_seven_of_nine_eligible_passes(self):
        config = build_scoring_config({"scoring_method": "simple", "passing_score": 70})
        result = calculate_score(
            "audit-1", _items(10), _responses(_scenario_answers()), OPTIONS, [], config, FIXED_TIME
        )
        self.assertEqual(result.conforming_items, 7)
        self.assertEqual(result.non_conforming_items, 2)
        self.assertEqual(result.na_items, 1)
        self.assertEqual(result.max_possible_score, 9)
        self.assertAlmostEqual(result.percentage, 77.78, places=2)
        self.assertEqual(result.status, "passed")
        self.assertEqual(result.grade, "B")

    def test_major_nonconformity_drops_to_conditional(self):
        config = build_scoring_config(
            {"scoring_method": "simple", "passing_score": 70, "nc_major_penalty": 10, "conditional_margin": 10}
        )
        result = calculate_score(
            "audit-1",
            _items(10),
            _responses(_scenario_answers()),
            OPTIONS,
            [OccurrenceInput(occurrence_type="NC_major", status="Open")],
            config,
            FIXED_TIME,
        )
        self.assertAlmostEqual(result.base_percentage, 77.78, places=2)
        self.assertAlmostEqual(result.penalty_points, 10.0)
        self.assertAlmostEqual(result.percentage, 67.78, places=2)
        self.assertEqual(result.nc_major_count, 1)
        self.assertEqual(result.status, "conditional")

    def test_major_nonconformity_fails_with_narrow_margin(self):
        config = build_scoring_config(
            {"scoring_method": "simple", "passing_score": 70, "nc_major_penalty": 10, "conditional_margin": 2}
        )
        result = calculate_score(
            "audit-1",
            _items(10),
            _responses(_scenario_answers()),
            OPTIONS,
            [OccurrenceInput(occurrence_type="NC_major", status="Open")],
            config,
            FIXED_TIME,
        )
        self.assertEqual(result.status, "failed")

    def test_na_counted_when_included(self):
        config = build_scoring_config({"scoring_method": "simple", "include_na_in_total": True})
        result = calculate_score(
            "audit-1", _items(10), _responses(_scenario_answers()), OPTIONS, [], config, FIXED_TIME
        )
        self.assertEqual(result.max_possible_score, 10)
        self.assertAlmostEqual(result.percentage, 70.0)

    def test_custom_max_score_scale(self):
        config = build_scoring_config(
            {
                "scoring_method": "simple",
                "max_score": 10,
                "passing_score": 7,
                "nc_major_penalty": 1,
                "conditional_margin": 1,
            }
        )
        result = calculate_score(
            "audit-1",
            _items(10),
            _responses(_scenario_answers()),
            OPTIONS,
            [OccurrenceInput(occurrence_type="NC_major", status="In_Treatment")],
            config,
            FIXED_TIME,
        )
        self.assertAlmostEqual(result.percentage, 67.78, places=2)
        self.assertAlmostEqual(result.final_score, 6.78, places=2)
        self.assertEqual(result.status, "conditional")


class WeightedMethodTests(unittest.TestCase):
    def test_na_weight_removed_from_denominator(self):
        config = build_scoring_config({"scoring_method": "weighted"})
        result = calculate_score(
            "audit-1",
            _items(3, weights=[2.0, 1.0, 1.0]),
            _responses(["conforme", "nao-conforme", "na"]),
            OPTIONS,
            [],
            config,
            FIXED_TIME,
        )
        self.assertAlmostEqual(result.total_score, 2.0)
        self.assertAlmostEqual(result.max_possible_score, 3.0)
        self.assertAlmostEqual(result.percentage, 66.67, places=2)

    def test_na_weight_counted_against_when_included(self):
        config = build_scoring_config({"scoring_method": "weighted", "include_na_in_total": True})
        result = calculate_score(
            "audit-1",
            _items(3, weights=[2.0, 1.0, 1.0]),
            _responses(["conforme", "nao-conforme", "na"]),
            OPTIONS,
            [],
            config,
            FIXED_TIME,
        )
        self.assertAlmostEqual(result.max_possible_score, 4.0)
        self.assertAlmostEqual(result.percentage, 50.0)

    def test_partial_and_unanswered_items(self):
        config = build_scoring_config({"scoring_method": "weighted"})
        result = calculate_score(
            "audit-1",
            _items(4),
            _responses(["conforme", "parcial", None, None]),
            OPTIONS,
            [],
            config,
            FIXED_TIME,
        )
        self.assertEqual(result.responded_items, 2)
        self.assertEqual(result.total_items, 4)
        self.assertEqual(result.partial_items, 1)
        self.assertAlmostEqual(result.percentage, 37.5)
        self.assertIsNone(result.grade)
        self.assertEqual(result.status, "failed")


class PercentageMethodTests(unittest.TestCase):
    def test_score_expressed_as_percentage(self):
        config = build_scoring_config({"scoring_method": "percentage", "opportunity_bonus": 5})
        result = calculate_score(
            "audit-1",
            _items(10),
            _responses(_scenario_answers()),
            OPTIONS,
            [OccurrenceInput(occurrence_type="Improvement_Opportunity", status="Open")],
            config,
            FIXED_TIME,
        )
        self.assertAlmostEqual(result.percentage, 82.78, places=2)
        self.assertEqual(result.total_score, result.percentage)
        self.assertEqual(result.max_possible_score, 100)
        self.assertAlmostEqual(result.bonus_points, 5.0)


class EdgeCaseTests(unittest.TestCase):
    def test_zero_responses_returns_failed_without_grade(self):
        config = build_scoring_config(
            {"grade_bands": [{"minPercentage": 0, "label": "E", "color": "#000"}], "opportunity_bonus": 10}
        )
        result = calculate_score(
            "audit-1",
            _items(5),
            [],
            OPTIONS,
            [OccurrenceInput(occurrence_type="Improvement_Opportunity", status="Open")],
            config,
            FIXED_TIME,
        )
        self.assertEqual(result.percentage, 0)
        self.assertIsNone(result.grade)
        self.assertEqual(result.status, "failed")
        self.assertEqual(result.responded_items, 0)
        self.assertEqual(result.total_items, 5)

    def test_no_items_at_all(self):
        result = calculate_score("audit-1", [], [], [], [], build_scoring_config(None), FIXED_TIME)
        self.assertEqual(result.percentage, 0)
        self.assertEqual(result.total_items, 0)

    def test_percentage_is_clamped(self):
        heavy = build_scoring_config({"scoring_method": "simple", "nc_minor_penalty": 40})
        low = calculate_score(
            "audit-1",
            _items(10),
            _responses(_scenario_answers()),
            OPTIONS,
            [OccurrenceInput(occurrence_type="NC_minor", status="Open")] * 3,
            heavy,
            FIXED_TIME,
        )
        self.assertEqual(low.percentage, 0)

        generous = build_scoring_config({"scoring_method": "simple", "opportunity_bonus": 50})
        high = calculate_score(
            "audit-1",
            _items(10),
            _responses(_scenario_answers()),
            OPTIONS,
            [OccurrenceInput(occurrence_type="Improvement_Opportunity", status="Closed")] * 2,
            generous,
            FIXED_TIME,
        )
        self.assertEqual(high.percentage, 100)
        self.assertEqual(high.grade, "A")

    def test_cancelled_occurrences_are_ignored(self):
        config = build_scoring_config({"scoring_method": "simple", "nc_major_penalty": 10})
        result = calculate_score(
            "audit-1",
            _items(10),
            _responses(_scenario_answers()),
            OPTIONS,
            [OccurrenceInput(occurrence_type="NC_major", status="Cancelled")],
            config,
            FIXED_TIME,
        )
        self.assertEqual(result.nc_major_count, 0)
        self.assertAlmostEqual(result.percentage, 77.78, places=2)

    def test_responded_items_never_exceed_total(self):
        config = build_scoring_config(None)
        for answered in range(0, 6):
            answers = ["conforme"] * answered + [None] * (5 - answered)
            result = calculate_score("audit-1", _items(5), _responses(answers), OPTIONS, [], config, FIXED_TIME)
            self.assertLessEqual(result.responded_items, result.total_items)
            self.assertGreaterEqual(result.percentage, 0)
            self.assertLessEqual(result.percentage, 100)

    def test_calculation_is_deterministic(self):
        config = build_scoring_config({"scoring_method": "weighted", "nc_minor_penalty": 3})
        args = (
            "audit-1",
            _items(6, weights=[1, 2, 3, 1, 2, 3]),
            _responses(["conforme", "parcial", "nao-conforme", "na", "conforme", None]),
            OPTIONS,
            [OccurrenceInput(occurrence_type="NC_minor", status="Open")],
            config,
        )
        first = calculate_score(*args, calculated_at=datetime(2026, 1, 1))
        second = calculate_score(*args, calculated_at=datetime(2026, 2, 1))
        self.assertEqual(
            first.model_dump(exclude={"calculated_at"}),
            second.model_dump(exclude={"calculated_at"}),
        )
        self.assertNotEqual(first.calculated_at, second.calculated_at)


class ClassificationTests(unittest.TestCase):
    def test_weight_based_classification_without_tag(self):
        self.assertEqual(classify(OptionInput("a", TYPE_ID, 1.0), 1.0), "conforming")
        self.assertEqual(classify(OptionInput("b", TYPE_ID, 0.4), 1.0), "partial")
        self.assertEqual(classify(OptionInput("c", TYPE_ID, 0.0), 1.0), "non_conforming")
        self.assertEqual(classify(OptionInput("d", TYPE_ID, None), 1.0), "na")

    def test_tag_overrides_weight(self):
        option = OptionInput("e", TYPE_ID, 1.0, conformity="partial")
        self.assertEqual(classify(option, 1.0), "partial")


class ConfigValidationTests(unittest.TestCase):
    def test_defaults_applied_when_missing(self):
        config = build_scoring_config(None)
        self.assertEqual(config.scoring_method, "weighted")
        self.assertEqual(config.max_score, 100)
        self.assertEqual(config.passing_score, 70)
        self.assertEqual(config.conditional_margin, 10)
        self.assertEqual([band.label for band in config.grade_bands], ["A", "B", "C", "D"])

    def test_non_positive_max_score_rejected(self):
        with self.assertRaises(ValidationError):
            build_scoring_config({"max_score": 0})

    def test_passing_score_out_of_range_rejected(self):
        with self.assertRaises(ValidationError):
            build_scoring_config({"max_score": 100, "passing_score": 120})
        with self.assertRaises(ValidationError):
            build_scoring_config({"passing_score": -1})

    def test_unknown_method_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            build_scoring_config({"scoring_method": "median"})
        self.assertEqual(ctx.exception.error_code, "VALIDATION_ERROR")

    def test_negative_penalty_rejected(self):
        with self.assertRaises(ValidationError):
            build_scoring_config({"nc_major_penalty": -5})
