"""Tests for gradebook.scoring.score."""

from __future__ import annotations

import typing as t

import pytest

from gradebook.model import Behavior, BooleanValue, CriteriaSnapshot, GradeValue, LikertLevel, ParameterSnapshot, \
    Participation, PercentageValue, RatingScale, RatingValue, SkillRatings, StudentEvaluation, TextValue, \
    UnscoredValue
from gradebook.scoring.score import coerce, compute_score, normalize

MakeEvaluation = t.Callable[..., StudentEvaluation]


def spec(
    name: str, type_: str = "rating", weight: float = 100, scale: tuple[float, float] = (1, 5)
) -> ParameterSnapshot:
    lo, hi = scale
    return ParameterSnapshot(name=name, type=type_, weight=weight, rating_scale=RatingScale(min=lo, max=hi))


def snapshot(*specs: ParameterSnapshot) -> CriteriaSnapshot:
    return CriteriaSnapshot(parameters=specs)


class TestWeightedTier(object):
    """Evaluations with parameter values and a criteria snapshot."""

    @pytest.mark.parametrize(("value", "expected"), [(5, 100), (1, 0), (3, 50), (4, 75)])
    def test_single_rating(self, make_evaluation: MakeEvaluation, value: int, expected: int) -> None:
        """A single 1..5 rating at weight 100 maps linearly onto 0..100."""
        ev = make_evaluation(parameters={"quality": value}, criteria_metadata=snapshot(spec("quality")))
        assert compute_score(ev) == expected

    def test_two_ratings_half_weight_each(self, make_evaluation: MakeEvaluation) -> None:
        """Values 5 and 1 at weight 50 each average to 50."""
        ev = make_evaluation(
            parameters={"quality": 5, "speed": 1},
            criteria_metadata=snapshot(spec("quality", weight=50), spec("speed", weight=50)),
        )
        assert compute_score(ev) == 50

    @pytest.mark.parametrize(("value", "expected"), [(True, 100), (False, 0), (1, 100), (0, 0)])
    def test_boolean(self, make_evaluation: MakeEvaluation, value: bool | int, expected: int) -> None:
        """Booleans score all or nothing; older clients sending 0/1 are accepted."""
        ev = make_evaluation(parameters={"submitted": value}, criteria_metadata=snapshot(spec("submitted", "boolean")))
        assert compute_score(ev) == expected

    def test_rescales_when_weights_used_total_fifty(self, make_evaluation: MakeEvaluation) -> None:
        """Weights totalling 50 are scaled up: 100 at 30 plus 0 at 20 gives 60, not 30."""
        ev = make_evaluation(
            parameters={"quality": 5, "speed": 1},
            criteria_metadata=snapshot(spec("quality", weight=30), spec("speed", weight=20)),
        )
        assert compute_score(ev) == 60

    def test_missing_value_does_not_use_weight(self, make_evaluation: MakeEvaluation) -> None:
        """Only present values count towards the weight used."""
        ev = make_evaluation(
            parameters={"quality": 5, "speed": None},
            criteria_metadata=snapshot(spec("quality", weight=50), spec("speed", weight=50)),
        )
        assert compute_score(ev) == 100

    def test_unknown_type_scores_zero_without_raising(self, make_evaluation: MakeEvaluation) -> None:
        """An unrecognized declared type contributes 0 but its weight still counts."""
        ev = make_evaluation(
            parameters={"quality": 5, "vibes": "great"},
            criteria_metadata=snapshot(spec("quality", weight=50), spec("vibes", "emoji", weight=50)),
        )
        assert compute_score(ev) == 50

    def test_text_counts_weight_but_scores_zero(self, make_evaluation: MakeEvaluation) -> None:
        ev = make_evaluation(parameters={"notes": "tidy work"}, criteria_metadata=snapshot(spec("notes", "text")))
        assert compute_score(ev) == 0

    def test_numeric_string_rating(self, make_evaluation: MakeEvaluation) -> None:
        ev = make_evaluation(parameters={"quality": "4"}, criteria_metadata=snapshot(spec("quality")))
        assert compute_score(ev) == 75

    def test_unparseable_rating_scores_zero(self, make_evaluation: MakeEvaluation) -> None:
        ev = make_evaluation(parameters={"quality": "excellent"}, criteria_metadata=snapshot(spec("quality")))
        assert compute_score(ev) == 0

    @pytest.mark.parametrize(("grade", "expected"), [("A", 100), ("B", 80), ("C", 60), ("D", 40), ("F", 0), ("E", 0)])
    def test_grades(self, make_evaluation: MakeEvaluation, grade: str, expected: int) -> None:
        ev = make_evaluation(parameters={"grade": grade}, criteria_metadata=snapshot(spec("grade", "grade")))
        assert compute_score(ev) == expected

    def test_grades_are_case_sensitive(self, make_evaluation: MakeEvaluation) -> None:
        ev = make_evaluation(parameters={"grade": "a"}, criteria_metadata=snapshot(spec("grade", "grade")))
        assert compute_score(ev) == 0

    @pytest.mark.parametrize(("value", "expected"), [(150, 100), (-20, 0), (62.5, 63), (62.4, 62)])
    def test_percentage_clamped_and_rounded_half_up(
        self, make_evaluation: MakeEvaluation, value: float, expected: int
    ) -> None:
        """Raw percentages can't escape 0..100; halves round up."""
        ev = make_evaluation(parameters={"pct": value}, criteria_metadata=snapshot(spec("pct", "percentage")))
        assert compute_score(ev) == expected

    def test_custom_rating_scale(self, make_evaluation: MakeEvaluation) -> None:
        ev = make_evaluation(parameters={"quality": 7}, criteria_metadata=snapshot(spec("quality", scale=(0, 10))))
        assert compute_score(ev) == 70

    def test_degenerate_scale_scores_zero(self, make_evaluation: MakeEvaluation) -> None:
        ev = make_evaluation(parameters={"quality": 3}, criteria_metadata=snapshot(spec("quality", scale=(3, 3))))
        assert compute_score(ev) == 0


class TestRatingTier(object):
    """Parameter values with nothing to weigh them by fall back to the overall rating."""

    def test_no_snapshot(self, make_evaluation: MakeEvaluation) -> None:
        ev = make_evaluation(overall_rating=2, parameters={"quality": 5})
        assert compute_score(ev) == 40

    def test_snapshot_without_parameters(self, make_evaluation: MakeEvaluation) -> None:
        ev = make_evaluation(overall_rating=4, parameters={"quality": 5}, criteria_metadata=snapshot())
        assert compute_score(ev) == 80

    def test_zero_weight_falls_through(self, make_evaluation: MakeEvaluation) -> None:
        """When the weights used total 0, the overall rating decides."""
        ev = make_evaluation(
            overall_rating=4,
            parameters={"quality": 1},
            criteria_metadata=snapshot(spec("quality", weight=0)),
        )
        assert compute_score(ev) == 80

    def test_no_present_values_falls_through(self, make_evaluation: MakeEvaluation) -> None:
        ev = make_evaluation(
            overall_rating=5,
            parameters={"quality": None},
            criteria_metadata=snapshot(spec("quality")),
        )
        assert compute_score(ev) == 100


class TestLegacyTier(object):
    """Evaluations without parameter values use the fixed 30/30/20/20 blend."""

    def test_all_top_marks(self, make_evaluation: MakeEvaluation) -> None:
        ev = make_evaluation(
            overall_rating=5,
            skill_ratings=SkillRatings(
                technical_skills=5, problem_solving=5, creativity=5, teamwork=5, communication=5
            ),
            participation=Participation(level=LikertLevel.VeryHigh),
            behavior=Behavior(focus=5),
        )
        assert compute_score(ev) == 100

    def test_defaults(self, make_evaluation: MakeEvaluation) -> None:
        """Every input at 3 of 5 scores 60."""
        assert compute_score(make_evaluation()) == 60

    def test_ignores_snapshot(self, make_evaluation: MakeEvaluation) -> None:
        ev = make_evaluation(criteria_metadata=snapshot(spec("quality")))
        assert compute_score(ev) == 60

    def test_performance_score_is_computed_field(self, make_evaluation: MakeEvaluation) -> None:
        ev = make_evaluation()
        assert ev.model_dump()["performance_score"] == 60


class TestNormalize(object):
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (RatingValue(value=5), 100),
            (RatingValue(value=2, scale=RatingScale(min=0, max=4)), 50),
            (PercentageValue(value=42), 42),
            (BooleanValue(value=True), 100),
            (GradeValue(value="C"), 60),
            (TextValue(value="anything"), 0),
            (UnscoredValue(declared_type="emoji", value=5), 0),
        ],
    )
    def test_normalize(self, value: t.Any, expected: float) -> None:
        assert normalize(value) == expected


class TestCoerce(object):
    def test_rating(self) -> None:
        assert coerce(spec("q"), 4) == RatingValue(value=4, scale=RatingScale())

    def test_rating_rejects_bool(self) -> None:
        assert isinstance(coerce(spec("q"), True), UnscoredValue)

    def test_rating_rejects_nan_string(self) -> None:
        assert isinstance(coerce(spec("q"), "nan"), UnscoredValue)

    def test_grade_requires_string(self) -> None:
        assert isinstance(coerce(spec("g", "grade"), 90), UnscoredValue)

    def test_unknown_type_keeps_declared_type(self) -> None:
        value = coerce(spec("v", "emoji"), "ok")
        assert isinstance(value, UnscoredValue)
        assert value.declared_type == "emoji"
