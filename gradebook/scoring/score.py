"""Performance score: a 0..100 integer derived from an evaluation on every read.

Three tiers, tried in order:

1. dynamic-weighted: the evaluation has parameter values and a criteria
   snapshot with parameter specs; each present value is normalized to 0..100
   by its declared kind and weighted
2. the evaluation has parameter values but nothing to weigh them by: the
   overall rating alone
3. legacy: a fixed blend of the overall rating, the average skill rating,
   participation and focus

Scoring is total. Malformed values degrade the score, they never raise.
"""

from __future__ import annotations

import typing as t

from gradebook.lib.util import round_half_up
from gradebook.model import BooleanValue, CriteriaSnapshot, GradeValue, ParameterValue, PercentageValue, \
    RatingValue, StudentEvaluation, TextValue, UnscoredValue
from gradebook.model.parameter import coerce, is_present

__all__ = [
    "GRADE_SCORES",
    "coerce",
    "compute_score",
    "legacy_score",
    "normalize",
    "rating_score",
    "weighted_score",
]

GRADE_SCORES: t.Final[dict[str, int]] = {"A": 100, "B": 80, "C": 60, "D": 40, "F": 0}

# legacy blend, out of 100
RATING_SHARE = 30
SKILL_SHARE = 30
PARTICIPATION_SHARE = 20
FOCUS_SHARE = 20


def normalize(value: ParameterValue) -> float:
    """Map a typed parameter value onto 0..100 (before clamping)."""
    match value:
        case RatingValue(value=v, scale=scale):
            if scale.span == 0:
                return 0
            return (v - scale.min) / scale.span * 100
        case PercentageValue(value=v):
            return v
        case BooleanValue(value=v):
            return 100 if v else 0
        case GradeValue(value=v):
            return GRADE_SCORES.get(v, 0)
        case TextValue():
            return 0
        case UnscoredValue():
            return 0


def weighted_score(parameters: t.Mapping[str, t.Any], snapshot: CriteriaSnapshot) -> float | None:
    """Weighted mean of the present parameter values, or None if no weight was used.

    Weights not summing to 100 are rescaled; a parameter that can't be scored
    still contributes its weight.
    """
    total = 0.0
    weight_used = 0.0
    for spec in snapshot.parameters:
        raw = parameters.get(spec.name)
        if not is_present(raw):
            continue
        total += normalize(coerce(spec, raw)) * spec.weight / 100
        weight_used += spec.weight

    if weight_used == 0:
        return None
    if weight_used != 100:
        total = total / weight_used * 100
    return total


def rating_score(overall_rating: int) -> float:
    return overall_rating / 5 * 100


def legacy_score(evaluation: StudentEvaluation) -> float:
    return (
        evaluation.overall_rating / 5 * RATING_SHARE
        + evaluation.skill_ratings.average / 5 * SKILL_SHARE
        + evaluation.participation.level.score / 5 * PARTICIPATION_SHARE
        + evaluation.behavior.focus / 5 * FOCUS_SHARE
    )


def compute_score(evaluation: StudentEvaluation) -> int:
    score: float | None = None
    snapshot = evaluation.criteria_metadata
    if evaluation.parameters:
        if snapshot is not None and snapshot.parameters:
            score = weighted_score(evaluation.parameters, snapshot)
        if score is None:
            score = rating_score(evaluation.overall_rating)
    else:
        score = legacy_score(evaluation)
    return max(0, min(100, int(round_half_up(score))))
