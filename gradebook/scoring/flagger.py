"""Alert flags, derived on every save.

Rules only ever raise a flag. A flag that is already set, by an earlier save
or by hand, stays set.
"""

from __future__ import annotations

import typing as t

from gradebook.model import AttendanceStatus, Attitude, ComprehensionLevel, EvaluationFlags, StudentEvaluation

AT_RISK_MAX_RATING = 2
LOW_FOCUS_MAX = 2
EXCELLING_MIN_RATING = 5
EXCELLING_MIN_SKILL = 4.5

FlagName = t.Literal["needs_attention", "at_risk", "excelling"]


class FiredRule(t.NamedTuple):
    flag: FlagName
    rule: str


def explain_flags(evaluation: StudentEvaluation) -> list[FiredRule]:
    """Return every rule that fires for ``evaluation``, in a fixed order."""
    fired: list[FiredRule] = []

    if evaluation.overall_rating <= AT_RISK_MAX_RATING:
        fired.append(FiredRule("at_risk", "low_overall_rating"))

    if evaluation.comprehension.level is ComprehensionLevel.Struggling:
        fired.append(FiredRule("needs_attention", "struggling_comprehension"))
    if evaluation.behavior.attitude is Attitude.Negative:
        fired.append(FiredRule("needs_attention", "negative_attitude"))
    if evaluation.behavior.focus <= LOW_FOCUS_MAX:
        fired.append(FiredRule("needs_attention", "low_focus"))
    if evaluation.attendance.status is AttendanceStatus.Absent:
        fired.append(FiredRule("needs_attention", "absent"))

    if (
        evaluation.overall_rating >= EXCELLING_MIN_RATING
        and evaluation.skill_ratings.average >= EXCELLING_MIN_SKILL
    ):
        fired.append(FiredRule("excelling", "high_rating_and_skills"))

    return fired


def derive_flags(evaluation: StudentEvaluation) -> EvaluationFlags:
    current = evaluation.flags
    raised = {r.flag for r in explain_flags(evaluation)}
    return EvaluationFlags(
        needs_attention=current.needs_attention or "needs_attention" in raised,
        at_risk=current.at_risk or "at_risk" in raised,
        excelling=current.excelling or "excelling" in raised,
        parent_contact_needed=current.parent_contact_needed,
    )
