"""Read-side statistics over a set of evaluations.

Every function makes a single pass over its input, so a storage stream can be
fed straight in; nothing is cached or maintained incrementally.
"""

from __future__ import annotations

from collections.abc import Iterable

from gradebook.lib.util import round_half_up
from gradebook.model import AttendanceStatus, EvaluationFlags, EvaluationSummary, FlagCounts, FlaggedStudent, \
    LikertLevel, ProgressPoint, StudentEvaluation, StudentSummary, UserID

from .score import compute_score


def _percent(part: int, whole: int) -> int:
    return int(round_half_up(part / whole * 100))


def summarize(evaluations: Iterable[StudentEvaluation]) -> EvaluationSummary:
    count = 0
    total_rating = 0
    total_performance = 0
    present = 0
    ratings = {r: 0 for r in range(1, 6)}
    engagement = {level.value: 0 for level in LikertLevel}
    flag_counts = FlagCounts()

    for ev in evaluations:
        count += 1
        total_rating += ev.overall_rating
        total_performance += compute_score(ev)
        ratings[ev.overall_rating] += 1
        if ev.engagement_level is not None:
            engagement[ev.engagement_level.value] += 1
        if ev.attendance.status is AttendanceStatus.Present:
            present += 1
        flag_counts.needs_attention += ev.flags.needs_attention
        flag_counts.at_risk += ev.flags.at_risk
        flag_counts.excelling += ev.flags.excelling

    if count == 0:
        return EvaluationSummary()

    return EvaluationSummary(
        count=count,
        average_rating=round_half_up(total_rating / count, 1),
        average_performance_score=int(round_half_up(total_performance / count)),
        rating_distribution=ratings,
        engagement_distribution=engagement,
        attendance_rate=_percent(present, count),
        flag_counts=flag_counts,
    )


def summarize_student(evaluations: Iterable[StudentEvaluation]) -> StudentSummary:
    """Per-student averages; feed it one student's evaluations."""
    count = 0
    total_rating = 0
    total_performance = 0
    total_skills = 0.0
    total_participation = 0
    present = 0

    for ev in evaluations:
        count += 1
        total_rating += ev.overall_rating
        total_performance += compute_score(ev)
        total_skills += ev.average_skill_rating
        total_participation += ev.participation_score
        if ev.attendance.status is AttendanceStatus.Present:
            present += 1

    if count == 0:
        return StudentSummary()

    return StudentSummary(
        total_evaluations=count,
        average_rating=round_half_up(total_rating / count, 1),
        average_performance_score=int(round_half_up(total_performance / count)),
        average_skill_rating=round_half_up(total_skills / count, 1),
        attendance_rate=_percent(present, count),
        average_participation=round_half_up(total_participation / count, 1),
    )


def student_progress(evaluations: Iterable[StudentEvaluation]) -> list[ProgressPoint]:
    """Time series of one student's evaluations, oldest first."""
    points = [
        ProgressPoint(
            evaluation_id=ev.evaluation_id,
            date=ev.evaluation_date,
            overall_rating=ev.overall_rating,
            performance_score=compute_score(ev),
            skill_ratings=ev.skill_ratings,
            participation=ev.participation_score,
            comprehension=ev.comprehension.level,
        )
        for ev in evaluations
    ]
    points.sort(key=lambda pt: pt.date)
    return points


def flagged_students(evaluations: Iterable[StudentEvaluation]) -> list[FlaggedStudent]:
    """Group flagged evaluations by student, OR-ing their flags.

    Students are listed in the order their first flagged evaluation appears.
    """
    by_student: dict[UserID, FlaggedStudent] = {}
    for ev in evaluations:
        f = ev.flags
        if not (f.needs_attention or f.at_risk or f.excelling or f.parent_contact_needed):
            continue
        entry = by_student.get(ev.student_id)
        if entry is None:
            entry = by_student[ev.student_id] = FlaggedStudent(student_id=ev.student_id)
        if ev.group_id not in entry.group_ids:
            entry.group_ids.append(ev.group_id)
        entry.evaluation_ids.append(ev.evaluation_id)
        entry.flags = EvaluationFlags(
            needs_attention=entry.flags.needs_attention or f.needs_attention,
            at_risk=entry.flags.at_risk or f.at_risk,
            excelling=entry.flags.excelling or f.excelling,
            parent_contact_needed=entry.flags.parent_contact_needed or f.parent_contact_needed,
        )
    return list(by_student.values())
