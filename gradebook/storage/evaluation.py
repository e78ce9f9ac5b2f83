from __future__ import annotations

import datetime
import typing as t
from collections.abc import Iterable, Iterator, Mapping

import sqlalchemy as sqla
import sqlalchemy.exc

from gradebook.core import di
from gradebook.errors import DuplicateEvaluationError
from gradebook.lib.sentinel import NotSet
from gradebook.model import Achievement, Attendance, Behavior, Comprehension, CourseID, CriteriaSnapshot, \
    EvaluationFilter, EvaluationFlags, EvaluationID, GroupID, Homework, Improvement, LikertLevel, Participation, \
    Progress, RawParameterValue, SessionID, SkillRatings, StudentEvaluation, TrainerNotes, UserID, Visibility

from . import Session
from .table import groups, student_evaluations

UNIQUE_SESSION_STUDENT = "uq_student_evaluations_session_student"

OrderBy = t.Literal["evaluation_date", "-evaluation_date", "overall_rating", "-overall_rating", "create_time"]

_FLAG_COLUMNS = ("needs_attention", "excelling", "at_risk", "parent_contact_needed")
_VISIBILITY_COLUMNS = ("shared_with_student", "shared_with_parent", "shared_at")


def _from_row(row: Mapping[str, t.Any]) -> StudentEvaluation:
    data = dict(row)
    data["flags"] = {k: data.pop(k) for k in _FLAG_COLUMNS}
    data["visibility"] = {k: data.pop(k) for k in _VISIBILITY_COLUMNS}
    return StudentEvaluation(**data)


def get(
    evaluation_id: EvaluationID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> StudentEvaluation | None:
    stmt = sqla.select(student_evaluations.__table__).where(student_evaluations.evaluation_id == evaluation_id)
    row = session.execute(stmt).mappings().one_or_none()
    return _from_row(row) if row else None


def _filtered(
    stmt: sqla.Select[t.Any],
    evaluation_filter: EvaluationFilter | None,
    overrides: Mapping[str, t.Any],
) -> sqla.Select[t.Any]:
    f = (evaluation_filter or EvaluationFilter()).model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )
    if f.student_id is not None:
        stmt = stmt.where(student_evaluations.student_id == f.student_id)
    if f.trainer_id is not None:
        stmt = stmt.where(student_evaluations.trainer_id == f.trainer_id)
    if f.session_id is not None:
        stmt = stmt.where(student_evaluations.session_id == f.session_id)
    if f.group_id is not None:
        stmt = stmt.where(student_evaluations.group_id == f.group_id)
    if f.course_id is not None:
        stmt = stmt.join(groups, groups.group_id == student_evaluations.group_id).where(
            groups.course_id == f.course_id
        )
    if f.min_rating is not None:
        stmt = stmt.where(student_evaluations.overall_rating >= f.min_rating)
    if f.max_rating is not None:
        stmt = stmt.where(student_evaluations.overall_rating <= f.max_rating)
    if f.needs_attention is not None:
        stmt = stmt.where(student_evaluations.needs_attention == f.needs_attention)
    if f.at_risk is not None:
        stmt = stmt.where(student_evaluations.at_risk == f.at_risk)
    if f.excelling is not None:
        stmt = stmt.where(student_evaluations.excelling == f.excelling)
    if f.date_from is not None:
        stmt = stmt.where(student_evaluations.evaluation_date >= f.date_from)
    if f.date_to is not None:
        stmt = stmt.where(student_evaluations.evaluation_date <= f.date_to)
    return stmt


def _ordered(stmt: sqla.Select[t.Any], order_by: OrderBy) -> sqla.Select[t.Any]:
    column = getattr(student_evaluations, order_by.lstrip("-"))
    primary = column.desc() if order_by.startswith("-") else column.asc()
    return stmt.order_by(primary, student_evaluations.evaluation_id)


def find(
    evaluation_filter: EvaluationFilter | None = None,
    *,
    student_id: UserID | None = None,
    trainer_id: UserID | None = None,
    session_id: SessionID | None = None,
    group_id: GroupID | None = None,
    course_id: CourseID | None = None,
    order_by: OrderBy = "-evaluation_date",
    limit: int | None = None,
    offset: int | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[StudentEvaluation, ...]:
    """Find evaluations matching ``evaluation_filter``; keyword ids narrow it further."""
    overrides = {
        "student_id": student_id,
        "trainer_id": trainer_id,
        "session_id": session_id,
        "group_id": group_id,
        "course_id": course_id,
    }
    stmt = _ordered(_filtered(sqla.select(student_evaluations.__table__), evaluation_filter, overrides), order_by)
    if limit is not None:
        stmt = stmt.limit(limit)
    if offset is not None:
        stmt = stmt.offset(offset)
    rows = session.execute(stmt).mappings().all()
    return tuple(_from_row(row) for row in rows)


def stream(
    evaluation_filter: EvaluationFilter | None = None,
    *,
    batch_size: int = 500,
    session: Session = di.Provide["storage.persistent.session"],
) -> Iterator[StudentEvaluation]:
    """Yield matching evaluations oldest first, fetching ``batch_size`` rows at a time."""
    stmt = _ordered(_filtered(sqla.select(student_evaluations.__table__), evaluation_filter, {}), "evaluation_date")
    result = session.execute(stmt.execution_options(yield_per=batch_size)).mappings()
    for row in result:
        yield _from_row(row)


def count(
    evaluation_filter: EvaluationFilter | None = None,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> int:
    base = _filtered(sqla.select(student_evaluations.evaluation_id), evaluation_filter, {})
    stmt = sqla.select(sqla.func.count()).select_from(base.subquery())
    return session.execute(stmt).scalar_one()


def create(
    *,
    student_id: UserID,
    trainer_id: UserID,
    session_id: SessionID,
    group_id: GroupID,
    overall_rating: int,
    evaluation_date: datetime.datetime,
    parameters: Mapping[str, RawParameterValue] | None = None,
    criteria_metadata: CriteriaSnapshot | None = None,
    skill_ratings: SkillRatings | None = None,
    attendance: Attendance | None = None,
    participation: Participation | None = None,
    comprehension: Comprehension | None = None,
    behavior: Behavior | None = None,
    engagement_level: LikertLevel | None = None,
    achievements: Iterable[Achievement] = (),
    improvements: Iterable[Improvement] = (),
    homework: Homework | None = None,
    trainer_notes: TrainerNotes | None = None,
    progress: Progress | None = None,
    recommendations: Iterable[str] = (),
    flags: EvaluationFlags | None = None,
    visibility: Visibility | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> StudentEvaluation:
    """Insert a new evaluation.

    The (session, student) pair is unique; the insert runs in a savepoint so
    that a violation leaves the caller's transaction usable.

    Raises:
        DuplicateEvaluationError: the student already has an evaluation for this session
    """
    evaluation_id = EvaluationID()
    flags = flags or EvaluationFlags()
    visibility = visibility or Visibility()
    stmt = sqla.insert(student_evaluations).values(
        evaluation_id=evaluation_id,
        student_id=student_id,
        trainer_id=trainer_id,
        session_id=session_id,
        group_id=group_id,
        overall_rating=overall_rating,
        evaluation_date=evaluation_date,
        parameters=dict(parameters or {}),
        criteria_metadata=criteria_metadata.model_dump(mode="json") if criteria_metadata else None,
        skill_ratings=(skill_ratings or SkillRatings()).model_dump(mode="json"),
        attendance=(attendance or Attendance()).model_dump(mode="json"),
        participation=(participation or Participation()).model_dump(mode="json"),
        comprehension=(comprehension or Comprehension()).model_dump(mode="json"),
        behavior=(behavior or Behavior()).model_dump(mode="json"),
        engagement_level=engagement_level,
        achievements=[a.model_dump(mode="json") for a in achievements],
        improvements=[i.model_dump(mode="json") for i in improvements],
        homework=(homework or Homework()).model_dump(mode="json"),
        trainer_notes=(trainer_notes or TrainerNotes()).model_dump(mode="json"),
        progress=(progress or Progress()).model_dump(mode="json"),
        recommendations=list(recommendations),
        **flags.model_dump(),
        **visibility.model_dump(),
    )
    try:
        with session.begin_nested():
            session.execute(stmt)
    except sqlalchemy.exc.IntegrityError as e:
        if _is_session_student_conflict(e):
            raise DuplicateEvaluationError(session_id, student_id) from e
        raise
    result = get(evaluation_id, session=session)
    assert result is not None
    return result


def _is_session_student_conflict(e: sqlalchemy.exc.IntegrityError) -> bool:
    message = str(e.orig)
    # postgres names the constraint, sqlite names the columns
    return UNIQUE_SESSION_STUDENT in message or (
        "student_evaluations.session_id" in message and "student_evaluations.student_id" in message
    )


def update(
    evaluation_id: EvaluationID,
    *,
    overall_rating: int | NotSet = NotSet(),
    evaluation_date: datetime.datetime | NotSet = NotSet(),
    parameters: Mapping[str, RawParameterValue] | NotSet = NotSet(),
    skill_ratings: SkillRatings | NotSet = NotSet(),
    attendance: Attendance | NotSet = NotSet(),
    participation: Participation | NotSet = NotSet(),
    comprehension: Comprehension | NotSet = NotSet(),
    behavior: Behavior | NotSet = NotSet(),
    engagement_level: LikertLevel | None | NotSet = NotSet(),
    achievements: Iterable[Achievement] | NotSet = NotSet(),
    improvements: Iterable[Improvement] | NotSet = NotSet(),
    homework: Homework | NotSet = NotSet(),
    trainer_notes: TrainerNotes | NotSet = NotSet(),
    progress: Progress | NotSet = NotSet(),
    recommendations: Iterable[str] | NotSet = NotSet(),
    flags: EvaluationFlags | NotSet = NotSet(),
    visibility: Visibility | NotSet = NotSet(),
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Update an evaluation. The criteria snapshot is never rewritten.

    Uses NotSet sentinel for parameters where None may be a valid value.
    Call get() after if you need the updated entity.

    Raises:
        KeyError: If evaluation_id does not correspond to an evaluation
    """
    values: dict[str, t.Any] = {}
    if not isinstance(overall_rating, NotSet):
        values["overall_rating"] = overall_rating
    if not isinstance(evaluation_date, NotSet):
        values["evaluation_date"] = evaluation_date
    if not isinstance(parameters, NotSet):
        values["parameters"] = dict(parameters)
    for name, block in (
        ("skill_ratings", skill_ratings),
        ("attendance", attendance),
        ("participation", participation),
        ("comprehension", comprehension),
        ("behavior", behavior),
        ("homework", homework),
        ("trainer_notes", trainer_notes),
        ("progress", progress),
    ):
        if not isinstance(block, NotSet):
            values[name] = block.model_dump(mode="json")
    if not isinstance(engagement_level, NotSet):
        values["engagement_level"] = engagement_level
    if not isinstance(achievements, NotSet):
        values["achievements"] = [a.model_dump(mode="json") for a in achievements]
    if not isinstance(improvements, NotSet):
        values["improvements"] = [i.model_dump(mode="json") for i in improvements]
    if not isinstance(recommendations, NotSet):
        values["recommendations"] = list(recommendations)
    if not isinstance(flags, NotSet):
        values.update(flags.model_dump())
    if not isinstance(visibility, NotSet):
        values.update(visibility.model_dump())

    stmt = (
        sqla
        .update(student_evaluations)
        .where(student_evaluations.evaluation_id == evaluation_id)
        .values(evaluation_id=evaluation_id, **values)
    )
    result = session.execute(stmt)
    if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
        raise KeyError(f"StudentEvaluation {evaluation_id} not found")

    session.flush()


def delete_for_group(group_id: GroupID, *, session: Session = di.Provide["storage.persistent.session"]) -> int:
    """Delete every evaluation recorded in a group.

    Returns:
        The number of evaluations deleted
    """
    stmt = sqla.delete(student_evaluations).where(student_evaluations.group_id == group_id)
    result = session.execute(stmt)
    return int(result.rowcount)  # pyright: ignore[reportUnknownArgumentType, reportAttributeAccessIssue]
