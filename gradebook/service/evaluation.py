from __future__ import annotations

import datetime
import logging
import typing as t
from collections.abc import Iterable

import gradebook.storage.evaluation as evaluation_storage
from gradebook.core import di, TimestampProvider
from gradebook.errors import DuplicateEvaluationError, EvaluationNotFoundError, GradebookError, PermissionDeniedError, \
    ValidationError
from gradebook.model import Achievement, Attendance, BaseModel, Behavior, Comprehension, EvaluationCriteria, \
    EvaluationFlags, EvaluationID, GroupID, Homework, Improvement, LikertLevel, Participation, Progress, \
    RawParameterValue, SessionID, SkillRatings, StudentEvaluation, TrainerNotes, UserID, Visibility
from gradebook.model.evaluation import OverallRating
from gradebook.scoring.flagger import derive_flags, explain_flags
from gradebook.scoring.resolver import resolve_for_group
from gradebook.storage import Session

logger = logging.getLogger(__name__)

# stored when the criteria leave the overall rating out and none was given
DEFAULT_OVERALL_RATING = 3


class EvaluationContent(BaseModel):
    """What a trainer records about one student; shared by create, bulk and update."""

    overall_rating: OverallRating | None = None
    parameters: dict[str, RawParameterValue] = {}
    comments: str | None = None

    skill_ratings: SkillRatings | None = None
    attendance: Attendance | None = None
    participation: Participation | None = None
    comprehension: Comprehension | None = None
    behavior: Behavior | None = None
    engagement_level: LikertLevel | None = None
    achievements: list[Achievement] | None = None
    improvements: list[Improvement] | None = None
    homework: Homework | None = None
    trainer_notes: TrainerNotes | None = None
    progress: Progress | None = None
    recommendations: list[str] | None = None
    flags: EvaluationFlags | None = None
    evaluation_date: datetime.datetime | None = None

    def notes(self, current: TrainerNotes | None = None) -> TrainerNotes:
        notes = self.trainer_notes or current or TrainerNotes()
        if self.comments is not None:
            notes = notes.model_copy(update={"general_notes": self.comments})
        return notes


class EvaluationCreateParams(EvaluationContent):
    student_id: UserID
    session_id: SessionID
    group_id: GroupID
    trainer_id: UserID


class BulkEvaluationItem(EvaluationContent):
    student_id: UserID


class BulkCreateError(BaseModel):
    student_id: UserID
    error: str


class BulkCreateResult(BaseModel):
    created: list[StudentEvaluation] = []
    errors: list[BulkCreateError] = []


def _is_blank(raw: RawParameterValue) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def missing_fields(criteria: EvaluationCriteria, content: EvaluationContent) -> list[str]:
    """Every field ``criteria`` requires that ``content`` leaves out, in a stable order."""
    missing = [
        f"parameters.{ps.name}"
        for ps in criteria.required_parameters
        if _is_blank(content.parameters.get(ps.name))
    ]
    if criteria.include_overall_rating and content.overall_rating is None:
        missing.append("overall_rating")
    if criteria.include_comments and criteria.require_comments and _is_blank(content.notes().general_notes):
        missing.append("comments")
    return missing


def _draft(
    params: EvaluationCreateParams,
    criteria: EvaluationCriteria,
    now: datetime.datetime,
) -> StudentEvaluation:
    return StudentEvaluation(
        evaluation_id=EvaluationID(),
        student_id=params.student_id,
        trainer_id=params.trainer_id,
        session_id=params.session_id,
        group_id=params.group_id,
        overall_rating=params.overall_rating if params.overall_rating is not None else DEFAULT_OVERALL_RATING,
        skill_ratings=params.skill_ratings or SkillRatings(),
        attendance=params.attendance or Attendance(),
        participation=params.participation or Participation(),
        comprehension=params.comprehension or Comprehension(),
        behavior=params.behavior or Behavior(),
        engagement_level=params.engagement_level,
        achievements=params.achievements or [],
        improvements=params.improvements or [],
        homework=params.homework or Homework(),
        trainer_notes=params.notes(),
        progress=params.progress or Progress(),
        recommendations=params.recommendations or [],
        parameters=params.parameters,
        criteria_metadata=criteria.snapshot(),
        flags=params.flags or EvaluationFlags(),
        visibility=Visibility(),
        evaluation_date=params.evaluation_date or now,
        create_time=now,
        update_time=now,
    )


def _log_flags(evaluation: StudentEvaluation) -> None:
    if fired := explain_flags(evaluation):
        logger.debug(
            "flag rules fired",
            extra={
                "evaluation_id": evaluation.evaluation_id,
                "rules": [f"{r.flag}:{r.rule}" for r in fired],
            },
        )


@di.inject
def create_evaluation(
    params: EvaluationCreateParams,
    *,
    session: Session = di.Provide["storage.persistent.session"],
    utcnow: TimestampProvider = di.Provide["utcnow"],
) -> StudentEvaluation:
    """Grade one student for one session against the criteria resolved for the group.

    The resolved definition is frozen into the evaluation; later edits to it
    never change this evaluation's score.

    Raises:
        GroupNotFoundError: the group does not exist
        CriteriaNotConfiguredError: nothing applies to the group
        ValidationError: required parameters, overall rating or comments are missing
        DuplicateEvaluationError: the student already has an evaluation for the session
    """
    criteria = resolve_for_group(params.group_id, session=session)
    if missing := missing_fields(criteria, params):
        raise ValidationError(f"missing required fields: {', '.join(missing)}", fields=missing)

    draft = _draft(params, criteria, utcnow())
    flags = derive_flags(draft)
    _log_flags(draft)

    try:
        evaluation = evaluation_storage.create(
            student_id=draft.student_id,
            trainer_id=draft.trainer_id,
            session_id=draft.session_id,
            group_id=draft.group_id,
            overall_rating=draft.overall_rating,
            evaluation_date=draft.evaluation_date,
            parameters=draft.parameters,
            criteria_metadata=draft.criteria_metadata,
            skill_ratings=draft.skill_ratings,
            attendance=draft.attendance,
            participation=draft.participation,
            comprehension=draft.comprehension,
            behavior=draft.behavior,
            engagement_level=draft.engagement_level,
            achievements=draft.achievements,
            improvements=draft.improvements,
            homework=draft.homework,
            trainer_notes=draft.trainer_notes,
            progress=draft.progress,
            recommendations=draft.recommendations,
            flags=flags,
            session=session,
        )
    except DuplicateEvaluationError:
        logger.warning(
            "evaluation already exists",
            extra={
                "session_id": params.session_id,
                "student_id": params.student_id,
            },
        )
        raise

    logger.info(
        "created evaluation",
        extra={
            "evaluation_id": evaluation.evaluation_id,
            "criteria_id": criteria.criteria_id,
            "student_id": evaluation.student_id,
            "session_id": evaluation.session_id,
        },
    )
    return evaluation


@di.inject
def bulk_create_evaluations(
    session_id: SessionID,
    group_id: GroupID,
    trainer_id: UserID,
    items: Iterable[BulkEvaluationItem],
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> BulkCreateResult:
    """Create one evaluation per item; a failing item is reported, not fatal.

    Each insert runs in its own savepoint, so earlier successes survive a later
    failure within the same transaction.
    """
    result = BulkCreateResult()
    for item in items:
        params = EvaluationCreateParams(
            **item.model_dump(exclude_unset=True),
            session_id=session_id,
            group_id=group_id,
            trainer_id=trainer_id,
        )
        try:
            result.created.append(create_evaluation(params, session=session))
        except GradebookError as e:
            result.errors.append(BulkCreateError(student_id=item.student_id, error=str(e)))

    logger.info(
        "bulk created evaluations",
        extra={
            "session_id": session_id,
            "group_id": group_id,
            "created_count": len(result.created),
            "failed_count": len(result.errors),
        },
    )
    return result


def _get_owned(
    evaluation_id: EvaluationID, trainer_id: UserID | None, session: Session
) -> StudentEvaluation:
    evaluation = evaluation_storage.get(evaluation_id, session=session)
    if evaluation is None:
        raise EvaluationNotFoundError(f"evaluation {evaluation_id} not found")
    if trainer_id is not None and evaluation.trainer_id != trainer_id:
        raise PermissionDeniedError(f"evaluation {evaluation_id} belongs to another trainer")
    return evaluation


@di.inject
def update_evaluation(
    evaluation_id: EvaluationID,
    params: EvaluationContent,
    *,
    trainer_id: UserID,
    session: Session = di.Provide["storage.persistent.session"],
) -> StudentEvaluation:
    """Apply the fields set on ``params`` and re-run the flag rules.

    The criteria snapshot taken at creation is left as it is.

    Raises:
        EvaluationNotFoundError: no such evaluation
        PermissionDeniedError: ``trainer_id`` did not grade this evaluation
    """
    current = _get_owned(evaluation_id, trainer_id, session)

    changes: dict[str, t.Any] = {
        k: getattr(params, k) for k in params.model_fields_set if k not in {"comments", "trainer_notes"}
    }
    changes = {k: v for k, v in changes.items() if v is not None or k == "engagement_level"}
    if "trainer_notes" in params.model_fields_set or "comments" in params.model_fields_set:
        changes["trainer_notes"] = params.notes(current.trainer_notes)

    merged = current.model_copy(update=changes)
    flags = derive_flags(merged)
    _log_flags(merged)

    evaluation_storage.update(evaluation_id, **{**changes, "flags": flags}, session=session)
    evaluation = evaluation_storage.get(evaluation_id, session=session)
    assert evaluation is not None

    logger.info(
        "updated evaluation",
        extra={
            "evaluation_id": evaluation_id,
            "fields": sorted(changes),
        },
    )
    return evaluation


@di.inject
def share_evaluation(
    evaluation_id: EvaluationID,
    *,
    with_student: bool = False,
    with_parent: bool = False,
    trainer_id: UserID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
    utcnow: TimestampProvider = di.Provide["utcnow"],
) -> StudentEvaluation:
    """Make an evaluation visible to the student and/or their parent.

    Sharing with the student stamps ``shared_at``; sharing with the parent
    stamps it only if it was never stamped.
    """
    current = _get_owned(evaluation_id, trainer_id, session)
    visibility = current.visibility
    now = utcnow()

    if with_student:
        visibility = visibility.model_copy(update={"shared_with_student": True, "shared_at": now})
    if with_parent:
        visibility = visibility.model_copy(
            update={"shared_with_parent": True, "shared_at": visibility.shared_at or now}
        )

    evaluation_storage.update(evaluation_id, visibility=visibility, session=session)
    evaluation = evaluation_storage.get(evaluation_id, session=session)
    assert evaluation is not None
    logger.info(
        "shared evaluation",
        extra={
            "evaluation_id": evaluation_id,
            "with_student": with_student,
            "with_parent": with_parent,
        },
    )
    return evaluation


@di.inject
def flag_for_attention(
    evaluation_id: EvaluationID,
    reason: str = "",
    *,
    trainer_id: UserID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> StudentEvaluation:
    """Raise ``needs_attention`` by hand, noting the reason in the private notes."""
    current = _get_owned(evaluation_id, trainer_id, session)
    flags = current.flags.model_copy(update={"needs_attention": True})

    changes: dict[str, t.Any] = {"flags": flags}
    if reason:
        private = current.trainer_notes.private_notes
        line = f"Flagged: {reason}"
        changes["trainer_notes"] = current.trainer_notes.model_copy(
            update={"private_notes": f"{private}\n{line}" if private else line}
        )

    evaluation_storage.update(evaluation_id, **changes, session=session)
    evaluation = evaluation_storage.get(evaluation_id, session=session)
    assert evaluation is not None
    logger.info("flagged evaluation for attention", extra={"evaluation_id": evaluation_id, "reason": reason})
    return evaluation
