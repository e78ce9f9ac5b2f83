from __future__ import annotations

import logging
import typing as t
from collections import Counter

import pydantic as p

import gradebook.storage.course as course_storage
import gradebook.storage.criteria as criteria_storage
import gradebook.storage.group as group_storage
from gradebook.core import di, TimestampProvider
from gradebook.errors import CourseNotFoundError, CriteriaNotFoundError, PermissionDeniedError, ValidationError
from gradebook.model import BaseModel, CourseID, CriteriaID, CriteriaScope, CriteriaStatus, EvaluationCriteria, \
    GroupID, ParameterSpec, RatingScale, UserID
from gradebook.storage import Session

logger = logging.getLogger(__name__)


class CriteriaContent(BaseModel):
    name: str | None = None
    description: str | None = None
    scope: CriteriaScope | None = None
    group_ids: list[GroupID] | None = None
    parameters: list[ParameterSpec] | None = None
    include_overall_rating: bool | None = None
    overall_rating_scale: RatingScale | None = None
    include_comments: bool | None = None
    require_comments: bool | None = None
    status: CriteriaStatus | None = None


class CriteriaCreateParams(CriteriaContent):
    course_id: CourseID
    created_by: UserID
    name: str  # pyright: ignore[reportIncompatibleVariableOverride]
    scope: CriteriaScope = CriteriaScope.Course  # pyright: ignore[reportIncompatibleVariableOverride]


def _check_definition(criteria: EvaluationCriteria) -> None:
    """Reject duplicate parameter names and empty or inverted rating scales."""
    duplicates = sorted(name for name, n in Counter(ps.name for ps in criteria.parameters).items() if n > 1)
    if duplicates:
        raise ValidationError(
            f"parameter names must be unique: {', '.join(duplicates)}", fields=("parameters",)
        )

    bad = [
        f"parameters.{ps.name}.rating_scale"
        for ps in criteria.parameters
        if ps.rating_scale.max <= ps.rating_scale.min
    ]
    if criteria.overall_rating_scale.max <= criteria.overall_rating_scale.min:
        bad.append("overall_rating_scale")
    if bad:
        raise ValidationError("rating scale max must be greater than min", fields=bad)


def _check_targets(course_id: CourseID, group_ids: list[GroupID], session: Session) -> None:
    unique = tuple(dict.fromkeys(group_ids))
    found = group_storage.find(course_id=course_id, group_ids=unique, session=session)
    if len(found) != len(unique):
        raise ValidationError("some groups not found or do not belong to the specified course", fields=("group_ids",))


def _validated(data: dict[str, t.Any], *, stored: bool = False) -> EvaluationCriteria:
    try:
        criteria = EvaluationCriteria.model_validate(data, context={"stored": stored})
    except p.ValidationError as e:
        fields = [".".join(str(loc) for loc in err["loc"]) or "criteria" for err in e.errors()]
        message = "; ".join(err["msg"] for err in e.errors())
        raise ValidationError(message, fields=fields) from e
    _check_definition(criteria)
    return criteria


@di.inject
def create_criteria(
    params: CriteriaCreateParams,
    *,
    session: Session = di.Provide["storage.persistent.session"],
    utcnow: TimestampProvider = di.Provide["utcnow"],
) -> EvaluationCriteria:
    """Save a new criteria definition for a course.

    Weights are not required to total 100; see ``EvaluationCriteria.validate_weights``.

    Raises:
        CourseNotFoundError: the course does not exist
        ValidationError: the definition is malformed, or a target group is
            missing or belongs to another course
    """
    if not course_storage.exists(params.course_id, session=session):
        raise CourseNotFoundError(f"course {params.course_id} not found")

    # validated before anything is written; id and timestamps are placeholders
    now = utcnow()
    draft = _validated({
        **params.model_dump(exclude_none=True),
        "criteria_id": CriteriaID(),
        "create_time": now,
        "update_time": now,
    })
    if draft.scope is CriteriaScope.Groups:
        _check_targets(draft.course_id, draft.group_ids, session)

    criteria = criteria_storage.create(
        course_id=draft.course_id,
        created_by=draft.created_by,
        name=draft.name,
        description=draft.description,
        scope=draft.scope,
        group_ids=draft.group_ids,
        parameters=draft.parameters,
        include_overall_rating=draft.include_overall_rating,
        overall_rating_scale=draft.overall_rating_scale,
        include_comments=draft.include_comments,
        require_comments=draft.require_comments,
        status=draft.status,
        session=session,
    )
    logger.info(
        "created criteria",
        extra={
            "criteria_id": criteria.criteria_id,
            "course_id": criteria.course_id,
            "scope": criteria.scope.value,
            "parameters": len(criteria.parameters),
            "total_weight": criteria.total_weight,
        },
    )
    return criteria


@di.inject
def get_criteria(
    criteria_id: CriteriaID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> EvaluationCriteria:
    criteria = criteria_storage.get(criteria_id, session=session)
    if criteria is None:
        raise CriteriaNotFoundError(f"evaluation criteria {criteria_id} not found")
    return criteria


@di.inject
def find_criteria(
    created_by: UserID,
    *,
    course_id: CourseID | None = None,
    status: CriteriaStatus | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[EvaluationCriteria, ...]:
    """Definitions authored by ``created_by``, most recently updated first."""
    return criteria_storage.find(created_by=created_by, course_id=course_id, status=status, session=session)


@di.inject
def update_criteria(
    criteria_id: CriteriaID,
    params: CriteriaContent,
    *,
    updated_by: UserID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> EvaluationCriteria:
    """Apply the fields set on ``params`` in place.

    Evaluations already created against this definition keep their snapshot.

    Raises:
        CriteriaNotFoundError: no such definition
        PermissionDeniedError: ``updated_by`` did not create the definition
        ValidationError: the merged definition is malformed
    """
    current = get_criteria(criteria_id, session=session)
    if updated_by is not None and current.created_by != updated_by:
        raise PermissionDeniedError(f"evaluation criteria {criteria_id} belongs to another user")

    changes = {k: getattr(params, k) for k in params.model_fields_set if getattr(params, k) is not None}
    if "description" in params.model_fields_set:
        changes["description"] = params.description

    retargeted = "group_ids" in changes or changes.get("scope") is CriteriaScope.Groups
    merged = _validated({**current.model_dump(), **changes}, stored=not retargeted)
    if merged.scope is CriteriaScope.Groups and retargeted:
        _check_targets(merged.course_id, merged.group_ids, session)
    # take the normalized forms: sorted parameters, no targets under course scope
    for field in ("group_ids", "parameters"):
        if field in changes:
            changes[field] = getattr(merged, field)

    criteria_storage.update(criteria_id, **changes, session=session)
    criteria = get_criteria(criteria_id, session=session)
    logger.info(
        "updated criteria",
        extra={
            "criteria_id": criteria_id,
            "fields": sorted(changes),
        },
    )
    return criteria


@di.inject
def archive_criteria(
    criteria_id: CriteriaID,
    *,
    updated_by: UserID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> EvaluationCriteria:
    """Take a definition out of resolution; it is never deleted."""
    return update_criteria(
        criteria_id, CriteriaContent(status=CriteriaStatus.Archived), updated_by=updated_by, session=session
    )
