from __future__ import annotations

import typing as t
from collections.abc import Iterable, Mapping

import sqlalchemy as sqla

from gradebook.core import di
from gradebook.lib.sentinel import NotSet
from gradebook.model import CourseID, CriteriaID, CriteriaScope, CriteriaStatus, EvaluationCriteria, GroupID, \
    ParameterSpec, RatingScale, UserID

from . import Session
from .table import evaluation_criteria, evaluation_criteria_groups


def _group_ids(criteria_ids: Iterable[CriteriaID], session: Session) -> dict[CriteriaID, list[GroupID]]:
    ids = list(criteria_ids)
    targets: dict[CriteriaID, list[GroupID]] = {cid: [] for cid in ids}
    if not ids:
        return targets
    stmt = (
        sqla
        .select(evaluation_criteria_groups.criteria_id, evaluation_criteria_groups.group_id)
        .where(evaluation_criteria_groups.criteria_id.in_(ids))
        .order_by(evaluation_criteria_groups.group_id)
    )
    for criteria_id, group_id in session.execute(stmt):
        targets[criteria_id].append(group_id)
    return targets


def _from_rows(rows: t.Sequence[Mapping[str, t.Any]], session: Session) -> tuple[EvaluationCriteria, ...]:
    targets = _group_ids((row["criteria_id"] for row in rows), session)
    return tuple(
        EvaluationCriteria.model_validate(
            {**row, "group_ids": targets[row["criteria_id"]]}, context={"stored": True}
        )
        for row in rows
    )


def get(
    criteria_id: CriteriaID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> EvaluationCriteria | None:
    """Get a criteria definition by ID."""
    stmt = sqla.select(evaluation_criteria.__table__).where(evaluation_criteria.criteria_id == criteria_id)
    row = session.execute(stmt).mappings().one_or_none()
    if row is None:
        return None
    return _from_rows([row], session)[0]


def find(
    *,
    course_id: CourseID | None = None,
    group_id: GroupID | None = None,
    scope: CriteriaScope | None = None,
    status: CriteriaStatus | None = None,
    created_by: UserID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[EvaluationCriteria, ...]:
    """Find criteria definitions, most recently updated first.

    ``group_id`` matches definitions that target that group; ties on
    ``update_time`` are broken by ``criteria_id`` so the order is stable.
    """
    stmt = sqla.select(evaluation_criteria.__table__)
    if course_id is not None:
        stmt = stmt.where(evaluation_criteria.course_id == course_id)
    if group_id is not None:
        stmt = stmt.where(
            evaluation_criteria.criteria_id.in_(
                sqla
                .select(evaluation_criteria_groups.criteria_id)
                .where(evaluation_criteria_groups.group_id == group_id)
            )
        )
    if scope is not None:
        stmt = stmt.where(evaluation_criteria.scope == scope)
    if status is not None:
        stmt = stmt.where(evaluation_criteria.status == status)
    if created_by is not None:
        stmt = stmt.where(evaluation_criteria.created_by == created_by)
    stmt = stmt.order_by(evaluation_criteria.update_time.desc(), evaluation_criteria.criteria_id.desc())
    rows = session.execute(stmt).mappings().all()
    return _from_rows(rows, session)


def create(
    *,
    course_id: CourseID,
    created_by: UserID,
    name: str,
    description: str | None = None,
    scope: CriteriaScope = CriteriaScope.Course,
    group_ids: Iterable[GroupID] = (),
    parameters: Iterable[ParameterSpec] = (),
    include_overall_rating: bool = True,
    overall_rating_scale: RatingScale | None = None,
    include_comments: bool = True,
    require_comments: bool = False,
    status: CriteriaStatus = CriteriaStatus.Active,
    session: Session = di.Provide["storage.persistent.session"],
) -> EvaluationCriteria:
    """Create a new criteria definition.

    Callers are expected to have validated the definition (see
    ``EvaluationCriteria``); course scope never stores target groups.
    """
    criteria_id = CriteriaID()
    targets = list(dict.fromkeys(group_ids)) if scope is CriteriaScope.Groups else []
    stmt = sqla.insert(evaluation_criteria).values(
        criteria_id=criteria_id,
        course_id=course_id,
        created_by=created_by,
        name=name,
        description=description,
        scope=scope,
        parameters=[ps.model_dump(mode="json") for ps in parameters],
        include_overall_rating=include_overall_rating,
        overall_rating_scale=(overall_rating_scale or RatingScale()).model_dump(mode="json"),
        include_comments=include_comments,
        require_comments=require_comments,
        status=status,
    )
    session.execute(stmt)
    _replace_targets(criteria_id, targets, session)
    session.flush()
    result = get(criteria_id, session=session)
    assert result is not None
    return result


def update(
    criteria_id: CriteriaID,
    *,
    name: str | NotSet = NotSet(),
    description: str | None | NotSet = NotSet(),
    scope: CriteriaScope | NotSet = NotSet(),
    group_ids: Iterable[GroupID] | NotSet = NotSet(),
    parameters: Iterable[ParameterSpec] | NotSet = NotSet(),
    include_overall_rating: bool | NotSet = NotSet(),
    overall_rating_scale: RatingScale | NotSet = NotSet(),
    include_comments: bool | NotSet = NotSet(),
    require_comments: bool | NotSet = NotSet(),
    status: CriteriaStatus | NotSet = NotSet(),
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Update a criteria definition in place; ``update_time`` always advances.

    Uses NotSet sentinel for parameters where None may be a valid value.
    Call get() after if you need the updated entity.

    Raises:
        KeyError: If criteria_id does not correspond to a definition
    """
    values: dict[str, t.Any] = {}
    if not isinstance(name, NotSet):
        values["name"] = name
    if not isinstance(description, NotSet):
        values["description"] = description
    if not isinstance(scope, NotSet):
        values["scope"] = scope
    if not isinstance(parameters, NotSet):
        values["parameters"] = [ps.model_dump(mode="json") for ps in parameters]
    if not isinstance(include_overall_rating, NotSet):
        values["include_overall_rating"] = include_overall_rating
    if not isinstance(overall_rating_scale, NotSet):
        values["overall_rating_scale"] = overall_rating_scale.model_dump(mode="json")
    if not isinstance(include_comments, NotSet):
        values["include_comments"] = include_comments
    if not isinstance(require_comments, NotSet):
        values["require_comments"] = require_comments
    if not isinstance(status, NotSet):
        values["status"] = status

    # always touch the row so that update_time advances and existence is checked
    stmt = (
        sqla
        .update(evaluation_criteria)
        .where(evaluation_criteria.criteria_id == criteria_id)
        .values(criteria_id=criteria_id, **values)
    )
    result = session.execute(stmt)
    if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
        raise KeyError(f"EvaluationCriteria {criteria_id} not found")

    if scope is CriteriaScope.Course:
        _replace_targets(criteria_id, [], session)
    elif not isinstance(group_ids, NotSet):
        _replace_targets(criteria_id, list(dict.fromkeys(group_ids)), session)

    session.flush()


def _replace_targets(criteria_id: CriteriaID, group_ids: list[GroupID], session: Session) -> None:
    session.execute(
        sqla.delete(evaluation_criteria_groups).where(evaluation_criteria_groups.criteria_id == criteria_id)
    )
    if group_ids:
        session.execute(
            sqla.insert(evaluation_criteria_groups),
            [{"criteria_id": criteria_id, "group_id": gid} for gid in group_ids],
        )
