"""Pick the one criteria definition a group is graded against.

An active definition that targets the group beats the course-wide default;
among several candidates at the same level the most recently updated wins.
"""

from __future__ import annotations

import logging

import gradebook.storage.criteria as criteria_storage
import gradebook.storage.group as group_storage
from gradebook.core import di
from gradebook.errors import CriteriaNotConfiguredError, GroupNotFoundError
from gradebook.model import CourseID, CriteriaScope, CriteriaStatus, EvaluationCriteria, GroupID
from gradebook.storage import Session

logger = logging.getLogger(__name__)


def resolve(
    group_id: GroupID,
    course_id: CourseID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> EvaluationCriteria:
    """Return the active definition that applies to ``group_id``.

    Raises:
        CriteriaNotConfiguredError: neither the group nor its course has an
            active definition
    """
    # storage returns candidates newest first, ties broken by id
    candidates = criteria_storage.find(
        group_id=group_id, scope=CriteriaScope.Groups, status=CriteriaStatus.Active, session=session
    )
    if candidates:
        return candidates[0]

    candidates = criteria_storage.find(
        course_id=course_id, scope=CriteriaScope.Course, status=CriteriaStatus.Active, session=session
    )
    if candidates:
        return candidates[0]

    raise CriteriaNotConfiguredError(f"no evaluation criteria configured for group {group_id} or course {course_id}")


def resolve_for_group(
    group_id: GroupID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> EvaluationCriteria:
    """Look up the group's course, then ``resolve``.

    Raises:
        GroupNotFoundError: the group does not exist
        CriteriaNotConfiguredError: the group exists but nothing applies to it
    """
    group = group_storage.get(group_id, session=session)
    if group is None:
        raise GroupNotFoundError(f"group {group_id} not found")

    criteria = resolve(group.group_id, group.course_id, session=session)
    logger.debug(
        "resolved criteria",
        extra={
            "group_id": group_id,
            "criteria_id": criteria.criteria_id,
            "scope": criteria.scope.value,
        },
    )
    return criteria
