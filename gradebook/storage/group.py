"""Minimal group records, enough to answer group -> course lookups."""

from __future__ import annotations

import sqlalchemy as sqla

from gradebook.core import di
from gradebook.model import CourseID, Group, GroupID

from . import Session
from . import evaluation as evaluation_storage
from .table import groups


def get(group_id: GroupID, *, session: Session = di.Provide["storage.persistent.session"]) -> Group | None:
    stmt = sqla.select(groups.__table__).where(groups.group_id == group_id)
    row = session.execute(stmt).mappings().one_or_none()
    return Group(**row) if row else None


def exists(group_id: GroupID, *, session: Session = di.Provide["storage.persistent.session"]) -> bool:
    stmt = sqla.select(sqla.literal(True)).where(groups.group_id == group_id)
    return session.execute(stmt).scalar_one_or_none() is not None


def find(
    *,
    course_id: CourseID | None = None,
    group_ids: tuple[GroupID, ...] | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Group, ...]:
    stmt = sqla.select(groups.__table__).order_by(groups.name)
    if course_id is not None:
        stmt = stmt.where(groups.course_id == course_id)
    if group_ids is not None:
        stmt = stmt.where(groups.group_id.in_(group_ids))
    rows = session.execute(stmt).mappings().all()
    return tuple(Group(**row) for row in rows)


def create(
    *, course_id: CourseID, name: str, session: Session = di.Provide["storage.persistent.session"]
) -> Group:
    group_id = GroupID()
    session.execute(sqla.insert(groups).values(group_id=group_id, course_id=course_id, name=name))
    session.flush()
    result = get(group_id, session=session)
    assert result is not None
    return result


def delete(group_id: GroupID, *, session: Session = di.Provide["storage.persistent.session"]) -> bool:
    """Delete a group together with every evaluation recorded in it.

    The foreign key cascades as well; the explicit delete covers backends
    that don't enforce foreign keys.

    Returns:
        True if a group was deleted, False if not found
    """
    evaluation_storage.delete_for_group(group_id, session=session)
    result = session.execute(sqla.delete(groups).where(groups.group_id == group_id))
    return bool(result.rowcount)  # pyright: ignore[reportUnknownArgumentType, reportAttributeAccessIssue]
