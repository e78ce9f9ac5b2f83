from __future__ import annotations

import sqlalchemy as sqla

from gradebook.core import di
from gradebook.model import Course, CourseID

from . import Session
from .table import courses


def get(course_id: CourseID, *, session: Session = di.Provide["storage.persistent.session"]) -> Course | None:
    stmt = sqla.select(courses.__table__).where(courses.course_id == course_id)
    row = session.execute(stmt).mappings().one_or_none()
    return Course(**row) if row else None


def exists(course_id: CourseID, *, session: Session = di.Provide["storage.persistent.session"]) -> bool:
    stmt = sqla.select(sqla.literal(True)).where(courses.course_id == course_id)
    return session.execute(stmt).scalar_one_or_none() is not None


def create(*, title: str, session: Session = di.Provide["storage.persistent.session"]) -> Course:
    course_id = CourseID()
    session.execute(sqla.insert(courses).values(course_id=course_id, title=title))
    session.flush()
    result = get(course_id, session=session)
    assert result is not None
    return result
