"""Pytest fixtures for gradebook tests.

The container is booted once per test session in the ``test`` environment,
which configures a private in-memory SQLite database. Each test that asks for
``db_session`` gets a freshly created schema and a session whose outer
transaction is rolled back afterwards.

Usage:
    def test_resolve(db_session: Session, test_group: Group, criteria_factory):
        criteria = criteria_factory(course_id=test_group.course_id)
        assert resolve_for_group(test_group.group_id, session=db_session) == criteria
"""

from __future__ import annotations

import datetime
import os
import typing as t
from pathlib import Path

import pydantic as p
import pytest
from sqlalchemy.orm import Session

import gradebook
import gradebook.storage.course as course_storage
import gradebook.storage.criteria as criteria_storage
import gradebook.storage.evaluation as evaluation_storage
import gradebook.storage.group as group_storage
from gradebook.core import GradebookContainer
from gradebook.model import Course, CourseID, CriteriaScope, CriteriaSnapshot, CriteriaStatus, DeploymentEnvironment, \
    EvaluationCriteria, EvaluationFlags, Group, GroupID, ParameterSpec, SessionID, StudentEvaluation, UserID
from gradebook.storage.table import metadata


@pytest.fixture(scope="session")
def container() -> t.Generator[GradebookContainer]:
    """Boot the DI container for the test session."""
    ct = GradebookContainer()
    root = Path(os.path.dirname(gradebook.__file__)).parent

    GradebookContainer.boot(
        ct,
        debug=True,
        env=DeploymentEnvironment.Test,
        config_root=p.FileUrl(f"file://{root}/config"),
        override=(),
    )

    yield ct

    ct.shutdown_resources()


@pytest.fixture
def db_session(container: GradebookContainer) -> t.Generator[Session]:
    """Provide a database session wrapped in a transaction.

    The schema is created before and dropped after every test. Within the
    test, ``session.begin()`` creates savepoints (join_transaction_mode) so
    that code written for production transactions runs unchanged.
    """
    engine = container.storage().persistent().engine()
    metadata.create_all(engine)

    connection = engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        autobegin=False,
        join_transaction_mode="create_savepoint",
    )

    yield session

    session.close()
    transaction.rollback()
    connection.close()
    metadata.drop_all(engine)


@pytest.fixture
def course_factory(db_session: Session) -> t.Callable[..., Course]:
    def create_course(title: str = "Python Fundamentals") -> Course:
        with db_session.begin():
            return course_storage.create(title=title, session=db_session)

    return create_course


@pytest.fixture
def test_course(course_factory: t.Callable[..., Course]) -> Course:
    return course_factory()


@pytest.fixture
def group_factory(db_session: Session, test_course: Course) -> t.Callable[..., Group]:
    """Factory fixture for groups; defaults to ``test_course``."""

    def create_group(course_id: CourseID | None = None, name: str = "Morning cohort") -> Group:
        with db_session.begin():
            return group_storage.create(course_id=course_id or test_course.course_id, name=name, session=db_session)

    return create_group


@pytest.fixture
def test_group(group_factory: t.Callable[..., Group]) -> Group:
    return group_factory()


@pytest.fixture
def admin_id() -> UserID:
    return UserID()


@pytest.fixture
def trainer_id() -> UserID:
    return UserID()


@pytest.fixture
def student_id() -> UserID:
    return UserID()


@pytest.fixture
def session_id() -> SessionID:
    return SessionID()


@pytest.fixture
def criteria_factory(
    db_session: Session,
    test_course: Course,
    admin_id: UserID,
) -> t.Callable[..., EvaluationCriteria]:
    """Factory fixture for criteria definitions, stored directly (no service checks).

    Usage:
        def test_something(criteria_factory, test_group):
            criteria = criteria_factory(scope=CriteriaScope.Groups, group_ids=[test_group.group_id])
    """

    def create_criteria(
        course_id: CourseID | None = None,
        name: str = "Weekly review",
        scope: CriteriaScope = CriteriaScope.Course,
        group_ids: t.Sequence[GroupID] = (),
        parameters: t.Sequence[ParameterSpec] = (),
        include_overall_rating: bool = True,
        include_comments: bool = True,
        require_comments: bool = False,
        status: CriteriaStatus = CriteriaStatus.Active,
        created_by: UserID | None = None,
    ) -> EvaluationCriteria:
        with db_session.begin():
            return criteria_storage.create(
                course_id=course_id or test_course.course_id,
                created_by=created_by or admin_id,
                name=name,
                scope=scope,
                group_ids=group_ids,
                parameters=parameters,
                include_overall_rating=include_overall_rating,
                include_comments=include_comments,
                require_comments=require_comments,
                status=status,
                session=db_session,
            )

    return create_criteria


@pytest.fixture
def evaluation_factory(
    db_session: Session,
    test_group: Group,
    trainer_id: UserID,
) -> t.Callable[..., StudentEvaluation]:
    """Factory fixture for evaluations, stored directly (no resolution or flagging)."""

    def create_evaluation(
        student_id: UserID | None = None,
        session_id: SessionID | None = None,
        group_id: GroupID | None = None,
        overall_rating: int = 3,
        evaluation_date: datetime.datetime | None = None,
        parameters: dict[str, t.Any] | None = None,
        criteria_metadata: CriteriaSnapshot | None = None,
        flags: EvaluationFlags | None = None,
        **blocks: t.Any,
    ) -> StudentEvaluation:
        with db_session.begin():
            return evaluation_storage.create(
                student_id=student_id or UserID(),
                trainer_id=blocks.pop("trainer_id", trainer_id),
                session_id=session_id or SessionID(),
                group_id=group_id or test_group.group_id,
                overall_rating=overall_rating,
                evaluation_date=evaluation_date or datetime.datetime.now(datetime.UTC),
                parameters=parameters,
                criteria_metadata=criteria_metadata,
                flags=flags,
                session=db_session,
                **blocks,
            )

    return create_evaluation
