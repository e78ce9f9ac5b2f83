"""Tests for gradebook.scoring.resolver."""

from __future__ import annotations

import typing as t

import pytest
from sqlalchemy.orm import Session

import gradebook.storage.criteria as criteria_storage
import gradebook.storage.group as group_storage
from gradebook.errors import CriteriaNotConfiguredError, GroupNotFoundError, NotFoundError
from gradebook.model import Course, CriteriaScope, CriteriaStatus, EvaluationCriteria, Group, GroupID
from gradebook.scoring.resolver import resolve, resolve_for_group

CriteriaFactory = t.Callable[..., EvaluationCriteria]


class TestResolve(object):
    def test_group_scope_beats_course_scope(
        self,
        db_session: Session,
        test_group: Group,
        criteria_factory: CriteriaFactory,
    ) -> None:
        """A group-scoped definition wins over the course default, whichever is newer."""
        targeted = criteria_factory(scope=CriteriaScope.Groups, group_ids=[test_group.group_id])
        criteria_factory(name="Course default")

        with db_session.begin():
            result = resolve(test_group.group_id, test_group.course_id, session=db_session)

        assert result.criteria_id == targeted.criteria_id

    def test_falls_back_to_course_scope(
        self,
        db_session: Session,
        test_group: Group,
        group_factory: t.Callable[..., Group],
        criteria_factory: CriteriaFactory,
    ) -> None:
        """A definition targeting some other group doesn't apply."""
        other = group_factory(name="Evening cohort")
        criteria_factory(scope=CriteriaScope.Groups, group_ids=[other.group_id])
        default = criteria_factory(name="Course default")

        with db_session.begin():
            result = resolve(test_group.group_id, test_group.course_id, session=db_session)

        assert result.criteria_id == default.criteria_id

    def test_most_recently_updated_wins(
        self,
        db_session: Session,
        test_group: Group,
        criteria_factory: CriteriaFactory,
    ) -> None:
        first = criteria_factory(name="First", scope=CriteriaScope.Groups, group_ids=[test_group.group_id])
        second = criteria_factory(name="Second", scope=CriteriaScope.Groups, group_ids=[test_group.group_id])

        with db_session.begin():
            assert resolve(test_group.group_id, test_group.course_id, session=db_session) == second

        with db_session.begin():
            criteria_storage.update(first.criteria_id, description="touched", session=db_session)
            result = resolve(test_group.group_id, test_group.course_id, session=db_session)

        assert result.criteria_id == first.criteria_id

    @pytest.mark.parametrize("status", [CriteriaStatus.Inactive, CriteriaStatus.Archived])
    def test_only_active_definitions_resolve(
        self,
        db_session: Session,
        test_group: Group,
        criteria_factory: CriteriaFactory,
        status: CriteriaStatus,
    ) -> None:
        default = criteria_factory(name="Course default")
        criteria_factory(status=status, scope=CriteriaScope.Groups, group_ids=[test_group.group_id])

        with db_session.begin():
            result = resolve(test_group.group_id, test_group.course_id, session=db_session)

        assert result.criteria_id == default.criteria_id

    def test_other_course_does_not_apply(
        self,
        db_session: Session,
        test_group: Group,
        course_factory: t.Callable[..., Course],
        criteria_factory: CriteriaFactory,
    ) -> None:
        other = course_factory(title="Data Science")
        criteria_factory(course_id=other.course_id)

        with db_session.begin():
            with pytest.raises(CriteriaNotConfiguredError):
                resolve(test_group.group_id, test_group.course_id, session=db_session)

    def test_nothing_configured(self, db_session: Session, test_group: Group) -> None:
        with db_session.begin():
            with pytest.raises(CriteriaNotConfiguredError) as exc_info:
                resolve(test_group.group_id, test_group.course_id, session=db_session)

        assert isinstance(exc_info.value, NotFoundError)


class TestResolveForGroup(object):
    def test_looks_up_course(
        self,
        db_session: Session,
        test_group: Group,
        criteria_factory: CriteriaFactory,
    ) -> None:
        default = criteria_factory()

        with db_session.begin():
            result = resolve_for_group(test_group.group_id, session=db_session)

        assert result.criteria_id == default.criteria_id

    def test_missing_group(self, db_session: Session, criteria_factory: CriteriaFactory) -> None:
        """A missing group is reported as such, not as unconfigured criteria."""
        criteria_factory()

        with db_session.begin():
            with pytest.raises(GroupNotFoundError):
                resolve_for_group(GroupID(), session=db_session)

    def test_orphaned_group_scope_is_skipped(
        self,
        db_session: Session,
        test_group: Group,
        group_factory: t.Callable[..., Group],
        criteria_factory: CriteriaFactory,
    ) -> None:
        """Deleting a definition's only target group leaves it loadable but unreachable."""
        doomed = group_factory(name="Cancelled cohort")
        orphan = criteria_factory(scope=CriteriaScope.Groups, group_ids=[doomed.group_id])
        default = criteria_factory(name="Course default")

        with db_session.begin():
            group_storage.delete(doomed.group_id, session=db_session)

        with db_session.begin():
            loaded = criteria_storage.get(orphan.criteria_id, session=db_session)
            result = resolve_for_group(test_group.group_id, session=db_session)

        assert loaded is not None
        assert loaded.group_ids == []
        assert result.criteria_id == default.criteria_id
