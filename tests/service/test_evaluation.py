"""Tests for gradebook.service.evaluation."""

from __future__ import annotations

import datetime
import typing as t

import pytest
from sqlalchemy.orm import Session

import gradebook.storage.evaluation as evaluation_storage
from gradebook.errors import CriteriaNotConfiguredError, DuplicateEvaluationError, EvaluationNotFoundError, \
    GroupNotFoundError, PermissionDeniedError, ValidationError
from gradebook.model import Comprehension, ComprehensionLevel, CriteriaScope, EvaluationCriteria, EvaluationFlags, \
    EvaluationID, Group, GroupID, ParameterSpec, ParameterType, SessionID, StudentEvaluation, UserID
from gradebook.service.criteria import archive_criteria
from gradebook.service.evaluation import bulk_create_evaluations, BulkEvaluationItem, create_evaluation, \
    EvaluationContent, EvaluationCreateParams, flag_for_attention, share_evaluation, update_evaluation

CriteriaFactory = t.Callable[..., EvaluationCriteria]

T0 = datetime.datetime(2026, 3, 2, 9, 0, tzinfo=datetime.UTC)


@pytest.fixture
def create_params(
    test_group: Group,
    trainer_id: UserID,
    session_id: SessionID,
    student_id: UserID,
) -> t.Callable[..., EvaluationCreateParams]:
    def build(**fields: t.Any) -> EvaluationCreateParams:
        data: dict[str, t.Any] = {
            "student_id": student_id,
            "session_id": session_id,
            "group_id": test_group.group_id,
            "trainer_id": trainer_id,
            "overall_rating": 4,
        }
        data.update(fields)
        return EvaluationCreateParams(**data)

    return build


@pytest.fixture
def weighted_criteria(criteria_factory: CriteriaFactory) -> EvaluationCriteria:
    """Course-wide definition: one 1..5 rating worth all the weight."""
    return criteria_factory(parameters=[ParameterSpec(name="quality", weight=100)])


@pytest.fixture
def graded(
    db_session: Session,
    weighted_criteria: EvaluationCriteria,
    create_params: t.Callable[..., EvaluationCreateParams],
) -> StudentEvaluation:
    with db_session.begin():
        return create_evaluation(create_params(parameters={"quality": 4}), session=db_session)


class TestCreateEvaluation(object):
    def test_create_snapshots_criteria(
        self,
        db_session: Session,
        weighted_criteria: EvaluationCriteria,
        create_params: t.Callable[..., EvaluationCreateParams],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level("INFO", logger="gradebook"):
            with db_session.begin():
                evaluation = create_evaluation(
                    create_params(parameters={"quality": 4}, comments="Good week"), session=db_session
                )

        assert evaluation.criteria_metadata == weighted_criteria.snapshot()
        assert evaluation.performance_score == 75
        assert evaluation.comments == "Good week"
        assert evaluation.evaluation_date.tzinfo is not None
        assert any(r.getMessage() == "created evaluation" for r in caplog.records)

    def test_group_scope_used_when_present(
        self,
        db_session: Session,
        test_group: Group,
        weighted_criteria: EvaluationCriteria,
        criteria_factory: CriteriaFactory,
        create_params: t.Callable[..., EvaluationCreateParams],
    ) -> None:
        targeted = criteria_factory(
            scope=CriteriaScope.Groups,
            group_ids=[test_group.group_id],
            parameters=[ParameterSpec(name="done", type=ParameterType.Boolean, weight=100)],
        )

        with db_session.begin():
            evaluation = create_evaluation(create_params(parameters={"done": True}), session=db_session)

        assert evaluation.criteria_metadata is not None
        assert evaluation.criteria_metadata.criteria_id == targeted.criteria_id
        assert evaluation.performance_score == 100

    def test_lists_every_missing_field(
        self,
        db_session: Session,
        criteria_factory: CriteriaFactory,
        create_params: t.Callable[..., EvaluationCreateParams],
    ) -> None:
        criteria_factory(
            parameters=[
                ParameterSpec(name="quality"),
                ParameterSpec(name="speed"),
                ParameterSpec(name="extra", required=False),
            ],
            require_comments=True,
        )
        params = create_params(overall_rating=None, parameters={"quality": "  "}, comments="")

        with db_session.begin():
            with pytest.raises(ValidationError) as exc_info:
                create_evaluation(params, session=db_session)

        assert exc_info.value.fields == ("parameters.quality", "parameters.speed", "overall_rating", "comments")

    def test_overall_rating_optional_when_excluded(
        self,
        db_session: Session,
        criteria_factory: CriteriaFactory,
        create_params: t.Callable[..., EvaluationCreateParams],
    ) -> None:
        criteria_factory(include_overall_rating=False)

        with db_session.begin():
            evaluation = create_evaluation(create_params(overall_rating=None), session=db_session)

        assert evaluation.overall_rating == 3

    def test_comments_not_required_when_excluded(
        self,
        db_session: Session,
        criteria_factory: CriteriaFactory,
        create_params: t.Callable[..., EvaluationCreateParams],
    ) -> None:
        criteria_factory(include_comments=False, require_comments=True)

        with db_session.begin():
            evaluation = create_evaluation(create_params(), session=db_session)

        assert evaluation.comments is None

    def test_flags_derived(
        self,
        db_session: Session,
        weighted_criteria: EvaluationCriteria,
        create_params: t.Callable[..., EvaluationCreateParams],
    ) -> None:
        params = create_params(
            overall_rating=2,
            parameters={"quality": 2},
            comprehension=Comprehension(level=ComprehensionLevel.Struggling),
            flags=EvaluationFlags(parent_contact_needed=True),
        )

        with db_session.begin():
            evaluation = create_evaluation(params, session=db_session)

        assert evaluation.flags == EvaluationFlags(at_risk=True, needs_attention=True, parent_contact_needed=True)

    def test_unknown_group(
        self,
        db_session: Session,
        weighted_criteria: EvaluationCriteria,
        create_params: t.Callable[..., EvaluationCreateParams],
    ) -> None:
        with db_session.begin():
            with pytest.raises(GroupNotFoundError):
                create_evaluation(create_params(group_id=GroupID()), session=db_session)

    def test_no_criteria(
        self,
        db_session: Session,
        create_params: t.Callable[..., EvaluationCreateParams],
    ) -> None:
        with db_session.begin():
            with pytest.raises(CriteriaNotConfiguredError):
                create_evaluation(create_params(), session=db_session)

    def test_duplicate(
        self,
        db_session: Session,
        graded: StudentEvaluation,
        create_params: t.Callable[..., EvaluationCreateParams],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """The second create for the pair conflicts and exactly one record remains."""
        with caplog.at_level("WARNING", logger="gradebook"):
            with db_session.begin():
                with pytest.raises(DuplicateEvaluationError):
                    create_evaluation(create_params(parameters={"quality": 1}), session=db_session)

        with db_session.begin():
            stored = evaluation_storage.find(
                session_id=graded.session_id, student_id=graded.student_id, session=db_session
            )

        assert [e.evaluation_id for e in stored] == [graded.evaluation_id]
        assert any(r.getMessage() == "evaluation already exists" for r in caplog.records)

    def test_score_survives_criteria_changes(
        self,
        db_session: Session,
        graded: StudentEvaluation,
        weighted_criteria: EvaluationCriteria,
        criteria_factory: CriteriaFactory,
        create_params: t.Callable[..., EvaluationCreateParams],
    ) -> None:
        """Archiving v1 and grading under v2 leaves evaluations graded under v1 untouched."""
        with db_session.begin():
            archive_criteria(weighted_criteria.criteria_id, session=db_session)
        v2 = criteria_factory(
            name="v2",
            parameters=[ParameterSpec(name="quality", type=ParameterType.Percentage, weight=100)],
        )

        with db_session.begin():
            newer = create_evaluation(
                create_params(student_id=UserID(), parameters={"quality": 4}), session=db_session
            )
            reloaded = evaluation_storage.get(graded.evaluation_id, session=db_session)

        assert reloaded is not None
        assert reloaded.performance_score == graded.performance_score == 75
        assert reloaded.criteria_metadata == graded.criteria_metadata
        assert newer.criteria_metadata is not None
        assert newer.criteria_metadata.criteria_id == v2.criteria_id
        assert newer.performance_score == 4


class TestBulkCreate(object):
    def test_bulk_reports_failures(
        self,
        db_session: Session,
        graded: StudentEvaluation,
        test_group: Group,
        trainer_id: UserID,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        items = [
            BulkEvaluationItem(student_id=UserID(), overall_rating=5, parameters={"quality": 5}),
            BulkEvaluationItem(student_id=graded.student_id, overall_rating=3, parameters={"quality": 3}),
            BulkEvaluationItem(student_id=UserID(), parameters={"quality": 2}),
            BulkEvaluationItem(student_id=UserID(), overall_rating=2, parameters={"quality": 1}),
        ]

        with caplog.at_level("INFO", logger="gradebook"):
            with db_session.begin():
                result = bulk_create_evaluations(
                    graded.session_id, test_group.group_id, trainer_id, items, session=db_session
                )

        (summary,) = [r for r in caplog.records if r.getMessage() == "bulk created evaluations"]
        assert summary.created_count == 2
        assert summary.failed_count == 2
        assert len(result.created) == 2
        assert [e.student_id for e in result.errors] == [items[1].student_id, items[2].student_id]
        assert "already exists" in result.errors[0].error
        assert "overall_rating" in result.errors[1].error

        with db_session.begin():
            count = evaluation_storage.count(session=db_session)
        assert count == 3


class TestUpdateEvaluation(object):
    def test_update(self, db_session: Session, graded: StudentEvaluation, trainer_id: UserID) -> None:
        with db_session.begin():
            result = update_evaluation(
                graded.evaluation_id,
                EvaluationContent(overall_rating=1, parameters={"quality": 5}, comments="Rough day"),
                trainer_id=trainer_id,
                session=db_session,
            )

        assert result.overall_rating == 1
        assert result.flags.at_risk
        assert result.comments == "Rough day"
        assert result.criteria_metadata == graded.criteria_metadata
        assert result.performance_score == 100

    def test_manual_flag_survives_update(
        self,
        db_session: Session,
        graded: StudentEvaluation,
        trainer_id: UserID,
    ) -> None:
        """A hand-raised flag stays set through a save where no rule fires."""
        with db_session.begin():
            flag_for_attention(graded.evaluation_id, "family situation", session=db_session)
            result = update_evaluation(
                graded.evaluation_id,
                EvaluationContent(overall_rating=4),
                trainer_id=trainer_id,
                session=db_session,
            )

        assert result.flags.needs_attention

    def test_other_trainer_denied(self, db_session: Session, graded: StudentEvaluation) -> None:
        with db_session.begin():
            with pytest.raises(PermissionDeniedError):
                update_evaluation(
                    graded.evaluation_id, EvaluationContent(overall_rating=5), trainer_id=UserID(), session=db_session
                )

    def test_missing(self, db_session: Session, trainer_id: UserID) -> None:
        with db_session.begin():
            with pytest.raises(EvaluationNotFoundError):
                update_evaluation(EvaluationID(), EvaluationContent(), trainer_id=trainer_id, session=db_session)


class TestShareEvaluation(object):
    def test_share_with_student_stamps(self, db_session: Session, graded: StudentEvaluation) -> None:
        t1 = T0 + datetime.timedelta(hours=1)

        with db_session.begin():
            shared = share_evaluation(graded.evaluation_id, with_student=True, session=db_session, utcnow=lambda: T0)
            again = share_evaluation(graded.evaluation_id, with_student=True, session=db_session, utcnow=lambda: t1)

        assert shared.visibility.shared_with_student
        assert not shared.visibility.shared_with_parent
        assert shared.visibility.shared_at == T0
        assert again.visibility.shared_at == t1

    def test_share_with_parent_keeps_first_stamp(self, db_session: Session, graded: StudentEvaluation) -> None:
        t1 = T0 + datetime.timedelta(hours=1)

        with db_session.begin():
            first = share_evaluation(graded.evaluation_id, with_parent=True, session=db_session, utcnow=lambda: T0)
            second = share_evaluation(graded.evaluation_id, with_parent=True, session=db_session, utcnow=lambda: t1)

        assert first.visibility.shared_at == T0
        assert second.visibility.shared_with_parent
        assert second.visibility.shared_at == T0

    def test_share_does_not_change_score(self, db_session: Session, graded: StudentEvaluation) -> None:
        with db_session.begin():
            shared = share_evaluation(graded.evaluation_id, with_student=True, with_parent=True, session=db_session)

        assert shared.performance_score == graded.performance_score


class TestFlagForAttention(object):
    def test_appends_reasons(self, db_session: Session, graded: StudentEvaluation) -> None:
        with db_session.begin():
            flag_for_attention(graded.evaluation_id, "missed deadline", session=db_session)
            result = flag_for_attention(graded.evaluation_id, "asked for help", session=db_session)

        assert result.flags.needs_attention
        assert result.trainer_notes.private_notes == "Flagged: missed deadline\nFlagged: asked for help"

    def test_without_reason(self, db_session: Session, graded: StudentEvaluation) -> None:
        with db_session.begin():
            result = flag_for_attention(graded.evaluation_id, session=db_session)

        assert result.flags.needs_attention
        assert result.trainer_notes.private_notes is None
