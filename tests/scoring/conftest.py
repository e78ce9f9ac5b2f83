"""Fixtures for scoring tests. Engines are pure, so nothing here touches a database."""

from __future__ import annotations

import datetime
import typing as t

import pytest

from gradebook.model import EvaluationID, GroupID, SessionID, StudentEvaluation, UserID


@pytest.fixture
def make_evaluation() -> t.Callable[..., StudentEvaluation]:
    """Build an unsaved evaluation; keyword arguments override any field."""

    def build(**fields: t.Any) -> StudentEvaluation:
        now = datetime.datetime(2026, 3, 2, 9, 0, tzinfo=datetime.UTC)
        data: dict[str, t.Any] = {
            "evaluation_id": EvaluationID(),
            "student_id": UserID(),
            "trainer_id": UserID(),
            "session_id": SessionID(),
            "group_id": GroupID(),
            "overall_rating": 3,
            "evaluation_date": now,
            "create_time": now,
            "update_time": now,
        }
        data.update(fields)
        return StudentEvaluation.model_validate(data)

    return build
