"""Exceptions raised by gradebook storage and service operations.

Every error is local to one request; nothing here is retried. The scoring,
flagging and aggregation functions never raise any of these.
"""

from __future__ import annotations

import typing as t


class GradebookError(Exception):
    """Base class for gradebook errors."""

    pass


class ValidationError(GradebookError):
    """Input is missing or malformed; the caller can correct it and retry."""

    def __init__(self, message: str, *, fields: t.Iterable[str] = ()):
        super().__init__(message)
        self.fields = tuple(fields)


class NotFoundError(GradebookError):
    """A referenced entity does not exist."""

    pass


class CourseNotFoundError(NotFoundError):
    pass


class GroupNotFoundError(NotFoundError):
    pass


class CriteriaNotFoundError(NotFoundError):
    pass


class CriteriaNotConfiguredError(NotFoundError):
    """No active criteria definition applies to the group.

    Distinct from a missing group: the group exists but cannot be graded until
    an administrator configures criteria for it or for its course.
    """

    pass


class EvaluationNotFoundError(NotFoundError):
    pass


class ConflictError(GradebookError):
    """The operation would violate a uniqueness invariant."""

    pass


class DuplicateEvaluationError(ConflictError):
    """The student already has an evaluation for this session."""

    def __init__(self, session_id: t.Any, student_id: t.Any):
        super().__init__(f"evaluation already exists for student {student_id} in session {session_id}")
        self.session_id = session_id
        self.student_id = student_id


class PermissionDeniedError(GradebookError):
    """The acting user does not own the entity being modified."""

    pass
