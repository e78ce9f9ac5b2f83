import datetime

from .base import BaseModel
from .evaluation import ComprehensionLevel, EvaluationFlags, SkillRatings
from .id import CourseID, EvaluationID, GroupID, SessionID, UserID


class FlagCounts(BaseModel):
    needs_attention: int = 0
    at_risk: int = 0
    excelling: int = 0


class EvaluationSummary(BaseModel):
    count: int = 0
    average_rating: float = 0
    average_performance_score: int = 0
    rating_distribution: dict[int, int] = {r: 0 for r in range(1, 6)}
    engagement_distribution: dict[str, int] = {
        "very_low": 0,
        "low": 0,
        "medium": 0,
        "high": 0,
        "very_high": 0,
    }
    attendance_rate: int = 0
    flag_counts: FlagCounts = FlagCounts()


class StudentSummary(BaseModel):
    total_evaluations: int = 0
    average_rating: float = 0
    average_performance_score: int = 0
    average_skill_rating: float = 0
    attendance_rate: int = 0
    average_participation: float = 0


class ProgressPoint(BaseModel):
    evaluation_id: EvaluationID
    date: datetime.datetime
    overall_rating: int
    performance_score: int
    skill_ratings: SkillRatings
    participation: int
    comprehension: ComprehensionLevel


class FlaggedStudent(BaseModel):
    student_id: UserID
    group_ids: list[GroupID] = []
    evaluation_ids: list[EvaluationID] = []
    flags: EvaluationFlags = EvaluationFlags()


class EvaluationFilter(BaseModel):
    """Selects the evaluations a statistic is computed over; unset fields don't filter."""

    student_id: UserID | None = None
    trainer_id: UserID | None = None
    session_id: SessionID | None = None
    group_id: GroupID | None = None
    course_id: CourseID | None = None
    min_rating: int | None = None
    max_rating: int | None = None
    needs_attention: bool | None = None
    at_risk: bool | None = None
    excelling: bool | None = None
    date_from: datetime.datetime | None = None
    date_to: datetime.datetime | None = None
