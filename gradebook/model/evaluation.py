from __future__ import annotations

import datetime
import enum
import typing as t

import annotated_types as ant
import pydantic as p

from .base import BaseModel, WithTimestamps
from .criteria import CriteriaSnapshot
from .enum import LikertLevel
from .id import EvaluationID, GroupID, SessionID, UserID
from .parameter import RawParameterValue

SkillRating = t.Annotated[int, ant.Ge(1), ant.Le(5)]
OverallRating = t.Annotated[int, ant.Ge(1), ant.Le(5)]


class AttendanceStatus(enum.Enum):
    Present = "present"
    Late = "late"
    Absent = "absent"
    Excused = "excused"


class ComprehensionLevel(enum.Enum):
    Struggling = "struggling"
    NeedsSupport = "needs_support"
    Adequate = "adequate"
    Good = "good"
    Excellent = "excellent"


class Engagement(enum.Enum):
    Distracted = "distracted"
    Passive = "passive"
    Engaged = "engaged"
    VeryEngaged = "very_engaged"
    Exceptional = "exceptional"


class Attitude(enum.Enum):
    Negative = "negative"
    Neutral = "neutral"
    Positive = "positive"
    Enthusiastic = "enthusiastic"


class AchievementCategory(enum.Enum):
    Technical = "technical"
    Collaboration = "collaboration"
    Creativity = "creativity"
    Leadership = "leadership"
    Improvement = "improvement"
    Other = "other"


class ImprovementPriority(enum.Enum):
    Low = "low"
    Medium = "medium"
    High = "high"
    Critical = "critical"


class ProgressTrend(enum.Enum):
    Declined = "declined"
    NoChange = "no_change"
    SlightImprovement = "slight_improvement"
    GoodImprovement = "good_improvement"
    ExcellentImprovement = "excellent_improvement"


# Legacy structured blocks. Embedded in StudentEvaluation, not timestamped.


class SkillRatings(BaseModel):
    technical_skills: SkillRating = 3
    problem_solving: SkillRating = 3
    creativity: SkillRating = 3
    teamwork: SkillRating = 3
    communication: SkillRating = 3

    @property
    def average(self) -> float:
        total = self.technical_skills + self.problem_solving + self.creativity + self.teamwork + self.communication
        return round(total / 5, 1)


class Attendance(BaseModel):
    status: AttendanceStatus = AttendanceStatus.Present
    arrival_time: datetime.datetime | None = None
    departure_time: datetime.datetime | None = None
    notes: t.Annotated[str, p.StringConstraints(strip_whitespace=True, max_length=200)] | None = None


class Participation(BaseModel):
    level: LikertLevel = LikertLevel.Medium
    contribution_quality: SkillRating = 3
    questions_asked: t.Annotated[int, ant.Ge(0)] = 0
    helped_peers: bool = False


class Comprehension(BaseModel):
    level: ComprehensionLevel = ComprehensionLevel.Adequate
    concepts_understood: list[str] = []
    concepts_needing_work: list[str] = []
    notes: t.Annotated[str, p.StringConstraints(strip_whitespace=True, max_length=500)] | None = None


class Behavior(BaseModel):
    engagement: Engagement = Engagement.Engaged
    attitude: Attitude = Attitude.Positive
    focus: SkillRating = 3
    respectful: bool = True
    follows_instructions: bool = True
    notes: t.Annotated[str, p.StringConstraints(strip_whitespace=True, max_length=300)] | None = None


class Achievement(BaseModel):
    title: t.Annotated[str, p.StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    description: str | None = None
    category: AchievementCategory = AchievementCategory.Other


class Improvement(BaseModel):
    area: t.Annotated[str, p.StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    suggestion: str | None = None
    priority: ImprovementPriority = ImprovementPriority.Medium


class Homework(BaseModel):
    assigned: bool = False
    title: str | None = None
    description: str | None = None
    due_date: datetime.datetime | None = None
    estimated_hours: t.Annotated[float, ant.Ge(0), ant.Le(100)] | None = None


class Progress(BaseModel):
    compared_to_previous: ProgressTrend = ProgressTrend.NoChange
    on_track: bool = True
    notes: str | None = None


class TrainerNotes(BaseModel):
    strengths: str | None = None
    weaknesses: str | None = None
    general_notes: t.Annotated[str, p.StringConstraints(max_length=1000)] | None = None
    private_notes: str | None = None

    @p.model_validator(mode="before")
    @classmethod
    def accept_plain_string(cls, data: t.Any) -> t.Any:
        # clients may send the notes as a bare string
        if isinstance(data, str):
            return {"general_notes": data}
        return data


class EvaluationFlags(BaseModel):
    needs_attention: bool = False
    excelling: bool = False
    at_risk: bool = False
    parent_contact_needed: bool = False


class Visibility(BaseModel):
    shared_with_student: bool = False
    shared_with_parent: bool = False
    shared_at: datetime.datetime | None = None


class StudentEvaluation(WithTimestamps):
    evaluation_id: EvaluationID
    student_id: UserID
    trainer_id: UserID
    session_id: SessionID
    group_id: GroupID

    overall_rating: OverallRating

    skill_ratings: SkillRatings = SkillRatings()
    attendance: Attendance = Attendance()
    participation: Participation = Participation()
    comprehension: Comprehension = Comprehension()
    behavior: Behavior = Behavior()
    engagement_level: LikertLevel | None = None

    achievements: list[Achievement] = []
    improvements: list[Improvement] = []
    homework: Homework = Homework()
    trainer_notes: TrainerNotes = TrainerNotes()
    progress: Progress = Progress()
    recommendations: list[str] = []

    parameters: dict[str, RawParameterValue] = {}
    criteria_metadata: CriteriaSnapshot | None = None

    flags: EvaluationFlags = EvaluationFlags()
    visibility: Visibility = Visibility()

    evaluation_date: datetime.datetime

    @property
    def comments(self) -> str | None:
        return self.trainer_notes.general_notes

    @p.computed_field
    @property
    def average_skill_rating(self) -> float:
        return self.skill_ratings.average

    @p.computed_field
    @property
    def participation_score(self) -> int:
        return self.participation.level.score

    @p.computed_field
    @property
    def performance_score(self) -> int:
        from gradebook.scoring.score import compute_score

        return compute_score(self)

    @p.computed_field
    @property
    def needs_review(self) -> bool:
        return (
            self.flags.needs_attention
            or self.flags.at_risk
            or self.overall_rating <= 2
            or self.attendance.status is AttendanceStatus.Absent
        )
