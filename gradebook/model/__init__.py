__all__ = [
    # Base
    "BaseModel",
    "FrozenModel",
    "WithCtime",
    "WithMtime",
    "WithTimestamps",
    # Enums
    "DeploymentEnvironment",
    "LikertLevel",
    # ID Types
    "CourseID",
    "GroupID",
    "SessionID",
    "UserID",
    "CriteriaID",
    "EvaluationID",
    # Courses & Groups
    "Course",
    "Group",
    # Criteria
    "EvaluationCriteria",
    "ParameterSpec",
    "ParameterType",
    "RatingScale",
    "CriteriaScope",
    "CriteriaStatus",
    "CriteriaSnapshot",
    "ParameterSnapshot",
    # Parameter values
    "ParameterValue",
    "RawParameterValue",
    "RatingValue",
    "PercentageValue",
    "GradeValue",
    "BooleanValue",
    "TextValue",
    "UnscoredValue",
    # Evaluations
    "StudentEvaluation",
    "SkillRatings",
    "Attendance",
    "AttendanceStatus",
    "Participation",
    "Comprehension",
    "ComprehensionLevel",
    "Behavior",
    "Engagement",
    "Attitude",
    "Achievement",
    "AchievementCategory",
    "Improvement",
    "ImprovementPriority",
    "Homework",
    "Progress",
    "ProgressTrend",
    "TrainerNotes",
    "EvaluationFlags",
    "Visibility",
    # Statistics
    "EvaluationFilter",
    "EvaluationSummary",
    "StudentSummary",
    "ProgressPoint",
    "FlaggedStudent",
    "FlagCounts",
]

from .base import BaseModel, FrozenModel, WithCtime, WithMtime, WithTimestamps
from .course import Course, Group
from .criteria import CriteriaScope, CriteriaSnapshot, CriteriaStatus, EvaluationCriteria, ParameterSnapshot, \
    ParameterSpec, ParameterType, RatingScale
from .enum import DeploymentEnvironment, LikertLevel
from .evaluation import Achievement, AchievementCategory, Attendance, AttendanceStatus, Attitude, Behavior, \
    Comprehension, ComprehensionLevel, Engagement, EvaluationFlags, Homework, Improvement, ImprovementPriority, \
    Participation, Progress, ProgressTrend, SkillRatings, StudentEvaluation, TrainerNotes, Visibility
from .id import CourseID, CriteriaID, EvaluationID, GroupID, SessionID, UserID
from .parameter import BooleanValue, GradeValue, ParameterValue, PercentageValue, RatingValue, RawParameterValue, \
    TextValue, UnscoredValue
from .stats import EvaluationFilter, EvaluationSummary, FlagCounts, FlaggedStudent, ProgressPoint, StudentSummary
