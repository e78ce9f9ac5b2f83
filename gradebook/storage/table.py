import datetime
import enum
import typing as t

from sqlalchemy import ForeignKey, MetaData, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, MappedAsDataclass
from sqlalchemy.types import JSON

from gradebook.core.provider import utcnow
from gradebook.model import CourseID, CriteriaID, CriteriaScope, CriteriaStatus, EvaluationID, GroupID, LikertLevel, \
    SessionID, UserID

from .type import ShortUUIDKeyType, UTCDateTime, ValueEnumMapper

JSONType = JSON().with_variant(JSONB(), "postgresql")

metadata = MetaData()


class base(MappedAsDataclass, DeclarativeBase):
    metadata = metadata
    type_annotation_map = {
        CourseID: ShortUUIDKeyType(CourseID),
        GroupID: ShortUUIDKeyType(GroupID),
        SessionID: ShortUUIDKeyType(SessionID),
        UserID: ShortUUIDKeyType(UserID),
        CriteriaID: ShortUUIDKeyType(CriteriaID),
        EvaluationID: ShortUUIDKeyType(EvaluationID),
        datetime.datetime: UTCDateTime(),
        dict[str, t.Any]: JSONType,
        list[t.Any]: JSONType,
        enum.Enum: ValueEnumMapper,
    }


# Courses & Groups


class courses(base):
    __tablename__ = "courses"

    course_id: Mapped[CourseID] = mapped_column(primary_key=True)
    title: Mapped[str]
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, insert_default=utcnow)
    update_time: Mapped[datetime.datetime] = mapped_column(default=None, insert_default=utcnow, onupdate=utcnow)


class groups(base):
    __tablename__ = "groups"

    group_id: Mapped[GroupID] = mapped_column(primary_key=True)
    course_id: Mapped[CourseID] = mapped_column(ForeignKey("courses.course_id", ondelete="CASCADE"), index=True)
    name: Mapped[str]
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, insert_default=utcnow)
    update_time: Mapped[datetime.datetime] = mapped_column(default=None, insert_default=utcnow, onupdate=utcnow)


# Evaluation criteria


class evaluation_criteria(base):
    __tablename__ = "evaluation_criteria"

    criteria_id: Mapped[CriteriaID] = mapped_column(primary_key=True)
    course_id: Mapped[CourseID] = mapped_column(ForeignKey("courses.course_id", ondelete="CASCADE"), index=True)
    created_by: Mapped[UserID]
    name: Mapped[str]
    scope: Mapped[CriteriaScope]
    status: Mapped[CriteriaStatus] = mapped_column(index=True)
    parameters: Mapped[list[t.Any]]
    overall_rating_scale: Mapped[dict[str, t.Any]]
    description: Mapped[str | None] = mapped_column(default=None)
    include_overall_rating: Mapped[bool] = mapped_column(default=True)
    include_comments: Mapped[bool] = mapped_column(default=True)
    require_comments: Mapped[bool] = mapped_column(default=False)
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, insert_default=utcnow)
    update_time: Mapped[datetime.datetime] = mapped_column(default=None, insert_default=utcnow, onupdate=utcnow)


class evaluation_criteria_groups(base):
    __tablename__ = "evaluation_criteria_groups"

    criteria_id: Mapped[CriteriaID] = mapped_column(
        ForeignKey("evaluation_criteria.criteria_id", ondelete="CASCADE"), primary_key=True
    )
    group_id: Mapped[GroupID] = mapped_column(ForeignKey("groups.group_id", ondelete="CASCADE"), primary_key=True)


# Student evaluations


class student_evaluations(base):
    __tablename__ = "student_evaluations"
    __table_args__ = (UniqueConstraint("session_id", "student_id", name="uq_student_evaluations_session_student"),)

    evaluation_id: Mapped[EvaluationID] = mapped_column(primary_key=True)
    student_id: Mapped[UserID] = mapped_column(index=True)
    trainer_id: Mapped[UserID] = mapped_column(index=True)
    session_id: Mapped[SessionID]
    group_id: Mapped[GroupID] = mapped_column(ForeignKey("groups.group_id", ondelete="CASCADE"), index=True)
    overall_rating: Mapped[int]
    evaluation_date: Mapped[datetime.datetime]

    skill_ratings: Mapped[dict[str, t.Any]]
    attendance: Mapped[dict[str, t.Any]]
    participation: Mapped[dict[str, t.Any]]
    comprehension: Mapped[dict[str, t.Any]]
    behavior: Mapped[dict[str, t.Any]]
    homework: Mapped[dict[str, t.Any]]
    trainer_notes: Mapped[dict[str, t.Any]]
    progress: Mapped[dict[str, t.Any]]
    achievements: Mapped[list[t.Any]]
    improvements: Mapped[list[t.Any]]
    recommendations: Mapped[list[t.Any]]
    parameters: Mapped[dict[str, t.Any]]
    criteria_metadata: Mapped[dict[str, t.Any] | None] = mapped_column(default=None)
    engagement_level: Mapped[LikertLevel | None] = mapped_column(default=None)

    needs_attention: Mapped[bool] = mapped_column(default=False)
    excelling: Mapped[bool] = mapped_column(default=False)
    at_risk: Mapped[bool] = mapped_column(default=False)
    parent_contact_needed: Mapped[bool] = mapped_column(default=False)

    shared_with_student: Mapped[bool] = mapped_column(default=False)
    shared_with_parent: Mapped[bool] = mapped_column(default=False)
    shared_at: Mapped[datetime.datetime | None] = mapped_column(default=None)

    create_time: Mapped[datetime.datetime] = mapped_column(default=None, insert_default=utcnow)
    update_time: Mapped[datetime.datetime] = mapped_column(default=None, insert_default=utcnow, onupdate=utcnow)
