"""Initial schema for the gradebook

Revision ID: 001_initial
Revises:
Create Date: 2026-10-16

"""

import typing as t

from alembic import op
from sqlalchemy import false, true
from sqlalchemy import func as f
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.schema import Column, ForeignKey, UniqueConstraint
from sqlalchemy.types import JSON, Boolean, DateTime, Integer, String

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | t.Sequence[str] | None = None
depends_on: str | t.Sequence[str] | None = None

JSONType = JSON().with_variant(JSONB(), "postgresql")


def upgrade() -> None:
    # Courses
    op.create_table(
        "courses",
        Column("course_id", String(22), primary_key=True),
        Column("title", String, nullable=False),
        Column("create_time", DateTime(timezone=True), server_default=f.now(), nullable=False),
        Column("update_time", DateTime(timezone=True), server_default=f.now(), nullable=False),
    )

    # Groups
    op.create_table(
        "groups",
        Column("group_id", String(22), primary_key=True),
        Column("course_id", String(22), ForeignKey("courses.course_id", ondelete="CASCADE"), nullable=False),
        Column("name", String, nullable=False),
        Column("create_time", DateTime(timezone=True), server_default=f.now(), nullable=False),
        Column("update_time", DateTime(timezone=True), server_default=f.now(), nullable=False),
    )

    # Evaluation criteria
    op.create_table(
        "evaluation_criteria",
        Column("criteria_id", String(22), primary_key=True),
        Column("course_id", String(22), ForeignKey("courses.course_id", ondelete="CASCADE"), nullable=False),
        Column("created_by", String(22), nullable=False),
        Column("name", String, nullable=False),
        Column("description", String, nullable=True),
        Column("scope", String(32), nullable=False),
        Column("status", String(32), server_default="active", nullable=False),
        Column("parameters", JSONType, nullable=False),
        Column("include_overall_rating", Boolean, server_default=true(), nullable=False),
        Column("overall_rating_scale", JSONType, nullable=False),
        Column("include_comments", Boolean, server_default=true(), nullable=False),
        Column("require_comments", Boolean, server_default=false(), nullable=False),
        Column("create_time", DateTime(timezone=True), server_default=f.now(), nullable=False),
        Column("update_time", DateTime(timezone=True), server_default=f.now(), nullable=False),
    )

    op.create_table(
        "evaluation_criteria_groups",
        Column(
            "criteria_id",
            String(22),
            ForeignKey("evaluation_criteria.criteria_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        Column("group_id", String(22), ForeignKey("groups.group_id", ondelete="CASCADE"), primary_key=True),
    )

    # Student evaluations
    op.create_table(
        "student_evaluations",
        Column("evaluation_id", String(22), primary_key=True),
        Column("student_id", String(22), nullable=False),
        Column("trainer_id", String(22), nullable=False),
        Column("session_id", String(22), nullable=False),
        Column("group_id", String(22), ForeignKey("groups.group_id", ondelete="CASCADE"), nullable=False),
        Column("overall_rating", Integer, nullable=False),
        Column("evaluation_date", DateTime(timezone=True), nullable=False),
        Column("skill_ratings", JSONType, nullable=False),
        Column("attendance", JSONType, nullable=False),
        Column("participation", JSONType, nullable=False),
        Column("comprehension", JSONType, nullable=False),
        Column("behavior", JSONType, nullable=False),
        Column("homework", JSONType, nullable=False),
        Column("trainer_notes", JSONType, nullable=False),
        Column("progress", JSONType, nullable=False),
        Column("achievements", JSONType, nullable=False),
        Column("improvements", JSONType, nullable=False),
        Column("recommendations", JSONType, nullable=False),
        Column("parameters", JSONType, nullable=False),
        Column("criteria_metadata", JSONType, nullable=True),
        Column("engagement_level", String(32), nullable=True),
        Column("needs_attention", Boolean, server_default=false(), nullable=False),
        Column("excelling", Boolean, server_default=false(), nullable=False),
        Column("at_risk", Boolean, server_default=false(), nullable=False),
        Column("parent_contact_needed", Boolean, server_default=false(), nullable=False),
        Column("shared_with_student", Boolean, server_default=false(), nullable=False),
        Column("shared_with_parent", Boolean, server_default=false(), nullable=False),
        Column("shared_at", DateTime(timezone=True), nullable=True),
        Column("create_time", DateTime(timezone=True), server_default=f.now(), nullable=False),
        Column("update_time", DateTime(timezone=True), server_default=f.now(), nullable=False),
        UniqueConstraint("session_id", "student_id", name="uq_student_evaluations_session_student"),
    )

    # Indexes
    op.create_index("ix_groups_course_id", "groups", ["course_id"])
    op.create_index("ix_evaluation_criteria_course_id", "evaluation_criteria", ["course_id"])
    op.create_index("ix_evaluation_criteria_status", "evaluation_criteria", ["status"])
    op.create_index("ix_student_evaluations_student_id", "student_evaluations", ["student_id"])
    op.create_index("ix_student_evaluations_trainer_id", "student_evaluations", ["trainer_id"])
    op.create_index("ix_student_evaluations_group_id", "student_evaluations", ["group_id"])


def downgrade() -> None:
    op.drop_table("student_evaluations")
    op.drop_table("evaluation_criteria_groups")
    op.drop_table("evaluation_criteria")
    op.drop_table("groups")
    op.drop_table("courses")
