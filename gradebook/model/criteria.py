from __future__ import annotations

import enum
import typing as t

import annotated_types as ant
import pydantic as p

from .base import BaseModel, FrozenModel, WithTimestamps
from .id import CourseID, CriteriaID, GroupID, UserID


class ParameterType(enum.Enum):
    Rating = "rating"
    Percentage = "percentage"
    Grade = "grade"
    Boolean = "boolean"
    Text = "text"


class CriteriaScope(enum.Enum):
    Course = "course"
    Groups = "groups"


class CriteriaStatus(enum.Enum):
    Active = "active"
    Inactive = "inactive"
    Archived = "archived"


class RatingScale(FrozenModel):
    min: float = 1
    max: float = 5
    labels: dict[str, str] = {}

    @property
    def span(self) -> float:
        return self.max - self.min


class ParameterSpec(BaseModel):
    name: t.Annotated[str, p.StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    description: t.Annotated[str, p.StringConstraints(strip_whitespace=True, max_length=200)] | None = None
    type: ParameterType = ParameterType.Rating
    rating_scale: RatingScale = RatingScale()
    weight: t.Annotated[float, ant.Ge(0), ant.Le(100)] = 0
    required: bool = True
    order: int = 0


class EvaluationCriteria(WithTimestamps):
    criteria_id: CriteriaID
    course_id: CourseID
    created_by: UserID

    name: t.Annotated[str, p.StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
    description: t.Annotated[str, p.StringConstraints(strip_whitespace=True, max_length=500)] | None = None

    scope: CriteriaScope = CriteriaScope.Course
    group_ids: list[GroupID] = []

    parameters: list[ParameterSpec] = []

    include_overall_rating: bool = True
    overall_rating_scale: RatingScale = RatingScale()
    include_comments: bool = True
    require_comments: bool = False

    status: CriteriaStatus = CriteriaStatus.Active

    @p.model_validator(mode="after")
    def normalize(self, info: p.ValidationInfo) -> t.Self:
        if self.scope is CriteriaScope.Course and self.group_ids:
            self.group_ids = []
        # stored definitions may have lost their last target group to a delete
        stored = bool(info.context and info.context.get("stored"))
        if self.scope is CriteriaScope.Groups and not self.group_ids and not stored:
            raise ValueError("at least one group must be specified when scope is 'groups'")
        # stable, so equal orders keep their declared sequence
        self.parameters = sorted(self.parameters, key=lambda ps: ps.order)
        return self

    @property
    def total_weight(self) -> float:
        return sum(ps.weight for ps in self.parameters)

    @property
    def required_parameters(self) -> tuple[ParameterSpec, ...]:
        return tuple(ps for ps in self.parameters if ps.required)

    def validate_weights(self) -> bool:
        """Check that parameter weights sum to exactly 100.

        A total of zero is accepted (the definition is unweighted). Saving a
        definition never calls this; scores are rescaled at read time.

        Raises:
            gradebook.errors.ValidationError: if the total is nonzero and not 100
        """
        from gradebook.errors import ValidationError

        total = self.total_weight
        if total > 0 and total != 100:
            raise ValidationError(
                f"parameter weights must sum to 100%, current total: {total:g}%", fields=("parameters",)
            )
        return True

    def snapshot(self) -> CriteriaSnapshot:
        """Freeze the parts of this definition that scoring depends on."""
        return CriteriaSnapshot(
            criteria_id=self.criteria_id,
            parameters=tuple(
                ParameterSnapshot(
                    name=ps.name,
                    type=ps.type.value,
                    weight=ps.weight,
                    rating_scale=ps.rating_scale,
                )
                for ps in self.parameters
            ),
            include_overall_rating=self.include_overall_rating,
            overall_rating_scale=self.overall_rating_scale,
        )


class ParameterSnapshot(FrozenModel):
    name: str
    # kept as the raw string so that a type this version doesn't know about
    # survives a round trip through storage and simply scores 0
    type: str
    weight: float = 0
    rating_scale: RatingScale = RatingScale()

    @property
    def parameter_type(self) -> ParameterType | None:
        try:
            return ParameterType(self.type)
        except ValueError:
            return None


class CriteriaSnapshot(FrozenModel):
    criteria_id: CriteriaID | None = None
    parameters: tuple[ParameterSnapshot, ...] = ()
    include_overall_rating: bool = True
    overall_rating_scale: RatingScale = RatingScale()
