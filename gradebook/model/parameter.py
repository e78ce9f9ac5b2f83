"""Typed parameter values.

A stored evaluation keeps its parameters as a plain name -> JSON scalar map;
the declared kind of each value lives in the evaluation's criteria snapshot.
``coerce`` pairs the two into one member of the ``ParameterValue`` union so
that scoring can dispatch on the kind exhaustively.
"""

from __future__ import annotations

import math
import typing as t

import pydantic as p

from .base import FrozenModel
from .criteria import ParameterSnapshot, ParameterType, RatingScale

RawParameterValue = float | int | bool | str | None


class RatingValue(FrozenModel):
    kind: t.Literal["rating"] = "rating"
    value: float
    scale: RatingScale = RatingScale()


class PercentageValue(FrozenModel):
    kind: t.Literal["percentage"] = "percentage"
    value: float


class GradeValue(FrozenModel):
    kind: t.Literal["grade"] = "grade"
    value: str


class BooleanValue(FrozenModel):
    kind: t.Literal["boolean"] = "boolean"
    value: bool


class TextValue(FrozenModel):
    kind: t.Literal["text"] = "text"
    value: str


class UnscoredValue(FrozenModel):
    """A value whose declared type is unknown or which doesn't fit its type."""

    kind: t.Literal["unscored"] = "unscored"
    declared_type: str
    value: t.Any = None


ParameterValue = t.Annotated[
    RatingValue | PercentageValue | GradeValue | BooleanValue | TextValue | UnscoredValue,
    p.Field(discriminator="kind"),
]


def is_present(raw: RawParameterValue) -> bool:
    return raw is not None


def coerce(spec: ParameterSnapshot, raw: RawParameterValue) -> ParameterValue:
    """Interpret ``raw`` as a value of the kind declared by ``spec``.

    Never raises; anything that doesn't fit becomes an ``UnscoredValue``.
    """
    match spec.parameter_type:
        case ParameterType.Rating:
            if (n := _as_number(raw)) is not None:
                return RatingValue(value=n, scale=spec.rating_scale)
        case ParameterType.Percentage:
            if (n := _as_number(raw)) is not None:
                return PercentageValue(value=n)
        case ParameterType.Grade:
            if isinstance(raw, str):
                return GradeValue(value=raw)
        case ParameterType.Boolean:
            if isinstance(raw, bool):
                return BooleanValue(value=raw)
            # older clients send 0/1
            if isinstance(raw, int | float):
                return BooleanValue(value=bool(raw))
        case ParameterType.Text:
            return TextValue(value=str(raw))
        case None:
            pass
    return UnscoredValue(declared_type=spec.type, value=raw)


def _as_number(raw: RawParameterValue) -> float | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int | float):
        n = float(raw)
    elif isinstance(raw, str):
        try:
            n = float(raw)
        except ValueError:
            return None
    else:
        return None
    return n if math.isfinite(n) else None
