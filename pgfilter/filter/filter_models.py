"""
Models for the filter values submitted by the admin listing forms.

A submitted value has the shape ``{"type": <operator code>, "value": ...}``
where ``value`` is a scalar, a ``{"start", "end"}`` range or a list.
"""
import math
from enum import Enum, IntEnum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator


class DateOperator(IntEnum):
    """Operator codes of the single date filters."""
    GREATER_EQUAL = 1
    GREATER_THAN = 2
    EQUAL = 3
    LESS_EQUAL = 4
    LESS_THAN = 5
    NULL = 6
    NOT_NULL = 7


class DateRangeOperator(IntEnum):
    """Operator codes of the date range filters."""
    BETWEEN = 1
    NOT_BETWEEN = 2


class EqualOperator(IntEnum):
    """Operator codes of the model filter."""
    EQUAL = 1
    NOT_EQUAL = 2


class FilterCondition(str, Enum):
    """How a filter's predicate is combined with the WHERE clause."""
    AND = "and"
    OR = "or"


class FilterData(BaseModel):
    """A submitted filter value."""
    type: Optional[int] = Field(None, description="Operator code, absent when not numeric")
    value: Any = Field(..., description="Scalar, range or list to filter by")

    @field_validator("type", mode="before")
    @classmethod
    def coerce_operator_code(cls, value: Any) -> Optional[int]:
        """Numeric codes (including numeric strings) become ints, anything else is dropped."""
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if math.isfinite(value) else None
        if isinstance(value, str):
            try:
                return int(float(value.strip()))
            except (ValueError, OverflowError):
                return None
        return None


class DateRange(BaseModel):
    """A ``{"start", "end"}`` pair; both keys must be present."""
    start: Any = Field(..., description="Lower bound, falsy when open")
    end: Any = Field(..., description="Upper bound, falsy when open")


def parse_filter_data(data: Any) -> Optional[FilterData]:
    """
    Validate raw filter data.

    Returns None for anything that is not a non-empty mapping with a
    ``value`` key; callers treat that as "nothing to filter".
    """
    if not data or not isinstance(data, Mapping) or "value" not in data:
        return None
    try:
        return FilterData.model_validate(dict(data))
    except ValidationError:
        return None


def parse_date_range(value: Any) -> Optional[DateRange]:
    if not isinstance(value, Mapping):
        return None
    try:
        return DateRange.model_validate(dict(value))
    except ValidationError:
        return None
