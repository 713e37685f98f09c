from pgfilter.filter.base import Filter, FilterConfigurationError, InvalidMappingTypeError
from pgfilter.filter.date import (
    AbstractDateFilter,
    DateFilter,
    DateRangeFilter,
    DateTimeFilter,
    DateTimeRangeFilter,
)
from pgfilter.filter.filter_models import (
    DateOperator,
    DateRangeOperator,
    EqualOperator,
    FilterCondition,
    FilterData,
)
from pgfilter.filter.model import ModelFilter

__all__ = [
    "Filter",
    "FilterConfigurationError",
    "InvalidMappingTypeError",
    "AbstractDateFilter",
    "DateFilter",
    "DateRangeFilter",
    "DateTimeFilter",
    "DateTimeRangeFilter",
    "DateOperator",
    "DateRangeOperator",
    "EqualOperator",
    "FilterCondition",
    "FilterData",
    "ModelFilter",
]
