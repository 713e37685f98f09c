from pgfilter.query_builder.builder import Query, select
from pgfilter.query_builder.expressions import (
    Expression,
    col,
    literal,
    eq,
    neq,
    gt,
    gte,
    lt,
    lte,
    in_,
    not_in,
    is_null,
    is_not_null,
    exists,
    and_,
    or_,
    not_,
)
from pgfilter.query_builder.types import AssociationMapping, Join, MappingType, QueryResult

__all__ = [
    "Query",
    "select",
    "Expression",
    "col",
    "literal",
    "eq",
    "neq",
    "gt",
    "gte",
    "lt",
    "lte",
    "in_",
    "not_in",
    "is_null",
    "is_not_null",
    "exists",
    "and_",
    "or_",
    "not_",
    "AssociationMapping",
    "Join",
    "MappingType",
    "QueryResult",
]
