"""
Type definitions for the query builder module.
"""

from enum import IntEnum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, model_validator


T = TypeVar("T")


class QueryResult(Generic[T]):
    """Result container for executed queries."""

    def __init__(
        self,
        rows: List[Dict[str, Any]],
        sql: str,
        parameters: List[Any],
        row_count: int,
        model_class: Optional[type] = None,
    ):
        self.rows = rows
        self.sql = sql
        self.parameters = parameters
        self.row_count = row_count
        self.model_class = model_class

    def to_models(self) -> List[T]:
        """Convert rows to Pydantic models if model_class is provided."""
        if not self.model_class:
            raise ValueError("No model class specified for conversion")
        return [self.model_class(**row) for row in self.rows]

    def first(self) -> Optional[Dict[str, Any]]:
        """Get the first row or None."""
        return self.rows[0] if self.rows else None


class TableReference:
    """Represents a table reference in a query."""

    def __init__(
        self, name: str, schema: Optional[str] = None, alias: Optional[str] = None
    ):
        self.name = name
        self.schema = schema
        self.alias = alias

    @property
    def qualified_name(self) -> str:
        """Get the fully qualified table name."""
        if self.schema:
            return f"{self.schema}.{self.name}"
        return self.name

    @property
    def reference_name(self) -> str:
        """Get the name to use for referencing this table."""
        return self.alias or self.name


class Join:
    """
    An entity join registered against a root alias.

    ``join`` is the dotted association path the join was created from,
    e.g. ``"o.author"`` for ``LEFT JOIN ... s_author``.
    """

    def __init__(self, alias: str, join: str):
        self.alias = alias
        self.join = join

    def __repr__(self) -> str:
        return f"Join(alias={self.alias!r}, join={self.join!r})"


class JoinType:
    """Enumeration of SQL join types."""

    INNER = "INNER"
    LEFT = "LEFT"


class MappingType(IntEnum):
    """Association kinds, numbered as Doctrine's ClassMetadata constants."""

    ONE_TO_ONE = 1
    MANY_TO_ONE = 2
    ONE_TO_MANY = 4
    MANY_TO_MANY = 8


class AssociationMapping(BaseModel):
    """Relation metadata needed to join an association and test its emptiness."""

    field_name: str = Field(..., description="Association name on the owning entity")
    mapping_type: MappingType = Field(..., description="Association cardinality")
    target_table: str = Field(..., description="Table of the associated entity")
    target_schema: Optional[str] = Field(None, description="Schema of the target table")
    target_key: str = Field("id", description="Identifier column of the target table")
    source_key: str = Field("id", description="Identifier column of the owning table")
    join_column: Optional[str] = Field(
        None, description="Foreign key column on the owning table (to-one owning side)"
    )
    mapped_by: Optional[str] = Field(
        None, description="Foreign key column on the target table (inverse side)"
    )
    join_table: Optional[str] = Field(None, description="Link table for many-to-many")
    join_table_schema: Optional[str] = Field(None, description="Schema of the link table")
    join_table_source_column: Optional[str] = Field(
        None, description="Link table column referencing the owning table"
    )
    join_table_target_column: Optional[str] = Field(
        None, description="Link table column referencing the target table"
    )

    @model_validator(mode="after")
    def check_join_definition(self) -> "AssociationMapping":
        if self.mapping_type == MappingType.MANY_TO_MANY:
            if not (self.join_table and self.join_table_source_column and self.join_table_target_column):
                raise ValueError(
                    f"Many-to-many association '{self.field_name}' requires join_table, "
                    "join_table_source_column and join_table_target_column"
                )
        elif not (self.join_column or self.mapped_by):
            raise ValueError(
                f"Association '{self.field_name}' requires either join_column or mapped_by"
            )
        return self
