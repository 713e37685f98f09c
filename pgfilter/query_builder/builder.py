"""
Query builder that filters mutate while a listing query is being assembled.

SQL is produced from a pglast AST. Values are never inlined: callers
reserve a parameter name, reference it through ``Query.parameter()`` and
bind it with ``Query.set_parameter()``. ``build()`` renders the names as
positional ``$n`` placeholders ready for asyncpg.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import asyncpg
from pglast import ast
from pglast.enums import JoinType as PgJoinType, LimitOption, SetOperation
from pglast.stream import RawStream

from pgfilter.logging_config import get_logger, log_performance
from .expressions import (
    Expression,
    PlaceholderExpression,
    and_,
    col,
    or_,
)
from .types import (
    AssociationMapping,
    Join,
    JoinType,
    MappingType,
    QueryResult,
    TableReference,
)

logger = get_logger(__name__)


def select(*columns: Union[str, Expression]) -> "Query":
    """
    Create a new Query instance with a SELECT clause.

    Args:
        *columns: Column names (strings) or expressions

    Returns:
        Query: New Query instance with SELECT clause
    """
    return Query().select(*columns)


class Query:
    """
    Mutable SELECT builder shared by every filter applied to one listing.

    The builder owns the parameter namespace: names handed out by
    ``new_parameter_name()`` are unique for the lifetime of the instance,
    so any number of filters can be applied to the same query.
    """

    def __init__(self):
        self._select_list: List[Expression] = []
        self._from_clause: Optional[TableReference] = None
        self._joins: List[Tuple[str, TableReference, Optional[Expression]]] = []
        self._where_clause: Optional[Expression] = None

        # Reserved names; a name gets its $n number when first referenced
        self._parameter_names: List[str] = []
        self._parameter_numbers: Dict[str, int] = {}
        self._parameters: Dict[str, Any] = {}
        self._unique_parameter_id = 0

        # Entity joins, keyed by root alias
        self._entity_joins: Dict[str, List[Join]] = {}
        self._entity_join_aliases: List[str] = []

    def select(self, *columns: Union[str, Expression]) -> "Query":
        """Add columns or expressions to the SELECT clause."""
        for column in columns:
            if isinstance(column, str):
                column = col(column)
            self._select_list.append(column)
        return self

    def select_all(self) -> "Query":
        """Reset the SELECT clause to ``*``."""
        self._select_list = []
        return self

    def from_(
        self, table: str, schema: Optional[str] = None, alias: Optional[str] = None
    ) -> "Query":
        """
        Set the FROM clause.

        Args:
            table: Table name
            schema: Optional schema name
            alias: Optional table alias, used as the root alias by filters

        Returns:
            Query: Self for method chaining
        """
        self._from_clause = TableReference(table, schema, alias)
        return self

    def join(
        self,
        table: str,
        on: Optional[Expression] = None,
        join_type: str = JoinType.INNER,
        schema: Optional[str] = None,
        alias: Optional[str] = None,
    ) -> "Query":
        """
        Add a JOIN clause.

        Args:
            table: Table to join
            on: Join condition expression
            join_type: Type of join (INNER or LEFT)
            schema: Optional schema name
            alias: Optional table alias

        Returns:
            Query: Self for method chaining
        """
        self._joins.append((join_type, TableReference(table, schema, alias), on))
        return self

    def left_join(
        self,
        table: str,
        on: Optional[Expression] = None,
        schema: Optional[str] = None,
        alias: Optional[str] = None,
    ) -> "Query":
        """Add a LEFT JOIN clause."""
        return self.join(table, on, JoinType.LEFT, schema, alias)

    def inner_join(
        self,
        table: str,
        on: Optional[Expression] = None,
        schema: Optional[str] = None,
        alias: Optional[str] = None,
    ) -> "Query":
        """Add an INNER JOIN clause."""
        return self.join(table, on, JoinType.INNER, schema, alias)

    def where(self, condition: Expression) -> "Query":
        """AND a condition into the WHERE clause."""
        return self.and_where(condition)

    def and_where(self, condition: Expression) -> "Query":
        """
        Add a WHERE clause condition, combined with AND.

        Args:
            condition: Boolean expression for filtering

        Returns:
            Query: Self for method chaining
        """
        if self._where_clause is None:
            self._where_clause = condition
        else:
            self._where_clause = and_(self._where_clause, condition)
        return self

    def or_where(self, condition: Expression) -> "Query":
        """Add a WHERE clause condition, combined with OR."""
        if self._where_clause is None:
            self._where_clause = condition
        else:
            self._where_clause = or_(self._where_clause, condition)
        return self

    @property
    def where_clause(self) -> Optional[Expression]:
        return self._where_clause

    # Parameters

    def get_unique_parameter_id(self) -> int:
        """Return the next value of this builder's parameter counter."""
        unique_id = self._unique_parameter_id
        self._unique_parameter_id += 1
        return unique_id

    def new_parameter_name(self, prefix: str = "param") -> str:
        """
        Reserve a fresh parameter name.

        Args:
            prefix: Leading part of the name, typically the filter name

        Returns:
            str: A name unique within this builder
        """
        name = f"{prefix}_{self.get_unique_parameter_id()}"
        self._parameter_names.append(name)
        return name

    def parameter(self, name: str) -> PlaceholderExpression:
        """
        Return the ``$n`` placeholder for a reserved parameter name.

        Placeholders are numbered in the order names are first referenced,
        so names that are reserved but never used leave no gap.
        """
        if name not in self._parameter_names:
            raise ValueError(f"Unknown parameter '{name}'")
        if name not in self._parameter_numbers:
            self._parameter_numbers[name] = len(self._parameter_numbers) + 1
        return PlaceholderExpression(name, self._parameter_numbers[name])

    def set_parameter(self, name: str, value: Any) -> "Query":
        """Bind a value to a reserved parameter name."""
        if name not in self._parameter_names:
            raise ValueError(f"Unknown parameter '{name}'")
        self._parameters[name] = value
        return self

    def get_parameter(self, name: str) -> Any:
        return self._parameters.get(name)

    @property
    def parameters(self) -> Dict[str, Any]:
        """Bound parameters by name."""
        return dict(self._parameters)

    # Aliases and entity joins

    def get_root_aliases(self) -> List[str]:
        if self._from_clause is None:
            return []
        return [self._from_clause.reference_name]

    def get_root_alias(self) -> str:
        aliases = self.get_root_aliases()
        if not aliases:
            raise ValueError("Query has no FROM clause")
        return aliases[0]

    def get_joins_for(self, root_alias: str) -> List[Join]:
        """Entity joins registered against the given root alias."""
        return list(self._entity_joins.get(root_alias, []))

    def entity_join(
        self, association_mappings: Sequence[Union[AssociationMapping, Dict[str, Any]]]
    ) -> str:
        """
        Left-join along a chain of associations starting at the root alias.

        Each step is aliased ``s_<field>`` appended to the previous step's
        alias, so the same chain always yields the same alias and is joined
        only once per query.

        Args:
            association_mappings: Associations to follow, outermost first

        Returns:
            str: Alias of the last joined entity, or the root alias for an
            empty chain
        """
        root_alias = self.get_root_alias()
        alias = root_alias
        new_alias = "s"

        for mapping in association_mappings:
            if not isinstance(mapping, AssociationMapping):
                mapping = AssociationMapping.model_validate(mapping)

            new_alias = f"{new_alias}_{mapping.field_name}"
            if new_alias not in self._entity_join_aliases:
                self._entity_join_aliases.append(new_alias)
                self._add_association_join(alias, new_alias, mapping)
                self._entity_joins.setdefault(root_alias, []).append(
                    Join(new_alias, f"{alias}.{mapping.field_name}")
                )
                logger.debug("Joined %s.%s as %s", alias, mapping.field_name, new_alias)
            alias = new_alias

        return alias

    def _add_association_join(
        self, parent_alias: str, alias: str, mapping: AssociationMapping
    ) -> None:
        if mapping.mapping_type == MappingType.MANY_TO_MANY:
            link_alias = f"{alias}_link"
            self.left_join(
                mapping.join_table,
                on=col(mapping.join_table_source_column, link_alias).eq(
                    col(mapping.source_key, parent_alias)
                ),
                schema=mapping.join_table_schema,
                alias=link_alias,
            )
            on = col(mapping.target_key, alias).eq(
                col(mapping.join_table_target_column, link_alias)
            )
        elif mapping.join_column:
            on = col(mapping.target_key, alias).eq(col(mapping.join_column, parent_alias))
        else:
            on = col(mapping.mapped_by, alias).eq(col(mapping.source_key, parent_alias))

        self.left_join(mapping.target_table, on=on, schema=mapping.target_schema, alias=alias)

    # Building

    def query_ast(self) -> ast.SelectStmt:
        """Build the SELECT statement AST."""
        where_clause = self._where_clause.node if self._where_clause else None

        return ast.SelectStmt(
            targetList=self._build_target_list(),
            fromClause=self._build_from_clause(),
            whereClause=where_clause,
            op=SetOperation.SETOP_NONE,
            limitOption=LimitOption.LIMIT_OPTION_DEFAULT,
        )

    def build(self) -> Tuple[str, List[Any]]:
        """
        Render the query.

        Returns:
            Tuple[str, List[Any]]: SQL string and one positional parameter
            per placeholder. Referenced names that were never bound are
            sent as NULL; names never referenced are not sent.
        """
        sql = RawStream()(self.query_ast())
        return sql, [self._parameters.get(name) for name in self._parameter_numbers]

    def _build_target_list(self) -> List[ast.ResTarget]:
        if not self._select_list:
            return [ast.ResTarget(val=ast.ColumnRef(fields=[ast.A_Star()]))]
        return [ast.ResTarget(val=item.node) for item in self._select_list]

    def _build_from_clause(self) -> Optional[List[ast.Node]]:
        if not self._from_clause:
            return None

        node = self._range_var(self._from_clause)
        for join_type, table_ref, condition in self._joins:
            node = ast.JoinExpr(
                jointype=self._map_join_type(join_type),
                larg=node,
                rarg=self._range_var(table_ref),
                quals=condition.node if condition else None,
            )

        return [node]

    @staticmethod
    def _range_var(table_ref: TableReference) -> ast.RangeVar:
        return ast.RangeVar(
            relname=table_ref.name,
            schemaname=table_ref.schema,
            alias=ast.Alias(aliasname=table_ref.alias) if table_ref.alias else None,
            inh=True,  # Include inheritance (removes ONLY keyword)
        )

    @staticmethod
    def _map_join_type(join_type: str) -> PgJoinType:
        mapping = {
            JoinType.INNER: PgJoinType.JOIN_INNER,
            JoinType.LEFT: PgJoinType.JOIN_LEFT,
        }
        return mapping.get(join_type, PgJoinType.JOIN_INNER)

    @log_performance(logger, "query execution")
    async def execute(
        self,
        pool: Optional[asyncpg.Pool] = None,
        connection: Optional[asyncpg.Connection] = None,
        model_class: Optional[type] = None,
    ) -> QueryResult:
        """
        Execute the query and return results.

        Args:
            pool: AsyncPG connection pool
            connection: Optional existing connection to use
            model_class: Optional Pydantic model class for result conversion

        Returns:
            QueryResult: Query results with metadata
        """
        sql, parameters = self.build()
        logger.debug("Executing %s with %d parameter(s)", sql, len(parameters))

        if connection:
            rows = await connection.fetch(sql, *parameters)
        else:
            async with pool.acquire() as conn:
                rows = await conn.fetch(sql, *parameters)

        dict_rows = [dict(row) for row in rows]

        return QueryResult(
            rows=dict_rows,
            sql=sql,
            parameters=parameters,
            row_count=len(dict_rows),
            model_class=model_class,
        )

    def __str__(self) -> str:
        sql, _ = self.build()
        return sql

    def __repr__(self) -> str:
        sql, params = self.build()
        return f"Query(sql='{sql}', params={params})"
