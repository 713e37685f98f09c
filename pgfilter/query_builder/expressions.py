"""
Expression builders for the query builder module.

This module provides functions and classes for building SQL predicates
using the PostgreSQL AST via pglast. Filters never interpolate values into
predicates: values are bound through named parameters owned by the
``Query`` and referenced here as ``$n`` placeholders.
"""

from typing import TYPE_CHECKING, Any, List, Optional, Union

from pglast import ast
from pglast.enums import A_Expr_Kind, BoolExprType, NullTestType, SubLinkType

if TYPE_CHECKING:
    from .builder import Query


class Expression:
    """Base class for SQL expressions."""

    def __init__(self, node: ast.Node):
        self.node = node

    def and_(self, other: "Expression") -> "Expression":
        """Combine with another expression using AND."""
        return and_(self, other)

    def or_(self, other: "Expression") -> "Expression":
        """Combine with another expression using OR."""
        return or_(self, other)

    def not_(self) -> "Expression":
        """Negate this expression."""
        return not_(self)


class ColumnExpression(Expression):
    """
    Expression representing a column reference.

    Dotted names are split into qualified fields, so ``col("o.created_at")``
    and ``col("created_at", "o")`` produce the same reference.
    """

    def __init__(self, name: str, table_alias: Optional[str] = None):
        parts = name.split(".")
        if table_alias:
            parts.insert(0, table_alias)

        self.name = parts[-1]
        self.table_alias = ".".join(parts[:-1]) or None

        node = ast.ColumnRef(fields=[ast.String(sval=part) for part in parts])
        super().__init__(node)

    @property
    def qualified_name(self) -> str:
        if self.table_alias:
            return f"{self.table_alias}.{self.name}"
        return self.name

    def eq(self, value: Any) -> Expression:
        return _create_comparison(self, "=", value)

    def ne(self, value: Any) -> Expression:
        return _create_comparison(self, "<>", value)

    def lt(self, value: Any) -> Expression:
        return _create_comparison(self, "<", value)

    def le(self, value: Any) -> Expression:
        return _create_comparison(self, "<=", value)

    def gt(self, value: Any) -> Expression:
        return _create_comparison(self, ">", value)

    def ge(self, value: Any) -> Expression:
        return _create_comparison(self, ">=", value)

    def op(self, operator: str, value: Any) -> Expression:
        """Compare with an arbitrary binary SQL operator."""
        return _create_comparison(self, operator, value)

    def in_(self, values: Union[List[Any], Expression]) -> Expression:
        """
        Create an IN test.

        A literal list renders as ``col IN (a, b)``. A placeholder bound to an
        array renders as ``col = ANY($n)``, which is how PostgreSQL matches
        against a single array parameter.
        """
        if isinstance(values, Expression):
            node = ast.A_Expr(
                kind=A_Expr_Kind.AEXPR_OP_ANY,
                name=[ast.String(sval="=")],
                lexpr=self.node,
                rexpr=values.node,
            )
        else:
            node = ast.A_Expr(
                kind=A_Expr_Kind.AEXPR_IN,
                name=[ast.String(sval="=")],
                lexpr=self.node,
                rexpr=[_value_to_node(v) for v in values],
            )
        return Expression(node)

    def not_in(self, values: Union[List[Any], Expression]) -> Expression:
        """Create a NOT IN test; array placeholders render as ``col <> ALL($n)``."""
        if isinstance(values, Expression):
            node = ast.A_Expr(
                kind=A_Expr_Kind.AEXPR_OP_ALL,
                name=[ast.String(sval="<>")],
                lexpr=self.node,
                rexpr=values.node,
            )
        else:
            node = ast.A_Expr(
                kind=A_Expr_Kind.AEXPR_IN,
                name=[ast.String(sval="<>")],
                lexpr=self.node,
                rexpr=[_value_to_node(v) for v in values],
            )
        return Expression(node)

    def is_null(self) -> Expression:
        return Expression(ast.NullTest(arg=self.node, nulltesttype=NullTestType.IS_NULL))

    def is_not_null(self) -> Expression:
        return Expression(ast.NullTest(arg=self.node, nulltesttype=NullTestType.IS_NOT_NULL))


class PlaceholderExpression(Expression):
    """A ``$n`` reference to a named parameter of a ``Query``."""

    def __init__(self, name: str, number: int):
        self.name = name
        self.number = number
        super().__init__(ast.ParamRef(number=number))

    def __repr__(self) -> str:
        return f"PlaceholderExpression({self.name!r}, ${self.number})"


class LiteralExpression(Expression):
    """Expression representing a literal value."""

    def __init__(self, value: Any):
        super().__init__(_value_to_node(value))


def col(name: str, table_alias: Optional[str] = None) -> ColumnExpression:
    """Create a column reference expression."""
    return ColumnExpression(name, table_alias)


def literal(value: Any) -> LiteralExpression:
    """Create a literal value expression."""
    return LiteralExpression(value)


def _column(column: Union[str, ColumnExpression]) -> ColumnExpression:
    return col(column) if isinstance(column, str) else column


def eq(column: Union[str, ColumnExpression], value: Any) -> Expression:
    return _column(column).eq(value)


def neq(column: Union[str, ColumnExpression], value: Any) -> Expression:
    return _column(column).ne(value)


def gt(column: Union[str, ColumnExpression], value: Any) -> Expression:
    return _column(column).gt(value)


def gte(column: Union[str, ColumnExpression], value: Any) -> Expression:
    return _column(column).ge(value)


def lt(column: Union[str, ColumnExpression], value: Any) -> Expression:
    return _column(column).lt(value)


def lte(column: Union[str, ColumnExpression], value: Any) -> Expression:
    return _column(column).le(value)


def in_(column: Union[str, ColumnExpression], values: Union[List[Any], Expression]) -> Expression:
    return _column(column).in_(values)


def not_in(column: Union[str, ColumnExpression], values: Union[List[Any], Expression]) -> Expression:
    return _column(column).not_in(values)


def is_null(column: Union[str, ColumnExpression]) -> Expression:
    return _column(column).is_null()


def is_not_null(column: Union[str, ColumnExpression]) -> Expression:
    return _column(column).is_not_null()


def exists(subquery: "Query") -> Expression:
    """Create an EXISTS (subquery) test."""
    node = ast.SubLink(
        subLinkType=SubLinkType.EXISTS_SUBLINK,
        subselect=subquery.query_ast(),
    )
    return Expression(node)


def and_(*expressions: Expression) -> Expression:
    """Combine expressions with AND."""
    if len(expressions) == 0:
        raise ValueError("At least one expression required for AND")
    if len(expressions) == 1:
        return expressions[0]

    result = expressions[0]
    for expr in expressions[1:]:
        node = ast.BoolExpr(
            boolop=BoolExprType.AND_EXPR,
            args=[result.node, expr.node]
        )
        result = Expression(node)

    return result


def or_(*expressions: Expression) -> Expression:
    """Combine expressions with OR."""
    if len(expressions) == 0:
        raise ValueError("At least one expression required for OR")
    if len(expressions) == 1:
        return expressions[0]

    result = expressions[0]
    for expr in expressions[1:]:
        node = ast.BoolExpr(
            boolop=BoolExprType.OR_EXPR,
            args=[result.node, expr.node]
        )
        result = Expression(node)

    return result


def not_(expression: Expression) -> Expression:
    """Negate an expression with NOT."""
    node = ast.BoolExpr(
        boolop=BoolExprType.NOT_EXPR,
        args=[expression.node]
    )
    return Expression(node)


def _create_comparison(left: Expression, operator: str, right: Any) -> Expression:
    """Create a comparison expression."""
    right_node = right.node if isinstance(right, Expression) else _value_to_node(right)

    node = ast.A_Expr(
        kind=A_Expr_Kind.AEXPR_OP,
        name=[ast.String(sval=operator)],
        lexpr=left.node,
        rexpr=right_node
    )
    return Expression(node)


def _value_to_node(value: Any) -> ast.Node:
    """Convert a Python value to an AST node."""
    if value is None:
        return ast.A_Const(isnull=True)
    elif isinstance(value, bool):
        return ast.A_Const(val=ast.Boolean(boolval=value))
    elif isinstance(value, int):
        return ast.A_Const(val=ast.Integer(ival=value))
    elif isinstance(value, float):
        return ast.A_Const(val=ast.Float(fval=str(value)))
    elif isinstance(value, Expression):
        return value.node
    else:
        return ast.A_Const(val=ast.String(sval=str(value)))
